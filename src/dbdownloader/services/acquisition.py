"""Obtains the SQL file to import: local file, cached download, backup or remote dump."""

import glob
import os
import posixpath
import shlex
from typing import List, Optional

from dbdownloader.constants import (
    BACKUP_DUMP_TEMPLATE,
    GZIP_SQL_EXTENSION,
    RSYNC_FLAGS,
    SQL_EXTENSION,
    ZIP_EXTENSION,
)
from dbdownloader.errors import CommandFailed, DownloaderError, InvalidInput, NotFound
from dbdownloader.models import RemoteServer, ResolvedConfig, RunOptions
from dbdownloader.services.decisions import DOWNLOAD_FRESH, DecisionProvider


class SourceAcquirer:
    """Produces at most one importable ``.sql`` path per run."""

    def __init__(
        self,
        config: ResolvedConfig,
        options: RunOptions,
        command_runner,
        archive_service,
        validation_service,
        filesystem_service,
        decisions: DecisionProvider,
        logger,
        console,
    ):
        self.config = config
        self.options = options
        self.command_runner = command_runner
        self.archive_service = archive_service
        self.validation_service = validation_service
        self.filesystem_service = filesystem_service
        self.decisions = decisions
        self.logger = logger
        self.console = console

    def acquire(self) -> Optional[str]:
        if self.options.local_file_path:
            return self.process_local_file(self.options.local_file_path)

        existing_file = self.handle_existing_files()
        if existing_file is not None:
            return existing_file

        if self.options.is_remote_dump:
            return self.dump_from_remote()
        return self.download_from_backup()

    # Branch A: explicit local file

    def process_local_file(self, file_path: str) -> str:
        path = self.validation_service.validate_file_path(file_path)

        if path.endswith(ZIP_EXTENSION):
            self.console.print("[blue]Extracting ZIP file...[/blue]")
            self.logger.info("Extracting %s", path)
            path = self._extract_dump_from_zip(path)

        if path.endswith(GZIP_SQL_EXTENSION):
            self.console.print("[blue]Decompressing SQL file...[/blue]")
            self.logger.info("Decompressing %s", path)
            path = self.archive_service.gunzip(path)

        if not path.endswith(SQL_EXTENSION):
            raise InvalidInput(f"Expected a `.sql` file after extraction, got: {path}")
        return path

    def _extract_dump_from_zip(self, zip_path: str) -> str:
        extracted = self.archive_service.safe_extract_zip(zip_path, os.path.dirname(zip_path))

        sibling = zip_path[: -len(ZIP_EXTENSION)] + GZIP_SQL_EXTENSION
        if os.path.isfile(sibling):
            return sibling

        for extension in (GZIP_SQL_EXTENSION, SQL_EXTENSION):
            for candidate in extracted:
                if candidate.endswith(extension):
                    return candidate

        raise NotFound(f"No `.sql.gz` or `.sql` dump found inside ZIP archive: {zip_path}")

    # Branch B: previously downloaded files

    def find_existing_files(self) -> List[str]:
        """Lists cached dumps, ready-to-import ``.sql`` first, then ``.sql.gz``, then ``.zip``."""
        local_path = self.config.local_path
        if not os.path.isdir(local_path):
            return []

        dumps_dir = self.config.dumps_dir
        patterns = [
            os.path.join(dumps_dir, "*" + SQL_EXTENSION),
            os.path.join(local_path, "*" + SQL_EXTENSION),
            os.path.join(dumps_dir, "*" + GZIP_SQL_EXTENSION),
            os.path.join(local_path, "*" + GZIP_SQL_EXTENSION),
            os.path.join(local_path, "*" + ZIP_EXTENSION),
        ]

        files: List[str] = []
        for pattern in patterns:
            for file_path in sorted(glob.glob(pattern)):
                if file_path not in files:
                    files.append(file_path)
        return files

    def handle_existing_files(self) -> Optional[str]:
        existing_files = self.find_existing_files()
        if not existing_files:
            return None

        choice = self.decisions.choose_cached_file(existing_files)
        if choice.action == DOWNLOAD_FRESH:
            return None

        self.logger.info("Using existing file: %s", choice.path)
        return self.process_local_file(choice.path or "")

    # Branch C: fresh acquisition

    def ensure_local_directory(self):
        local_path = self.config.local_path
        if os.path.exists(local_path):
            if not self.decisions.confirm_clear_local_directory(local_path):
                raise DownloaderError("Download cancelled by user. Local directory not cleared.")
            self.filesystem_service.cleanup_dir(local_path)

        self.filesystem_service.ensure_dir(local_path)

    def download_from_backup(self) -> Optional[str]:
        server = self.config.backup
        self.validation_service.ensure_remote_config(server.host, server.ssh_user, "backup server")

        file_name = self.latest_backup_name(server)
        if not file_name:
            self.console.print("[yellow]No backup file found.[/yellow]")
            self.logger.warning("No backup file found in %s on %s", self.config.backup_path, server.host)
            return None

        self.validation_service.validate_remote_filename(file_name)
        self.ensure_local_directory()

        remote_file = posixpath.join(self.config.backup_path, file_name)
        self.console.print(f"[blue]Downloading {file_name} from {server.host}...[/blue]")
        self.logger.info("Downloading backup %s:%s", server.host, remote_file)
        self.command_runner.run(
            [
                "rsync",
                RSYNC_FLAGS,
                f"{server.address}:{remote_file}",
                self.config.local_path.rstrip("/") + "/",
            ],
            check=True,
            capture_output=True,
        )

        local_file = os.path.join(self.config.local_path, file_name)
        if not local_file.endswith(ZIP_EXTENSION):
            return self.process_local_file(local_file)

        self.console.print("[blue]Extracting backup archive...[/blue]")
        self.archive_service.safe_extract_zip(local_file, self.config.local_path)

        gz_file = os.path.join(
            self.config.dumps_dir,
            BACKUP_DUMP_TEMPLATE.format(db_name=self.config.db_name),
        )
        if not os.path.isfile(gz_file):
            raise NotFound(f"Backup archive {file_name} does not contain {os.path.basename(gz_file)}.")

        self.console.print("[blue]Decompressing SQL file...[/blue]")
        return self.archive_service.gunzip(gz_file)

    def latest_backup_name(self, server: RemoteServer) -> str:
        listing = f"ls -t {shlex.quote(self.config.backup_path)} | head -1"
        result = self.command_runner.run(
            ["ssh", server.address, listing],
            check=True,
            capture_output=True,
        )
        lines = (result.stdout or "").splitlines()
        return lines[0].strip() if lines else ""

    def remote_server(self) -> RemoteServer:
        return self.config.staging if self.options.is_staging else self.config.live

    def build_remote_dump_command(self, server: RemoteServer) -> List[str]:
        mysqldump = ["mysqldump"]
        if server.mysql_config_path:
            mysqldump.append(f"--defaults-extra-file={server.mysql_config_path}")

        if self.options.table_filter:
            mysqldump.extend([self.config.db_name, self.options.table_filter])
        else:
            mysqldump.extend(["--databases", self.config.db_name])

        if self.options.is_structure_only:
            mysqldump.append("--no-data")

        return ["ssh", server.address, shlex.join(mysqldump)]

    def dump_from_remote(self) -> str:
        self.console.print(
            "[bold yellow]Warning:[/bold yellow] Remote dump will temporarily block the database."
        )
        if not self.decisions.confirm_remote_dump():
            raise DownloaderError("Remote dump cancelled by user.")

        server = self.remote_server()
        label = "staging server" if self.options.is_staging else "live server"
        self.validation_service.ensure_remote_config(server.host, server.ssh_user, label)
        self.ensure_local_directory()

        local_file = os.path.join(self.config.local_path, f"{self.config.db_name}{SQL_EXTENSION}")
        command = self.build_remote_dump_command(server)

        self.console.print(f"[blue]Dumping from {server.host}...[/blue]")
        self.logger.info("Dumping %s from %s into %s", self.config.db_name, server.host, local_file)
        try:
            with open(local_file, "w", encoding="utf-8") as file_obj:
                self.command_runner.run(command, check=True, capture_output=True, stdout=file_obj)
        except CommandFailed:
            self.filesystem_service.remove_file(local_file)
            raise

        return local_file
