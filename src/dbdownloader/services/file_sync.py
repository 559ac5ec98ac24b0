"""Syncs uploaded files from the live server when an import asks for them."""

from dbdownloader.constants import RSYNC_FLAGS
from dbdownloader.events import DatabaseImported
from dbdownloader.models import ResolvedConfig


class FileSyncListener:
    """Listens for ``DatabaseImported`` and rsyncs the uploads directory."""

    def __init__(self, config: ResolvedConfig, command_runner, filesystem_service, logger, console):
        self.config = config
        self.command_runner = command_runner
        self.filesystem_service = filesystem_service
        self.logger = logger
        self.console = console

    @property
    def enabled(self) -> bool:
        return bool(self.config.files_remote_path and self.config.files_local_path)

    def __call__(self, event: DatabaseImported):
        if not event.files_imported:
            return

        if not self.enabled:
            self.console.print(
                "[yellow]File sync requested but `files_remote_path`/`files_local_path` "
                "are not configured.[/yellow]"
            )
            self.logger.warning("Skipping file sync: remote or local files path not configured.")
            return

        server = self.config.live
        if not server.host or not server.ssh_user:
            self.logger.warning("Skipping file sync: live server configuration is missing.")
            return

        local_path = str(self.config.files_local_path).rstrip("/") + "/"
        remote_path = str(self.config.files_remote_path).rstrip("/") + "/"
        self.filesystem_service.ensure_dir(local_path)

        self.console.print(f"[blue]Syncing files from {server.host}...[/blue]")
        self.logger.info("Syncing files %s:%s into %s", server.host, remote_path, local_path)
        self.command_runner.run(
            ["rsync", RSYNC_FLAGS, f"{server.address}:{remote_path}", local_path],
            check=True,
            capture_output=True,
        )
        self.console.print("[green]Files synced.[/green]")
