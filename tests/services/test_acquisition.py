import gzip
import io
import os
import shlex
import subprocess
import zipfile

import pytest

from dbdownloader.errors import CommandFailed, ConfigurationError, DownloaderError, InvalidInput, NotFound
from dbdownloader.models import DatabaseCredentials, RemoteServer, ResolvedConfig, RunOptions
from dbdownloader.services.acquisition import SourceAcquirer
from dbdownloader.services.archive import ArchiveService
from dbdownloader.services.decisions import (
    CUSTOM_PATH,
    DOWNLOAD_FRESH,
    CachedFileChoice,
    NonInteractiveDecisions,
)
from dbdownloader.services.filesystem import FileSystemService
from dbdownloader.services.validation import ValidationService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None

    def info(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


class FakeRunner:
    def __init__(self, listing="", on_rsync=None, dump_output="", dump_exit_code=0):
        self.listing = listing
        self.on_rsync = on_rsync
        self.dump_output = dump_output
        self.dump_exit_code = dump_exit_code
        self.commands = []

    def run(self, cmd, check=True, capture_output=False, timeout=None, stdin=None, stdout=None):
        self.commands.append(cmd)
        if cmd[0] == "ssh" and cmd[-1].startswith("ls -t"):
            return subprocess.CompletedProcess(cmd, 0, stdout=self.listing, stderr="")
        if cmd[0] == "rsync" and self.on_rsync:
            self.on_rsync(cmd)
        if cmd[0] == "ssh" and cmd[-1].startswith("mysqldump"):
            stdout.write(self.dump_output)
            if self.dump_exit_code:
                raise CommandFailed("dump failed", exit_code=self.dump_exit_code)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def binaries(self):
        return [cmd[0] for cmd in self.commands]


class RecordingDecisions(NonInteractiveDecisions):
    def __init__(self, cached_choice=None, confirm_dump=True, confirm_clear=True):
        self.cached_choice = cached_choice
        self.confirm_dump = confirm_dump
        self.confirm_clear = confirm_clear
        self.offered_files = None

    def choose_cached_file(self, files):
        self.offered_files = files
        return self.cached_choice or super().choose_cached_file(files)

    def confirm_remote_dump(self):
        return self.confirm_dump

    def confirm_clear_local_directory(self, path):
        return self.confirm_clear


def _config(tmp_path, **overrides) -> ResolvedConfig:
    values = dict(
        live=RemoteServer("live.example.com", "deploy", ".my.cnf"),
        staging=RemoteServer("staging.example.com", "deploy", "/home/deploy/.staging.cnf"),
        backup=RemoteServer("backup.example.com", "backup"),
        backup_path="/srv/backups/acme/default/",
        local_path=str(tmp_path / "database" / "import" / "dumps"),
        credentials_dir=str(tmp_path / "database" / "import"),
        db_name="app",
        db_charset="utf8mb4",
        db_collation="utf8mb4_unicode_ci",
        credentials=DatabaseCredentials("root", "secret", "127.0.0.1", "3306"),
    )
    values.update(overrides)
    return ResolvedConfig(**values)


def _acquirer(tmp_path, options=None, runner=None, decisions=None, **config_overrides):
    logger = DummyLogger()
    console = DummyConsole()
    return SourceAcquirer(
        config=_config(tmp_path, **config_overrides),
        options=options or RunOptions(interactive=False),
        command_runner=runner or FakeRunner(),
        archive_service=ArchiveService(),
        validation_service=ValidationService(),
        filesystem_service=FileSystemService(logger=logger, console=console),
        decisions=decisions or RecordingDecisions(),
        logger=logger,
        console=console,
    )


def _gzip_bytes(payload: bytes) -> bytes:
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb") as file_obj:
        file_obj.write(payload)
    return buffer.getvalue()


def test_local_zip_with_nested_gzip_yields_readable_sql(tmp_path):
    zip_path = tmp_path / "x.zip"
    with zipfile.ZipFile(zip_path, "w") as zip_file:
        zip_file.writestr("db-dumps/x.sql.gz", _gzip_bytes(b"CREATE TABLE x (id int);\n"))

    result = _acquirer(tmp_path).process_local_file(str(zip_path))

    assert result == str((tmp_path / "db-dumps" / "x.sql").resolve())
    assert open(result, encoding="utf-8").read() == "CREATE TABLE x (id int);\n"


def test_local_zip_prefers_sibling_gzip_named_after_archive(tmp_path):
    zip_path = tmp_path / "app.zip"
    with zipfile.ZipFile(zip_path, "w") as zip_file:
        zip_file.writestr("other.sql.gz", _gzip_bytes(b"-- other\n"))
        zip_file.writestr("app.sql.gz", _gzip_bytes(b"-- app\n"))

    result = _acquirer(tmp_path).process_local_file(str(zip_path))

    assert os.path.basename(result) == "app.sql"
    assert open(result, encoding="utf-8").read() == "-- app\n"


def test_local_zip_without_dump_raises_not_found(tmp_path):
    zip_path = tmp_path / "empty.zip"
    with zipfile.ZipFile(zip_path, "w") as zip_file:
        zip_file.writestr("readme.txt", "nothing here")

    with pytest.raises(NotFound):
        _acquirer(tmp_path).process_local_file(str(zip_path))


def test_local_sql_file_is_used_as_is(tmp_path):
    sql_path = tmp_path / "dump.sql"
    sql_path.write_text("SELECT 1;", encoding="utf-8")

    assert _acquirer(tmp_path).process_local_file(str(sql_path)) == str(sql_path.resolve())


def test_local_file_with_unsupported_extension_is_rejected(tmp_path):
    path = tmp_path / "dump.tar"
    path.write_text("x", encoding="utf-8")

    with pytest.raises(InvalidInput):
        _acquirer(tmp_path).process_local_file(str(path))


def test_find_existing_files_orders_sql_before_gzip_before_zip(tmp_path):
    acquirer = _acquirer(tmp_path)
    local_path = tmp_path / "database" / "import" / "dumps"
    dumps_dir = local_path / "db-dumps"
    dumps_dir.mkdir(parents=True)
    (local_path / "backup.zip").write_bytes(b"zip")
    (dumps_dir / "mysql-app.sql.gz").write_bytes(b"gz")
    (local_path / "app.sql").write_text("sql", encoding="utf-8")
    (dumps_dir / "mysql-app.sql").write_text("sql", encoding="utf-8")

    files = acquirer.find_existing_files()

    assert files == [
        str(dumps_dir / "mysql-app.sql"),
        str(local_path / "app.sql"),
        str(dumps_dir / "mysql-app.sql.gz"),
        str(local_path / "backup.zip"),
    ]


def test_non_interactive_run_reuses_first_cached_file_without_network(tmp_path):
    runner = FakeRunner()
    local_path = tmp_path / "database" / "import" / "dumps"
    local_path.mkdir(parents=True)
    (local_path / "app.sql").write_text("SELECT 1;", encoding="utf-8")

    result = _acquirer(tmp_path, runner=runner).acquire()

    assert result == str((local_path / "app.sql").resolve())
    assert runner.commands == []


def test_custom_path_choice_goes_through_local_file_validation(tmp_path):
    local_path = tmp_path / "database" / "import" / "dumps"
    local_path.mkdir(parents=True)
    (local_path / "app.sql").write_text("SELECT 1;", encoding="utf-8")
    decisions = RecordingDecisions(cached_choice=CachedFileChoice(CUSTOM_PATH, str(tmp_path / "x.txt")))
    (tmp_path / "x.txt").write_text("x", encoding="utf-8")

    with pytest.raises(InvalidInput):
        _acquirer(tmp_path, decisions=decisions).acquire()


def test_backup_download_fetches_latest_archive(tmp_path):
    local_path = tmp_path / "database" / "import" / "dumps"

    def fake_rsync(cmd):
        with zipfile.ZipFile(local_path / "dump_2024.zip", "w") as zip_file:
            zip_file.writestr("db-dumps/mysql-app.sql.gz", _gzip_bytes(b"CREATE TABLE a (id int);\n"))

    runner = FakeRunner(listing="dump_2024.zip\nolder.zip\n", on_rsync=fake_rsync)

    result = _acquirer(tmp_path, runner=runner).download_from_backup()

    assert result == str(local_path / "db-dumps" / "mysql-app.sql")
    assert open(result, encoding="utf-8").read() == "CREATE TABLE a (id int);\n"
    assert runner.commands[0] == [
        "ssh",
        "backup@backup.example.com",
        "ls -t /srv/backups/acme/default/ | head -1",
    ]
    assert runner.commands[1] == [
        "rsync",
        "-vzrlptD",
        "backup@backup.example.com:/srv/backups/acme/default/dump_2024.zip",
        str(local_path) + "/",
    ]


def test_backup_listing_quotes_path_with_spaces(tmp_path):
    runner = FakeRunner(listing="")

    result = _acquirer(tmp_path, runner=runner, backup_path="/srv/my backups/").download_from_backup()

    assert result is None
    assert shlex.split(runner.commands[0][-1])[:3] == ["ls", "-t", "/srv/my backups/"]


def test_backup_filename_with_semicolon_is_rejected_before_rsync(tmp_path):
    runner = FakeRunner(listing="dump.zip; rm -rf /\n")

    with pytest.raises(InvalidInput):
        _acquirer(tmp_path, runner=runner).download_from_backup()

    assert "rsync" not in runner.binaries()
    assert not (tmp_path / "database" / "import" / "dumps").exists()


def test_backup_without_expected_dump_raises_not_found(tmp_path):
    local_path = tmp_path / "database" / "import" / "dumps"

    def fake_rsync(cmd):
        with zipfile.ZipFile(local_path / "dump.zip", "w") as zip_file:
            zip_file.writestr("db-dumps/mysql-other.sql.gz", _gzip_bytes(b"--\n"))

    runner = FakeRunner(listing="dump.zip\n", on_rsync=fake_rsync)

    with pytest.raises(NotFound, match="mysql-app.sql.gz"):
        _acquirer(tmp_path, runner=runner).download_from_backup()


def test_backup_requires_remote_configuration(tmp_path):
    runner = FakeRunner()

    with pytest.raises(ConfigurationError):
        _acquirer(tmp_path, runner=runner, backup=RemoteServer("", "")).download_from_backup()

    assert runner.commands == []


def test_remote_dump_command_for_full_live_dump(tmp_path):
    acquirer = _acquirer(tmp_path, options=RunOptions(source="live-dump", interactive=False))

    command = acquirer.build_remote_dump_command(acquirer.remote_server())

    assert command == [
        "ssh",
        "deploy@live.example.com",
        "mysqldump --defaults-extra-file=.my.cnf --databases app",
    ]


def test_remote_dump_command_for_staging_structure_of_one_table(tmp_path):
    options = RunOptions(source="staging-dump-structure", table_filter="orders", interactive=False)
    acquirer = _acquirer(tmp_path, options=options)

    command = acquirer.build_remote_dump_command(acquirer.remote_server())

    assert command[:2] == ["ssh", "deploy@staging.example.com"]
    assert shlex.split(command[2]) == [
        "mysqldump",
        "--defaults-extra-file=/home/deploy/.staging.cnf",
        "app",
        "orders",
        "--no-data",
    ]


def test_remote_dump_quotes_configured_values(tmp_path):
    options = RunOptions(source="live-dump", interactive=False)
    acquirer = _acquirer(
        tmp_path,
        options=options,
        live=RemoteServer("live.example.com", "deploy", "/home/deploy/my cnf;x"),
    )

    command = acquirer.build_remote_dump_command(acquirer.remote_server())

    assert "'--defaults-extra-file=/home/deploy/my cnf;x'" in command[2]


def test_remote_dump_writes_output_into_local_sql_file(tmp_path):
    runner = FakeRunner(dump_output="CREATE DATABASE app;\n")
    options = RunOptions(source="live-dump", interactive=False)

    result = _acquirer(tmp_path, options=options, runner=runner).acquire()

    assert result == str(tmp_path / "database" / "import" / "dumps" / "app.sql")
    assert open(result, encoding="utf-8").read() == "CREATE DATABASE app;\n"


def test_failed_remote_dump_removes_partial_file(tmp_path):
    runner = FakeRunner(dump_output="partial", dump_exit_code=2)
    options = RunOptions(source="live-dump", interactive=False)

    with pytest.raises(CommandFailed):
        _acquirer(tmp_path, options=options, runner=runner).acquire()

    assert not (tmp_path / "database" / "import" / "dumps" / "app.sql").exists()


def test_declined_remote_dump_has_no_side_effects(tmp_path):
    runner = FakeRunner()
    options = RunOptions(source="live-dump")

    with pytest.raises(DownloaderError, match="cancelled"):
        _acquirer(
            tmp_path,
            options=options,
            runner=runner,
            decisions=RecordingDecisions(confirm_dump=False),
        ).acquire()

    assert runner.commands == []
    assert not (tmp_path / "database").exists()


def test_remote_dump_requires_server_configuration(tmp_path):
    options = RunOptions(source="staging-dump", interactive=False)

    with pytest.raises(ConfigurationError, match="staging server"):
        _acquirer(tmp_path, options=options, staging=RemoteServer("", "deploy")).acquire()


def test_declining_to_clear_existing_directory_aborts(tmp_path):
    local_path = tmp_path / "database" / "import" / "dumps"
    local_path.mkdir(parents=True)
    (local_path / "keep.txt").write_text("keep", encoding="utf-8")
    decisions = RecordingDecisions(cached_choice=CachedFileChoice(DOWNLOAD_FRESH), confirm_clear=False)
    options = RunOptions(source="live-dump")

    with pytest.raises(DownloaderError, match="Local directory not cleared"):
        _acquirer(tmp_path, options=options, decisions=decisions).acquire()

    assert (local_path / "keep.txt").exists()


def test_download_fresh_choice_skips_cache_and_fetches_backup(tmp_path):
    local_path = tmp_path / "database" / "import" / "dumps"
    local_path.mkdir(parents=True)
    (local_path / "stale.sql").write_text("-- stale\n", encoding="utf-8")

    def fake_rsync(cmd):
        with zipfile.ZipFile(local_path / "dump_2024.zip", "w") as zip_file:
            zip_file.writestr("db-dumps/mysql-app.sql.gz", _gzip_bytes(b"-- fresh\n"))

    runner = FakeRunner(listing="dump_2024.zip\n", on_rsync=fake_rsync)
    decisions = RecordingDecisions(cached_choice=CachedFileChoice(DOWNLOAD_FRESH))

    result = _acquirer(tmp_path, runner=runner, decisions=decisions).acquire()

    assert decisions.offered_files == [str(local_path / "stale.sql")]
    assert runner.binaries() == ["ssh", "rsync"]
    assert open(result, encoding="utf-8").read() == "-- fresh\n"
    assert not (local_path / "stale.sql").exists()
