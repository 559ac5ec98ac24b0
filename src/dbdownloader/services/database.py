"""MySQL create/drop, table filtering and import services for dbdownloader."""

import os
import re
import shutil
import tempfile
from typing import List, Optional

from dbdownloader.constants import PV_FLAGS, SQL_EXTENSION, TABLE_STRUCTURE_MARKER
from dbdownloader.errors import NotFound
from dbdownloader.errors_catalog import actionable_error
from dbdownloader.services.credentials import mysql_base_command


class DatabaseService:
    """Runs the local MySQL client through the transient credentials file."""

    def __init__(self, logger, console, command_runner, validation_service, credentials_path: Optional[str]):
        self.logger = logger
        self.console = console
        self.command_runner = command_runner
        self.validation_service = validation_service
        self.credentials_path = credentials_path

    @property
    def mysql_command(self) -> List[str]:
        return mysql_base_command(self.credentials_path)

    def execute(self, statement: str):
        self.command_runner.run(
            self.mysql_command + [f"--execute={statement}"],
            check=True,
            capture_output=True,
        )

    def drop_database(self, name: str):
        safe_name = self.validation_service.escape_mysql_identifier(name)
        self.console.print(f"[blue]Dropping existing database {safe_name}...[/blue]")
        self.logger.info("Dropping database %s", safe_name)
        self.execute(f"DROP DATABASE IF EXISTS `{safe_name}`")

    def create_database(self, name: str, charset: str, collation: str):
        escape = self.validation_service.escape_mysql_identifier
        safe_name, safe_charset, safe_collation = escape(name), escape(charset), escape(collation)
        self.console.print(f"[blue]Creating database {safe_name}...[/blue]")
        self.logger.info("Creating database %s (%s, %s)", safe_name, safe_charset, safe_collation)
        self.execute(
            f"CREATE DATABASE IF NOT EXISTS `{safe_name}` "
            f"DEFAULT CHARACTER SET {safe_charset} COLLATE {safe_collation}"
        )

    @staticmethod
    def _table_marker_re(table: str):
        return re.compile(rf"^{re.escape(TABLE_STRUCTURE_MARKER)}.*`{re.escape(table)}`")

    def filter_table_from_dump(self, dump_path: str, table: str) -> str:
        """Writes the section of ``dump_path`` belonging to ``table`` into a new file.

        A section starts at the ``-- Table structure for table `<table>``` marker
        and ends right before the next table structure marker, so it carries both
        the structure and the data of that table.
        """
        table = self.validation_service.validate_name(table, "table")
        target_dir = os.path.dirname(dump_path)
        filtered_path = os.path.join(target_dir, f"{table}{SQL_EXTENSION}")
        if os.path.exists(filtered_path):
            # Never overwrite an existing file, including the dump itself.
            fd, filtered_path = tempfile.mkstemp(prefix=f"{table}-", suffix=SQL_EXTENSION, dir=target_dir)
            os.close(fd)

        self.console.print(f"[blue]Filtering SQL file for table '{table}'...[/blue]")
        marker_re = self._table_marker_re(table)
        in_section = False
        written_lines = 0

        with open(dump_path, "r", encoding="utf-8", errors="surrogateescape") as src_file, open(
            filtered_path, "w", encoding="utf-8", errors="surrogateescape", newline=""
        ) as dst_file:
            for line in src_file:
                if line.startswith(TABLE_STRUCTURE_MARKER):
                    in_section = marker_re.match(line) is not None
                if in_section:
                    dst_file.write(line)
                    written_lines += 1

        if written_lines == 0:
            os.remove(filtered_path)
            raise NotFound(actionable_error("table_not_found", table=table, path=dump_path))

        self.logger.info("Filtered %s line(s) for table %s into %s", written_lines, table, filtered_path)
        return filtered_path

    def is_pv_available(self) -> bool:
        return shutil.which("pv") is not None

    def import_file(self, path: str, db_name: str):
        safe_name = self.validation_service.escape_mysql_identifier(db_name)
        consumer = self.mysql_command + [safe_name]

        if self.is_pv_available():
            self.console.print("[blue]Importing SQL file...[/blue]")
            self.logger.info("Importing %s into %s with progress", path, safe_name)
            self.command_runner.run_pipeline(["pv", *PV_FLAGS, path], consumer)
        else:
            self.console.print(
                "[blue]Importing SQL file...[/blue] "
                "[dim](install `pv` to see the progress)[/dim]"
            )
            self.logger.info("Importing %s into %s", path, safe_name)
            with open(path, "rb") as file_obj:
                self.command_runner.run(consumer, check=True, capture_output=True, stdin=file_obj)

        self.console.print("[green]SQL file imported.[/green]")
