"""Transient MySQL client credentials file."""

import os
import secrets
import shlex
from contextlib import contextmanager
from typing import Iterator, List, Optional

from dbdownloader.constants import (
    CREDENTIAL_FILE_MODE,
    CREDENTIAL_FILE_PREFIX,
    CREDENTIAL_FILE_SUFFIX,
)
from dbdownloader.models import DatabaseCredentials
from dbdownloader.services.filesystem import FileSystemService


class CredentialFileManager:
    """Writes an owner-only ``[client]`` option file and guarantees its removal."""

    def __init__(self, directory: str, filesystem_service: FileSystemService, logger):
        self.directory = directory
        self.filesystem_service = filesystem_service
        self.logger = logger

    @staticmethod
    def build_content(credentials: DatabaseCredentials) -> str:
        return "\n".join(
            [
                "[client]",
                f"user = {shlex.quote(credentials.username)}",
                f"password = {shlex.quote(credentials.password)}",
                f"host = {shlex.quote(credentials.host)}",
                f"port = {shlex.quote(credentials.port)}",
                "",
            ]
        )

    def create(self, credentials: DatabaseCredentials) -> str:
        os.makedirs(self.directory, exist_ok=True)
        path = os.path.join(
            self.directory,
            f"{CREDENTIAL_FILE_PREFIX}{secrets.token_hex(16)}{CREDENTIAL_FILE_SUFFIX}",
        )

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, CREDENTIAL_FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as file_obj:
            file_obj.write(self.build_content(credentials))
        # os.open honours the umask, chmod pins the exact mode.
        self.filesystem_service.set_permissions(path, CREDENTIAL_FILE_MODE)

        self.logger.debug("Created MySQL credentials file: %s", path)
        return path

    def remove(self, path: Optional[str]):
        if path:
            self.filesystem_service.remove_file(path)

    @contextmanager
    def scoped(self, credentials: DatabaseCredentials, enabled: bool = True) -> Iterator[Optional[str]]:
        path = self.create(credentials) if enabled else None
        try:
            yield path
        finally:
            self.remove(path)


def mysql_base_command(credentials_path: Optional[str]) -> List[str]:
    if credentials_path is None:
        return ["mysql"]
    return ["mysql", f"--defaults-extra-file={credentials_path}"]
