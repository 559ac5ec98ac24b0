"""Shared domain models for dbdownloader."""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from dbdownloader.constants import DUMPS_SUBDIR, SOURCE_BACKUP


@dataclass(frozen=True)
class RunOptions:
    """Options of a single run, parsed from CLI flags or prompts."""

    source: Optional[str] = SOURCE_BACKUP
    drop_existing: bool = False
    import_files: bool = False
    db_name_override: Optional[str] = None
    local_file_path: Optional[str] = None
    table_filter: Optional[str] = None
    tenant: Optional[str] = None
    interactive: bool = True

    @property
    def is_remote_dump(self) -> bool:
        return "dump" in (self.source or "")

    @property
    def is_structure_only(self) -> bool:
        return (self.source or "").endswith("structure")

    @property
    def is_staging(self) -> bool:
        return (self.source or "").startswith("staging")


@dataclass(frozen=True)
class RemoteServer:
    host: str
    ssh_user: str
    mysql_config_path: str = ""

    @property
    def address(self) -> str:
        return f"{self.ssh_user}@{self.host}"


@dataclass(frozen=True)
class DatabaseCredentials:
    username: str
    password: str
    host: str
    port: str


@dataclass(frozen=True)
class ResolvedConfig:
    """Validated settings built once per run and shared read-only by all stages."""

    live: RemoteServer
    staging: RemoteServer
    backup: RemoteServer
    backup_path: str
    local_path: str
    credentials_dir: str
    db_name: str
    db_charset: str
    db_collation: str
    credentials: DatabaseCredentials
    use_credentials_file: bool = True
    tenant: Optional[str] = None
    command_timeout: Optional[float] = None
    files_remote_path: Optional[str] = None
    files_local_path: Optional[str] = None
    post_import_commands: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def dumps_dir(self) -> str:
        return os.path.join(self.local_path, DUMPS_SUBDIR)


@dataclass(frozen=True)
class ImportResult:
    success: bool
    message: str

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
