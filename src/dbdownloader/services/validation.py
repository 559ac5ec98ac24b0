"""Input validation helpers for dbdownloader."""

import os
import re
from pathlib import Path
from typing import Optional

from dbdownloader.constants import (
    IMPORTABLE_EXTENSIONS,
    NAME_PATTERN,
    REMOTE_FILENAME_FORBIDDEN,
    VALID_SOURCES,
)
from dbdownloader.errors import ConfigurationError, InvalidInput
from dbdownloader.errors_catalog import actionable_error


class ValidationService:
    """Validates names, paths, sources and remote values before they reach a command."""

    NAME_RE = re.compile(rf"^{NAME_PATTERN}$")

    def validate_name(self, value: Optional[str], kind: str) -> str:
        if not value:
            raise InvalidInput(f"{kind.capitalize()} name cannot be empty.")

        if not self.NAME_RE.fullmatch(value):
            raise InvalidInput(
                f"Invalid {kind} name `{value}`. Only alphanumeric, underscore, and hyphen allowed."
            )
        return value

    def escape_mysql_identifier(self, identifier: str) -> str:
        if not self.NAME_RE.fullmatch(identifier or ""):
            raise InvalidInput(f"Invalid MySQL identifier: {identifier}")
        return identifier

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def validate_local_path(self, path: Optional[str], safe_root: str) -> str:
        if not path:
            raise InvalidInput("Local path cannot be empty.")

        parent = Path(path).parent.resolve()
        root = Path(safe_root).resolve()
        if not self.is_within_dir(root, parent):
            raise InvalidInput(f"Local path `{path}` must be within `{safe_root}`.")
        return path

    def validate_source(self, source: Optional[str]) -> str:
        if source not in VALID_SOURCES:
            raise InvalidInput(
                actionable_error(
                    "invalid_source",
                    source=str(source),
                    choices=", ".join(VALID_SOURCES),
                )
            )
        return source

    def validate_file_path(self, file_path: str) -> str:
        path = Path(file_path)
        if not path.exists():
            raise InvalidInput(actionable_error("file_not_found", path=file_path))

        try:
            real_path = path.resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            raise InvalidInput(f"Invalid file path: {file_path}") from exc

        if not real_path.is_file():
            raise InvalidInput(f"Path must be a file: {file_path}")

        if not str(real_path).endswith(IMPORTABLE_EXTENSIONS):
            raise InvalidInput(actionable_error("invalid_file_type", path=file_path))
        return str(real_path)

    def validate_remote_filename(self, file_name: str) -> str:
        if any(char in file_name for char in REMOTE_FILENAME_FORBIDDEN):
            raise InvalidInput(f"Invalid characters in backup filename: {file_name!r}")
        return file_name

    def ensure_remote_config(self, host: Optional[str], ssh_user: Optional[str], label: str):
        if not host or not ssh_user:
            raise ConfigurationError(actionable_error("remote_config_missing", label=label))
