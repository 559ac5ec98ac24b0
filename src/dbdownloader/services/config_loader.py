"""Configuration loader for dbdownloader."""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from dbdownloader.errors import ConfigurationError


class ConfigLoader:
    """Loads YAML configuration files and overlays environment variables."""

    DEFAULT_CONFIG_FILE = ".dbdownloader.yml"

    DEFAULTS: Dict[str, Any] = {
        "environment": "local",
        "server": "",
        "ssh_user": "",
        "mysql_config_path": ".my.cnf",
        "staging_server": "",
        "staging_ssh_user": "",
        "staging_mysql_config_path": ".my.cnf",
        "backup_ssh_server": "",
        "backup_ssh_user": "",
        "backup_path_template": "/backups/{tenant}/{backup_name}/",
        "backup_name": "default",
        "tenant": None,
        "mysql_connection": "mysql",
        "connections": {},
        "safe_root": "database",
        "local_path": "database/import/dumps/",
        "use_local_defaults_extra_file": True,
        "command_timeout": None,
        "files_remote_path": None,
        "files_local_path": None,
        "post_import_commands": {},
    }

    ENV_KEYS = {
        "environment": "APP_ENV",
        "server": "DB_DOWNLOADER_SERVER",
        "ssh_user": "DB_DOWNLOADER_SSH_USER",
        "mysql_config_path": "DB_DOWNLOADER_MYSQL_CONFIG_PATH",
        "staging_server": "DB_DOWNLOADER_STAGING_SERVER",
        "staging_ssh_user": "DB_DOWNLOADER_STAGING_SSH_USER",
        "staging_mysql_config_path": "DB_DOWNLOADER_STAGING_MYSQL_CONFIG_PATH",
        "backup_ssh_server": "DB_DOWNLOADER_BACKUP_SSH_SERVER",
        "backup_ssh_user": "DB_DOWNLOADER_BACKUP_SSH_USER",
        "backup_path_template": "DB_DOWNLOADER_BACKUP_PATH_TEMPLATE",
        "backup_name": "DB_DOWNLOADER_BACKUP_NAME",
        "tenant": "DB_DOWNLOADER_TENANT",
        "mysql_connection": "MYSQL_CONNECTION",
        "safe_root": "DB_DOWNLOADER_SAFE_ROOT",
        "local_path": "DB_DOWNLOADER_LOCAL_PATH",
        "use_local_defaults_extra_file": "DB_DOWNLOADER_USE_LOCAL_DEFAULTS_EXTRA_FILE",
        "command_timeout": "DB_DOWNLOADER_COMMAND_TIMEOUT",
        "files_remote_path": "DB_DOWNLOADER_FILES_REMOTE_PATH",
        "files_local_path": "DB_DOWNLOADER_FILES_LOCAL_PATH",
    }

    # Laravel style variables describing the default connection.
    CONNECTION_ENV_KEYS = {
        "host": "DB_HOST",
        "port": "DB_PORT",
        "database": "DB_DATABASE",
        "username": "DB_USERNAME",
        "password": "DB_PASSWORD",
        "charset": "DB_CHARSET",
        "collation": "DB_COLLATION",
    }

    SUPPORTED_KEYS = set(DEFAULTS)

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    def load_file(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        return parsed

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        values = dict(self.DEFAULTS)
        values.update(self.load_file(config_path))

        for key, env_name in self.ENV_KEYS.items():
            if env_name in self.environ:
                values[key] = self._coerce(key, self.environ[env_name])

        values["connections"] = self._merge_connection_env(
            dict(values.get("connections") or {}),
            values["mysql_connection"],
        )
        return values

    def _merge_connection_env(self, connections: Dict[str, Any], connection_key: str):
        connection = dict(connections.get(connection_key) or {})
        for field, env_name in self.CONNECTION_ENV_KEYS.items():
            if env_name in self.environ:
                connection[field] = self.environ[env_name]
        connections[connection_key] = connection
        return connections

    def _coerce(self, key: str, raw: str) -> Any:
        if key == "use_local_defaults_extra_file":
            return raw.strip().lower() in {"1", "true", "yes", "on"}
        if key == "command_timeout":
            if not raw.strip():
                return None
            try:
                return float(raw)
            except ValueError as exc:
                raise ConfigurationError(f"Invalid command timeout: {raw}") from exc
        return raw
