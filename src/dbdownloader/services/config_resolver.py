"""Builds the immutable run configuration from loaded settings and run options."""

import os
import shlex
from typing import Any, Dict, List, Mapping, Optional

from dbdownloader.errors import ConfigurationError
from dbdownloader.errors_catalog import actionable_error
from dbdownloader.models import DatabaseCredentials, RemoteServer, ResolvedConfig, RunOptions
from dbdownloader.services.validation import ValidationService


class ConfigResolver:
    """Validates every value needed by the run before any network or disk I/O."""

    DEFAULT_CHARSET = "utf8mb4"
    DEFAULT_COLLATION = "utf8mb4_unicode_ci"
    DEFAULT_PORT = "3306"

    def __init__(self, settings: Mapping[str, Any], validation_service: ValidationService):
        self.settings = settings
        self.validation_service = validation_service

    @staticmethod
    def resolve_backup_path(template: str, tenant: Optional[str], backup_name: str) -> str:
        return template.replace("{tenant}", tenant or "").replace("{backup_name}", backup_name)

    def connection(self, connection_key: str) -> Dict[str, Any]:
        connections = self.settings.get("connections") or {}
        return dict(connections.get(connection_key) or {})

    def load_credentials(self, connection_key: str) -> DatabaseCredentials:
        connection = self.connection(connection_key)
        username = connection.get("username")
        host = connection.get("host")
        if not username or not host:
            raise ConfigurationError(
                actionable_error("credentials_missing", connection=connection_key)
            )

        return DatabaseCredentials(
            username=str(username),
            password=str(connection.get("password") or ""),
            host=str(host),
            port=str(connection.get("port") or self.DEFAULT_PORT),
        )

    def resolve(self, options: RunOptions) -> ResolvedConfig:
        validation = self.validation_service
        settings = self.settings
        connection_key = settings["mysql_connection"]
        connection = self.connection(connection_key)

        local_path = validation.validate_local_path(settings["local_path"], settings["safe_root"])
        db_name = validation.validate_name(
            options.db_name_override or connection.get("database"),
            "database",
        )

        tenant = options.tenant or settings.get("tenant")
        if tenant:
            tenant = validation.validate_name(tenant, "tenant")

        charset = validation.escape_mysql_identifier(
            str(connection.get("charset") or self.DEFAULT_CHARSET)
        )
        collation = validation.escape_mysql_identifier(
            str(connection.get("collation") or self.DEFAULT_COLLATION)
        )

        # Backup names are substituted verbatim, dots included.
        backup_path = self.resolve_backup_path(
            settings["backup_path_template"],
            tenant,
            str(settings.get("backup_name") or ""),
        )

        return ResolvedConfig(
            live=RemoteServer(
                host=settings["server"] or "",
                ssh_user=settings["ssh_user"] or "",
                mysql_config_path=settings["mysql_config_path"] or "",
            ),
            staging=RemoteServer(
                host=settings["staging_server"] or "",
                ssh_user=settings["staging_ssh_user"] or "",
                mysql_config_path=settings["staging_mysql_config_path"] or "",
            ),
            backup=RemoteServer(
                host=settings["backup_ssh_server"] or "",
                ssh_user=settings["backup_ssh_user"] or "",
            ),
            backup_path=backup_path,
            local_path=os.path.abspath(local_path),
            credentials_dir=os.path.dirname(os.path.abspath(local_path.rstrip("/\\"))),
            db_name=db_name,
            db_charset=charset,
            db_collation=collation,
            credentials=self.load_credentials(connection_key),
            use_credentials_file=bool(settings["use_local_defaults_extra_file"]),
            tenant=tenant or None,
            command_timeout=self._timeout(settings.get("command_timeout")),
            files_remote_path=settings.get("files_remote_path") or None,
            files_local_path=settings.get("files_local_path") or None,
            post_import_commands=self._post_import_commands(settings.get("post_import_commands")),
        )

    @staticmethod
    def _timeout(value: Any) -> Optional[float]:
        if value in (None, ""):
            return None
        try:
            timeout = float(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid command timeout: {value}") from exc
        if timeout <= 0:
            raise ConfigurationError("Command timeout must be a positive number of seconds.")
        return timeout

    @staticmethod
    def _post_import_commands(value: Any) -> Dict[str, List[str]]:
        if not value:
            return {}
        if not isinstance(value, dict):
            raise ConfigurationError("`post_import_commands` must map hook names to commands.")

        commands: Dict[str, List[str]] = {}
        for name, command in value.items():
            if isinstance(command, str):
                command = shlex.split(command)
            if not isinstance(command, list) or not command or not all(
                isinstance(part, str) for part in command
            ):
                raise ConfigurationError(
                    f"Post-import command `{name}` must be a string or a list of strings."
                )
            commands[str(name)] = command
        return commands
