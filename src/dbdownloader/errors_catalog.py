"""Actionable error catalog for dbdownloader."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "production_environment": {
        "what": "This command cannot be executed in production environment.",
        "next": "Run it on a development machine or set `APP_ENV`/`--env` accordingly.",
    },
    "invalid_source": {
        "what": "Invalid source `{source}`. Supported sources are: {choices}.",
        "next": "Pass one of the supported values with `--source`.",
    },
    "invalid_file_type": {
        "what": "Invalid file type: {path}",
        "next": "Only `.sql`, `.sql.gz` and `.zip` files can be imported.",
    },
    "file_not_found": {
        "what": "File does not exist: {path}",
        "next": "Check the path passed to `--import-from-local-file-path`.",
    },
    "remote_config_missing": {
        "what": "Remote server configuration is missing or invalid for {label}.",
        "next": "Set the host and SSH user in the config file or environment.",
    },
    "credentials_missing": {
        "what": "Database credentials are not configured properly for connection `{connection}`.",
        "next": "Provide at least `username` and `host` (or `DB_USERNAME`/`DB_HOST`).",
    },
    "table_not_found": {
        "what": "Table '{table}' was not found in the SQL file {path}.",
        "next": "Check the table name or import the full dump without `--table`.",
    },
    "nothing_to_import": {
        "what": "No file to import found.",
        "next": "Check the backup server listing or pass `--import-from-local-file-path`.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
