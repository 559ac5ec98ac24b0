import logging
import os

import click
from rich.logging import RichHandler

from .core import DatabaseDownloader
from .errors import DownloaderError
from .models import RunOptions
from .services.config_loader import ConfigLoader

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option(
    "--source",
    required=False,
    default=None,
    help="Data source: backup|live-dump|live-dump-structure|staging-dump|staging-dump-structure.",
)
@click.option("--dbName", "db_name", required=False, help="Use a different database name.")
@click.option(
    "--import-from-local-file-path",
    "local_file_path",
    required=False,
    help="Import from a local .sql, .sql.gz or .zip file instead of downloading.",
)
@click.option(
    "--dropExisting",
    "drop_existing",
    is_flag=True,
    default=False,
    help="Drop the database before import if it exists.",
)
@click.option(
    "--files",
    "import_files",
    is_flag=True,
    default=False,
    help="Also sync uploaded files after the import.",
)
@click.option("--table", required=False, help="Import only a specific table.")
@click.option("--tenant", required=False, help="Tenant used in the backup path template.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .dbdownloader.yml if present.",
)
@click.option(
    "--env",
    "environment",
    required=False,
    help="Environment name. Defaults to APP_ENV or the config file value.",
)
@click.option(
    "-n",
    "--no-interaction",
    "no_interaction",
    is_flag=True,
    default=False,
    help="Do not ask any question; use the first cached file and confirm every step.",
)
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    source,
    db_name,
    local_file_path,
    drop_existing,
    import_files,
    table,
    tenant,
    config,
    environment,
    no_interaction,
    verbose,
    log_file,
):
    """Import the live database from the live or backup server to local."""
    logger = logging.getLogger("dbdownloader")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    try:
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ConfigLoader.DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        settings = ConfigLoader().load(resolved_config)
    except DownloaderError as exc:
        raise click.ClickException(str(exc)) from exc

    if source is None and no_interaction:
        source = "backup"

    options = RunOptions(
        source=source,
        drop_existing=drop_existing,
        import_files=import_files,
        db_name_override=db_name,
        local_file_path=local_file_path,
        table_filter=table,
        tenant=tenant,
        interactive=not no_interaction,
    )

    downloader = DatabaseDownloader(
        options=options,
        settings=settings,
        environment=environment,
        verbose=verbose,
        trace_errors=bool(log_file),
    )
    raise SystemExit(downloader.run())


if __name__ == "__main__":
    main()
