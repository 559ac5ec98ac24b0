import dataclasses
import logging
import os
from typing import Any, Iterable, Mapping, Optional

from rich.console import Console

from .errors import DownloaderError, EnvironmentBlocked, NotFound
from .errors_catalog import actionable_error
from .events import DatabaseImported, EventDispatcher
from .models import ImportResult, ResolvedConfig, RunOptions
from .services.acquisition import SourceAcquirer
from .services.archive import ArchiveService
from .services.command_runner import CommandRunner
from .services.config_resolver import ConfigResolver
from .services.credentials import CredentialFileManager
from .services.database import DatabaseService
from .services.decisions import DecisionProvider, InteractiveDecisions, NonInteractiveDecisions
from .services.environment import can_run
from .services.file_sync import FileSyncListener
from .services.filesystem import FileSystemService
from .services.hooks import HookRegistry, PostImportHook
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("dbdownloader")


class DatabaseDownloader:
    """Fetches a MySQL snapshot and imports it into the local development database."""

    def __init__(
        self,
        options: RunOptions,
        settings: Mapping[str, Any],
        environment: Optional[str] = None,
        decisions: Optional[DecisionProvider] = None,
        dispatcher: Optional[EventDispatcher] = None,
        hooks: Iterable[PostImportHook] = (),
        command_runner: Optional[CommandRunner] = None,
        verbose: bool = False,
        trace_errors: bool = False,
    ):
        self.options = options
        self.settings = settings
        self.environment = environment if environment is not None else settings.get("environment")
        self.verbose = verbose
        self.trace_errors = trace_errors

        if decisions is None:
            decisions = (
                InteractiveDecisions(console) if options.interactive else NonInteractiveDecisions()
            )
        self.decisions = decisions
        self.dispatcher = dispatcher or EventDispatcher()
        self.extra_hooks = list(hooks)
        self.command_runner = command_runner

        self.validation_service = ValidationService()
        self.archive_service = ArchiveService()
        self.filesystem_service = FileSystemService(logger=logger, console=console)

    def guard_environment(self):
        if not can_run(self.environment):
            raise EnvironmentBlocked(actionable_error("production_environment"))

    def resolve_options(self) -> RunOptions:
        options = self.options
        source = options.source
        if source is None:
            source = self.decisions.choose_source()
        self.validation_service.validate_source(source)

        table = options.table_filter
        if table is not None:
            table = self.validation_service.validate_name(table, "table")

        return dataclasses.replace(options, source=source, table_filter=table)

    def resolve_config(self, options: RunOptions) -> ResolvedConfig:
        resolver = ConfigResolver(self.settings, self.validation_service)
        return resolver.resolve(options)

    def log_options(self, options: RunOptions, config: ResolvedConfig):
        logger.debug("Source: %s", options.source)
        logger.debug("Database: %s", config.db_name)
        logger.debug("Drop existing: %s", "Yes" if options.drop_existing else "No")
        logger.debug("Import files: %s", "Yes" if options.import_files else "No")
        if options.table_filter:
            logger.debug("Table: %s", options.table_filter)
        if config.tenant:
            logger.debug("Tenant: %s", config.tenant)

    def import_database(
        self,
        options: RunOptions,
        config: ResolvedConfig,
        credentials_path: Optional[str],
        command_runner: CommandRunner,
    ) -> ImportResult:
        acquirer = SourceAcquirer(
            config=config,
            options=options,
            command_runner=command_runner,
            archive_service=self.archive_service,
            validation_service=self.validation_service,
            filesystem_service=self.filesystem_service,
            decisions=self.decisions,
            logger=logger,
            console=console,
        )
        file_to_import = acquirer.acquire()
        if not file_to_import or not os.path.isfile(file_to_import):
            raise NotFound(actionable_error("nothing_to_import"))

        database_service = DatabaseService(
            logger=logger,
            console=console,
            command_runner=command_runner,
            validation_service=self.validation_service,
            credentials_path=credentials_path,
        )

        if options.table_filter:
            file_to_import = database_service.filter_table_from_dump(
                file_to_import, options.table_filter
            )
            if options.drop_existing:
                logger.warning("--dropExisting is ignored when importing a single table.")
            console.print(
                f"[bold blue]Importing table '{options.table_filter}' "
                f"into database '{config.db_name}'[/bold blue]"
            )
        else:
            console.print("[bold blue]Importing database[/bold blue]")
            if options.drop_existing:
                database_service.drop_database(config.db_name)
            database_service.create_database(config.db_name, config.db_charset, config.db_collation)

        database_service.import_file(file_to_import, config.db_name)

        self.dispatch_events(options, config, command_runner)
        self.cleanup(config, command_runner)

        message = "Database import completed successfully"
        console.print(f"[bold green]{message}[/bold green]")
        logger.info(message)
        return ImportResult(success=True, message=message)

    def dispatch_events(self, options: RunOptions, config: ResolvedConfig, command_runner):
        if options.import_files:
            self.dispatcher.listen(
                DatabaseImported,
                FileSyncListener(
                    config=config,
                    command_runner=command_runner,
                    filesystem_service=self.filesystem_service,
                    logger=logger,
                    console=console,
                ),
            )

        failures = self.dispatcher.dispatch(
            DatabaseImported(files_imported=options.import_files, tenant=config.tenant)
        )
        if failures:
            console.print(
                f"[yellow]Warning:[/yellow] {failures} post-import listener(s) failed. See the log."
            )

    def cleanup(self, config: ResolvedConfig, command_runner):
        console.print("[blue]Cleaning up...[/blue]")
        logger.info("Cleaning up")

        registry = HookRegistry.from_commands(
            config.post_import_commands,
            command_runner=command_runner,
            logger=logger,
            console=console,
        )
        for hook in self.extra_hooks:
            registry.register(hook)
        registry.run_all()

        if not os.path.exists(config.local_path):
            return

        if self.decisions.confirm_cleanup(config.local_path):
            self.filesystem_service.cleanup_dir(config.local_path)
            logger.info("Removed temporary files in %s", config.local_path)
        else:
            console.print(f"Temporary files kept in: {config.local_path}")

    def execute(self) -> ImportResult:
        try:
            self.guard_environment()
            logger.info("Starting database download...")

            options = self.resolve_options()
            config = self.resolve_config(options)
            if self.verbose:
                self.log_options(options, config)

            command_runner = self.command_runner or CommandRunner(
                logger=logger,
                default_timeout=config.command_timeout,
            )
            credential_manager = CredentialFileManager(
                directory=config.credentials_dir,
                filesystem_service=self.filesystem_service,
                logger=logger,
            )
            with credential_manager.scoped(
                config.credentials,
                enabled=config.use_credentials_file,
            ) as credentials_path:
                return self.import_database(options, config, credentials_path, command_runner)

        except KeyboardInterrupt:
            message = "Operation cancelled by user."
            console.print(f"[bold red]{message}[/bold red]")
            logger.info(message)
            return ImportResult(success=False, message=message)
        except DownloaderError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            if self.trace_errors:
                logger.error(str(exc), exc_info=exc)
            else:
                logger.error(str(exc))
                logger.debug("Database import failed", exc_info=exc)
            return ImportResult(success=False, message=str(exc))
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return ImportResult(success=False, message=str(exc))

    def run(self) -> int:
        return self.execute().exit_code
