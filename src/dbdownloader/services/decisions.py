"""Operator decisions, asked interactively or answered with fixed defaults."""

from dataclasses import dataclass
from typing import List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt

from dbdownloader.constants import SOURCE_BACKUP

USE_FILE = "use"
CUSTOM_PATH = "custom"
DOWNLOAD_FRESH = "fresh"


@dataclass(frozen=True)
class CachedFileChoice:
    action: str
    path: Optional[str] = None


class DecisionProvider:
    """Answers the questions the workflow would otherwise ask the operator."""

    def choose_source(self) -> str:
        raise NotImplementedError

    def choose_cached_file(self, files: List[str]) -> CachedFileChoice:
        raise NotImplementedError

    def confirm_remote_dump(self) -> bool:
        raise NotImplementedError

    def confirm_clear_local_directory(self, path: str) -> bool:
        raise NotImplementedError

    def confirm_cleanup(self, path: str) -> bool:
        raise NotImplementedError


class NonInteractiveDecisions(DecisionProvider):
    """Never prompts: backup source, first cached file, every confirmation accepted."""

    def choose_source(self) -> str:
        return SOURCE_BACKUP

    def choose_cached_file(self, files: List[str]) -> CachedFileChoice:
        if not files:
            return CachedFileChoice(DOWNLOAD_FRESH)
        return CachedFileChoice(USE_FILE, files[0])

    def confirm_remote_dump(self) -> bool:
        return True

    def confirm_clear_local_directory(self, path: str) -> bool:
        return True

    def confirm_cleanup(self, path: str) -> bool:
        return True


class InteractiveDecisions(DecisionProvider):
    """Asks the operator through rich prompts."""

    def __init__(self, console: Console):
        self.console = console

    def choose_source(self) -> str:
        environment = Prompt.ask(
            "Select the data source",
            choices=["backup", "staging", "live"],
            default="backup",
            console=self.console,
        )
        if environment == "backup":
            return SOURCE_BACKUP

        dump_type = Prompt.ask(
            "Select dump type",
            choices=["full", "structure"],
            default="full",
            console=self.console,
        )
        suffix = "-structure" if dump_type == "structure" else ""
        return f"{environment}-dump{suffix}"

    def choose_cached_file(self, files: List[str]) -> CachedFileChoice:
        if not files:
            return CachedFileChoice(DOWNLOAD_FRESH)

        self.console.print("[bold]Found existing files. What would you like to do?[/bold]")
        for index, file_path in enumerate(files, start=1):
            self.console.print(f"  [cyan]{index}[/cyan]. Use: {file_path}")
        custom_choice = len(files) + 1
        fresh_choice = len(files) + 2
        self.console.print(f"  [cyan]{custom_choice}[/cyan]. Enter custom path")
        self.console.print(f"  [cyan]{fresh_choice}[/cyan]. Ignore and download fresh")

        answer = int(
            Prompt.ask(
                "Choice",
                choices=[str(number) for number in range(1, fresh_choice + 1)],
                default="1",
                console=self.console,
            )
        )
        if answer == fresh_choice:
            return CachedFileChoice(DOWNLOAD_FRESH)
        if answer == custom_choice:
            path = Prompt.ask("Enter the path to the SQL file", console=self.console)
            return CachedFileChoice(CUSTOM_PATH, path.strip())
        return CachedFileChoice(USE_FILE, files[answer - 1])

    def confirm_remote_dump(self) -> bool:
        return Confirm.ask("Do you want to continue?", default=False, console=self.console)

    def confirm_clear_local_directory(self, path: str) -> bool:
        return Confirm.ask(
            f"The local download directory {path} already exists. Delete it and download fresh?",
            default=True,
            console=self.console,
        )

    def confirm_cleanup(self, path: str) -> bool:
        return Confirm.ask("Delete downloaded temporary files?", default=True, console=self.console)
