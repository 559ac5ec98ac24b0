"""Registry of optional housekeeping steps run after a successful import."""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List

from dbdownloader.errors import DownloaderError


@dataclass(frozen=True)
class PostImportHook:
    name: str
    callback: Callable[[], object]


class HookRegistry:
    """Runs registered hooks in order; a failing hook is reported, not fatal."""

    def __init__(self, logger, console, hooks: Iterable[PostImportHook] = ()):
        self.logger = logger
        self.console = console
        self.hooks: List[PostImportHook] = list(hooks)

    def register(self, hook: PostImportHook):
        self.hooks.append(hook)

    @classmethod
    def from_commands(cls, commands: Dict[str, List[str]], command_runner, logger, console):
        registry = cls(logger=logger, console=console)
        for name, command in commands.items():
            registry.register(
                PostImportHook(
                    name=name,
                    callback=lambda command=command: command_runner.run(
                        command, check=True, capture_output=True
                    ),
                )
            )
        return registry

    def run_all(self) -> List[str]:
        failed: List[str] = []
        for hook in self.hooks:
            self.console.print(f"[blue]{hook.name}...[/blue]")
            self.logger.info("Running post-import hook: %s", hook.name)
            try:
                hook.callback()
            except DownloaderError as exc:
                failed.append(hook.name)
                self.console.print(f"[yellow]Warning:[/yellow] {hook.name} failed: {exc}")
                self.logger.warning("Post-import hook %s failed: %s", hook.name, exc)
            except Exception as exc:
                failed.append(hook.name)
                self.console.print(f"[yellow]Warning:[/yellow] {hook.name} failed: {exc}")
                self.logger.exception("Post-import hook %s raised an unexpected error", hook.name)
        return failed
