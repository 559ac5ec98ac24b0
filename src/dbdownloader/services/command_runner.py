"""Subprocess execution service for dbdownloader."""

import shlex
import subprocess
from typing import IO, Any, Dict, List, Optional

from dbdownloader.errors import CommandFailed


class CommandRunner:
    """Runs external commands with consistent error handling.

    Commands are always passed as argument lists, so no local shell ever
    interprets configuration or user supplied values. Redirections are done
    with file objects passed as ``stdin``/``stdout``.
    """

    def __init__(self, logger, default_timeout: Optional[float] = None):
        self.logger = logger
        self.default_timeout = default_timeout

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        timeout: Optional[float] = None,
        stdin: Optional[IO[Any]] = None,
        stdout: Optional[IO[Any]] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = shlex.join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        effective_timeout = timeout if timeout is not None else self.default_timeout
        kwargs: Dict[str, Any] = {"text": True, "timeout": effective_timeout, "stdin": stdin}
        if stdout is not None:
            kwargs["stdout"] = stdout
            if capture_output:
                kwargs["stderr"] = subprocess.PIPE
        elif capture_output:
            kwargs["capture_output"] = True

        try:
            result = subprocess.run(cmd, **kwargs)
        except FileNotFoundError as exc:
            raise CommandFailed(
                f"Required command not found: {cmd[0]}. Please install it and try again.",
                exit_code=127,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandFailed(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc
        except OSError as exc:
            raise CommandFailed(f"Failed to execute command: {cmd_str}. {exc}") from exc

        if capture_output and result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0 or not check:
            if result.returncode != 0:
                self.logger.warning("Command failed (%s): %s", result.returncode, cmd_str)
            return result

        output = self._collect_output(result) if capture_output else ""
        message = f"Command failed with exit code {result.returncode}: {cmd_str}"
        if output:
            message = f"{message}\n{output}"
        raise CommandFailed(message, exit_code=result.returncode, output=output)

    def run_pipeline(
        self,
        producer: List[str],
        consumer: List[str],
        timeout: Optional[float] = None,
    ) -> int:
        """Runs ``producer | consumer`` and fails when either side exits non-zero."""
        pipeline_str = f"{shlex.join(producer)} | {shlex.join(consumer)}"
        self.logger.debug("Executing: %s", pipeline_str)
        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            upstream = subprocess.Popen(producer, stdout=subprocess.PIPE)
        except FileNotFoundError as exc:
            raise CommandFailed(
                f"Required command not found: {producer[0]}. Please install it and try again.",
                exit_code=127,
            ) from exc

        try:
            downstream = subprocess.Popen(consumer, stdin=upstream.stdout)
        except FileNotFoundError as exc:
            upstream.kill()
            upstream.wait()
            raise CommandFailed(
                f"Required command not found: {consumer[0]}. Please install it and try again.",
                exit_code=127,
            ) from exc

        # Lets the producer receive SIGPIPE if the consumer exits early.
        if upstream.stdout is not None:
            upstream.stdout.close()

        try:
            downstream_code = downstream.wait(timeout=effective_timeout)
            upstream_code = upstream.wait(timeout=effective_timeout)
        except subprocess.TimeoutExpired as exc:
            for process in (downstream, upstream):
                process.kill()
                process.wait()
            raise CommandFailed(
                f"Command timed out after {effective_timeout}s: {pipeline_str}"
            ) from exc

        exit_code = downstream_code or upstream_code
        if exit_code != 0:
            raise CommandFailed(
                f"Command failed with exit code {exit_code}: {pipeline_str}",
                exit_code=exit_code,
            )
        return exit_code

    @staticmethod
    def _collect_output(result: subprocess.CompletedProcess) -> str:
        parts = [(result.stdout or "").strip(), (result.stderr or "").strip()]
        return "\n".join(part for part in parts if part)
