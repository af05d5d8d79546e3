"""
Runs the OpenLDAP administrative tools as subprocesses.

A non-zero exit status is an ordinary result here; only a tool that cannot be
started at all raises.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from dirsync.exceptions import LaunchFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command."""

    command: str
    exit_code: Optional[int]
    stdout: str = ''
    stderr: str = ''
    timed_out: bool = False

    @property
    def is_zero_exit_status(self) -> bool:
        return self.exit_code == 0


def _to_text(output) -> str:
    if output is None:
        return ''
    if isinstance(output, bytes):
        return output.decode('utf-8', errors='replace')
    return output


class CommandExecutor:
    """
    Executes external commands and captures their output.

    Args:
        timeout: Seconds to wait for a command before killing it, None to wait forever
    """

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def run(self, command: str, args: Sequence[str] = (), stdin: Optional[str] = None) -> CommandResult:
        """
        Run a command with the given arguments and optional piped input.

        Args:
            command: Executable name or path
            args: Argument vector, without the command itself
            stdin: Text written to the command's standard input

        Returns:
            CommandResult with exit code, stdout and stderr

        Raises:
            LaunchFailure: If the command cannot be started
        """
        argv = [command] + list(args)
        logger.debug(f"Running {command} with {len(argv) - 1} arguments"
                     f"{' and piped input' if stdin is not None else ''}")

        try:
            completed = subprocess.run(
                argv,
                input=stdin,
                capture_output=True,
                encoding='utf-8',
                errors='replace',
                timeout=self.timeout,
                check=False
            )
        except subprocess.TimeoutExpired as e:
            logger.error(f"{command} did not finish within {self.timeout} seconds")
            return CommandResult(
                command=command,
                exit_code=None,
                stdout=_to_text(e.stdout),
                stderr=f"{command} timed out after {self.timeout} seconds",
                timed_out=True
            )
        except OSError as e:
            logger.error(f"Failed to launch {command}: {e}")
            raise LaunchFailure(command, e) from e

        if completed.returncode != 0:
            logger.debug(f"{command} exited with status {completed.returncode}")

        return CommandResult(
            command=command,
            exit_code=completed.returncode,
            stdout=completed.stdout or '',
            stderr=completed.stderr or ''
        )
