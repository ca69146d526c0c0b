"""Run external commands and report failures as values.

``run`` returns ``Ok(stdout)`` when the command exits 0. A command that
cannot be started, exits non-zero or is killed on timeout becomes
``Err(ProcessError)``; what that failure means is up to the caller.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from relflow.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

# returncode of a command that never produced an exit status
NOT_RUN = -1


@dataclass(frozen=True, slots=True)
class ProcessError:
    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def output(self) -> str:
        """stdout and stderr together, for scanning git's messages."""
        return f"{self.stdout}\n{self.stderr}"

    def detail(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or str(self)

    def __str__(self) -> str:
        name = " ".join(_display(self.command))
        if self.timed_out:
            return f"{name} timed out"
        if self.returncode == NOT_RUN:
            return f"{name} could not be started"
        return f"{name} exited with {self.returncode}"


def run(
    cmd: list[str],
    cwd: Path,
    *,
    env_overrides: Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run ``cmd`` in ``cwd``, capturing text output.

    ``env_overrides`` are layered over the current environment.
    """
    env = None
    if env_overrides:
        env = {**os.environ, **env_overrides}

    command = tuple(cmd)
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return Err(
            ProcessError(
                command,
                NOT_RUN,
                stdout=partial,
                stderr=f"no answer after {timeout:g}s",
                timed_out=True,
            )
        )
    except OSError as e:
        return Err(ProcessError(command, NOT_RUN, stderr=str(e)))

    if proc.returncode != 0:
        return Err(ProcessError(command, proc.returncode, stdout=proc.stdout, stderr=proc.stderr))
    return Ok(proc.stdout)


def _display(command: tuple[str, ...]) -> tuple[str, ...]:
    # git -C <path> <subcommand> ...: show the subcommand, not the path
    if len(command) > 3 and command[1] == "-C":
        return (command[0], *command[3:5])
    return command[:2]
