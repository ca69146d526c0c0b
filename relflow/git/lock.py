"""Exclusive lease on a working directory for the duration of a release.

The lock is a file inside the repository's git dir, created atomically with
``O_CREAT | O_EXCL``. Acquisition never waits: if the file exists another
release owns the directory and ``acquire`` returns ``Err(LockHeld)``.

Usage:
    lock = ReleaseLock(repo.git_dir() / LOCK_FILE_NAME)
    with lock.hold() as held:
        if isinstance(held, Err):
            ...
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from relflow.core.result import Err, Ok, Result

LOCK_FILE_NAME = "relflow.lock"

__all__ = ["LOCK_FILE_NAME", "LockHeld", "ReleaseLock"]


@dataclass(frozen=True, slots=True)
class LockHeld:
    """The lock file already exists (or could not be created)."""

    path: Path
    owner: str | None = None
    reason: str | None = None

    @property
    def message(self) -> str:
        if self.reason:
            return f"cannot create release lock {self.path}: {self.reason}"
        who = f" by {self.owner}" if self.owner else ""
        return f"another release is running in this repository (lock held{who}: {self.path})"


class ReleaseLock:
    """Non-blocking lock file.

    ``acquire``/``release`` are exposed separately because a suspended
    release keeps the lock across calls; ``hold`` is the scoped form.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> Result[None, LockHeld]:
        if self._held:
            return Ok(None)

        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return Err(LockHeld(path=self.path, owner=self._read_owner()))
        except OSError as e:
            return Err(LockHeld(path=self.path, reason=str(e)))

        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"pid {os.getpid()}\n")
        self._held = True
        return Ok(None)

    def release(self) -> None:
        """Remove the lock file if this instance created it."""
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False

    @contextmanager
    def hold(self) -> Iterator[Result[None, LockHeld]]:
        """Acquire for the duration of a ``with`` block."""
        result = self.acquire()
        try:
            yield result
        finally:
            if isinstance(result, Ok):
                self.release()

    def _read_owner(self) -> str | None:
        try:
            owner = self.path.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return owner or None
