"""Ok/Err results.

Expected failures (a git command exiting non-zero, a malformed config file,
a held lock) are returned, not raised. Callers narrow with ``isinstance``
and either pass the error up or turn it into an exit code at the CLI:

    checked = repo.checkout("develop")
    if isinstance(checked, Err):
        return Err(VcsOperationError.from_git("checkout develop", checked.error))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import NoReturn


@dataclass(frozen=True, slots=True)
class Ok[T]:
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def map[U](self, f: Callable[[T], U]) -> Ok[U]:
        return Ok(f(self.value))


@dataclass(frozen=True, slots=True)
class Err[E]:
    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> NoReturn:
        """Raise ``ValueError``; only for tests and already-checked results."""
        detail = getattr(self.error, "message", self.error)
        raise ValueError(f"unwrap() on Err: {detail}")

    def map[U](self, f: Callable[..., U]) -> Err[E]:
        return self


type Result[T, E] = Ok[T] | Err[E]
