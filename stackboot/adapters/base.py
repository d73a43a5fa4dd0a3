"""
Adapter base — the capability contracts between the engine and the host.

The engine only reaches the outside world through these two seams:

    - ExternalProcessRunner: launch a command, get an ExitStatus back.
    - ConfirmationGate:      ask the user whether a step may proceed.

Both are swapped for in-memory doubles in tests (see adapters.mock).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class ExitStatus(BaseModel):
    """Outcome of one external command.

    Runners NEVER raise for a failing command — a missing executable,
    a timeout or a non-zero exit are all captured here.
    """

    command: str
    args: list[str] = Field(default_factory=list)
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def display(self) -> str:
        """Command line for log and error messages."""
        return " ".join(self.argv)

    @classmethod
    def success(cls, command: str, args: list[str] | None = None, stdout: str = "",
                **kwargs: Any) -> ExitStatus:
        return cls(command=command, args=args or [], returncode=0, stdout=stdout, **kwargs)

    @classmethod
    def failure(cls, command: str, args: list[str] | None = None, returncode: int = 1,
                stderr: str = "", **kwargs: Any) -> ExitStatus:
        return cls(
            command=command, args=args or [], returncode=returncode, stderr=stderr, **kwargs,
        )


class ExternalProcessRunner(ABC):
    """Launch external commands synchronously.

    Implementations must block until the process exits and must not
    raise for ordinary failures.
    """

    @abstractmethod
    def run(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExitStatus:
        """Run ``command`` with ``args`` and return its exit status."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class ConfirmationGate(ABC):
    """Obtain explicit approval before a gated step installs anything."""

    @abstractmethod
    def ask(self, label: str, reason: str = "") -> bool:
        """Return True to proceed, False to decline."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
