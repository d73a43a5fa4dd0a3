"""
Mock adapters — in-memory doubles for the process runner and the gate.

Used by tests and by ``--mock`` style dry runs to exercise plans without
touching package managers.  Configurable per command line.
"""

from __future__ import annotations

from typing import Callable

from stackboot.adapters.base import ConfirmationGate, ExitStatus, ExternalProcessRunner

Handler = Callable[[str, list[str]], ExitStatus]


class MockProcessRunner(ExternalProcessRunner):
    """Universal process-runner double.

    By default, every command succeeds with empty output.  Responses
    can be configured per full command line (``"node --version"``) or
    per executable name (``"node"``); the full line wins.
    """

    def __init__(self, default_returncode: int = 0):
        self._default_returncode = default_returncode
        self._responses: dict[str, ExitStatus | Handler] = {}
        self._call_log: list[dict] = []

    @property
    def call_log(self) -> list[dict]:
        """Every call received: ``{"argv", "cwd", "env"}`` dicts."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        """Command lines received, in order."""
        return [" ".join(c["argv"]) for c in self._call_log]

    def set_response(self, key: str, response: ExitStatus | Handler) -> None:
        """Set a fixed status (or a callable producing one) for ``key``."""
        self._responses[key] = response

    def set_output(self, key: str, stdout: str) -> None:
        """Make ``key`` succeed with the given stdout."""
        command, *args = key.split()
        self._responses[key] = ExitStatus.success(command, args, stdout=stdout)

    def set_failure(self, key: str, returncode: int = 1, stderr: str = "Mock failure") -> None:
        """Make ``key`` fail with the given exit code and stderr."""
        command, *args = key.split()
        self._responses[key] = ExitStatus.failure(
            command, args, returncode=returncode, stderr=stderr,
        )

    def run(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExitStatus:
        args = list(args or [])
        self._call_log.append({"argv": [command, *args], "cwd": cwd, "env": env})

        line = " ".join([command, *args])
        response = self._responses.get(line, self._responses.get(command))
        if response is None:
            return ExitStatus(
                command=command, args=args, returncode=self._default_returncode,
            )
        if callable(response):
            return response(command, args)
        return response

    def reset(self) -> None:
        """Clear call log and custom responses."""
        self._call_log.clear()
        self._responses.clear()


class ScriptedGate(ConfirmationGate):
    """Answer confirmations from a fixed script.

    Args:
        answers: Answers consumed in order.  When exhausted, ``default``
            is returned.
        default: Answer once the script runs out.
    """

    def __init__(self, answers: list[bool] | None = None, default: bool = False):
        self._answers = list(answers or [])
        self._default = default
        self.asked: list[str] = []

    def ask(self, label: str, reason: str = "") -> bool:
        self.asked.append(label)
        if self._answers:
            return self._answers.pop(0)
        return self._default
