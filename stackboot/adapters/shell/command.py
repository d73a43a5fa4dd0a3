"""
Subprocess runner — the single place where external commands are launched.

Every installer and every probe that needs an external command goes
through ``SubprocessRunner.run``.  Failures are captured in the
ExitStatus, never raised.
"""

from __future__ import annotations

import logging
import subprocess
import time

from stackboot.adapters.base import ExitStatus, ExternalProcessRunner

logger = logging.getLogger(__name__)

# Keep the tail of long outputs only; installers can be very chatty.
_OUTPUT_LIMIT = 4000

# Conventional shell exit codes for launch failures.
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


class SubprocessRunner(ExternalProcessRunner):
    """Run commands with ``subprocess.run`` and capture their output."""

    def run(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> ExitStatus:
        argv = [command, *(args or [])]
        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                cwd=cwd,
                env=env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            return ExitStatus.failure(
                command, args, returncode=EXIT_NOT_FOUND,
                stderr=f"{command}: command not found ({e})",
            )
        except PermissionError as e:
            return ExitStatus.failure(
                command, args, returncode=EXIT_NOT_EXECUTABLE,
                stderr=f"{command}: permission denied ({e})",
            )
        except subprocess.TimeoutExpired:
            return ExitStatus.failure(
                command, args, returncode=-1,
                stderr=f"Command timed out after {timeout}s",
                timed_out=True,
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = (result.stdout or "")[-_OUTPUT_LIMIT:]
        stderr = (result.stderr or "")[-_OUTPUT_LIMIT:]

        if result.returncode != 0:
            logger.debug(
                "Command failed (exit %d): %s\n%s", result.returncode, " ".join(argv), stderr,
            )

        return ExitStatus(
            command=command,
            args=list(args or []),
            returncode=result.returncode,
            stdout=stdout,
            stderr=stderr,
            duration_ms=elapsed_ms,
        )
