"""
Error taxonomy — every failure a bootstrap run can report.

Expected categories (install failures, declined confirmations, bad
invocations) are printed as a single line by the CLI.  Anything that
is not a ``BootstrapError`` is a defect in stackboot itself and is
allowed to surface with a full traceback.

    BootstrapError
    ├── ProbeInconclusive        (non-fatal: probe → Unsatisfied)
    ├── InstallError
    │   ├── PermissionDenied
    │   ├── ExternalToolFailed
    │   ├── UnsupportedPlatform
    │   └── NetworkUnavailable
    ├── ConfirmationDeclined
    ├── IdempotenceViolation
    ├── TemplateAuthoringError
    ├── TemplateWriteError
    └── InvalidInvocation        (exit code 2)
"""

from __future__ import annotations


class BootstrapError(Exception):
    """Base class for all expected stackboot failures."""

    #: Short machine-readable category used in reports and --json output.
    kind = "bootstrap"


class ProbeInconclusive(BootstrapError):
    """A probe could not decide; treated as Unsatisfied, never fatal."""

    kind = "probe_inconclusive"


# ── Installer failures ─────────────────────────────────────────────


class InstallError(BootstrapError):
    """An installer could not establish its precondition."""

    kind = "install"


class PermissionDenied(InstallError):
    kind = "permission_denied"


class ExternalToolFailed(InstallError):
    """An external command exited non-zero."""

    kind = "external_tool_failed"

    def __init__(self, message: str, exit_code: int, stderr: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class UnsupportedPlatform(InstallError):
    kind = "unsupported_platform"


class NetworkUnavailable(InstallError):
    kind = "network_unavailable"


# ── Runner-level failures ──────────────────────────────────────────


class ConfirmationDeclined(BootstrapError):
    """The user refused a step that requires confirmation."""

    kind = "declined"


class IdempotenceViolation(BootstrapError):
    """An installer succeeded but its probe still reports Unsatisfied.

    This is a defect in the step definition, not in the host.
    """

    kind = "idempotence_violation"


# ── Template failures ──────────────────────────────────────────────


class TemplateAuthoringError(BootstrapError):
    """A template references a placeholder its context does not provide."""

    kind = "template_authoring"


class TemplateWriteError(BootstrapError):
    """Writing an emitted file failed (permissions, disk full, ...)."""

    kind = "template_write"


# ── Invocation ─────────────────────────────────────────────────────


class InvalidInvocation(BootstrapError):
    """The command line or host cannot start a run at all (exit 2)."""

    kind = "invalid_invocation"
