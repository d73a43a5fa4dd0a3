"""Adapters — capability bindings for processes and user prompts.

Public re-exports for convenient access.
"""

from stackboot.adapters.base import ConfirmationGate, ExitStatus, ExternalProcessRunner
from stackboot.adapters.mock import MockProcessRunner, ScriptedGate
from stackboot.adapters.prompt import AutoApproveGate, ClickConfirmationGate
from stackboot.adapters.shell.command import SubprocessRunner

__all__ = [
    "AutoApproveGate",
    "ClickConfirmationGate",
    "ConfirmationGate",
    "ExitStatus",
    "ExternalProcessRunner",
    "MockProcessRunner",
    "ScriptedGate",
    "SubprocessRunner",
]
