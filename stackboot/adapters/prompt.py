"""
Confirmation gates — interactive and non-interactive approval.
"""

from __future__ import annotations

import logging

import click

from stackboot.adapters.base import ConfirmationGate

logger = logging.getLogger(__name__)


class ClickConfirmationGate(ConfirmationGate):
    """Ask on the terminal with ``click.confirm`` (default: no).

    End-of-input (Ctrl-D, closed stdin) counts as a decline.
    """

    def ask(self, label: str, reason: str = "") -> bool:
        click.echo()
        click.secho(f"   ⚠ {label}", fg="yellow", bold=True)
        if reason:
            click.echo(f"     {reason}")
        try:
            return click.confirm("   Proceed?", default=False)
        except click.Abort:
            click.echo()
            return False


class AutoApproveGate(ConfirmationGate):
    """Approve everything — used for --yes / STACKBOOT_NONINTERACTIVE."""

    def ask(self, label: str, reason: str = "") -> bool:
        logger.info("Auto-approved: %s", label)
        return True
