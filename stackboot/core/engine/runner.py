"""
Plan runner — the central execution loop.

Runs the steps of a plan strictly in order, one at a time:

    probe → (satisfied? skip) → (gated? ask) → install → re-probe

The first failure halts the plan; nothing after it runs.  Expected
failures (``BootstrapError``) are recorded in the RunReport; anything
else is a defect and propagates with its traceback.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from stackboot.adapters.base import ConfirmationGate
from stackboot.core.context import ProjectContext
from stackboot.core.errors import (
    BootstrapError,
    ConfirmationDeclined,
    IdempotenceViolation,
    InstallError,
)
from stackboot.core.installers import NestedPlanInstaller
from stackboot.core.models.probe import ProbeResult
from stackboot.core.models.report import RunReport, StepOutcome
from stackboot.core.models.step import Plan, Step

logger = logging.getLogger(__name__)

#: on_event(event, step, detail); events: "start", "skipped", "pending",
#: "confirm", "install", "installed", "declined", "failed".
EventCallback = Callable[[str, Step, str], None]


class PlanRunner:
    """Execute plans against a ProjectContext.

    Args:
        gate: Asked before installing any step with
            ``requires_confirmation``.
        dry_run: Evaluate probes only; unsatisfied steps are recorded as
            ``pending`` and nothing is installed or asked.
        on_event: Optional progress callback (CLI output).
    """

    def __init__(
        self,
        gate: ConfirmationGate,
        dry_run: bool = False,
        on_event: EventCallback | None = None,
    ):
        self._gate = gate
        self._dry_run = dry_run
        self._on_event = on_event

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def _emit(self, event: str, step: Step, detail: str = "") -> None:
        if self._on_event is not None:
            self._on_event(event, step, detail)

    def run(self, plan: Plan, context: ProjectContext) -> RunReport:
        """Run every step of ``plan`` in order, halting on the first failure."""
        report = RunReport(plan=plan.name, dry_run=self._dry_run)
        start = time.monotonic()
        logger.info("Running plan '%s' (%d steps)", plan.name, len(plan))

        for step in plan:
            outcome = self._run_step(step, context, report)
            report.outcomes.append(outcome)
            if outcome.status in ("failed", "declined"):
                report.failed_step = step.name
                report.error = outcome.error
                report.error_kind = outcome.error_kind
                logger.error("Plan '%s' halted at '%s': %s", plan.name, step.name, outcome.error)
                break

        report.resolved_versions = dict(context.resolved_versions)
        report.duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Plan '%s' %s: %d installed, %d skipped",
            plan.name, report.status, report.installs, report.skipped,
        )
        return report

    # ── Per-step algorithm ──────────────────────────────────────────

    def _record_version(self, step: Step, result: ProbeResult, context: ProjectContext) -> None:
        if step.resolves and result.version:
            context.record_version(step.resolves, result.version)

    def _run_step(self, step: Step, context: ProjectContext, report: RunReport) -> StepOutcome:
        started = time.monotonic()

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        self._emit("start", step)

        # 1. Probe
        try:
            result = step.probe.evaluate(context)
        except BootstrapError as e:
            self._emit("failed", step, str(e))
            return StepOutcome(
                step=step.name, status="failed",
                error=str(e), error_kind=e.kind, duration_ms=elapsed(),
            )

        if result.satisfied:
            self._record_version(step, result, context)
            logger.info("✓ %s (already satisfied)", step.name)
            self._emit("skipped", step, result.version or "")
            return StepOutcome(
                step=step.name, status="skipped", version=result.version, duration_ms=elapsed(),
            )

        if self._dry_run:
            logger.info("⊘ %s: %s", step.name, result.reason)
            self._emit("pending", step, result.reason)
            return StepOutcome(
                step=step.name, status="pending", reason=result.reason, duration_ms=elapsed(),
            )

        # 2. Confirmation gate
        if step.requires_confirmation:
            self._emit("confirm", step, result.reason)
            if not self._gate.ask(step.name, result.reason):
                error = ConfirmationDeclined(f"Declined: {step.name}")
                logger.warning("✗ %s declined by user", step.name)
                self._emit("declined", step, result.reason)
                return StepOutcome(
                    step=step.name, status="declined", reason=result.reason,
                    error=str(error), error_kind=error.kind, duration_ms=elapsed(),
                )

        # 3. Install, then verify the idempotence contract.  A nested plan
        # is not an installer invocation of its own: its steps count.
        invoked = not isinstance(step.install, NestedPlanInstaller)
        self._emit("install", step, result.reason)
        logger.info("▶ %s: %s", step.name, result.reason)
        try:
            if not invoked:
                self._run_nested(step.install, context, report)
            else:
                step.install.execute(context)

            after = step.probe.evaluate(context)
            if not after.satisfied:
                raise IdempotenceViolation(
                    f"Step '{step.name}' installed successfully but its probe still "
                    f"reports: {after.reason}"
                )
        except ConfirmationDeclined as e:
            self._emit("declined", step, str(e))
            return StepOutcome(
                step=step.name, status="declined", reason=result.reason, installed=invoked,
                error=str(e), error_kind=e.kind, duration_ms=elapsed(),
            )
        except BootstrapError as e:
            logger.error("✗ %s: %s", step.name, e)
            self._emit("failed", step, str(e))
            return StepOutcome(
                step=step.name, status="failed", reason=result.reason, installed=invoked,
                error=str(e), error_kind=e.kind, duration_ms=elapsed(),
            )

        self._record_version(step, after, context)
        logger.info("✓ %s installed", step.name)
        self._emit("installed", step, after.version or "")
        return StepOutcome(
            step=step.name, status="installed", reason=result.reason, installed=invoked,
            version=after.version, duration_ms=elapsed(),
        )

    def _run_nested(
        self, installer: NestedPlanInstaller, context: ProjectContext, report: RunReport,
    ) -> None:
        """Run a nested plan; its outcomes are folded into the outer report."""
        sub = self.run(installer.plan, context)
        for outcome in sub.outcomes:
            report.outcomes.append(
                outcome.model_copy(update={"step": f"{installer.plan.name} › {outcome.step}"})
            )
        if sub.declined:
            raise ConfirmationDeclined(sub.error or f"Declined inside {installer.plan.name}")
        if not sub.ok:
            raise InstallError(f"{sub.failed_step}: {sub.error}")
