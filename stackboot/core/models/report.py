"""
Run report — what the plan runner did, step by step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

StepStatus = Literal["skipped", "installed", "failed", "declined", "pending"]


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepOutcome(BaseModel):
    """Result of running one step.

    ``installed`` is True whenever the installer was invoked, even if it
    then failed: it counts installer invocations, not successes.  A step
    installed through a nested plan is not itself counted; the nested
    steps are.
    """

    step: str
    status: StepStatus
    reason: str = ""
    installed: bool = False
    version: str | None = None
    error: str | None = None
    error_kind: str | None = None
    duration_ms: int = 0
    started_at: str = Field(default_factory=_now_iso)

    @property
    def ok(self) -> bool:
        return self.status in ("skipped", "installed", "pending")


@dataclass
class RunReport:
    """Result of running a plan."""

    plan: str = ""
    dry_run: bool = False
    outcomes: list[StepOutcome] = field(default_factory=list)
    failed_step: str | None = None
    error: str | None = None
    error_kind: str | None = None
    resolved_versions: dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def installs(self) -> int:
        """Number of installer invocations during the run."""
        return sum(1 for o in self.outcomes if o.installed)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "skipped")

    @property
    def pending(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "pending")

    @property
    def declined(self) -> bool:
        return any(o.status == "declined" for o in self.outcomes)

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    @property
    def status(self) -> str:
        if self.declined:
            return "declined"
        if self.failed_step is not None:
            return "failed"
        return "ok"

    @property
    def fully_satisfied(self) -> bool:
        """True when every step ended satisfied (nothing pending or failed)."""
        return self.ok and self.pending == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "plan": self.plan,
            "status": self.status,
            "dry_run": self.dry_run,
            "installs": self.installs,
            "skipped": self.skipped,
            "pending": self.pending,
            "failed_step": self.failed_step,
            "error": self.error,
            "error_kind": self.error_kind,
            "resolved_versions": dict(self.resolved_versions),
            "duration_ms": self.duration_ms,
            "steps": [o.model_dump(mode="json") for o in self.outcomes],
        }
