"""
Probe result model — the answer to "is this already in place?".

Mirrors the Receipt pattern: probes never raise for an absent tool,
they return an Unsatisfied result carrying the reason.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ProbeResult(BaseModel):
    """Outcome of evaluating a probe.

    Attributes:
        satisfied:    Whether the precondition already holds.
        reason:       Why it does not hold (empty when satisfied).
        version:      Concrete version discovered by the probe, if any.
        inconclusive: The check itself errored; treated as Unsatisfied.
    """

    satisfied: bool
    reason: str = ""
    version: str | None = None
    inconclusive: bool = False
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(cls, version: str | None = None, **kwargs: Any) -> ProbeResult:
        """Create a Satisfied result."""
        return cls(satisfied=True, version=version, **kwargs)

    @classmethod
    def missing(cls, reason: str, **kwargs: Any) -> ProbeResult:
        """Create an Unsatisfied result."""
        return cls(satisfied=False, reason=reason, **kwargs)

    @classmethod
    def inconclusive_check(cls, reason: str) -> ProbeResult:
        """Create an Unsatisfied result for a check that itself failed."""
        return cls(satisfied=False, reason=reason, inconclusive=True)
