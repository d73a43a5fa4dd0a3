"""
Step and Plan — the declarative unit of a bootstrap run.

A Step pairs a probe ("is it already there?") with an installer
("make it so").  A Plan is an ordered list of steps; order encodes
dependencies, so a step may assume every earlier step succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from stackboot.core.installers import Installer
    from stackboot.core.probes import Probe


@dataclass
class Step:
    """A probe/installer pair with a label and a confirmation policy."""

    name: str
    probe: Probe
    install: Installer
    requires_confirmation: bool = False
    resolves: str | None = None     # tool name recorded in resolved_versions
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("Step name must not be empty")


@dataclass
class Plan:
    """An ordered sequence of uniquely named steps."""

    name: str
    steps: list[Step] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for step in self.steps:
            self._check_unique(step, seen)
            seen.add(step.name)

    @staticmethod
    def _check_unique(step: Step, seen: set[str]) -> None:
        if step.name in seen:
            raise ValueError(f"Duplicate step name in plan: {step.name!r}")

    def add(self, step: Step) -> Plan:
        """Append a step, keeping names unique.  Returns self for chaining."""
        self._check_unique(step, {s.name for s in self.steps})
        self.steps.append(step)
        return self

    def extend(self, steps: list[Step]) -> Plan:
        for step in steps:
            self.add(step)
        return self

    def get(self, name: str) -> Step | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    @property
    def step_names(self) -> list[str]:
        return [s.name for s in self.steps]

    def __len__(self) -> int:
        return len(self.steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)
