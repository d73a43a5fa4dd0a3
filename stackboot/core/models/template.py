"""
Template models — what the emitter writes and what it did.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class ConflictPolicy(str, Enum):
    """What to do when the destination already exists with other content."""

    SKIP = "skip"
    OVERWRITE = "overwrite"
    BACKUP_THEN_OVERWRITE = "backup_then_overwrite"


class TemplateSpec(BaseModel):
    """A file to materialize from a template.

    Attributes:
        destination_path:     Target path; relative paths resolve under the
                              emitter's base directory (the project root).
        content_template:     Text with ``{{ name }}`` placeholders.
        substitution_context: Placeholder values.
        on_conflict:          Policy for an existing, different destination.
        mode:                 Optional permission bits (e.g. ``0o755``).
    """

    destination_path: str
    content_template: str
    substitution_context: dict[str, Any] = Field(default_factory=dict)
    on_conflict: ConflictPolicy = ConflictPolicy.SKIP
    mode: int | None = None


class EmitReceipt(BaseModel):
    """Result of one emit call."""

    path: str
    action: Literal["written", "unchanged", "skipped", "overwritten", "backed_up"]
    backup_path: str | None = None
    size: int = 0
