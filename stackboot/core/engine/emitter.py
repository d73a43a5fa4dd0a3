"""
Template emitter — materialize files from templates, atomically.

Placeholders look like ``{{ name }}`` (inner spaces optional).  Every
placeholder must be present in the substitution context: a missing one
is an authoring error and nothing is written.

Writes go to a temp file in the destination directory and are then
renamed over the destination, so a reader sees either the old file or
the complete new one.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Mapping

from stackboot.core.errors import TemplateAuthoringError, TemplateWriteError
from stackboot.core.models.template import ConflictPolicy, EmitReceipt, TemplateSpec

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

BACKUP_SUFFIX = ".bak"


def placeholders(template: str) -> set[str]:
    """Names of all placeholders used in ``template``."""
    return set(PLACEHOLDER_RE.findall(template))


def render(template: str, context: Mapping[str, Any]) -> str:
    """Substitute every ``{{ name }}`` in ``template``.

    Raises:
        TemplateAuthoringError: If any placeholder has no context entry.
    """
    missing = sorted(placeholders(template) - set(context))
    if missing:
        raise TemplateAuthoringError(
            f"Template placeholder(s) without a value: {', '.join(missing)}"
        )
    return PLACEHOLDER_RE.sub(lambda m: str(context[m.group(1)]), template)


def atomic_write(path: Path, content: str, mode: int | None = None) -> None:
    """Write ``content`` to ``path`` via temp file + rename.

    Raises:
        OSError: On any filesystem failure; ``path`` is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp, mode)
        elif path.exists():
            os.chmod(tmp, path.stat().st_mode & 0o7777)
        else:
            os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


class TemplateEmitter:
    """Write TemplateSpecs under a base directory.

    Args:
        base_dir: Directory relative destinations resolve against
            (the project root).
        values: Placeholder values shared by every spec (usually
            ``ProjectContext.template_values()``); a spec's own
            ``substitution_context`` wins on a clash.
    """

    def __init__(self, base_dir: Path, values: Mapping[str, Any] | None = None):
        self._base_dir = base_dir
        self._values = dict(values or {})

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def destination(self, spec: TemplateSpec) -> Path:
        path = Path(spec.destination_path)
        return path if path.is_absolute() else self._base_dir / path

    def render(self, spec: TemplateSpec) -> str:
        return render(spec.content_template, {**self._values, **spec.substitution_context})

    def is_current(self, spec: TemplateSpec) -> bool:
        """Whether emitting ``spec`` now would change nothing.

        True when the destination already holds the rendered bytes, or
        when it exists at all under the ``skip`` policy.

        Raises:
            TemplateAuthoringError: If the template cannot be rendered.
            OSError: If an existing destination cannot be read.
        """
        data = self.render(spec).encode("utf-8")
        target = self.destination(spec)
        if spec.on_conflict == ConflictPolicy.SKIP:
            return target.exists()
        return target.is_file() and target.read_bytes() == data

    def emit(self, spec: TemplateSpec) -> EmitReceipt:
        """Render and write one template according to its conflict policy.

        Existing files are compared byte for byte; under ``skip`` an
        existing destination is never read.

        Raises:
            TemplateAuthoringError: Missing placeholder values.
            TemplateWriteError: The file (or its backup) could not be written.
        """
        content = self.render(spec)
        target = self.destination(spec)
        size = len(content.encode("utf-8"))

        try:
            if target.exists():
                if spec.on_conflict == ConflictPolicy.SKIP:
                    logger.info("Exists, skipped: %s", target)
                    return EmitReceipt(path=str(target), action="skipped")

                if target.is_file() and target.read_bytes() == content.encode("utf-8"):
                    logger.debug("Unchanged: %s", target)
                    return EmitReceipt(path=str(target), action="unchanged", size=size)

                if spec.on_conflict == ConflictPolicy.BACKUP_THEN_OVERWRITE:
                    backup = self._backup_and_replace(target, content, spec.mode)
                    logger.info("Backed up %s → %s", target, backup.name)
                    return EmitReceipt(
                        path=str(target), action="backed_up",
                        backup_path=str(backup), size=size,
                    )

                atomic_write(target, content, spec.mode)
                logger.info("Overwritten: %s", target)
                return EmitReceipt(path=str(target), action="overwritten", size=size)

            atomic_write(target, content, spec.mode)
        except OSError as e:
            raise TemplateWriteError(f"Cannot write {target}: {e}") from e

        logger.info("Written: %s (%d bytes)", target, size)
        return EmitReceipt(path=str(target), action="written", size=size)

    @staticmethod
    def _backup_and_replace(target: Path, content: str, mode: int | None) -> Path:
        """Move ``target`` to ``<name>.bak`` and put ``content`` in its place.

        The new content is staged first; on any failure the original is
        back at ``target`` and no staged file remains.
        """
        backup = target.with_name(target.name + BACKUP_SUFFIX)
        staged = target.with_name(f".{target.name}.stackboot-new")
        atomic_write(staged, content, mode)
        try:
            os.replace(target, backup)
        except BaseException:
            staged.unlink(missing_ok=True)
            raise
        try:
            os.replace(staged, target)
        except BaseException:
            os.replace(backup, target)
            staged.unlink(missing_ok=True)
            raise
        return backup
