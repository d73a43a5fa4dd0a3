"""
Tests for the template emitter — rendering, conflict policies, atomic writes.
"""

import errno
import os
import stat
from pathlib import Path

import pytest

from stackboot.core.engine.emitter import (
    TemplateEmitter,
    atomic_write,
    placeholders,
    render,
)
from stackboot.core.errors import TemplateAuthoringError, TemplateWriteError
from stackboot.core.models.template import ConflictPolicy, TemplateSpec


def _spec(dest="greeting.txt", template="hello {{name}}", values=None, **kw) -> TemplateSpec:
    return TemplateSpec(
        destination_path=dest,
        content_template=template,
        substitution_context={"name": "Bob"} if values is None else values,
        **kw,
    )


class TestRender:
    def test_substitutes(self):
        assert render("hello {{name}}", {"name": "Bob"}) == "hello Bob"

    def test_inner_spaces(self):
        assert render("{{ a }}-{{b }}", {"a": 1, "b": "x"}) == "1-x"

    def test_missing_value_names_placeholder(self):
        with pytest.raises(TemplateAuthoringError, match="port"):
            render("{{ host }}:{{ port }}", {"host": "localhost"})

    def test_extra_values_ignored(self):
        assert render("static", {"unused": 1}) == "static"

    def test_placeholders(self):
        assert placeholders("{{ a }} {{b}} {{ a }}") == {"a", "b"}

    def test_single_braces_untouched(self):
        assert render("const x = { a: {{ v }} };", {"v": 1}) == "const x = { a: 1 };"


class TestAtomicWrite:
    def test_creates_parents(self, tmp_path: Path):
        target = tmp_path / "a" / "b" / "file.txt"
        atomic_write(target, "content")
        assert target.read_text() == "content"

    def test_mode(self, tmp_path: Path):
        target = tmp_path / "start.sh"
        atomic_write(target, "#!/bin/sh\n", mode=0o755)
        assert stat.S_IMODE(target.stat().st_mode) == 0o755

    def test_keeps_existing_mode(self, tmp_path: Path):
        target = tmp_path / "run.sh"
        target.write_text("old")
        os.chmod(target, 0o700)
        atomic_write(target, "new")
        assert stat.S_IMODE(target.stat().st_mode) == 0o700

    def test_no_temp_files_left(self, tmp_path: Path):
        atomic_write(tmp_path / "f.txt", "x")
        assert [p.name for p in tmp_path.iterdir()] == ["f.txt"]


class TestEmit:
    def test_writes_new_file(self, tmp_path: Path):
        receipt = TemplateEmitter(tmp_path).emit(_spec())
        assert receipt.action == "written"
        assert (tmp_path / "greeting.txt").read_text() == "hello Bob"
        assert receipt.size == len("hello Bob")

    def test_identical_is_unchanged(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_text("hello Bob")
        before = (tmp_path / "greeting.txt").stat().st_mtime_ns
        receipt = TemplateEmitter(tmp_path).emit(_spec(on_conflict=ConflictPolicy.OVERWRITE))
        assert receipt.action == "unchanged"
        assert (tmp_path / "greeting.txt").stat().st_mtime_ns == before

    def test_skip_leaves_existing(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_text("hi there")
        receipt = TemplateEmitter(tmp_path).emit(_spec())
        assert receipt.action == "skipped"
        assert (tmp_path / "greeting.txt").read_text() == "hi there"

    def test_overwrite(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_text("hi there")
        receipt = TemplateEmitter(tmp_path).emit(_spec(on_conflict=ConflictPolicy.OVERWRITE))
        assert receipt.action == "overwritten"
        assert (tmp_path / "greeting.txt").read_text() == "hello Bob"
        assert not (tmp_path / "greeting.txt.bak").exists()

    def test_backup_then_overwrite(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_text("hi there")
        receipt = TemplateEmitter(tmp_path).emit(
            _spec(on_conflict=ConflictPolicy.BACKUP_THEN_OVERWRITE)
        )
        assert receipt.action == "backed_up"
        assert receipt.backup_path == str(tmp_path / "greeting.txt.bak")
        assert (tmp_path / "greeting.txt").read_text() == "hello Bob"
        assert (tmp_path / "greeting.txt.bak").read_text() == "hi there"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["greeting.txt", "greeting.txt.bak"]

    def test_backup_then_overwrite_twice_is_stable(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_text("hi there")
        emitter = TemplateEmitter(tmp_path)
        spec = _spec(on_conflict=ConflictPolicy.BACKUP_THEN_OVERWRITE)
        emitter.emit(spec)
        assert emitter.emit(spec).action == "unchanged"
        assert (tmp_path / "greeting.txt.bak").read_text() == "hi there"

    def test_missing_placeholder_writes_nothing(self, tmp_path: Path):
        with pytest.raises(TemplateAuthoringError):
            TemplateEmitter(tmp_path).emit(_spec(values={}))
        assert list(tmp_path.iterdir()) == []

    def test_absolute_destination(self, tmp_path: Path):
        target = tmp_path / "elsewhere" / "x.txt"
        TemplateEmitter(tmp_path / "root").emit(_spec(dest=str(target)))
        assert target.read_text() == "hello Bob"

    def test_mode_applied(self, tmp_path: Path):
        TemplateEmitter(tmp_path).emit(_spec(dest="start.sh", mode=0o755))
        assert os.access(tmp_path / "start.sh", os.X_OK)

    def test_unwritable_destination(self, tmp_path: Path):
        (tmp_path / "greeting.txt").mkdir()
        with pytest.raises(TemplateWriteError):
            TemplateEmitter(tmp_path).emit(_spec(on_conflict=ConflictPolicy.OVERWRITE))

    def test_skip_never_reads_existing(self, tmp_path: Path):
        target = tmp_path / "greeting.txt"
        target.write_bytes(b"\xff\xfeold")
        receipt = TemplateEmitter(tmp_path).emit(_spec())
        assert receipt.action == "skipped"
        assert target.read_bytes() == b"\xff\xfeold"

    def test_overwrite_non_utf8_existing(self, tmp_path: Path):
        target = tmp_path / "greeting.txt"
        target.write_bytes(b"\xff\xfeold")
        receipt = TemplateEmitter(tmp_path).emit(_spec(on_conflict=ConflictPolicy.OVERWRITE))
        assert receipt.action == "overwritten"
        assert target.read_bytes() == b"hello Bob"

    def test_backup_non_utf8_existing(self, tmp_path: Path):
        target = tmp_path / "greeting.txt"
        target.write_bytes(b"\xff\xfeold")
        TemplateEmitter(tmp_path).emit(_spec(on_conflict=ConflictPolicy.BACKUP_THEN_OVERWRITE))
        assert (tmp_path / "greeting.txt.bak").read_bytes() == b"\xff\xfeold"
        assert target.read_bytes() == b"hello Bob"

    def test_crlf_existing_is_not_unchanged(self, tmp_path: Path):
        target = tmp_path / "greeting.txt"
        target.write_bytes(b"hello Bob\r\n")
        spec = _spec(template="hello {{name}}\n", on_conflict=ConflictPolicy.OVERWRITE)
        receipt = TemplateEmitter(tmp_path).emit(spec)
        assert receipt.action == "overwritten"
        assert target.read_bytes() == b"hello Bob\n"

    def test_failed_backup_leaves_nothing_staged(self, tmp_path: Path, monkeypatch):
        target = tmp_path / "greeting.txt"
        target.write_text("hi there")
        real_replace = os.replace

        def no_backups(src, dst):
            if str(dst).endswith(".bak"):
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", no_backups)
        with pytest.raises(TemplateWriteError):
            TemplateEmitter(tmp_path).emit(_spec(on_conflict=ConflictPolicy.BACKUP_THEN_OVERWRITE))
        assert [p.name for p in tmp_path.iterdir()] == ["greeting.txt"]
        assert target.read_text() == "hi there"

    def test_shared_values(self, tmp_path: Path):
        spec = _spec(template="{{ project_name }}: hello {{name}}")
        TemplateEmitter(tmp_path, {"project_name": "demo", "name": "Alice"}).emit(spec)
        assert (tmp_path / "greeting.txt").read_text() == "demo: hello Bob"


class TestIsCurrent:
    def test_absent(self, tmp_path: Path):
        assert not TemplateEmitter(tmp_path).is_current(_spec())

    def test_after_emit(self, tmp_path: Path):
        emitter = TemplateEmitter(tmp_path)
        spec = _spec(on_conflict=ConflictPolicy.OVERWRITE)
        emitter.emit(spec)
        assert emitter.is_current(spec)

    def test_stale_under_overwrite(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_text("old")
        assert not TemplateEmitter(tmp_path).is_current(
            _spec(on_conflict=ConflictPolicy.OVERWRITE)
        )

    def test_crlf_is_stale_under_overwrite(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_bytes(b"hello Bob\r\n")
        assert not TemplateEmitter(tmp_path).is_current(
            _spec(template="hello {{name}}\n", on_conflict=ConflictPolicy.OVERWRITE)
        )

    def test_skip_accepts_any_existing_bytes(self, tmp_path: Path):
        (tmp_path / "greeting.txt").write_bytes(b"\xff\xfeold")
        assert TemplateEmitter(tmp_path).is_current(_spec())
