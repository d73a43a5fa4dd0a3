"""
Project context — the state threaded through every step of a run.

Created once before the plan starts and discarded at process exit.
Nothing here is persisted: the next run re-derives everything by
probing the host again.

Design notes:
    - ``root_path`` and ``project_name`` are fixed at construction and
      exposed read-only.
    - ``resolved_versions`` and ``path_entries`` only grow.  There is
      deliberately no API to remove an entry.
    - Owned by the plan runner; nothing else writes to it.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from stackboot.core.models.config import BootstrapConfig
from stackboot.core.models.host import HostInfo

logger = logging.getLogger(__name__)

PROJECT_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_project_name(name: str) -> str:
    """Return ``name`` if usable as a directory and template value.

    Raises:
        ValueError: If the name is empty or contains unsafe characters.
    """
    if not name or not PROJECT_NAME_RE.match(name):
        raise ValueError(
            f"Invalid project name {name!r}: use letters, digits, '.', '_' or '-', "
            "starting with a letter or digit."
        )
    return name


class ProjectContext:
    """Accumulated state of one bootstrap run."""

    def __init__(
        self,
        root_path: Path,
        project_name: str,
        host: HostInfo,
        config: BootstrapConfig | None = None,
        home: Path | None = None,
    ):
        if not root_path.is_absolute():
            raise ValueError(f"root_path must be absolute: {root_path}")
        self._root_path = root_path
        self._project_name = validate_project_name(project_name)
        self._host = host
        self._config = config or BootstrapConfig()
        self._home = home or Path.home()
        self._resolved_versions: dict[str, str] = {}
        self._path_entries: list[str] = []
        self.profile_changed = False

    # ── Immutable fields ─────────────────────────────────────────

    @property
    def root_path(self) -> Path:
        return self._root_path

    @property
    def project_name(self) -> str:
        return self._project_name

    @property
    def host(self) -> HostInfo:
        return self._host

    @property
    def config(self) -> BootstrapConfig:
        return self._config

    @property
    def home(self) -> Path:
        return self._home

    # ── Monotonic state ──────────────────────────────────────────

    @property
    def resolved_versions(self) -> Mapping[str, str]:
        """Read-only view of tool → version resolved so far."""
        return MappingProxyType(self._resolved_versions)

    def record_version(self, tool: str, version: str) -> None:
        """Record the concrete version of a tool.

        A later probe may refine the value (e.g. after an upgrade), but
        entries are never removed.
        """
        previous = self._resolved_versions.get(tool)
        if previous != version:
            logger.debug("Resolved %s = %s (was %s)", tool, version, previous)
        self._resolved_versions[tool] = version

    @property
    def path_entries(self) -> tuple[str, ...]:
        return tuple(self._path_entries)

    def prepend_path(self, *entries: str | Path) -> None:
        """Make directories visible on PATH for the rest of the run."""
        for entry in entries:
            value = str(entry)
            if value not in self._path_entries:
                self._path_entries.insert(0, value)

    # ── Derived helpers ──────────────────────────────────────────

    def search_path(self) -> str:
        """PATH string: context entries first, then the inherited PATH."""
        inherited = os.environ.get("PATH", "")
        parts = list(self._path_entries)
        if inherited:
            parts.append(inherited)
        return os.pathsep.join(parts)

    def process_env(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        """Environment for external processes launched during the run."""
        env = os.environ.copy()
        env["PATH"] = self.search_path()
        if extra:
            for key, value in extra.items():
                env[key] = os.path.expandvars(value)
        return env

    def which(self, command: str) -> str | None:
        """``shutil.which`` honouring the context's PATH additions."""
        return shutil.which(command, path=self.search_path())

    def resolve(self, path: str | Path) -> Path:
        """Resolve a path: ``~`` expands to home, relative goes under root."""
        raw = str(path)
        if raw == "~" or raw.startswith("~/"):
            return self._home / raw[2:] if raw != "~" else self._home
        p = Path(raw)
        return p if p.is_absolute() else self._root_path / p

    def template_values(self) -> dict[str, Any]:
        """Placeholder values every template may use.

        ``{tool}_version`` entries come from ``resolved_versions`` as they
        are at call time, so templates rendered after a step that resolved
        a tool see its actual version.  ``python_version`` falls back to
        ``python_min`` until Python has been probed.
        """
        values: dict[str, Any] = {
            "project_name": self._project_name,
            "root_path": str(self._root_path),
            "node_version": self._config.node_version,
            "python_min": self._config.python_min,
            "python_version": self._config.python_min,
            "backend_port": self._config.backend_port,
            "frontend_port": self._config.frontend_port,
        }
        for tool, version in self._resolved_versions.items():
            values[f"{tool}_version"] = version
        return values

    def __repr__(self) -> str:
        return (
            f"<ProjectContext name={self._project_name!r} "
            f"root={str(self._root_path)!r} versions={self._resolved_versions!r}>"
        )
