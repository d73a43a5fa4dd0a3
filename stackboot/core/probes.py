"""
Probes — side-effect-free checks of whether a precondition already holds.

A probe never installs, never writes and never needs root.  If the
check itself blows up (a version command that crashes, an unreadable
file), the answer is "Unsatisfied, inconclusive" — the absence of a
tool is an expected condition, not an error.

Template authoring errors are the exception: they indicate a broken
step definition and propagate.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Literal

from stackboot.adapters.base import ExternalProcessRunner
from stackboot.core.context import ProjectContext
from stackboot.core.engine.emitter import TemplateEmitter
from stackboot.core.errors import ProbeInconclusive
from stackboot.core.models.probe import ProbeResult
from stackboot.core.models.template import TemplateSpec
from stackboot.core.services import packages as pkg
from stackboot.core.services.versions import extract_version, pattern_for, version_satisfies

logger = logging.getLogger(__name__)

# Errors that mean "could not tell" rather than "stackboot is broken".
_INCONCLUSIVE = (ProbeInconclusive, OSError, ValueError, subprocess.SubprocessError)


class Probe(ABC):
    """Base class for all probes.

    Subclasses implement ``check``; callers use ``evaluate``, which turns
    check failures into inconclusive Unsatisfied results.
    """

    @property
    def label(self) -> str:
        """Short description used in logs."""
        return self.__class__.__name__

    def evaluate(self, context: ProjectContext) -> ProbeResult:
        try:
            return self.check(context)
        except _INCONCLUSIVE as e:
            logger.debug("Probe %s inconclusive: %s", self.label, e)
            return ProbeResult.inconclusive_check(f"{self.label}: check failed: {e}")

    @abstractmethod
    def check(self, context: ProjectContext) -> ProbeResult:
        """Perform the check.  May raise; ``evaluate`` handles it."""

    def __repr__(self) -> str:
        return f"<{self.label}>"


class CommandProbe(Probe):
    """Satisfied when ``command`` is found on PATH (plus context entries)."""

    def __init__(self, command: str):
        self.command = command

    @property
    def label(self) -> str:
        return f"command:{self.command}"

    def check(self, context: ProjectContext) -> ProbeResult:
        path = context.which(self.command)
        if path:
            return ProbeResult.ok(details={"path": path})
        return ProbeResult.missing(f"{self.command} not found on PATH")


class CommandsProbe(Probe):
    """Satisfied when every command in a list is on PATH."""

    def __init__(self, commands: list[str]):
        self.commands = list(commands)

    @property
    def label(self) -> str:
        return f"commands:{','.join(self.commands)}"

    def missing_commands(self, context: ProjectContext) -> list[str]:
        return [c for c in self.commands if not context.which(c)]

    def check(self, context: ProjectContext) -> ProbeResult:
        missing = self.missing_commands(context)
        if missing:
            return ProbeResult.missing(
                f"missing: {' '.join(missing)}", details={"missing": missing},
            )
        return ProbeResult.ok()


class VersionProbe(Probe):
    """Satisfied when a command reports a version meeting a constraint.

    Args:
        runner: Process runner used for the version query.
        command: Executable to query.
        args: Query arguments (default ``--version``).
        minimum: Lowest acceptable version (semantic comparison).
        exact: Required version prefix (``"22.21.1"``, ``"3.12"``).
        pattern: Regex with one group capturing the version.
    """

    def __init__(
        self,
        runner: ExternalProcessRunner,
        command: str,
        args: list[str] | None = None,
        *,
        minimum: str | None = None,
        exact: str | None = None,
        pattern: str | None = None,
    ):
        self.runner = runner
        self.command = command
        self.args = list(args) if args is not None else ["--version"]
        self.minimum = minimum
        self.exact = exact
        self.pattern = pattern or pattern_for(command)

    @property
    def label(self) -> str:
        constraint = f"=={self.exact}" if self.exact else f">={self.minimum}" if self.minimum else ""
        return f"version:{self.command}{constraint}"

    def check(self, context: ProjectContext) -> ProbeResult:
        if not context.which(self.command):
            return ProbeResult.missing(f"{self.command} not found on PATH")

        status = self.runner.run(self.command, self.args, env=context.process_env())
        if not status.ok:
            raise ProbeInconclusive(
                f"'{status.display}' exited {status.returncode}: {status.stderr.strip()[:200]}"
            )

        # Some tools print their version on stderr.
        version = extract_version(status.stdout + "\n" + status.stderr, self.pattern)
        if version is None:
            raise ProbeInconclusive(f"no version in output of '{status.display}'")

        ok, message = version_satisfies(version, minimum=self.minimum, exact=self.exact)
        if ok:
            return ProbeResult.ok(version=version)
        return ProbeResult.missing(f"{self.command} {message}", version=version)


class PathProbe(Probe):
    """Satisfied when a path exists (relative paths resolve under root)."""

    def __init__(self, path: str | Path, kind: Literal["any", "file", "dir"] = "any"):
        self.path = str(path)
        self.kind = kind

    @property
    def label(self) -> str:
        return f"path:{self.path}"

    def check(self, context: ProjectContext) -> ProbeResult:
        target = context.resolve(self.path)
        if self.kind == "file":
            found = target.is_file()
        elif self.kind == "dir":
            found = target.is_dir()
        else:
            found = target.exists()
        if found:
            return ProbeResult.ok(details={"path": str(target)})
        noun = {"file": "file", "dir": "directory"}.get(self.kind, "path")
        return ProbeResult.missing(f"{noun} {target} does not exist")


class FileContainsProbe(Probe):
    """Satisfied when a file (relative paths under root) contains ``text``."""

    def __init__(self, path: str | Path, text: str):
        self.path = str(path)
        self.text = text

    @property
    def label(self) -> str:
        return f"contains:{self.path}"

    def check(self, context: ProjectContext) -> ProbeResult:
        target = context.resolve(self.path)
        if not target.is_file():
            return ProbeResult.missing(f"file {target} does not exist")
        if self.text in target.read_text(encoding="utf-8", errors="replace"):
            return ProbeResult.ok()
        return ProbeResult.missing(f"{target} lacks {self.text!r}")


class EnvVarProbe(Probe):
    """Satisfied when an environment variable is set and non-empty."""

    def __init__(self, name: str):
        self.name = name

    @property
    def label(self) -> str:
        return f"env:{self.name}"

    def check(self, context: ProjectContext) -> ProbeResult:
        if os.environ.get(self.name):
            return ProbeResult.ok()
        return ProbeResult.missing(f"${self.name} is not set")


def marker_lines(marker: str) -> tuple[str, str]:
    """Opening and closing comment lines delimiting a profile block."""
    return f"# >>> stackboot: {marker} >>>", f"# <<< stackboot: {marker} <<<"


class ProfileMarkerProbe(Probe):
    """Satisfied when the shell profile contains the marker block."""

    def __init__(self, marker: str, profile: str | Path | None = None):
        self.marker = marker
        self.profile = str(profile) if profile else None

    @property
    def label(self) -> str:
        return f"profile:{self.marker}"

    def profile_path(self, context: ProjectContext) -> Path:
        return context.resolve(self.profile or context.host.shell_profile)

    def check(self, context: ProjectContext) -> ProbeResult:
        path = self.profile_path(context)
        if not path.is_file():
            return ProbeResult.missing(f"{path} does not exist")
        opening, _ = marker_lines(self.marker)
        if opening in path.read_text(encoding="utf-8", errors="replace"):
            return ProbeResult.ok()
        return ProbeResult.missing(f"{self.marker} block not in {path}")


class SystemPackagesProbe(Probe):
    """Satisfied when every package is installed per the host package manager."""

    def __init__(self, runner: ExternalProcessRunner, packages: list[str]):
        self.runner = runner
        self.packages = list(packages)

    @property
    def label(self) -> str:
        return f"packages:{','.join(self.packages)}"

    def is_installed(self, context: ProjectContext, package: str) -> bool:
        manager = context.host.package_manager
        cmd = pkg.query_command(manager, package)
        status = self.runner.run(cmd[0], cmd[1:], env=context.process_env())
        if manager == "apt":
            return status.ok and "install ok installed" in status.stdout
        return status.ok

    def missing_packages(self, context: ProjectContext) -> list[str]:
        return [p for p in self.packages if not self.is_installed(context, p)]

    def check(self, context: ProjectContext) -> ProbeResult:
        if context.host.package_manager == "none":
            return ProbeResult.inconclusive_check("no supported package manager to query")
        missing = self.missing_packages(context)
        if missing:
            return ProbeResult.missing(
                f"missing packages: {' '.join(missing)}", details={"missing": missing},
            )
        return ProbeResult.ok()


class CommandSucceedsProbe(Probe):
    """Satisfied when a check command exits 0.

    ``cwd`` resolves under the project root; if it does not exist yet
    the probe is Unsatisfied without running anything.
    """

    def __init__(
        self,
        runner: ExternalProcessRunner,
        command: str,
        args: list[str] | None = None,
        cwd: str | Path | None = None,
        description: str = "",
    ):
        self.runner = runner
        self.command = command
        self.args = list(args or [])
        self.cwd = str(cwd) if cwd is not None else None
        self.description = description

    @property
    def label(self) -> str:
        return self.description or f"check:{self.command} {' '.join(self.args)}".strip()

    def check(self, context: ProjectContext) -> ProbeResult:
        cwd = context.resolve(self.cwd) if self.cwd is not None else None
        if cwd is not None and not cwd.is_dir():
            return ProbeResult.missing(f"{cwd} does not exist")
        command = str(context.resolve(self.command)) if "/" in self.command else self.command
        status = self.runner.run(
            command, self.args,
            cwd=str(cwd) if cwd else None,
            env=context.process_env(),
        )
        if status.ok:
            return ProbeResult.ok()
        return ProbeResult.missing(f"'{status.display}' exited {status.returncode}")


class PackageJsonProbe(Probe):
    """Satisfied when a ``package.json`` section declares every named key.

    ``section`` is ``dependencies``, ``devDependencies`` or ``scripts``.
    """

    def __init__(self, path: str | Path, names: list[str], section: str = "dependencies"):
        self.path = str(path)
        self.names = list(names)
        self.section = section

    @property
    def label(self) -> str:
        return f"package.json:{self.path}"

    def check(self, context: ProjectContext) -> ProbeResult:
        target = context.resolve(self.path)
        if not target.is_file():
            return ProbeResult.missing(f"{target} does not exist")
        data = json.loads(target.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ProbeInconclusive(f"{target} is not a JSON object")
        declared = data.get(self.section) or {}
        if not isinstance(declared, dict):
            raise ProbeInconclusive(f"{self.section} in {target} is not a JSON object")
        missing = [n for n in self.names if n not in declared]
        if missing:
            return ProbeResult.missing(
                f"{self.section} missing: {' '.join(missing)}", details={"missing": missing},
            )
        return ProbeResult.ok()


class TemplateProbe(Probe):
    """Satisfied when emitting the template would change nothing."""

    def __init__(self, spec: TemplateSpec):
        self.spec = spec

    @property
    def label(self) -> str:
        return f"template:{self.spec.destination_path}"

    def check(self, context: ProjectContext) -> ProbeResult:
        emitter = TemplateEmitter(context.root_path, context.template_values())
        if emitter.is_current(self.spec):
            return ProbeResult.ok()
        target = emitter.destination(self.spec)
        if target.exists():
            return ProbeResult.missing(f"{target} differs from template")
        return ProbeResult.missing(f"{target} does not exist")


class AllOf(Probe):
    """Satisfied when every inner probe is; the first Unsatisfied wins.

    The version of the last satisfied probe that reported one is kept.
    """

    def __init__(self, *probes: Probe):
        self.probes = probes

    @property
    def label(self) -> str:
        return " & ".join(p.label for p in self.probes)

    def check(self, context: ProjectContext) -> ProbeResult:
        version = None
        for probe in self.probes:
            result = probe.evaluate(context)
            if not result.satisfied:
                return result
            version = result.version or version
        return ProbeResult.ok(version=version)
