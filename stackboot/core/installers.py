"""
Installers — actions that establish a precondition a probe found missing.

Every installer must be safe to run again after a partial failure:
either it cleans up the residue of the earlier attempt first, or it
detects what is already there and continues.

Installers raise ``InstallError`` subclasses; external command failures
are classified from exit code and stderr by ``classify_failure``.
"""

from __future__ import annotations

import errno
import logging
import re
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from stackboot.adapters.base import ExitStatus, ExternalProcessRunner
from stackboot.core.context import ProjectContext
from stackboot.core.engine.emitter import TemplateEmitter, atomic_write
from stackboot.core.errors import (
    BootstrapError,
    ExternalToolFailed,
    InstallError,
    NetworkUnavailable,
    PermissionDenied,
    TemplateWriteError,
    UnsupportedPlatform,
)
from stackboot.core.models.template import TemplateSpec
from stackboot.core.probes import CommandsProbe, SystemPackagesProbe, marker_lines
from stackboot.core.services import packages as pkg

logger = logging.getLogger(__name__)

Command = list[str]

_PERMISSION_PATTERNS = (
    "permission denied",
    "eacces",
    "operation not permitted",
    "are you root",
    "a password is required",
    "a terminal is required",
    "is not in the sudoers file",
)

_NETWORK_PATTERNS = (
    "could not resolve host",
    "temporary failure in name resolution",
    "name or service not known",
    "network is unreachable",
    "failed to connect",
    "connection timed out",
    "connection refused",
)

# curl: 6 = couldn't resolve host, 7 = couldn't connect.
_CURL_NETWORK_EXIT_CODES = (6, 7)

_PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM)


def shell(script: str) -> Command:
    """Wrap a shell snippet (pipes, sourcing) as a command."""
    return ["bash", "-c", script]


def classify_failure(status: ExitStatus, label: str = "") -> InstallError:
    """Turn a failed ExitStatus into the matching InstallError."""
    stderr = status.stderr.strip()
    lowered = stderr.lower()
    what = label or status.display
    tail = stderr.splitlines()[-1] if stderr else ""

    if status.returncode == 126 or any(p in lowered for p in _PERMISSION_PATTERNS):
        return PermissionDenied(f"{what}: permission denied{f' ({tail})' if tail else ''}")

    if (status.command == "curl" and status.returncode in _CURL_NETWORK_EXIT_CODES) or any(
        p in lowered for p in _NETWORK_PATTERNS
    ):
        return NetworkUnavailable(f"{what}: network unavailable{f' ({tail})' if tail else ''}")

    if status.timed_out:
        message = f"{what}: timed out"
    elif status.returncode == 127:
        message = f"{what}: command not found"
    else:
        message = f"{what}: exited with code {status.returncode}{f' ({tail})' if tail else ''}"
    return ExternalToolFailed(message, exit_code=status.returncode, stderr=stderr)


def filesystem_failure(error: OSError, message: str) -> BootstrapError:
    """PermissionDenied for EACCES/EPERM, TemplateWriteError for the rest."""
    if error.errno in _PERMISSION_ERRNOS:
        return PermissionDenied(f"{message}: {error}")
    return TemplateWriteError(f"{message}: {error}")


class Installer(ABC):
    """Base class for all installers."""

    @property
    def label(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def execute(self, context: ProjectContext) -> None:
        """Establish the precondition or raise ``InstallError``."""

    def __repr__(self) -> str:
        return f"<{self.label}>"


def _privileged(command: Command, context: ProjectContext) -> Command:
    """Prefix ``sudo`` unless already root."""
    if context.host.is_root:
        return command
    if not context.which("sudo"):
        raise PermissionDenied(
            f"'{' '.join(command)}' needs root privileges and sudo is not available"
        )
    return ["sudo", *command]


class CommandInstaller(Installer):
    """Run external commands in order; the first failure aborts.

    Args:
        runner: Process runner.
        commands: Command lists to run, in order.
        cwd: Working directory (relative → under project root).
        needs_root: Prefix ``sudo`` when not running as root.
        cleanup_paths: Residue of a half-finished earlier attempt.  Each
            path is removed before the commands run if ``residue_marker``
            (a file inside it) is missing.
        residue_marker: Relative path that marks a *complete* install.
        path_entries: Directories to prepend to PATH afterwards.
        env: Extra environment variables (``$VARS`` are expanded).
        description: Label used in error messages.
    """

    def __init__(
        self,
        runner: ExternalProcessRunner,
        commands: list[Command],
        *,
        cwd: str | Path | None = None,
        needs_root: bool = False,
        cleanup_paths: tuple[str, ...] = (),
        residue_marker: str | None = None,
        path_entries: tuple[str, ...] = (),
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        description: str = "",
    ):
        if not commands:
            raise ValueError("CommandInstaller needs at least one command")
        self.runner = runner
        self.commands = [list(c) for c in commands]
        self.cwd = str(cwd) if cwd is not None else None
        self.needs_root = needs_root
        self.cleanup_paths = cleanup_paths
        self.residue_marker = residue_marker
        self.path_entries = path_entries
        self.env = env or {}
        self.timeout = timeout
        self.description = description

    @property
    def label(self) -> str:
        return self.description or " && ".join(" ".join(c) for c in self.commands)

    def _clean_residue(self, context: ProjectContext) -> None:
        for raw in self.cleanup_paths:
            path = context.resolve(raw)
            if not path.exists():
                continue
            if self.residue_marker and (path / self.residue_marker).exists():
                continue
            logger.warning("Removing residue of an incomplete install: %s", path)
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    path.unlink()
            except OSError as e:
                raise filesystem_failure(e, f"Cannot remove residue {path}") from e

    def execute(self, context: ProjectContext) -> None:
        self._clean_residue(context)

        cwd = context.resolve(self.cwd) if self.cwd is not None else None
        env = context.process_env(self.env)
        for command in self.commands:
            if "/" in command[0] or command[0].startswith("~"):
                command = [str(context.resolve(command[0])), *command[1:]]
            argv = _privileged(command, context) if self.needs_root else command
            logger.info("Running: %s", " ".join(argv))
            status = self.runner.run(
                argv[0], argv[1:],
                cwd=str(cwd) if cwd else None,
                env=env,
                timeout=self.timeout,
            )
            if not status.ok:
                raise classify_failure(status, self.description)

        for entry in self.path_entries:
            context.prepend_path(context.resolve(entry))


class SystemPackagesInstaller(Installer):
    """Install system packages with the host's package manager.

    The missing set is computed at execution time, so a rerun after a
    partial install only installs what is still absent.

    Args:
        runner: Process runner.
        packages: Logical package names (see ``services.packages``).
        commands: Alternatively, commands that must exist; packages are
            derived from whichever commands are missing.
        post_install: Extra commands per package manager
            (e.g. ``brew link --force libpq``).
    """

    def __init__(
        self,
        runner: ExternalProcessRunner,
        packages: list[str] | None = None,
        *,
        commands: list[str] | None = None,
        post_install: dict[str, list[Command]] | None = None,
    ):
        if not packages and not commands:
            raise ValueError("SystemPackagesInstaller needs packages or commands")
        self.runner = runner
        self.packages = list(packages or [])
        self.commands = list(commands or [])
        self.post_install = post_install or {}

    @property
    def label(self) -> str:
        return f"system packages: {' '.join(self.packages or self.commands)}"

    def wanted(self, context: ProjectContext) -> list[str]:
        """Distro package names still missing."""
        manager = context.host.package_manager
        if self.commands:
            missing = CommandsProbe(self.commands).missing_commands(context)
            logical = [pkg.COMMAND_PACKAGES.get(c, c) for c in missing]
        else:
            logical = self.packages

        names: list[str] = []
        for name in logical:
            for real in pkg.package_names(name, manager):
                if real not in names:
                    names.append(real)

        if not self.commands and names:
            names = SystemPackagesProbe(self.runner, names).missing_packages(context)
        return names

    def execute(self, context: ProjectContext) -> None:
        manager = context.host.package_manager
        if manager == "none":
            raise UnsupportedPlatform(
                f"No supported package manager found on {context.host.os_name}"
            )

        names = self.wanted(context)
        commands = pkg.install_commands(manager, names)
        commands += self.post_install.get(manager, [])
        if not commands:
            logger.info("Nothing to install for %s", self.label)
            return

        CommandInstaller(
            self.runner,
            commands,
            needs_root=pkg.needs_root(manager),
            description=f"{manager} install {' '.join(names)}".strip(),
        ).execute(context)


class ProfileBlockInstaller(Installer):
    """Append a marker-delimited block to the user's shell profile.

    Idempotent: if the opening marker is already present nothing is
    written.  The profile's existing content is never modified.
    """

    def __init__(self, marker: str, lines: list[str], profile: str | Path | None = None):
        self.marker = marker
        self.lines = list(lines)
        self.profile = str(profile) if profile else None

    @property
    def label(self) -> str:
        return f"shell profile block '{self.marker}'"

    def execute(self, context: ProjectContext) -> None:
        path = context.resolve(self.profile or context.host.shell_profile)
        opening, closing = marker_lines(self.marker)
        try:
            existing = path.read_text(encoding="utf-8") if path.is_file() else ""
            if opening in existing:
                logger.debug("Profile block %s already present in %s", self.marker, path)
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                if existing and not existing.endswith("\n"):
                    f.write("\n")
                f.write("\n" + "\n".join([opening, *self.lines, closing]) + "\n")
        except OSError as e:
            raise filesystem_failure(e, f"Cannot update {path}") from e

        context.profile_changed = True
        logger.info("Added %s block to %s", self.marker, path)


class DirectoryInstaller(Installer):
    """Create a directory (and parents)."""

    def __init__(self, path: str | Path):
        self.path = str(path)

    @property
    def label(self) -> str:
        return f"mkdir {self.path}"

    def execute(self, context: ProjectContext) -> None:
        target = context.resolve(self.path)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise filesystem_failure(e, f"Cannot create {target}") from e


class LineSubstituteInstaller(Installer):
    """Rewrite every line of a file matching ``pattern`` to ``line``.

    Used for generated config files stackboot does not own as a whole
    (``alembic.ini``).  No matching line is an error: the file is not
    the one the step expects.
    """

    def __init__(self, path: str | Path, pattern: str, line: str):
        self.path = str(path)
        self.pattern = re.compile(pattern, re.MULTILINE)
        self.line = line

    @property
    def label(self) -> str:
        return f"set {self.line!r} in {self.path}"

    def execute(self, context: ProjectContext) -> None:
        target = context.resolve(self.path)
        try:
            original = target.read_text(encoding="utf-8")
            updated, count = self.pattern.subn(lambda _: self.line, original)
            if count == 0:
                raise InstallError(f"No line matching {self.pattern.pattern!r} in {target}")
            atomic_write(target, updated)
        except OSError as e:
            raise filesystem_failure(e, f"Cannot update {target}") from e
        logger.info("Set %s in %s", self.line, target)


class EmitTemplateInstaller(Installer):
    """Write a template through the emitter (base dir = project root)."""

    def __init__(self, spec: TemplateSpec):
        self.spec = spec

    @property
    def label(self) -> str:
        return f"emit {self.spec.destination_path}"

    def execute(self, context: ProjectContext) -> None:
        TemplateEmitter(context.root_path, context.template_values()).emit(self.spec)


class CaptureOutputInstaller(Installer):
    """Run a command and store its stdout in a file (e.g. ``pip freeze``)."""

    def __init__(
        self,
        runner: ExternalProcessRunner,
        command: Command,
        destination: str | Path,
        *,
        cwd: str | Path | None = None,
        description: str = "",
    ):
        self.runner = runner
        self.command = list(command)
        self.destination = str(destination)
        self.cwd = str(cwd) if cwd is not None else None
        self.description = description

    @property
    def label(self) -> str:
        return self.description or f"{' '.join(self.command)} > {self.destination}"

    def execute(self, context: ProjectContext) -> None:
        cwd = context.resolve(self.cwd) if self.cwd is not None else None
        executable = self.command[0]
        if "/" in executable:
            executable = str(context.resolve(executable))
        status = self.runner.run(
            executable, self.command[1:],
            cwd=str(cwd) if cwd else None,
            env=context.process_env(),
        )
        if not status.ok:
            raise classify_failure(status, self.description)

        target = context.resolve(self.destination)
        try:
            atomic_write(target, status.stdout)
        except OSError as e:
            raise filesystem_failure(e, f"Cannot write {target}") from e


class NestedPlanInstaller(Installer):
    """Install by running a nested plan of steps.

    The plan runner executes the nested plan itself (same gate, same
    context, same progress reporting); see ``PlanRunner``.
    """

    def __init__(self, plan):
        self.plan = plan

    @property
    def label(self) -> str:
        return f"nested plan '{self.plan.name}'"

    def execute(self, context: ProjectContext) -> None:
        raise InstallError(f"{self.label} must be executed by a PlanRunner")
