"""
Bootstrap use case — from a project name to a finished run report.

Two phases, so the CLI can tell a bad invocation (exit 2) from a failed
run (exit 1):

    prepare_context()  resolve name/location, detect host   → may raise
    run_bootstrap()    build the plan and run it             → BootstrapResult
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from stackboot.adapters.base import ConfirmationGate, ExternalProcessRunner
from stackboot.core.context import ProjectContext, validate_project_name
from stackboot.core.engine.runner import EventCallback, PlanRunner
from stackboot.core.errors import InvalidInvocation
from stackboot.core.models.config import BootstrapConfig
from stackboot.core.models.host import HostInfo
from stackboot.core.models.report import RunReport
from stackboot.core.models.step import Plan
from stackboot.core.plans.fullstack import build_fullstack_plan, seed_tool_paths
from stackboot.core.services.host import detect_host

logger = logging.getLogger(__name__)

# A project may not be created in, or anywhere under, these.
PROTECTED_ROOTS = (
    "/bin", "/boot", "/dev", "/etc", "/lib", "/proc", "/sbin", "/sys", "/usr",
)


def _is_protected(target: Path) -> bool:
    if target.parent == Path("/"):
        # Directly under / is as bad as / itself.
        return True
    for protected in PROTECTED_ROOTS:
        if target == Path(protected) or Path(protected) in target.parents:
            return True
    return False


def resolve_project_location(
    name: str, root: str | Path | None = None,
) -> tuple[str, Path]:
    """Split ``name`` into (project name, absolute project directory).

    ``name`` may carry a path (``~/projects/demo``): ``~`` is expanded,
    the last component is the project name and the rest replaces
    ``root`` as the parent directory.  Relative parents resolve against
    ``root`` (default: cwd).

    Raises:
        InvalidInvocation: Bad name, or a location inside a protected
            system directory.
    """
    raw = os.path.expanduser((name or "").strip()).rstrip("/")
    base = Path(os.path.expanduser(str(root))) if root else Path.cwd()

    given = Path(raw)
    project_name = given.name
    if len(given.parts) > 1:
        parent = given.parent if given.is_absolute() else base / given.parent
    else:
        parent = base

    try:
        validate_project_name(project_name)
    except ValueError as e:
        raise InvalidInvocation(str(e)) from e

    target = Path(os.path.abspath(parent / project_name))
    if _is_protected(target):
        raise InvalidInvocation(f"Refusing to create a project in a system directory: {target}")
    return project_name, target


def prepare_context(
    name: str,
    root: str | Path | None = None,
    config: BootstrapConfig | None = None,
    host: HostInfo | None = None,
    home: Path | None = None,
) -> ProjectContext:
    """Build the run context: location, host facts, tool search path.

    Raises:
        InvalidInvocation: Bad name or protected location.
        UnsupportedPlatform: Host OS is neither Linux nor macOS.
    """
    config = config or BootstrapConfig()
    project_name, target = resolve_project_location(name, root)
    if host is None:
        host = detect_host(home=home, profile_override=config.shell_profile)

    context = ProjectContext(target, project_name, host, config=config, home=home)
    seed_tool_paths(context)
    logger.info("Project %s at %s", project_name, target)
    return context


@dataclass
class BootstrapResult:
    """Result of a bootstrap (or check) run."""

    project_name: str
    root_path: Path
    host: HostInfo
    report: RunReport
    profile_changed: bool = False

    @property
    def ok(self) -> bool:
        return self.report.ok

    def to_dict(self) -> dict:
        return {
            "project_name": self.project_name,
            "root_path": str(self.root_path),
            "host": self.host.to_dict(),
            "profile_changed": self.profile_changed,
            "shell_profile": self.host.shell_profile,
            "report": self.report.to_dict(),
        }


def plan_for(
    context: ProjectContext,
    runner: ExternalProcessRunner | None = None,
    skip_backend: bool = False,
    skip_frontend: bool = False,
) -> Plan:
    """The full-stack plan for ``context`` (default process runner)."""
    if runner is None:
        from stackboot.adapters.shell.command import SubprocessRunner
        runner = SubprocessRunner()
    return build_fullstack_plan(
        context, runner, skip_backend=skip_backend, skip_frontend=skip_frontend,
    )


def run_bootstrap(
    context: ProjectContext,
    gate: ConfirmationGate,
    runner: ExternalProcessRunner | None = None,
    dry_run: bool = False,
    skip_backend: bool = False,
    skip_frontend: bool = False,
    on_event: EventCallback | None = None,
) -> BootstrapResult:
    """Build the full-stack plan for ``context`` and run it.

    Expected failures end up in ``result.report``; defects propagate.
    """
    plan = plan_for(context, runner, skip_backend=skip_backend, skip_frontend=skip_frontend)
    report = PlanRunner(gate, dry_run=dry_run, on_event=on_event).run(plan, context)
    return BootstrapResult(
        project_name=context.project_name,
        root_path=context.root_path,
        host=context.host,
        report=report,
        profile_changed=context.profile_changed,
    )
