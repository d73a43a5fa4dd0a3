"""
stackboot — CLI entrypoint.

Usage:
    stackboot --help
    stackboot bootstrap --name demo
    stackboot check --name demo

Exit codes:
    0  plan fully satisfied
    1  a step failed or the user declined a confirmation
    2  invalid invocation (bad name, bad config, unsupported host)
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from stackboot import __version__
from stackboot.core.observability.logging_config import (
    ENV_LOG_FILE,
    ENV_LOG_FILE_LEVEL,
    resolve_level,
    setup_logging,
)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2

_STATUS_MARKS = {
    "skipped": ("✓", "green"),
    "installed": ("✚", "cyan"),
    "pending": ("○", "yellow"),
    "declined": ("✗", "yellow"),
    "failed": ("✗", "red"),
}


@click.group()
@click.version_option(version=__version__, prog_name="stackboot")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to stackboot.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """stackboot — idempotent full-stack environment bootstrapper."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get(ENV_LOG_FILE),
        log_file_level=os.environ.get(ENV_LOG_FILE_LEVEL),
        quiet_third_party=not debug,
    )


# ── Shared helpers ──────────────────────────────────────────────


def _fail(message: str, code: int = EXIT_INVALID) -> None:
    click.secho(f"❌ {message}", fg="red", err=True)
    sys.exit(code)


def _load_config(ctx: click.Context):
    from stackboot.core.config.loader import ConfigError, load_config

    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e))


def _context(ctx: click.Context, name: str, root: str | None):
    """Resolve the ProjectContext or exit 2."""
    from stackboot.core.errors import InvalidInvocation, UnsupportedPlatform
    from stackboot.core.use_cases.bootstrap import prepare_context

    config = _load_config(ctx)
    try:
        return prepare_context(name, root, config=config)
    except (InvalidInvocation, UnsupportedPlatform) as e:
        _fail(str(e))


def _ask_name(name: str | None, interactive: bool) -> str:
    if name:
        return name
    if not interactive:
        _fail("A project name is required (--name or STACKBOOT_PROJECT_NAME).")
    return click.prompt("Project name (or path, e.g. ~/projects/demo)").strip()


def _progress(quiet: bool):
    """on_event callback printing one line per finished step."""

    def on_event(event: str, step, detail: str) -> None:
        if event not in _STATUS_MARKS or (quiet and event != "failed"):
            return
        mark, color = _STATUS_MARKS[event]
        click.secho(f"   {mark} ", fg=color, nl=False)
        suffix = f"  ({detail})" if detail else ""
        click.echo(f"{step.name}{suffix}")

    return on_event


def _print_outcomes(report) -> None:
    for outcome in report.outcomes:
        mark, color = _STATUS_MARKS[outcome.status]
        click.secho(f"   {mark} ", fg=color, nl=False)
        detail = outcome.version or outcome.reason or ""
        click.echo(f"{outcome.step}{f'  ({detail})' if detail else ''}")


def _print_summary(result, quiet: bool) -> None:
    report = result.report
    click.echo()
    if report.ok:
        click.secho(f"✅ {result.project_name} is ready", fg="green", bold=True)
    elif report.declined:
        click.secho(f"⏹  Stopped: {report.failed_step} was declined", fg="yellow", bold=True)
        return
    else:
        click.secho(f"❌ Failed at: {report.failed_step}", fg="red", bold=True)
        click.echo(f"   {report.error}")
        click.echo("   Fix the problem and run the same command again;")
        click.echo("   completed steps will be skipped.")
        return

    if quiet:
        return
    click.echo(f"   Location: {result.root_path}")
    click.echo(f"   Installed: {report.installs}   Already present: {report.skipped}")
    if report.resolved_versions:
        click.echo("   Versions:")
        for tool, version in sorted(report.resolved_versions.items()):
            click.echo(f"     • {tool} {version}")
    click.echo(f"   Elapsed: {report.duration_ms / 1000:.1f}s")

    if result.profile_changed:
        click.echo()
        click.secho("   Your shell profile changed. Reload it with:", fg="yellow")
        click.echo(f"     source {result.host.shell_profile}")
    click.echo()


# ── Commands ────────────────────────────────────────────────────


def _plan_options(fn):
    fn = click.option("--skip-frontend", is_flag=True, help="Leave out the Next.js frontend.")(fn)
    fn = click.option("--skip-backend", is_flag=True, help="Leave out the FastAPI backend.")(fn)
    fn = click.option("--json-output", "--json", "as_json", is_flag=True,
                      help="Output as JSON.")(fn)
    fn = click.option("--root", envvar="STACKBOOT_ROOT", default=None,
                      help="Parent directory for the project (default: cwd).")(fn)
    return fn


@cli.command()
@click.option("--name", envvar="STACKBOOT_PROJECT_NAME", default=None,
              help="Project name, optionally with a path (~/projects/demo).")
@click.option("--yes", "-y", is_flag=True, envvar="STACKBOOT_NONINTERACTIVE",
              help="Approve every confirmation (non-interactive).")
@click.option("--dry-run", is_flag=True, help="Only probe; install nothing.")
@_plan_options
@click.pass_context
def bootstrap(
    ctx: click.Context,
    name: str | None,
    yes: bool,
    dry_run: bool,
    root: str | None,
    as_json: bool,
    skip_backend: bool,
    skip_frontend: bool,
) -> None:
    """Install the toolchain and generate the full-stack starter."""
    from stackboot.adapters.prompt import AutoApproveGate, ClickConfirmationGate
    from stackboot.core.use_cases.bootstrap import run_bootstrap

    quiet = ctx.obj.get("quiet", False)
    name = _ask_name(name, interactive=not (yes or as_json))
    context = _context(ctx, name, root)

    if not as_json and not quiet:
        click.secho(f"\n🚀 {context.project_name}", fg="cyan", bold=True)
        click.echo(f"   {context.root_path}  ({context.host.os_name}, "
                   f"{context.host.package_manager})")
        click.echo()

    result = run_bootstrap(
        context,
        gate=AutoApproveGate() if yes else ClickConfirmationGate(),
        dry_run=dry_run,
        skip_backend=skip_backend,
        skip_frontend=skip_frontend,
        on_event=None if as_json else _progress(quiet),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _print_summary(result, quiet)

    sys.exit(EXIT_OK if result.report.fully_satisfied else EXIT_FAILED)


@cli.command()
@click.option("--name", envvar="STACKBOOT_PROJECT_NAME", required=True,
              help="Project name, optionally with a path.")
@_plan_options
@click.pass_context
def check(
    ctx: click.Context,
    name: str,
    root: str | None,
    as_json: bool,
    skip_backend: bool,
    skip_frontend: bool,
) -> None:
    """Probe every step without installing anything."""
    from stackboot.adapters.prompt import AutoApproveGate
    from stackboot.core.use_cases.bootstrap import run_bootstrap

    context = _context(ctx, name, root)
    result = run_bootstrap(
        context, gate=AutoApproveGate(), dry_run=True,
        skip_backend=skip_backend, skip_frontend=skip_frontend,
    )
    report = result.report

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        click.secho(f"\n🔎 {context.project_name}  ({context.root_path})", fg="cyan", bold=True)
        _print_outcomes(report)
        click.echo()
        if report.fully_satisfied:
            click.secho("✅ Everything is in place", fg="green", bold=True)
        elif report.ok:
            click.secho(f"○ {report.pending} step(s) would run", fg="yellow", bold=True)
        else:
            click.secho(f"❌ {report.failed_step}: {report.error}", fg="red", bold=True)
        click.echo()

    sys.exit(EXIT_OK if report.fully_satisfied else EXIT_FAILED)


@cli.command("plan")
@click.option("--name", envvar="STACKBOOT_PROJECT_NAME", default="my-app", show_default=True,
              help="Project name used to render the plan.")
@_plan_options
@click.pass_context
def plan_cmd(
    ctx: click.Context,
    name: str,
    root: str | None,
    as_json: bool,
    skip_backend: bool,
    skip_frontend: bool,
) -> None:
    """List the steps of the plan in order."""
    from stackboot.core.installers import NestedPlanInstaller
    from stackboot.core.use_cases.bootstrap import plan_for

    context = _context(ctx, name, root)
    plan = plan_for(context, skip_backend=skip_backend, skip_frontend=skip_frontend)

    def describe(steps) -> list[dict]:
        rows = []
        for step in steps:
            row = {
                "name": step.name,
                "requires_confirmation": step.requires_confirmation,
                "probe": step.probe.label,
                "install": step.install.label,
            }
            if isinstance(step.install, NestedPlanInstaller):
                row["steps"] = describe(step.install.plan)
            rows.append(row)
        return rows

    rows = describe(plan)
    if as_json:
        click.echo(json.dumps({"plan": plan.name, "steps": rows}, indent=2))
        return

    click.secho(f"\n📋 Plan '{plan.name}' — {len(plan)} steps", fg="cyan", bold=True)

    def show(rows: list[dict], indent: str, start: int = 1) -> None:
        for i, row in enumerate(rows, start):
            gate = click.style("  [confirm]", fg="yellow") if row["requires_confirmation"] else ""
            click.echo(f"{indent}{i:>2}. {row['name']}{gate}")
            if "steps" in row:
                show(row["steps"], indent + "      ")

    show(rows, "   ")
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def host(ctx: click.Context, as_json: bool) -> None:
    """Show detected host information."""
    from stackboot.core.errors import UnsupportedPlatform
    from stackboot.core.services.host import detect_host

    config = _load_config(ctx)
    try:
        info = detect_host(profile_override=config.shell_profile)
    except UnsupportedPlatform as e:
        _fail(str(e))

    if as_json:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return

    click.secho(f"\n🖥  {info.os_name} ({info.machine})", fg="cyan", bold=True)
    if info.distro:
        click.echo(f"   Distro: {info.distro}")
    click.echo(f"   Package manager: {info.package_manager}")
    click.echo(f"   Shell: {info.shell}  →  {info.shell_profile}")
    click.echo(f"   Root: {'yes' if info.is_root else 'no (sudo for system packages)'}")
    click.echo()


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("show")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_show(ctx: click.Context, as_json: bool) -> None:
    """Print the effective configuration (defaults + stackboot.yml)."""
    import yaml

    cfg = _load_config(ctx)
    data = cfg.model_dump(mode="json")
    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False), nl=False)


if __name__ == "__main__":
    cli()
