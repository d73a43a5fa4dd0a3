"""
Full-stack starter plan — toolchain, project skeleton, backend, frontend.

Step order encodes dependencies: every step may assume the ones before
it succeeded.  The plan itself is pure data; nothing runs until a
``PlanRunner`` executes it.

    System tools → nvm → Node → pnpm → PostgreSQL client → Python → uv
    → project root → git → root files → backend → frontend
"""

from __future__ import annotations

import logging
import re

from stackboot.adapters.base import ExternalProcessRunner
from stackboot.core.context import ProjectContext
from stackboot.core.installers import (
    CaptureOutputInstaller,
    CommandInstaller,
    DirectoryInstaller,
    EmitTemplateInstaller,
    LineSubstituteInstaller,
    NestedPlanInstaller,
    ProfileBlockInstaller,
    SystemPackagesInstaller,
    shell,
)
from stackboot.core.models.step import Plan, Step
from stackboot.core.models.template import ConflictPolicy, TemplateSpec
from stackboot.core.plans import templates as tpl
from stackboot.core.probes import (
    CommandsProbe,
    CommandSucceedsProbe,
    FileContainsProbe,
    PackageJsonProbe,
    PathProbe,
    ProfileMarkerProbe,
    SystemPackagesProbe,
    TemplateProbe,
    VersionProbe,
)
from stackboot.core.services import packages as pkg

logger = logging.getLogger(__name__)

PLAN_NAME = "fullstack"

NVM_DIR = "~/.nvm"
PYENV_ROOT = "~/.pyenv"
LOCAL_BIN = "~/.local/bin"
VENV_PYTHON = "backend/.venv/bin/python"
ALEMBIC_URL_LINE = "sqlalchemy.url = env:DATABASE_URL"

_PIP_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+")


# ── Helpers ────────────────────────────────────────────────────────


def pnpm_home(context: ProjectContext) -> str:
    """Where the pnpm installer puts its binaries."""
    return "~/Library/pnpm" if context.host.is_macos else "~/.local/share/pnpm"


def node_bin(context: ProjectContext) -> str:
    return f"{NVM_DIR}/versions/node/v{context.config.node_version}/bin"


def seed_tool_paths(context: ProjectContext) -> None:
    """Put the directories user-level installers write to on PATH.

    A second run in the same shell (profile not yet re-sourced) must
    still find tools the first run installed.
    """
    context.prepend_path(*(
        context.resolve(p) for p in (
            LOCAL_BIN,
            f"{PYENV_ROOT}/bin",
            f"{PYENV_ROOT}/shims",
            pnpm_home(context),
            node_bin(context),
        )
    ))


def pip_name(requirement: str) -> str:
    """Distribution name of a requirement (``uvicorn[standard]`` → ``uvicorn``)."""
    match = _PIP_NAME_RE.match(requirement.strip())
    if not match:
        raise ValueError(f"Not a pip requirement: {requirement!r}")
    return match.group(0)


def npm_name(spec: str) -> str:
    """Package name of an npm spec (``@types/jest@29`` → ``@types/jest``)."""
    at = spec.rfind("@")
    return spec[:at] if at > 0 else spec


def template_step(
    name: str,
    destination: str,
    content: str,
    context: ProjectContext,
    on_conflict: ConflictPolicy = ConflictPolicy.SKIP,
    mode: int | None = None,
) -> Step:
    """A step that emits one template under the project root."""
    spec = TemplateSpec(
        destination_path=destination,
        content_template=content,
        # Project-wide values are merged in from the context at emit time.
        substitution_context={"python_tag": context.config.python_min.replace(".", "")},
        on_conflict=on_conflict,
        mode=mode,
    )
    return Step(
        name=name,
        probe=TemplateProbe(spec),
        install=EmitTemplateInstaller(spec),
        description=f"write {destination}",
    )


def profile_step(name: str, marker: str, lines: list[str], context: ProjectContext) -> Step:
    """A step that appends a marker block to the shell profile."""
    profile = context.config.shell_profile
    return Step(
        name=name,
        probe=ProfileMarkerProbe(marker, profile),
        install=ProfileBlockInstaller(marker, lines, profile),
        description=f"add {marker} to the shell profile",
    )


# ── Toolchain ──────────────────────────────────────────────────────


def toolchain_steps(context: ProjectContext, runner: ExternalProcessRunner) -> list[Step]:
    cfg = context.config
    nvm_env = {"NVM_DIR": str(context.resolve(NVM_DIR))}
    pyenv_env = {"PYENV_ROOT": str(context.resolve(PYENV_ROOT))}
    python_probe = VersionProbe(runner, "python3", minimum=cfg.python_min)

    python_plan = Plan("python", [
        Step(
            name="Python build dependencies",
            probe=SystemPackagesProbe(
                runner, pkg.package_names("python-build-deps", context.host.package_manager),
            ),
            install=SystemPackagesInstaller(runner, ["python-build-deps"]),
            requires_confirmation=True,
        ),
        Step(
            name="pyenv",
            probe=PathProbe(f"{PYENV_ROOT}/bin/pyenv", "file"),
            install=CommandInstaller(
                runner,
                [shell("curl -fsSL https://pyenv.run | bash")],
                cleanup_paths=(PYENV_ROOT,),
                residue_marker="bin/pyenv",
                path_entries=(f"{PYENV_ROOT}/bin", f"{PYENV_ROOT}/shims"),
                env=pyenv_env,
                description="pyenv installer",
            ),
        ),
        Step(
            name=f"Python {cfg.python_min} via pyenv",
            probe=python_probe,
            install=CommandInstaller(
                runner,
                [
                    [f"{PYENV_ROOT}/bin/pyenv", "install", "-s", cfg.python_min],
                    [f"{PYENV_ROOT}/bin/pyenv", "global", cfg.python_min],
                    [f"{PYENV_ROOT}/bin/pyenv", "rehash"],
                ],
                path_entries=(f"{PYENV_ROOT}/shims",),
                env=pyenv_env,
                description=f"pyenv install {cfg.python_min}",
            ),
        ),
    ])

    return [
        Step(
            name="System tools",
            probe=CommandsProbe(cfg.system_tools),
            install=SystemPackagesInstaller(runner, commands=cfg.system_tools),
            requires_confirmation=True,
            description="base build and download tools",
        ),
        Step(
            name=f"nvm {cfg.nvm_version}",
            probe=PathProbe(f"{NVM_DIR}/nvm.sh", "file"),
            install=CommandInstaller(
                runner,
                [shell(
                    "curl -fsSL https://raw.githubusercontent.com/nvm-sh/nvm/"
                    f"v{cfg.nvm_version}/install.sh | bash"
                )],
                cleanup_paths=(NVM_DIR,),
                residue_marker="nvm.sh",
                env=nvm_env,
                description="nvm installer",
            ),
            requires_confirmation=True,
        ),
        Step(
            name=f"Node {cfg.node_version}",
            probe=VersionProbe(runner, "node", exact=cfg.node_version),
            install=CommandInstaller(
                runner,
                [shell(
                    '. "$NVM_DIR/nvm.sh" && '
                    f"nvm install {cfg.node_version} && "
                    f"nvm alias default {cfg.node_version}"
                )],
                path_entries=(node_bin(context),),
                env=nvm_env,
                description=f"nvm install {cfg.node_version}",
            ),
            resolves="node",
        ),
        Step(
            name="pnpm",
            probe=VersionProbe(runner, "pnpm"),
            install=CommandInstaller(
                runner,
                [shell("curl -fsSL https://get.pnpm.io/install.sh | sh -")],
                path_entries=(pnpm_home(context),),
                env={"PNPM_HOME": str(context.resolve(pnpm_home(context)))},
                description="pnpm installer",
            ),
            resolves="pnpm",
        ),
        profile_step("pnpm shell profile", "pnpm", [
            f'export PNPM_HOME="$HOME/{pnpm_home(context)[2:]}"',
            'case ":$PATH:" in',
            '  *":$PNPM_HOME:"*) ;;',
            '  *) export PATH="$PNPM_HOME:$PATH" ;;',
            "esac",
        ], context),
        Step(
            name="PostgreSQL client",
            probe=VersionProbe(runner, "psql"),
            install=SystemPackagesInstaller(
                runner,
                ["postgres-client"],
                post_install={"brew": [["brew", "link", "--force", "libpq"]]},
            ),
            requires_confirmation=True,
            resolves="psql",
        ),
        Step(
            name=f"Python >= {cfg.python_min}",
            probe=python_probe,
            install=NestedPlanInstaller(python_plan),
            resolves="python",
        ),
        profile_step("pyenv shell profile", "pyenv", [
            'export PYENV_ROOT="$HOME/.pyenv"',
            'if [ -d "$PYENV_ROOT/bin" ]; then',
            '  export PATH="$PYENV_ROOT/bin:$PATH"',
            '  eval "$(pyenv init -)"',
            "fi",
        ], context),
        Step(
            name="uv",
            probe=VersionProbe(runner, "uv"),
            install=CommandInstaller(
                runner,
                [shell("curl -LsSf https://astral.sh/uv/install.sh | sh")],
                path_entries=(LOCAL_BIN,),
                description="uv installer",
            ),
            resolves="uv",
        ),
    ]


# ── Project skeleton ───────────────────────────────────────────────


def project_steps(context: ProjectContext, runner: ExternalProcessRunner) -> list[Step]:
    root = str(context.root_path)
    branch = context.config.git_branch
    return [
        Step(
            name="Project root",
            probe=PathProbe(root, "dir"),
            install=DirectoryInstaller(root),
            description=f"create {root}",
        ),
        Step(
            name="Git repository",
            probe=CommandSucceedsProbe(
                runner, "git", ["rev-parse", "--is-inside-work-tree"], cwd=root,
            ),
            install=CommandInstaller(runner, [["git", "init", "-b", branch]], cwd=root),
        ),
        template_step(".gitignore", ".gitignore", tpl.GITIGNORE, context),
        template_step("README.md", "README.md", tpl.README, context),
    ]


def backend_steps(context: ProjectContext, runner: ExternalProcessRunner) -> list[Step]:
    packages = context.config.backend_packages
    python = [VENV_PYTHON, "-m", "pip"]
    return [
        Step(
            name="Backend directory",
            probe=PathProbe("backend", "dir"),
            install=DirectoryInstaller("backend"),
        ),
        Step(
            name="Backend virtualenv",
            probe=PathProbe(VENV_PYTHON, "file"),
            install=CommandInstaller(
                runner,
                [["python3", "-m", "venv", ".venv"]],
                cwd="backend",
                cleanup_paths=("backend/.venv",),
                residue_marker="bin/python",
            ),
        ),
        Step(
            name="Backend packages",
            probe=CommandSucceedsProbe(
                runner, VENV_PYTHON,
                ["-m", "pip", "show", "--quiet", *(pip_name(p) for p in packages)],
                cwd="backend",
                description="pip show backend packages",
            ),
            install=CommandInstaller(
                runner,
                [python + ["install", "--upgrade", "pip"], python + ["install", *packages]],
                cwd="backend",
                description="pip install backend packages",
            ),
        ),
        Step(
            name="requirements.txt",
            probe=PathProbe("backend/requirements.txt", "file"),
            install=CaptureOutputInstaller(
                runner, python + ["freeze"], "backend/requirements.txt", cwd="backend",
            ),
        ),
        Step(
            name="Alembic migrations",
            probe=PathProbe("backend/alembic/env.py", "file"),
            install=CommandInstaller(
                runner,
                [["backend/.venv/bin/alembic", "init", "alembic"]],
                cwd="backend",
                cleanup_paths=("backend/alembic",),
                residue_marker="env.py",
            ),
        ),
        Step(
            name="Alembic database URL",
            probe=FileContainsProbe("backend/alembic.ini", ALEMBIC_URL_LINE),
            install=LineSubstituteInstaller(
                "backend/alembic.ini", r"^sqlalchemy\.url\s*=.*$", ALEMBIC_URL_LINE,
            ),
        ),
        template_step("backend/app/__init__.py", "backend/app/__init__.py",
                      tpl.BACKEND_INIT, context),
        template_step("backend/app/main.py", "backend/app/main.py", tpl.BACKEND_MAIN, context),
        template_step("backend/tests/test_health.py", "backend/tests/test_health.py",
                      tpl.BACKEND_TEST, context),
        template_step("backend/.env.example", "backend/.env.example",
                      tpl.BACKEND_ENV_EXAMPLE, context),
        template_step("backend/start.sh", "backend/start.sh", tpl.BACKEND_START, context,
                      mode=0o755),
        template_step("backend/ruff.toml", "backend/ruff.toml", tpl.RUFF_TOML, context),
        template_step("backend/pytest.ini", "backend/pytest.ini", tpl.PYTEST_INI, context),
        template_step("backend/.prettierrc", "backend/.prettierrc",
                      tpl.BACKEND_PRETTIERRC, context),
        template_step("backend/.prettierignore", "backend/.prettierignore",
                      tpl.BACKEND_PRETTIERIGNORE, context),
        template_step(".vscode/settings.json", ".vscode/settings.json",
                      tpl.VSCODE_SETTINGS, context),
    ]


def frontend_steps(context: ProjectContext, runner: ExternalProcessRunner) -> list[Step]:
    cfg = context.config
    steps = [
        Step(
            name="Next.js app",
            probe=PathProbe("frontend/package.json", "file"),
            # create-next-app refuses a non-empty directory, so a
            # half-generated frontend/ is removed first.
            install=CommandInstaller(
                runner,
                [[
                    "npx", "--yes", "create-next-app@latest", "frontend",
                    "--ts", "--eslint", "--src-dir", "--app", "--no-tailwind",
                    "--import-alias", "@/*", "--use-pnpm", "--yes",
                ]],
                cwd=str(context.root_path),
                cleanup_paths=("frontend",),
                residue_marker="package.json",
                description="create-next-app",
            ),
        ),
    ]
    if cfg.frontend_packages:
        steps.append(Step(
            name="Frontend dependencies",
            probe=PackageJsonProbe(
                "frontend/package.json", [npm_name(p) for p in cfg.frontend_packages],
            ),
            install=CommandInstaller(
                runner, [["pnpm", "add", *cfg.frontend_packages]], cwd="frontend",
            ),
        ))
    if cfg.frontend_dev_packages:
        steps.append(Step(
            name="Frontend dev dependencies",
            probe=PackageJsonProbe(
                "frontend/package.json",
                [npm_name(p) for p in cfg.frontend_dev_packages],
                section="devDependencies",
            ),
            install=CommandInstaller(
                runner, [["pnpm", "add", "-D", *cfg.frontend_dev_packages]], cwd="frontend",
            ),
        ))
    steps += [
        Step(
            name="Frontend test script",
            probe=PackageJsonProbe("frontend/package.json", ["test"], section="scripts"),
            install=CommandInstaller(
                runner, [["pnpm", "pkg", "set", "scripts.test=jest"]], cwd="frontend",
            ),
        ),
        template_step("frontend/src/api/client.ts", "frontend/src/api/client.ts",
                      tpl.FRONTEND_API_CLIENT, context),
        template_step("frontend/.env.example", "frontend/.env.example",
                      tpl.FRONTEND_ENV_EXAMPLE, context),
        template_step("frontend/jest.config.ts", "frontend/jest.config.ts",
                      tpl.FRONTEND_JEST_CONFIG, context),
        template_step("frontend/src/__tests__/example.test.tsx",
                      "frontend/src/__tests__/example.test.tsx",
                      tpl.FRONTEND_EXAMPLE_TEST, context),
        template_step("frontend/src/__tests__/accessibility.test.tsx",
                      "frontend/src/__tests__/accessibility.test.tsx",
                      tpl.FRONTEND_A11Y_TEST, context),
        template_step("frontend/src/app/page.tsx", "frontend/src/app/page.tsx",
                      tpl.FRONTEND_PAGE, context,
                      on_conflict=ConflictPolicy.BACKUP_THEN_OVERWRITE),
    ]
    return steps


def build_fullstack_plan(
    context: ProjectContext,
    runner: ExternalProcessRunner,
    skip_backend: bool = False,
    skip_frontend: bool = False,
) -> Plan:
    """Assemble the full-stack plan for ``context``."""
    plan = Plan(PLAN_NAME)
    plan.extend(toolchain_steps(context, runner))
    plan.extend(project_steps(context, runner))
    if not skip_backend:
        plan.extend(backend_steps(context, runner))
    if not skip_frontend:
        plan.extend(frontend_steps(context, runner))
    logger.debug("Built plan '%s' with %d steps", plan.name, len(plan))
    return plan
