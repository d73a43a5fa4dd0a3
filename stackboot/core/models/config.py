"""
Bootstrap configuration — pinned versions and package lists.

Every field has a default, so an absent ``stackboot.yml`` yields the
standard full-stack starter.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

_VERSION_RE = re.compile(r"^v?\d+(\.\d+){0,2}$")

DEFAULT_SYSTEM_TOOLS = [
    "git", "curl", "wget", "tar", "gzip", "make", "gcc", "pkg-config",
]

DEFAULT_BACKEND_PACKAGES = [
    "fastapi",
    "uvicorn[standard]",
    "sqlalchemy",
    "psycopg2-binary",
    "alembic",
    "python-dotenv",
    "pydantic-settings",
    "pytest",
    "pytest-asyncio",
    "pytest-cov",
    "httpx",
    "ruff",
    "mypy",
]

DEFAULT_FRONTEND_PACKAGES = ["axios", "@tanstack/react-query", "zustand", "clsx"]

DEFAULT_FRONTEND_DEV_PACKAGES = [
    "jest",
    "jest-environment-jsdom",
    "ts-jest",
    "@testing-library/react",
    "@testing-library/jest-dom",
    "@types/jest",
    "jest-axe",
    "@types/jest-axe",
    "prettier",
]


class BootstrapConfig(BaseModel):
    """Effective configuration for a bootstrap run."""

    node_version: str = "22.21.1"
    nvm_version: str = "0.40.3"
    python_min: str = "3.12"
    git_branch: str = "main"
    system_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_SYSTEM_TOOLS))
    backend_packages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BACKEND_PACKAGES)
    )
    frontend_packages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FRONTEND_PACKAGES)
    )
    frontend_dev_packages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FRONTEND_DEV_PACKAGES)
    )
    shell_profile: str | None = None    # override auto-detected rc file
    backend_port: int = 8000
    frontend_port: int = 3000

    @field_validator("node_version", "nvm_version", "python_min")
    @classmethod
    def _check_version(cls, value: str) -> str:
        if not _VERSION_RE.match(value):
            raise ValueError(f"not a version string: {value!r}")
        return value.lstrip("v")

    @field_validator("git_branch")
    @classmethod
    def _check_branch(cls, value: str) -> str:
        if not value or " " in value:
            raise ValueError(f"invalid branch name: {value!r}")
        return value
