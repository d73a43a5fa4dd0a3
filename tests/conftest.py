"""
Shared test fixtures and configuration.
"""

import os
import stat
from pathlib import Path

import pytest

from stackboot.adapters.mock import MockProcessRunner
from stackboot.core.context import ProjectContext
from stackboot.core.models.host import HostInfo


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A throwaway home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def host(home: Path) -> HostInfo:
    """A Linux/apt host running as root (no sudo involved)."""
    return HostInfo(
        system="Linux",
        os_name="Linux",
        distro="ubuntu",
        machine="x86_64",
        package_manager="apt",
        shell="bash",
        shell_profile=str(home / ".bashrc"),
        is_root=True,
    )


@pytest.fixture
def context(tmp_path: Path, host: HostInfo, home: Path) -> ProjectContext:
    """Context for a project 'demo' under tmp_path/projects."""
    return ProjectContext(tmp_path / "projects" / "demo", "demo", host, home=home)


@pytest.fixture
def runner() -> MockProcessRunner:
    return MockProcessRunner()


@pytest.fixture
def fake_bin(tmp_path: Path, context: ProjectContext):
    """Factory creating executables on the context's PATH.

    Only existence matters: the mock runner answers the calls.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    context.prepend_path(bin_dir)

    def make(*names: str) -> Path:
        for name in names:
            path = bin_dir / name
            path.write_text("#!/bin/sh\nexit 0\n")
            path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return bin_dir

    return make


@pytest.fixture
def empty_path(tmp_path: Path, monkeypatch):
    """Inherited PATH pointing at an empty directory (no host tools)."""
    nothing = tmp_path / "nothing"
    nothing.mkdir()
    monkeypatch.setenv("PATH", str(nothing))
    return nothing


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep the caller's stackboot env vars out of tests."""
    for key in list(os.environ):
        if key.startswith("STACKBOOT_"):
            monkeypatch.delenv(key, raising=False)
