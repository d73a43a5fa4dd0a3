"""
Host detection — operating system, package manager and shell profile.

Read-only: nothing here installs or writes anything.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
from pathlib import Path

from stackboot.core.errors import UnsupportedPlatform
from stackboot.core.models.host import HostInfo, PackageManager

logger = logging.getLogger(__name__)

SUPPORTED_SYSTEMS: dict[str, str] = {
    "Linux": "Linux",
    "Darwin": "macOS",
}

# Probed in order; the first one on PATH wins.
_PACKAGE_MANAGERS: tuple[tuple[PackageManager, str], ...] = (
    ("apt", "apt-get"),
    ("dnf", "dnf"),
    ("yum", "yum"),
    ("apk", "apk"),
    ("brew", "brew"),
)

# Shell type → rc file (relative to home).
PROFILE_MAP: dict[str, str] = {
    "bash": ".bashrc",
    "zsh": ".zshrc",
    "sh": ".profile",
    "dash": ".profile",
    "ash": ".profile",
}


def detect_package_manager(system: str) -> PackageManager:
    """Return the first supported package manager available on PATH."""
    candidates = _PACKAGE_MANAGERS
    if system == "Darwin":
        candidates = (("brew", "brew"),)
    for name, binary in candidates:
        if shutil.which(binary):
            return name
    return "none"


def detect_shell_profile(home: Path, shell: str | None = None) -> Path:
    """Pick the rc file PATH changes are persisted to.

    An existing ``.zshrc`` wins, then an existing ``.bashrc``; otherwise
    the file matching ``$SHELL`` (created on first write).
    """
    for candidate in (".zshrc", ".bashrc"):
        path = home / candidate
        if path.is_file():
            return path
    shell_name = shell or os.path.basename(os.environ.get("SHELL", "bash"))
    return home / PROFILE_MAP.get(shell_name, ".bashrc")


def _read_distro() -> str:
    try:
        with open("/etc/os-release", encoding="utf-8") as f:
            for line in f:
                if line.startswith("ID="):
                    return line.strip().split("=", 1)[1].strip('"')
    except OSError:
        pass
    return ""


def detect_host(home: Path | None = None, profile_override: str | None = None) -> HostInfo:
    """Detect the current host.

    Raises:
        UnsupportedPlatform: If the OS is neither Linux nor macOS.
    """
    system = platform.system()
    if system not in SUPPORTED_SYSTEMS:
        raise UnsupportedPlatform(f"Unsupported OS: {system or 'unknown'}")

    home = home or Path.home()
    shell = os.path.basename(os.environ.get("SHELL", "bash"))
    if profile_override:
        profile = Path(os.path.expanduser(profile_override))
    else:
        profile = detect_shell_profile(home, shell)

    info = HostInfo(
        system=system,
        os_name=SUPPORTED_SYSTEMS[system],
        distro=_read_distro() if system == "Linux" else "",
        machine=platform.machine(),
        package_manager=detect_package_manager(system),
        shell=shell,
        shell_profile=str(profile),
        is_root=hasattr(os, "geteuid") and os.geteuid() == 0,
    )
    logger.info(
        "Host: %s (%s) pkg=%s profile=%s",
        info.os_name, info.machine, info.package_manager, info.shell_profile,
    )
    return info
