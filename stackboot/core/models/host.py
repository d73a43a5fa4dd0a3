"""
Host model — the detected operating system and its tooling.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

PackageManager = Literal["apt", "dnf", "yum", "apk", "brew", "none"]


class HostInfo(BaseModel):
    """Facts about the machine the plan runs on.

    Attributes:
        system:          ``platform.system()`` value (``Linux``, ``Darwin``).
        os_name:         Friendly name (``Linux``, ``macOS``).
        distro:          Distro ID from ``/etc/os-release`` (Linux only).
        machine:         ``platform.machine()`` value.
        package_manager: First supported system package manager found.
        shell:           Basename of ``$SHELL``.
        shell_profile:   Absolute path of the rc file PATH changes go to.
        is_root:         Whether the process runs as root (no sudo needed).
    """

    system: str
    os_name: str
    distro: str = ""
    machine: str = ""
    package_manager: PackageManager = "none"
    shell: str = "bash"
    shell_profile: str
    is_root: bool = False

    @property
    def is_macos(self) -> bool:
        return self.system == "Darwin"

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")
