"""
System package naming and command construction per package manager.

Pure data plus small builders — the commands are executed by the
installers through the process runner.
"""

from __future__ import annotations

from stackboot.core.errors import UnsupportedPlatform

# Logical package → distro package name(s).  Missing entries mean the
# logical name is used as-is.
PACKAGE_NAMES: dict[str, dict[str, list[str]]] = {
    "postgres-client": {
        "apt": ["postgresql-client"],
        "dnf": ["postgresql"],
        "yum": ["postgresql"],
        "apk": ["postgresql-client"],
        "brew": ["libpq"],
    },
    "pkg-config": {
        "brew": ["pkg-config"],
        "dnf": ["pkgconf-pkg-config"],
        "yum": ["pkgconfig"],
        "apk": ["pkgconf"],
    },
    "python-build-deps": {
        "apt": [
            "build-essential", "libssl-dev", "zlib1g-dev", "libbz2-dev",
            "libreadline-dev", "libsqlite3-dev", "libncursesw5-dev", "xz-utils",
            "tk-dev", "libxml2-dev", "libxmlsec1-dev", "libffi-dev", "liblzma-dev",
        ],
        "dnf": [
            "gcc", "make", "zlib-devel", "bzip2", "bzip2-devel", "readline-devel",
            "sqlite", "sqlite-devel", "openssl-devel", "tk-devel", "libffi-devel",
            "xz-devel",
        ],
        "yum": [
            "gcc", "make", "zlib-devel", "bzip2", "bzip2-devel", "readline-devel",
            "sqlite", "sqlite-devel", "openssl-devel", "tk-devel", "libffi-devel",
            "xz-devel",
        ],
        "apk": [
            "build-base", "libffi-dev", "openssl-dev", "bzip2-dev", "zlib-dev",
            "xz-dev", "readline-dev", "sqlite-dev", "tk-dev",
        ],
        "brew": ["openssl", "readline", "sqlite3", "xz", "zlib", "tcl-tk"],
    },
}

# Commands whose binary name differs from the package that ships them.
COMMAND_PACKAGES: dict[str, str] = {
    "psql": "postgres-client",
}


def package_names(logical: str, manager: str) -> list[str]:
    """Map a logical package to the manager's package names."""
    return PACKAGE_NAMES.get(logical, {}).get(manager, [logical])


def query_command(manager: str, package: str) -> list[str]:
    """Command whose exit status tells whether ``package`` is installed.

    apt is special: ``dpkg-query`` succeeds for removed packages too, so
    callers must also check its output for ``install ok installed``.
    """
    if manager == "apt":
        return ["dpkg-query", "-W", "-f=${Status}", package]
    if manager in ("dnf", "yum"):
        return ["rpm", "-q", package]
    if manager == "apk":
        return ["apk", "info", "-e", package]
    if manager == "brew":
        return ["brew", "ls", "--versions", package]
    raise UnsupportedPlatform(f"No package query for package manager: {manager}")


def install_commands(manager: str, packages: list[str]) -> list[list[str]]:
    """Commands that install ``packages``, in order.

    Commands that need root are returned without ``sudo``; the
    installer adds it when the process is not already root.
    """
    if not packages:
        return []
    if manager == "apt":
        return [
            ["apt-get", "update", "-qq"],
            ["apt-get", "install", "-y", *packages],
        ]
    if manager in ("dnf", "yum"):
        return [[manager, "install", "-y", *packages]]
    if manager == "apk":
        return [["apk", "add", *packages]]
    if manager == "brew":
        return [["brew", "install", *packages]]
    raise UnsupportedPlatform(
        f"No supported package manager found (needed to install: {', '.join(packages)})"
    )


def needs_root(manager: str) -> bool:
    """Homebrew refuses to run as root; every other manager needs it."""
    return manager != "brew"
