"""
Version parsing and comparison (pure).

Versions are compared numerically component by component, never as
strings: ``3.9 < 3.12``.  No I/O, no subprocess.
"""

from __future__ import annotations

import re

_NUMERIC_RE = re.compile(r"^\d+")

# Common "--version" output shapes, tried in order.
VERSION_PATTERNS: dict[str, str] = {
    "git":     r"git version\s+(\d+\.\d+(?:\.\d+)?)",
    "node":    r"v?(\d+\.\d+\.\d+)",
    "pnpm":    r"(\d+\.\d+\.\d+)",
    "python3": r"Python\s+(\d+\.\d+(?:\.\d+)?)",
    "psql":    r"psql \(PostgreSQL\)\s+(\d+(?:\.\d+)*)",
    "uv":      r"uv\s+(\d+\.\d+\.\d+)",
    "pyenv":   r"pyenv\s+(\d+\.\d+\.\d+)",
}

_GENERIC_PATTERN = r"v?(\d+(?:\.\d+){0,3})"


def parse_version(value: str) -> tuple[int, ...]:
    """Parse ``"v3.12.1"`` → ``(3, 12, 1)``.

    Trailing non-numeric suffixes on a component are ignored
    (``"3.13.0rc1"`` → ``(3, 13, 0)``).

    Raises:
        ValueError: If no numeric component can be read.
    """
    parts: list[int] = []
    for chunk in value.strip().lstrip("v").split("."):
        match = _NUMERIC_RE.match(chunk)
        if not match:
            break
        parts.append(int(match.group(0)))
    if not parts:
        raise ValueError(f"Cannot parse version: {value!r}")
    return tuple(parts)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1.  Missing components count as zero (3.12 == 3.12.0)."""
    pa, pb = parse_version(a), parse_version(b)
    width = max(len(pa), len(pb))
    pa += (0,) * (width - len(pa))
    pb += (0,) * (width - len(pb))
    return (pa > pb) - (pa < pb)


def version_satisfies(
    installed: str,
    *,
    minimum: str | None = None,
    exact: str | None = None,
) -> tuple[bool, str]:
    """Check an installed version against a constraint.

    ``exact`` matches on the components it names: ``exact="3.12"``
    accepts ``3.12.4``.

    Returns:
        ``(ok, message)`` — message is empty when ok.
    """
    if exact is not None:
        want = parse_version(exact)
        have = parse_version(installed)
        if have[: len(want)] == want:
            return True, ""
        return False, f"version {installed} != {exact} (exact match required)"

    if minimum is not None:
        if compare_versions(installed, minimum) >= 0:
            return True, ""
        return False, f"version {installed} < {minimum} (minimum required)"

    return True, ""


def extract_version(output: str, pattern: str | None = None) -> str | None:
    """Pull a version string out of command output, or None."""
    match = re.search(pattern or _GENERIC_PATTERN, output)
    if match:
        return match.group(1)
    return None


def pattern_for(command: str) -> str | None:
    """Known version regex for a command, if any."""
    return VERSION_PATTERNS.get(command)
