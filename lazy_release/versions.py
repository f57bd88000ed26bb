"""Semver arithmetic on pyproject version strings.

pyproject.toml versions are not always full semver ("1.0" is common), so
strings are padded to three components before semver sees them.
"""

from __future__ import annotations

from collections.abc import Callable

import semver

from .models import SemverBump

_INCREMENTS: dict[SemverBump, Callable[[semver.Version], semver.Version]] = {
    SemverBump.MAJOR: semver.Version.bump_major,
    SemverBump.MINOR: semver.Version.bump_minor,
    SemverBump.PATCH: semver.Version.bump_patch,
}


def parse_version(version_str: str) -> semver.Version:
    """Parse a pyproject version into a semver.Version.

    "1" and "1.2" are padded with zeros. Components past the third are
    dropped, so "1.2.3.4" reads as 1.2.3.
    """
    parts = version_str.strip().split(".")[:3]
    parts += ["0"] * (3 - len(parts))
    return semver.Version.parse(".".join(parts))


def bump_version(version_str: str, bump: SemverBump) -> str:
    """Return version_str incremented by bump.

    Examples:
        bump_version("1.2.3", SemverBump.MAJOR) → "2.0.0"
        bump_version("1.2.3", SemverBump.MINOR) → "1.3.0"
        bump_version("1.2", SemverBump.PATCH) → "1.2.1"
    """
    return str(_INCREMENTS[bump](parse_version(version_str)))


def bump_patch(version_str: str) -> str:
    """Patch bump for packages released only because a dependency was."""
    return bump_version(version_str, SemverBump.PATCH)
