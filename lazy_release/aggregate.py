"""Turning changelog entries into per-package version bumps.

A package is released when at least one changelog entry targets it. Its
new version follows the most severe bump among those entries. Packages that
depend on a released package, directly or transitively, get a patch
release so they pick up the new dependency.
"""

from __future__ import annotations

import logging

from .graph import find_dependents, topo_sort
from .models import ChangelogEntry, PackageInfo, ReleasePlan, SemverBump, max_bump
from .versions import bump_patch, bump_version

logger = logging.getLogger(__name__)


def entry_targets_package(entry: ChangelogEntry, pkg: PackageInfo) -> bool:
    """Whether a changelog entry belongs to a package.

    An entry targets a package when one of its scopes is the package's
    unscoped name or its directory name. Entries without scopes belong to
    the root package.
    """
    if pkg.is_root and not entry.packages:
        return True
    if pkg.unscoped_name in entry.packages:
        return True
    return bool(pkg.directory_name) and pkg.directory_name in entry.packages


def select_package_changelogs(
    pkg: PackageInfo, changelogs: list[ChangelogEntry]
) -> list[ChangelogEntry]:
    """Entries targeting pkg, in their original order."""
    return [c for c in changelogs if entry_targets_package(c, pkg)]


def compute_bump(changelogs: list[ChangelogEntry]) -> SemverBump | None:
    """Most severe bump requested by the entries, None without entries."""
    return max_bump(c.semver_bump for c in changelogs)


def apply_new_version(pkg: PackageInfo, changelogs: list[ChangelogEntry]) -> PackageInfo:
    """Return pkg with new_version computed from the entries targeting it.

    A package no entry targets is returned unchanged.
    """
    bump = compute_bump(select_package_changelogs(pkg, changelogs))
    if bump is None:
        return pkg
    return pkg.with_new_version(bump_version(pkg.version, bump))


def bump_indirect_package_version(pkg: PackageInfo) -> PackageInfo:
    """Patch release for a package whose dependencies changed."""
    return pkg.with_new_version(bump_patch(pkg.version))


def _warn_unknown_scopes(
    changelogs: list[ChangelogEntry], packages: dict[str, PackageInfo]
) -> None:
    known: set[str] = set()
    for pkg in packages.values():
        known.add(pkg.unscoped_name)
        if pkg.directory_name:
            known.add(pkg.directory_name)
    for changelog in changelogs:
        unknown = [p for p in changelog.packages if p not in known]
        if unknown:
            logger.warning(
                "Changelog entry %r targets unknown package(s): %s",
                changelog.description,
                ", ".join(unknown),
            )


def build_release_plan(
    changelogs: list[ChangelogEntry], packages: dict[str, PackageInfo]
) -> ReleasePlan:
    """Decide which packages are released and at which versions.

    Args:
        changelogs: All changelog entries of the release.
        packages: Map of package name → PackageInfo for the whole workspace.

    Returns:
        ReleasePlan whose changed packages keep workspace order and whose
        indirect packages are ordered dependencies first. Every package in
        the plan has new_version set. A package whose version cannot be
        parsed as semver is left out with a warning; the others still
        release.
    """
    _warn_unknown_scopes(changelogs, packages)

    changed: list[PackageInfo] = []
    for pkg in packages.values():
        try:
            bumped = apply_new_version(pkg, changelogs)
        except ValueError as e:
            logger.warning("Skipping %s: cannot bump version %r: %s", pkg.name, pkg.version, e)
            continue
        if bumped.new_version is not None:
            logger.info("%s: %s → %s", pkg.name, pkg.version, bumped.new_version)
            changed.append(bumped)

    dependents = find_dependents(packages, (p.name for p in changed))
    try:
        order = topo_sort({name: packages[name] for name in dependents})
    except RuntimeError as e:
        logger.warning("%s; listing dependency updates by name", e)
        order = sorted(dependents)

    indirect: list[PackageInfo] = []
    for name in order:
        try:
            indirect.append(bump_indirect_package_version(packages[name]))
        except ValueError as e:
            logger.warning(
                "Skipping %s: cannot bump version %r: %s", name, packages[name].version, e
            )
    for pkg in indirect:
        logger.info("%s: %s → %s (dependency update)", pkg.name, pkg.version, pkg.new_version)

    return ReleasePlan(changed=changed, indirect=indirect)
