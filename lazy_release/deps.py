"""Dependency handling utilities.

Provides functions for parsing PEP 508 dependency strings and rewriting
pyproject.toml files when a release changes package versions: the released
package gets its new version, and requirements on other released workspace
packages are moved up to the new versions.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from .toml import load_pyproject, save_pyproject

KEEP_OPERATORS = ("==", ">=", "~=", "===")


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


def update_dep_specifier(dep_str: str, version: str) -> str:
    """Move a requirement's version constraint to a released version.

    A single "==", ">=", "~=" or "===" constraint keeps its operator. Any
    other constraint becomes ">=version". Unconstrained requirements are
    left alone, since workspace sources resolve them. Extras and markers
    are preserved.

    Examples:
        update_dep_specifier("pkg-a>=1.0", "1.2.0") → "pkg-a>=1.2.0"
        update_dep_specifier("pkg-a[x]==1.0; python_version>'3.10'", "1.2.0")
            → 'pkg-a[x]==1.2.0; python_version > "3.10"'
        update_dep_specifier("pkg-a>=1.0,<2", "2.0.0") → "pkg-a>=2.0.0"
        update_dep_specifier("pkg-a", "1.2.0") → "pkg-a"
    """
    req = Requirement(dep_str)
    specs = list(req.specifier)
    if not specs:
        return dep_str

    operator = specs[0].operator if len(specs) == 1 else ">="
    if operator not in KEEP_OPERATORS:
        operator = ">="

    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}{operator}{version}{marker}"


def rewrite_pyproject(
    pyproject_path: Path,
    new_version: str,
    internal_dep_versions: dict[str, str],
) -> None:
    """Set a package's version and update requirements on released packages.

    Requirements are updated in [project].dependencies,
    [project].optional-dependencies.* and [dependency-groups].*. tomlkit
    keeps formatting and comments intact.

    Args:
        pyproject_path: Path to the pyproject.toml file.
        new_version: New version string to set.
        internal_dep_versions: Map of canonical package name → released
                               version, for workspace packages in this release.
    """
    doc = load_pyproject(pyproject_path)
    project = cast(dict[str, Any], doc["project"])
    project["version"] = new_version

    if internal_dep_versions:
        deps = project.get("dependencies")
        if isinstance(deps, list):
            _update_dep_list(deps, internal_dep_versions)

        opt_deps = project.get("optional-dependencies")
        if isinstance(opt_deps, dict):
            for group in opt_deps.values():
                if isinstance(group, list):
                    _update_dep_list(group, internal_dep_versions)

        dep_groups = doc.get("dependency-groups")
        if isinstance(dep_groups, dict):
            for group in dep_groups.values():
                if isinstance(group, list):
                    _update_dep_list(group, internal_dep_versions)

    save_pyproject(pyproject_path, doc)


def _update_dep_list(deps: list, versions: dict[str, str]) -> None:
    for i, dep in enumerate(deps):
        if not isinstance(dep, str):
            continue
        name = dep_canonical_name(str(dep))
        if name in versions:
            deps[i] = update_dep_specifier(str(dep), versions[name])
