"""pyproject.toml access.

Documents are handled as tomlkit documents so that writing a new version
back leaves comments, ordering and quoting untouched; the release PR diff
then shows only the lines that changed.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

# Trove classifier PyPI rejects; packages carrying it are never uploaded.
PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    return tomlkit.parse(path.read_text(encoding="utf-8"))


def save_pyproject(path: Path, doc: tomlkit.TOMLDocument) -> None:
    path.write_text(tomlkit.dumps(doc), encoding="utf-8")


def _project(doc: tomlkit.TOMLDocument) -> Any:
    return doc.get("project", {})


def has_project_table(doc: tomlkit.TOMLDocument) -> bool:
    """True when [project] exists and names the project.

    A workspace root that only holds [tool.uv.workspace] is not a package.
    """
    return "name" in _project(doc)


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """The PEP 503 normalized [project].name, or fallback if unnamed."""
    return canonicalize_name(_project(doc).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """[project].version as a string; "0.0.0" when it is not set."""
    return str(_project(doc).get("version", "0.0.0"))


def is_private_project(doc: tomlkit.TOMLDocument) -> bool:
    return PRIVATE_CLASSIFIER in _project(doc).get("classifiers", [])


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Every PEP 508 requirement string the document declares.

    Sources, in order: [project].dependencies, each
    [project].optional-dependencies extra and each [dependency-groups]
    group. ``{include-group = "..."}`` tables are not requirements and are
    left out.
    """
    project = _project(doc)
    sources = [project.get("dependencies", [])]
    sources += list(project.get("optional-dependencies", {}).values())
    sources += list(doc.get("dependency-groups", {}).values())
    return [str(req) for source in sources for req in source if isinstance(req, str)]


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Glob patterns from [tool.uv.workspace].members.

    Empty for a repository without a uv workspace, which is then released
    as a single root package.
    """
    members = doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
    return [str(m) for m in members or []]
