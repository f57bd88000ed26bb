"""Configuration for lazy-release.

The configuration is an immutable Pydantic model built once per process by
:func:`load_config`. Defaults can be overridden from ``[tool.lazy-release]``
in the workspace root pyproject.toml and then from environment variables:

    [tool.lazy-release]
    release-id = "[lazy-release]"
    default-branch = "main"

    [[tool.lazy-release.types]]
    type = "feat"
    emoji = "🚀"
    display-name = "New Features"
    sort = 0
    bump = "minor"
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import ConfigError
from .models import SemverBump
from .toml import load_pyproject

# Version of the release PR body format. Stored in the release marker so a
# newer build can refuse documents it would misread.
MARKER_SCHEMA_VERSION = 1


class ChangelogType(BaseModel):
    """How one conventional commit type is rendered and bumped."""

    model_config = ConfigDict(frozen=True)

    type: str
    emoji: str
    display_name: str
    sort: int
    bump: SemverBump = SemverBump.PATCH

    @property
    def heading(self) -> str:
        return f"{self.emoji} {self.display_name}"


DEFAULT_CHANGELOG_TYPES: tuple[ChangelogType, ...] = (
    ChangelogType(type="feat", emoji="🚀", display_name="New Features", sort=0, bump=SemverBump.MINOR),
    ChangelogType(type="fix", emoji="🐛", display_name="Bug Fixes", sort=1),
    ChangelogType(type="perf", emoji="⚡️", display_name="Performance Improvements", sort=2),
    ChangelogType(type="refactor", emoji="🔨", display_name="Refactoring", sort=3),
    ChangelogType(type="docs", emoji="📚", display_name="Documentation", sort=4),
    ChangelogType(type="style", emoji="🎨", display_name="Styles", sort=5),
    ChangelogType(type="test", emoji="✅", display_name="Tests", sort=6),
    ChangelogType(type="build", emoji="📦", display_name="Build System", sort=7),
    ChangelogType(type="ci", emoji="🤖", display_name="Continuous Integration", sort=8),
    ChangelogType(type="chore", emoji="🏠", display_name="Chores", sort=9),
    ChangelogType(type="revert", emoji="⏪", display_name="Reverts", sort=10),
)


class ReleaseConfig(BaseModel):
    """Settings shared by every stage of the pipeline.

    Attributes:
        release_id: Token marking release commits and the release PR body.
        repository: "owner/repo" slug used for links. May be empty.
        default_branch: Branch regular PRs merge into.
        release_branch: Branch the release PR is opened from.
        release_pr_title: Title of the release PR.
        end_commit: Oldest revision to read history from, if bounded.
        changelog_types: Type table driving bumps and section order.
    """

    model_config = ConfigDict(frozen=True)

    release_id: str = "[lazy-release]"
    repository: str = ""
    default_branch: str = "main"
    release_branch: str = "lazy-release/main"
    release_pr_title: str = "Release packages"
    end_commit: str | None = None
    changelog_types: tuple[ChangelogType, ...] = DEFAULT_CHANGELOG_TYPES

    @property
    def type_names(self) -> tuple[str, ...]:
        return tuple(t.type for t in self.changelog_types)

    def get_type(self, name: str) -> ChangelogType | None:
        for changelog_type in self.changelog_types:
            if changelog_type.type == name:
                return changelog_type
        return None


_ENV_OVERRIDES = {
    "LAZY_RELEASE_ID": "release_id",
    "GITHUB_REPOSITORY": "repository",
    "LAZY_RELEASE_END_COMMIT": "end_commit",
}


def _normalize_keys(raw: dict[str, Any]) -> dict[str, Any]:
    return {key.replace("-", "_"): value for key, value in raw.items()}


def extract_tool_config(doc: Any) -> dict[str, Any]:
    """Pull [tool.lazy-release] out of a parsed pyproject.toml.

    Returns plain Python values with kebab-case keys converted to the
    model's field names. ``types`` becomes ``changelog_types``.
    """
    section = doc.get("tool", {}).get("lazy-release")
    if section is None:
        return {}
    raw = section.unwrap() if hasattr(section, "unwrap") else dict(section)
    values = _normalize_keys(raw)
    if "types" in values:
        values["changelog_types"] = tuple(
            _normalize_keys(entry) for entry in values.pop("types")
        )
    return values


def load_config(root: Path | None = None, env: dict[str, str] | None = None) -> ReleaseConfig:
    """Build the configuration for a workspace.

    Args:
        root: Workspace root. Defaults to the current directory. A missing
              pyproject.toml is not an error; defaults are used.
        env: Environment mapping, defaults to os.environ.

    Raises:
        ConfigError: If a configured value fails validation.
    """
    root = root or Path.cwd()
    env = os.environ if env is None else env

    values: dict[str, Any] = {}
    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        values.update(extract_tool_config(load_pyproject(pyproject)))

    for var, field in _ENV_OVERRIDES.items():
        if env.get(var):
            values[field] = env[var]

    try:
        return ReleaseConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid lazy-release configuration: {e}") from e
