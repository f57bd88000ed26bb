"""Data models for lazy-release.

These Pydantic models represent the core data structures that flow through
the release pipeline: commits in, changelog entries, package metadata, and
the package sections that are written to (and read back from) the release
PR body.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field


class SemverBump(str, Enum):
    """Magnitude of a version increment."""

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {SemverBump.MAJOR: 3, SemverBump.MINOR: 2, SemverBump.PATCH: 1}


def max_bump(bumps: Iterable[SemverBump]) -> SemverBump | None:
    """Return the most severe bump, or None when there are no bumps."""
    return max(bumps, key=lambda b: b.severity, default=None)


def package_name_without_scope(name: str) -> str:
    """Strip a leading "@scope/" from a package name.

    Examples:
        "@acme/widgets" → "widgets"
        "widgets" → "widgets"
    """
    if name.startswith("@") and "/" in name:
        return name.split("/", 1)[1]
    return name


class Commit(BaseModel):
    """One entry of the git log."""

    model_config = ConfigDict(frozen=True)

    hash: str
    author: str
    email: str
    subject: str
    body: str = ""


class ChangelogEntry(BaseModel):
    """A single changelog line parsed from a commit.

    Attributes:
        type: Conventional commit type (feat, fix, ...).
        description: Human readable text rendered into the changelog.
        packages: Scopes this entry targets, in the order they were written.
                  Empty means the entry belongs to the root package.
        is_breaking_change: Marked with "!"; always bumps major.
        semver_bump: Bump this entry asks for.
        has_explicit_version_bump: True when "#major"/"#minor"/"#patch" was
                                   given in the description.
    """

    type: str
    description: str
    packages: list[str] = Field(default_factory=list)
    is_breaking_change: bool = False
    semver_bump: SemverBump = SemverBump.PATCH
    has_explicit_version_bump: bool = False


class PackageInfo(BaseModel):
    """Metadata for a single package in the workspace.

    Attributes:
        name: Canonical package name.
        version: Current version string from pyproject.toml.
        new_version: Version after this release. Unset until the
                     aggregator computes it, never changed afterwards.
        path: Relative path from workspace root to the package directory.
        is_root: True for the workspace root project.
        is_private: True when the package must never be uploaded.
        dependencies: Internal (workspace) dependency names.
    """

    name: str
    version: str
    new_version: str | None = None
    path: str = "."
    is_root: bool = False
    is_private: bool = False
    dependencies: list[str] = Field(default_factory=list)

    @property
    def unscoped_name(self) -> str:
        return package_name_without_scope(self.name)

    @property
    def directory_name(self) -> str:
        return PurePosixPath(self.path).name

    def tag_name(self, new: bool = False) -> str:
        """Git tag of the current (or, with new=True, the upcoming) version.

        The root package is tagged "v1.2.3", members "{name}/v1.2.3".
        """
        version = self.new_version if new and self.new_version else self.version
        return f"v{version}" if self.is_root else f"{self.name}/v{version}"

    def with_new_version(self, new_version: str) -> PackageInfo:
        """Return a copy of this package with new_version set."""
        if self.new_version is not None:
            raise ValueError(
                f"{self.name} already has new version {self.new_version}"
            )
        return self.model_copy(update={"new_version": new_version})


class ReleasePlan(BaseModel):
    """Packages taking part in a release.

    Attributes:
        changed: Packages targeted by at least one changelog entry.
        indirect: Packages only released because a dependency changed.
    """

    changed: list[PackageInfo] = Field(default_factory=list)
    indirect: list[PackageInfo] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.changed and not self.indirect


class Heading(BaseModel):
    """Identity of one package section in the release PR body."""

    package_name: str
    old_version: str
    new_version: str
    is_root: bool = False


class PackageChangelogEntry(BaseModel):
    """A package section as exchanged through the release PR body."""

    heading: Heading
    content: str


class Contributor(BaseModel):
    """Someone credited in the release PR body."""

    username: str
    name: str | None = None
    email: str | None = None

    @property
    def is_bot(self) -> bool:
        return "[bot]" in self.username or "[bot]" in (self.email or "")
