"""The release PR body: rendering and parsing.

The release PR body is read by humans but it is also the only state that
survives between the "prepare" run (which writes it) and the "publish" run
(which reads it back after the PR is merged). Each released package gets a
level two heading that encodes its identity:

    ## 1.4.0➡️1.5.0                  (workspace root)
    ## pkg-a@0.3.1➡️0.4.0            (member package)
    ## @scope/pkg-b@2.0.0➡️2.0.1     (scoped names are accepted when parsing)

Everything below a heading, up to the next package heading or the
contributors section, is that package's changelog content. A marker comment
at the very end identifies the document as generated and records the
schema version of this layout.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from .aggregate import select_package_changelogs
from .config import MARKER_SCHEMA_VERSION, ReleaseConfig
from .errors import HeadingFormatError, StaleDocumentError
from .models import ChangelogEntry, Contributor, Heading, PackageChangelogEntry, PackageInfo
from .versions import parse_version

logger = logging.getLogger(__name__)

DOCUMENT_TITLE = "# 👉 Changelog"
BREAKING_CHANGES_HEADING = "### ⚠️ Breaking Changes"
CONTRIBUTORS_HEADING = "### ❤️ Contributors"
DEPENDENCY_NOTICE = "📦 Updated due to dependency changes"
VERSION_ARROW = "➡️"

HEADING_PATTERN = re.compile(
    r"^## (?:(?P<scope>@[\w.~-]+/)?(?P<name>[\w.-]+)@)?"
    r"(?P<old>\d+\.\d+\.\d+)➡️?(?P<new>\d+\.\d+\.\d+)[ \t]*$"
)
PR_NUMBER_PATTERN = re.compile(r"\(#(\d+)\)")


# Rendering


def render_package_sections(changelogs: list[ChangelogEntry], config: ReleaseConfig) -> str:
    """Render breaking changes and type sections for one package.

    Breaking changes always come first. The remaining entries are grouped by
    type and the groups are ordered by the type table, so the output does
    not depend on commit order.
    """
    markdown = ""

    breaking = [c for c in changelogs if c.is_breaking_change]
    if breaking:
        markdown += f"{BREAKING_CHANGES_HEADING}\n"
        for changelog in breaking:
            markdown += f"- {changelog.description}\n"
        markdown += "\n"

    grouped: dict[str, list[ChangelogEntry]] = {}
    for changelog in changelogs:
        if not changelog.is_breaking_change:
            grouped.setdefault(changelog.type, []).append(changelog)

    unknown_rank = len(config.changelog_types)

    def sort_key(type_name: str) -> tuple[int, str]:
        changelog_type = config.get_type(type_name)
        return (changelog_type.sort if changelog_type else unknown_rank, type_name)

    for type_name in sorted(grouped, key=sort_key):
        changelog_type = config.get_type(type_name)
        title = changelog_type.heading if changelog_type else f"📝 {type_name}"
        markdown += f"### {title}\n"
        for changelog in grouped[type_name]:
            markdown += f"- {changelog.description}\n"
        markdown += "\n"

    return markdown


def format_heading(pkg: PackageInfo) -> str:
    """Render the "## name@old➡️new" heading of a package.

    Short pyproject versions such as "1.0" are written as "1.0.0" so the
    heading always matches HEADING_PATTERN.
    """
    version = str(parse_version(pkg.version))
    heading = f"## {version}" if pkg.is_root else f"## {pkg.unscoped_name}@{version}"
    if pkg.new_version:
        heading += f"{VERSION_ARROW}{pkg.new_version}"
    return heading


def get_compare_changes_link(pkg: PackageInfo, repository: str) -> str:
    """Markdown link comparing the previous and the upcoming tag."""
    prev_tag = pkg.tag_name()
    new_tag = pkg.tag_name(new=True)
    base = f"https://github.com/{repository}" if repository else "../.."
    return f"[compare changes]({base}/compare/{prev_tag}...{new_tag})"


def generate_markdown(
    changed: Iterable[PackageInfo],
    indirect: Iterable[PackageInfo],
    changelogs: list[ChangelogEntry],
    config: ReleaseConfig,
    contributors: Iterable[Contributor] = (),
) -> str:
    """Render the release PR body (without the release marker).

    Args:
        changed: Packages with changelog entries, new_version set.
        indirect: Packages released only for dependency updates.
        changelogs: All changelog entries of the release.
        config: Supplies the type table and repository for links.
        contributors: People to credit, in the order given.
    """
    markdown = f"{DOCUMENT_TITLE}\n\n"

    for pkg in changed:
        package_changelogs = select_package_changelogs(pkg, changelogs)
        if not package_changelogs:
            continue

        markdown += f"{format_heading(pkg)}\n\n"
        markdown += get_compare_changes_link(pkg, config.repository) + "\n\n"
        markdown += render_package_sections(package_changelogs, config)

    for pkg in indirect:
        markdown += f"{format_heading(pkg)}\n\n"
        markdown += get_compare_changes_link(pkg, config.repository) + "\n\n"
        markdown += f"{DEPENDENCY_NOTICE}\n\n"

    contributors = list(contributors)
    if contributors:
        markdown += f"{CONTRIBUTORS_HEADING}\n"
        for contributor in contributors:
            markdown += f"- {contributor.name} (@{contributor.username})\n"

    return markdown


def increase_heading_level(message: str) -> str:
    """Push every markdown heading one level deeper."""
    return re.sub(r"^(#+)\s", r"\1# ", message, flags=re.MULTILINE)


def replace_pr_number_with_link(description: str, repository: str) -> str:
    """Turn the first "(#12)" into a link to pull request 12."""
    if not description or not repository:
        return description

    def link(match: re.Match[str]) -> str:
        number = match.group(1)
        return f"([#{number}](https://github.com/{repository}/pull/{number}))"

    return PR_NUMBER_PATTERN.sub(link, description, count=1)


# Release marker


def _marker_pattern(release_id: str) -> re.Pattern[str]:
    return re.compile(
        rf"<!--\s*Release PR: {re.escape(release_id)}(?:\s+schema=(\d+))?\s*-->"
    )


def release_marker(release_id: str) -> str:
    return f"<!-- Release PR: {release_id} schema={MARKER_SCHEMA_VERSION} -->"


def append_release_marker(markdown: str, release_id: str) -> str:
    """Append the release marker comment as the last line of the body."""
    return f"{markdown.rstrip()}\n\n{release_marker(release_id)}"


def has_release_marker(markdown: str, release_id: str) -> bool:
    return _marker_pattern(release_id).search(markdown) is not None


def remove_release_marker(markdown: str, release_id: str) -> str:
    return _marker_pattern(release_id).sub("", markdown).strip()


def get_marker_schema_version(markdown: str, release_id: str) -> int | None:
    """Schema version recorded in the marker.

    Returns None without a marker. Markers written before the schema
    version existed count as version 1.
    """
    match = _marker_pattern(release_id).search(markdown)
    if match is None:
        return None
    return int(match.group(1)) if match.group(1) else 1


# Parsing


def parse_heading(heading: str) -> Heading:
    """Parse a "## name@old➡️new" heading.

    Raises:
        HeadingFormatError: If the heading does not follow the format.
    """
    match = HEADING_PATTERN.match(heading.strip())
    if not match:
        raise HeadingFormatError(heading.strip())

    name = match.group("name")
    scope = match.group("scope") or ""
    return Heading(
        package_name=f"{scope}{name}" if name else "",
        old_version=match.group("old"),
        new_version=match.group("new"),
        is_root=not name,
    )


def _looks_like_package_heading(line: str) -> bool:
    return line.startswith("## ") and "➡" in line


def parse_release_pr_body(body: str, release_id: str) -> list[PackageChangelogEntry]:
    """Read the package sections back out of a release PR body.

    Headings that are not package headings are treated as content and
    anything outside the generated structure is ignored, so humans may edit
    around it. Code fences are skipped while looking for headings.

    Raises:
        StaleDocumentError: If the marker records another schema version.
        HeadingFormatError: If a line looks like a package heading but does
            not parse, since dropping it would lose a package release.
    """
    schema = get_marker_schema_version(body, release_id)
    if schema is not None and schema != MARKER_SCHEMA_VERSION:
        raise StaleDocumentError(schema, MARKER_SCHEMA_VERSION)

    text = remove_release_marker(body.replace("\r\n", "\n"), release_id)
    lines = text.split("\n")

    # (line index, heading or None for a section terminator)
    boundaries: list[tuple[int, Heading | None]] = []
    in_fence = False
    for index, line in enumerate(lines):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        stripped = line.rstrip()
        if HEADING_PATTERN.match(stripped):
            boundaries.append((index, parse_heading(stripped)))
        elif stripped == CONTRIBUTORS_HEADING:
            boundaries.append((index, None))
        elif _looks_like_package_heading(stripped):
            raise HeadingFormatError(stripped, index + 1)

    entries: list[PackageChangelogEntry] = []
    for position, (index, heading) in enumerate(boundaries):
        if heading is None:
            continue
        end = boundaries[position + 1][0] if position + 1 < len(boundaries) else len(lines)
        content = "\n".join(lines[index + 1 : end]).strip()
        entries.append(PackageChangelogEntry(heading=heading, content=content))

    logger.info("Found %d package headings in PR body", len(entries))
    return entries
