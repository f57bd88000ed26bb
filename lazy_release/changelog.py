"""Changelog entries from commit messages, and CHANGELOG.md files.

A merged PR describes its changes in a "## Changelog" section of the commit
body, one bullet per change:

    ## Changelog

    - feat(pkg-a, pkg-b): add a shared retry helper
    - fix(pkg-a)!: drop the legacy config loader
    - chore: bump dev tooling #minor

When there is no such section the commit subject itself is used, which is
what a squash merge of a conventional PR title produces. Each bullet turns
into one ChangelogEntry.
"""

from __future__ import annotations

import datetime
import logging
import re
from pathlib import Path

from .aggregate import select_package_changelogs
from .commits import CHANGELOG_HEADING_PATTERN, has_changelog_section, is_revert_commit
from .config import ReleaseConfig
from .markdown import DEPENDENCY_NOTICE, DOCUMENT_TITLE, render_package_sections, replace_pr_number_with_link
from .models import ChangelogEntry, Commit, PackageInfo, SemverBump

logger = logging.getLogger(__name__)

TOP_LEVEL_HEADING = re.compile(r"^#{1,2}\s")
COMMIT_TYPE_PARTS = re.compile(
    r"^\s*(?P<type>[A-Za-z]+)\s*(?P<bang1>!)?\s*(?:\((?P<scopes>[^)]*)\))?\s*(?P<bang2>!)?\s*$"
)
EXPLICIT_BUMP = re.compile(r"(?<![\w#])#(major|minor|patch)\b", re.IGNORECASE)


def _is_fence(line: str) -> bool:
    return line.lstrip().startswith("```")


def get_changelog_section(body: str) -> str:
    """Return the text of the "## Changelog" section, or "" if absent.

    The section runs to the next level one or two heading outside a code
    fence, or to the end of the body.
    """
    match = CHANGELOG_HEADING_PATTERN.search(body)
    if not match:
        return ""

    lines: list[str] = []
    in_fence = False
    for line in body[match.end():].splitlines():
        if not in_fence and TOP_LEVEL_HEADING.match(line):
            break
        if _is_fence(line):
            in_fence = not in_fence
        lines.append(line)
    return "\n".join(lines).strip()


def get_changelog_items(section: str) -> list[str]:
    """Split a changelog section into bullet items.

    A line starting with "- " begins a new item unless it sits inside a
    fenced code block; every other line continues the current item. Text
    before the first bullet is ignored. An item that leaves a code fence
    open gets a closing fence, so it cannot swallow whatever is rendered
    after it.
    """
    items: list[list[str]] = []
    in_fence = False
    for line in section.splitlines():
        stripped = line.lstrip()
        if not in_fence and stripped.startswith("- "):
            items.append([stripped[2:]])
        elif items:
            items[-1].append(line)
        if _is_fence(line):
            in_fence = not in_fence
    texts = []
    for item in items:
        if sum(1 for line in item if _is_fence(line)) % 2:
            item.append("```")
        text = "\n".join(item).strip()
        if text:
            texts.append(text)
    return texts


def _split_item(item: str) -> tuple[str, str] | None:
    depth = 0
    for i, char in enumerate(item):
        if char == "(":
            depth += 1
        elif char == ")":
            depth = max(depth - 1, 0)
        elif char == ":" and depth == 0:
            return item[:i], item[i + 1:]
        elif char == "\n":
            break
    return None


def extract_commit_type(item: str) -> str | None:
    """Return the part before the first top-level colon, e.g. "feat(ui)"."""
    parts = _split_item(item)
    return parts[0].strip() if parts else None


def extract_description(item: str) -> str:
    """Return the text after the commit type, with its first letter capitalized."""
    parts = _split_item(item)
    description = (parts[1] if parts else item).strip()
    return description[:1].upper() + description[1:]


def extract_commit_type_parts(commit_type: str) -> tuple[str, list[str], bool] | None:
    """Parse "type(scope1, scope2)!" into (type, scopes, is_breaking).

    A "!" right after the type, after the scope list or at the end of the
    last scope marks a breaking change. Returns None when the text is not a
    commit type.
    """
    match = COMMIT_TYPE_PARTS.match(commit_type)
    if not match:
        return None

    is_breaking = bool(match.group("bang1") or match.group("bang2"))
    scopes: list[str] = []
    for raw in (match.group("scopes") or "").split(","):
        scope = raw.strip()
        if scope.endswith("!"):
            is_breaking = True
            scope = scope[:-1].strip()
        if scope and scope not in scopes:
            scopes.append(scope)
    return match.group("type").lower(), scopes, is_breaking


def create_changelog_from_item(
    item: str,
    config: ReleaseConfig,
    root_package_name: str | None = None,
) -> ChangelogEntry | None:
    """Build a ChangelogEntry from one changelog bullet or commit subject.

    Returns None (after logging why) for reverts, items without a commit
    type, unknown types and empty descriptions.
    """
    if is_revert_commit(item, item):
        logger.info("Skipping revert item: %s", item)
        return None

    commit_type = extract_commit_type(item)
    parts = extract_commit_type_parts(commit_type) if commit_type is not None else None
    if parts is None:
        logger.warning("Skipping changelog item without a commit type: %r", item)
        return None

    type_name, packages, is_breaking = parts
    changelog_type = config.get_type(type_name)
    if changelog_type is None:
        logger.warning("Skipping changelog item with unknown type %r: %r", type_name, item)
        return None

    description = extract_description(item)
    if not description:
        logger.warning("Skipping changelog item without description: %r", item)
        return None

    # Naming only the root is the same as naming no package
    if root_package_name and packages == [root_package_name]:
        packages = []

    explicit = EXPLICIT_BUMP.search(description)
    if is_breaking:
        bump = SemverBump.MAJOR
    elif explicit:
        bump = SemverBump(explicit.group(1).lower())
    else:
        bump = changelog_type.bump

    return ChangelogEntry(
        type=type_name,
        description=replace_pr_number_with_link(description, config.repository),
        packages=packages,
        is_breaking_change=is_breaking,
        semver_bump=bump,
        has_explicit_version_bump=explicit is not None,
    )


def get_changelog_from_commit(
    commit: Commit,
    config: ReleaseConfig,
    root_package_name: str | None = None,
) -> list[ChangelogEntry]:
    """Extract all changelog entries of a single commit."""
    if has_changelog_section(commit.body):
        items = get_changelog_items(get_changelog_section(commit.body))
    else:
        items = [commit.subject]

    entries = []
    for item in items:
        entry = create_changelog_from_item(item, config, root_package_name)
        if entry is not None:
            entries.append(entry)
    return entries


def get_changelog_from_commits(
    commits: list[Commit],
    config: ReleaseConfig,
    root_package_name: str | None = None,
) -> list[ChangelogEntry]:
    """Extract changelog entries from commits, keeping commit order."""
    changelogs: list[ChangelogEntry] = []
    for commit in commits:
        changelogs.extend(get_changelog_from_commit(commit, config, root_package_name))
    logger.info("Extracted %d changelog entries from %d commits", len(changelogs), len(commits))
    return changelogs


# CHANGELOG.md files


def generate_changelog_content(
    pkg: PackageInfo,
    changelogs: list[ChangelogEntry],
    config: ReleaseConfig,
    date: datetime.date | None = None,
) -> str:
    """Render the CHANGELOG.md section for one package release.

    Packages without entries of their own get the dependency notice.
    """
    date = date or datetime.date.today()
    version = pkg.new_version or pkg.version
    heading = f"## {version} ({date.isoformat()})"

    sections = render_package_sections(select_package_changelogs(pkg, changelogs), config)
    return f"{heading}\n\n{sections.strip() or DEPENDENCY_NOTICE}"


def _version_heading(version: str) -> re.Pattern[str]:
    return re.compile(rf"^## {re.escape(version)}(?:\s.*)?$", re.MULTILINE)


def replace_changelog_section(version: str, new_section: str, existing: str) -> str:
    """Swap the section of an already listed version for new_section."""
    match = _version_heading(version).search(existing)
    if not match:
        return existing

    before = existing[: match.start()]
    following = re.compile(r"^## ", re.MULTILINE).search(existing, match.end())
    if following is None:
        return before + new_section
    return f"{before}{new_section}\n\n\n{existing[following.start():]}"


def update_changelog(existing: str, new_section: str, version: str) -> str:
    """Add new_section to an existing changelog.

    The section for an already listed version is replaced. Otherwise the
    new section goes on top, below a "# " title if the file has one.
    """
    if not existing.strip():
        return new_section
    if _version_heading(version).search(existing):
        return replace_changelog_section(version, new_section, existing)

    title = re.match(r"^# .*\n\s*", existing)
    if title:
        return f"{title.group(0)}{new_section}\n\n\n{existing[title.end():]}"
    return f"{new_section}\n\n\n{existing}"


def create_or_update_changelog_file(
    pkg: PackageInfo,
    changelogs: list[ChangelogEntry],
    config: ReleaseConfig,
    root: Path,
    date: datetime.date | None = None,
) -> Path:
    """Write the release section into <package dir>/CHANGELOG.md."""
    path = root / pkg.path / "CHANGELOG.md"
    section = generate_changelog_content(pkg, changelogs, config, date)
    if path.exists():
        content = update_changelog(path.read_text(), section, pkg.new_version or pkg.version)
    else:
        content = f"{DOCUMENT_TITLE}\n\n{section}"
    path.write_text(content.rstrip("\n") + "\n")
    return path
