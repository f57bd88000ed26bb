"""Selecting the commits that belong in the next release.

The git log is reduced to the commits that actually changed something
since the last release:

1. Reverts are discovered first. A revert references the PR it undid
   ("Reverts owner/repo#12"), and that reference is remembered.
2. The log is walked newest to oldest. Commits pointing at a reverted PR
   are dropped together with the revert itself. The walk stops at the
   previous release commit, identified by the release id in its body.
3. Only commits that can produce changelog entries are kept: a
   conventional commit subject, or a "## Changelog" section in the body.

Nothing in here raises on odd input; suspicious commits are logged and
skipped.
"""

from __future__ import annotations

import logging
import re

from .config import ReleaseConfig
from .gitlog import read_commit_log
from .models import Commit

logger = logging.getLogger(__name__)

ISSUE_NUMBER_PATTERN = re.compile(r"#\d+")
CHANGELOG_HEADING_PATTERN = re.compile(r"^##\s+Changelog\s*$", re.MULTILINE)


def conventional_commit_pattern(
    config: ReleaseConfig, ignore_case: bool = False
) -> re.Pattern[str]:
    """Build the subject pattern for the configured commit types.

    Matches ``type: desc``, ``type(scope): desc``, ``type(a, b)!: desc``.
    PR titles are checked strictly; commit subjects use ignore_case=True
    because the changelog extractor lowercases the type anyway.
    """
    types = "|".join(re.escape(t) for t in config.type_names)
    flags = re.IGNORECASE if ignore_case else 0
    return re.compile(rf"^({types})(\([^)]*\))?!?:\s*\S", flags)


def is_revert_commit(subject: str, body: str) -> bool:
    """True for commits created by "git revert" or GitHub's revert button."""
    return subject.startswith("Revert ") or body.startswith("Reverts ")


def is_release_commit(body: str, release_id: str) -> bool:
    """True when the commit body carries the release marker."""
    return release_id in body


def has_changelog_section(body: str) -> bool:
    """True when the body has a "## Changelog" heading."""
    return CHANGELOG_HEADING_PATTERN.search(body) is not None


def is_pr_title_valid(title: str, config: ReleaseConfig) -> bool:
    """Check that a PR title can stand in as a changelog entry."""
    return conventional_commit_pattern(config).match(title.strip()) is not None


def find_reverted_references(commits: list[Commit], *, ignore_latest: bool = False) -> set[str]:
    """Collect the "#N" references undone by revert commits."""
    reverted: set[str] = set()
    for i, commit in enumerate(commits):
        if ignore_latest and i == 0:
            continue
        if not is_revert_commit(commit.subject, commit.body):
            continue
        match = ISSUE_NUMBER_PATTERN.search(commit.body)
        if match:
            reverted.add(match.group(0))
            logger.info("Found revert commit, excluding original commit: %s", match.group(0))
    return reverted


def classify_commits(
    commits: list[Commit],
    config: ReleaseConfig,
    *,
    ignore_latest: bool = False,
) -> list[Commit]:
    """Reduce a newest-first log to the commits of the upcoming release.

    Args:
        commits: Commits as returned by git log, newest first.
        config: Supplies the release id and known commit types.
        ignore_latest: Skip the newest commit, e.g. when it is the merge
                       commit currently being processed.

    Returns:
        Commits newer than the last release that carry changelog
        information, newest first.
    """
    reverted = find_reverted_references(commits, ignore_latest=ignore_latest)
    recent: list[Commit] = []

    for i, commit in enumerate(commits):
        if ignore_latest and i == 0:
            continue

        if not commit.hash:
            logger.warning("No commit hash found in commit: %r", commit.subject)
            continue

        if commit.hash in reverted:
            logger.info("Skipping reverted commit: %s", commit.hash)
            continue

        if not commit.subject:
            logger.warning("No commit subject found in commit %s", commit.hash)
            continue

        reference = ISSUE_NUMBER_PATTERN.search(commit.subject)
        if reference and reference.group(0) in reverted:
            logger.info("Skipping commit with reverted issue number: %s", reference.group(0))
            continue

        if is_release_commit(commit.body, config.release_id):
            if i == 0:
                logger.warning(
                    "Skipping release commit %s because it is the first commit.", commit.hash
                )
                continue
            if not reference:
                logger.warning(
                    "Skipping release commit %s because it does not contain a PR number.",
                    commit.hash,
                )
                continue
            logger.info("Reached previous release commit %s", commit.hash)
            break

        if is_revert_commit(commit.subject, commit.body):
            logger.info("Skipping revert commit: %s", commit.hash)
            continue

        recent.append(commit)

    pattern = conventional_commit_pattern(config, ignore_case=True)
    filtered = [
        c for c in recent if pattern.match(c.subject) or has_changelog_section(c.body)
    ]
    for commit in filtered:
        logger.debug("Release commit candidate %s: %s", commit.hash, commit.subject)
    return filtered


def get_recent_commits(config: ReleaseConfig, *, ignore_latest: bool = False) -> list[Commit]:
    """Read the git log and keep the commits of the upcoming release."""
    return classify_commits(
        read_commit_log(config.end_commit), config, ignore_latest=ignore_latest
    )
