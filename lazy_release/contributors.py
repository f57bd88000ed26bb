"""Contributor credits for the release PR body.

Commit authors are deduplicated, then resolved to GitHub accounts so the
release PR can thank them as "Jane Doe (@jdoe)".
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from .models import Commit, Contributor

logger = logging.getLogger(__name__)


class UserLookup(Protocol):
    def find_username(self, query: str) -> str | None: ...

    def find_name(self, username: str) -> str | None: ...


def normalize_name(name: str) -> str:
    """Identity key for an author name."""
    return name.strip().lower()


def collect_contributors(commits: list[Commit]) -> list[Contributor]:
    """Deduplicate commit authors, keeping first-seen order.

    Authors are matched by email (case-insensitive) and then by name. When
    a known author shows up again with an email, the email is recorded.
    """
    contributors: list[Contributor] = []
    by_email: dict[str, Contributor] = {}
    by_name: dict[str, Contributor] = {}

    for commit in commits:
        author = commit.author.strip()
        email = commit.email.strip()
        if email and email.lower() in by_email:
            continue

        existing = by_name.get(normalize_name(author)) if author else None
        if existing is not None:
            if email and not existing.email:
                existing.email = email
                by_email[email.lower()] = existing
            continue

        if not author and not email:
            logger.warning("Commit %s has neither author nor email", commit.hash)
            continue

        contributor = Contributor(username=author, email=email or None)
        contributors.append(contributor)
        if author:
            by_name[normalize_name(author)] = contributor
        if email:
            by_email[email.lower()] = contributor

    return contributors


def resolve_contributor(contributor: Contributor, lookup: UserLookup) -> Contributor:
    """Fill in GitHub username and display name. Bots are left alone."""
    if contributor.is_bot:
        return contributor

    resolved = contributor.model_copy()
    if resolved.email:
        username = lookup.find_username(resolved.email)
        if username:
            resolved.username = username
    if resolved.username:
        name = lookup.find_name(resolved.username)
        if name:
            resolved.name = name
    return resolved


def get_contributors_from_commits(
    commits: list[Commit], lookup: UserLookup, max_workers: int = 4
) -> list[Contributor]:
    """Contributors to credit, in order of their first commit.

    Contributors that cannot be resolved to both a username and a display
    name are dropped, as are bots.
    """
    collected = collect_contributors(commits)
    if not collected:
        return []

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        resolved = list(pool.map(lambda c: resolve_contributor(c, lookup), collected))

    return [c for c in resolved if c.username and c.name and not c.is_bot]
