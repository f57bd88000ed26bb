"""Reading commits out of git log.

git log is asked to print each commit as a flat record with literal
separator tokens between the fields. The separators form a closed set: a
record is only accepted when every field separator appears exactly once and
in order, and no separator appears inside a field. Commit messages that
happen to contain a separator token are rejected loudly rather than being
split in the wrong place.
"""

from __future__ import annotations

import logging

from .errors import LogFormatError
from .models import Commit
from .shell import git

logger = logging.getLogger(__name__)

HASH_SEPARATOR = "<HASH_SEPARATOR>"
AUTHOR_SEPARATOR = "<AUTHOR_SEPARATOR>"
EMAIL_SEPARATOR = "<EMAIL_SEPARATOR>"
SUBJECT_SEPARATOR = "<SUBJECT_SEPARATOR>"
COMMIT_SEPARATOR = "<COMMIT_SEPARATOR>"

FIELD_SEPARATORS = (HASH_SEPARATOR, AUTHOR_SEPARATOR, EMAIL_SEPARATOR, SUBJECT_SEPARATOR)
SEPARATORS = (*FIELD_SEPARATORS, COMMIT_SEPARATOR)

LOG_FORMAT = (
    f"%h{HASH_SEPARATOR}%an{AUTHOR_SEPARATOR}%ae{EMAIL_SEPARATOR}"
    f"%s{SUBJECT_SEPARATOR}%b{COMMIT_SEPARATOR}"
)


def split_record(record: str) -> list[str]:
    """Split one commit record into its five fields.

    Raises:
        LogFormatError: If a field separator is missing, repeated or out of
            order.
    """
    fields: list[str] = []
    rest = record
    for separator in FIELD_SEPARATORS:
        count = rest.count(separator)
        if count != 1:
            problem = "missing" if count == 0 else "repeated"
            raise LogFormatError(f"Separator {separator} {problem} in commit record", record)
        head, rest = rest.split(separator, 1)
        if any(s in head for s in SEPARATORS):
            raise LogFormatError(f"Separator out of order before {separator}", record)
        fields.append(head)
    fields.append(rest)
    return fields


def tokenize_log(output: str) -> list[Commit]:
    """Turn raw git log output into commits, newest first.

    Args:
        output: stdout of ``git log --pretty=format:LOG_FORMAT``.

    Returns:
        One Commit per record, with all fields trimmed.

    Raises:
        LogFormatError: If any record cannot be split unambiguously.
    """
    commits: list[Commit] = []
    for chunk in output.split(COMMIT_SEPARATOR):
        record = chunk.strip()
        if not record:
            continue
        hash_, author, email, subject, body = split_record(record)
        commits.append(
            Commit(
                hash=hash_.strip(),
                author=author.strip(),
                email=email.strip(),
                subject=subject.strip(),
                body=body.strip(),
            )
        )
    logger.info("Found %d commit records", len(commits))
    return commits


def read_commit_log(end_commit: str | None = None) -> list[Commit]:
    """Read the repository history, newest first.

    Args:
        end_commit: If given, only commits from this revision up to HEAD
                    (inclusive) are read.
    """
    args = ["log", f"--pretty=format:{LOG_FORMAT}"]
    if end_commit:
        args.append(f"{end_commit}^..HEAD")
    return tokenize_log(git(*args))
