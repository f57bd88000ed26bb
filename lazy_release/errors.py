"""Exception types for lazy-release.

Most malformed input (odd commit messages, foreign headings in a PR body,
unreachable lookup services) is logged and skipped. The exceptions here are
reserved for the cases that must stop a run so a human can fix the input.
"""

from __future__ import annotations


class LazyReleaseError(Exception):
    """Base class for all lazy-release errors."""


class ConfigError(LazyReleaseError):
    """Invalid [tool.lazy-release] configuration or environment."""


class LogFormatError(LazyReleaseError):
    """The git log output could not be split into commit records.

    Raised when a separator token shows up inside commit content, which
    would otherwise silently shift fields between commits.
    """

    def __init__(self, message: str, record: str = "") -> None:
        super().__init__(message)
        self.record = record


class HeadingFormatError(LazyReleaseError):
    """A release PR body contains a package heading that cannot be parsed."""

    def __init__(self, heading: str, line_number: int | None = None) -> None:
        where = f" (line {line_number})" if line_number is not None else ""
        super().__init__(f"Invalid heading format{where}: {heading}")
        self.heading = heading
        self.line_number = line_number


class StaleDocumentError(LazyReleaseError):
    """The release PR body was written with a different schema version."""

    def __init__(self, found: int, expected: int) -> None:
        super().__init__(
            f"Release PR body uses schema {found}, expected {expected}. "
            "Re-run the prepare step to regenerate it."
        )
        self.found = found
        self.expected = expected
