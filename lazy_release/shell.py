"""Subprocess and terminal helpers.

Every external command lazy-release runs (git, gh, uv) goes through this
module, so tests can patch a single name per module to fake the outside
world.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from typing import NoReturn

logger = logging.getLogger(__name__)


def _capture(cmd: list[str], check: bool) -> str:
    logger.debug("$ %s", " ".join(cmd))
    result = subprocess.run(cmd, capture_output=True, text=True, check=check)
    if result.returncode != 0:
        logger.debug("%s exited with %d: %s", cmd[0], result.returncode, result.stderr.strip())
    return result.stdout.strip()


def git(*args: str, check: bool = True) -> str:
    """Run git and return its stripped stdout.

    Args:
        *args: Arguments after "git", e.g. ("log", "-1").
        check: Raise CalledProcessError on a non-zero exit. Pass False for
               queries whose failure just means "nothing there".
    """
    return _capture(["git", *args], check)


def gh(*args: str, check: bool = True) -> str:
    """Run the GitHub CLI and return its stripped stdout."""
    return _capture(["gh", *args], check)


def run(*args: str, check: bool = True) -> subprocess.CompletedProcess[bytes]:
    """Run a command with output streamed to the terminal.

    Used for uv build/publish, whose progress output the user wants to see.
    """
    logger.debug("$ %s", " ".join(args))
    return subprocess.run(args, check=check)


def step(msg: str) -> None:
    """Print a header separating pipeline phases."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str) -> NoReturn:
    """Report msg on stderr and exit with status 1."""
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


def configure_logging(verbosity: int) -> None:
    """Configure the root logger from a -v count.

    verbosity == 0 -> WARNING
    verbosity == 1 -> INFO
    verbosity >= 2 -> DEBUG
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
