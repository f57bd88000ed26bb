"""CLI entry point for lazy-release."""

from __future__ import annotations

import json
from pathlib import Path

import click

from lazy_release.commits import is_pr_title_valid
from lazy_release.config import load_config
from lazy_release.errors import LazyReleaseError
from lazy_release.markdown import parse_release_pr_body
from lazy_release.pipeline import create_or_update_release_pr, publish
from lazy_release.shell import configure_logging, fatal


@click.group()
@click.version_option()
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v, -vv).")
def cli(verbose: int) -> None:
    """Lazy monorepo releases driven by changelog sections in PR bodies."""
    configure_logging(verbose)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Print the release PR body instead of pushing.")
def prepare(dry_run: bool) -> None:
    """Open or update the release PR (usually called from CI)."""
    try:
        body = create_or_update_release_pr(load_config(), dry_run=dry_run)
    except LazyReleaseError as e:
        fatal(str(e))
        return
    if dry_run and body:
        click.echo(body)


@cli.command(name="publish")
@click.option(
    "--body-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="File holding the merged release PR body.",
)
def publish_command(body_file: Path) -> None:
    """Tag, upload and announce the packages of a merged release PR."""
    try:
        publish(body_file.read_text(encoding="utf-8"), load_config())
    except LazyReleaseError as e:
        fatal(str(e))


@cli.command(name="check-title")
@click.argument("title")
def check_title(title: str) -> None:
    """Exit non-zero unless TITLE is a conventional commit subject."""
    try:
        config = load_config()
    except LazyReleaseError as e:
        fatal(str(e))
        return

    if not is_pr_title_valid(title, config):
        types = ", ".join(config.type_names)
        raise click.ClickException(
            f"PR title must look like 'type(scope): description'.\n"
            f"Allowed types: {types}"
        )
    click.echo("✓ PR title is valid")


@cli.command()
@click.argument("body_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def parse(body_file: Path) -> None:
    """Print the package sections of a release PR body as JSON."""
    try:
        config = load_config()
        entries = parse_release_pr_body(body_file.read_text(encoding="utf-8"), config.release_id)
    except LazyReleaseError as e:
        fatal(str(e))
        return
    click.echo(json.dumps([e.model_dump() for e in entries], indent=2, ensure_ascii=False))
