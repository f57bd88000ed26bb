"""Release workflow: prepare a release PR, publish it once merged.

Two independent CI runs share nothing but the release PR body:

prepare (a regular PR was merged):
1. Reset the release branch to the default branch
2. Collect the commits since the last release
3. Extract changelog entries and compute new versions
4. Write versions and CHANGELOG.md files, commit, push
5. Open or update the release PR with the rendered changelog

publish (the release PR was merged):
1. Parse the package sections back out of the PR body
2. Tag every released package
3. Build and upload public packages with uv
4. Create one GitHub release per package
"""

from __future__ import annotations

import glob
import logging
from pathlib import Path

from .aggregate import build_release_plan
from .changelog import create_or_update_changelog_file, get_changelog_from_commits
from .commits import get_recent_commits, is_release_commit
from .config import ReleaseConfig
from .contributors import UserLookup, get_contributors_from_commits
from .deps import dep_canonical_name, rewrite_pyproject
from .markdown import (
    append_release_marker,
    generate_markdown,
    increase_heading_level,
    parse_release_pr_body,
)
from .models import ChangelogEntry, Commit, PackageChangelogEntry, PackageInfo, ReleasePlan
from .shell import gh, git, run, step
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    has_project_table,
    is_private_project,
    load_pyproject,
)
from .ungh import UnghClient

logger = logging.getLogger(__name__)


def discover_packages(root: Path | None = None) -> dict[str, PackageInfo]:
    """Scan the workspace and discover all packages.

    The root pyproject.toml is the root package when it has a [project]
    name. Member directories come from [tool.uv.workspace].members; each
    needs its own pyproject.toml.

    Returns:
        Map of package name to PackageInfo, root first, then members in
        glob order.
    """
    step("Discovering workspace packages")

    root = root or Path.cwd()
    root_doc = load_pyproject(root / "pyproject.toml")

    docs: dict[str, tuple[PackageInfo, list[str]]] = {}
    if has_project_table(root_doc):
        name = get_project_name(root_doc, root.name)
        docs[name] = (
            PackageInfo(
                name=name,
                version=get_project_version(root_doc),
                path=".",
                is_root=True,
                is_private=is_private_project(root_doc),
            ),
            get_all_dependency_strings(root_doc),
        )

    for pattern in get_workspace_member_globs(root_doc):
        for match in sorted(glob.glob(str(root / pattern))):
            member = Path(match)
            if member.resolve() == root.resolve() or not (member / "pyproject.toml").exists():
                continue
            doc = load_pyproject(member / "pyproject.toml")
            name = get_project_name(doc, member.name)
            if name in docs:
                continue
            docs[name] = (
                PackageInfo(
                    name=name,
                    version=get_project_version(doc),
                    path=member.relative_to(root).as_posix(),
                    is_private=is_private_project(doc),
                ),
                get_all_dependency_strings(doc),
            )

    # Only track internal deps, ignore external packages
    packages: dict[str, PackageInfo] = {}
    for name, (info, raw_deps) in docs.items():
        for dep_str in raw_deps:
            dep_name = dep_canonical_name(dep_str)
            if dep_name in docs and dep_name != name and dep_name not in info.dependencies:
                info.dependencies.append(dep_name)
        packages[name] = info

    for name, info in packages.items():
        deps = f" → [{', '.join(info.dependencies)}]" if info.dependencies else ""
        print(f"  {name} {info.version} ({info.path}){deps}")

    return packages


def get_root_package_name(packages: dict[str, PackageInfo]) -> str | None:
    return next((p.name for p in packages.values() if p.is_root), None)


def prepare_release(
    commits: list[Commit],
    packages: dict[str, PackageInfo],
    config: ReleaseConfig,
    lookup: UserLookup | None = None,
) -> tuple[ReleasePlan, list[ChangelogEntry], str]:
    """Compute the release from commits, without touching anything.

    Contributors are only looked up through lookup once the plan is known
    to release something. Without a lookup nobody is credited.

    Returns:
        The release plan, the changelog entries and the rendered PR body
        (with release marker). The body is empty when nothing is released.
    """
    changelogs = get_changelog_from_commits(
        commits, config, get_root_package_name(packages)
    )
    plan = build_release_plan(changelogs, packages)
    if plan.is_empty:
        return plan, changelogs, ""

    contributors = get_contributors_from_commits(commits, lookup) if lookup is not None else []
    markdown = generate_markdown(plan.changed, plan.indirect, changelogs, config, contributors)
    return plan, changelogs, append_release_marker(markdown, config.release_id)


def apply_release_plan(
    plan: ReleasePlan,
    changelogs: list[ChangelogEntry],
    config: ReleaseConfig,
    root: Path,
) -> None:
    """Write new versions and CHANGELOG.md sections into the workspace."""
    step("Applying new versions")

    released = plan.changed + plan.indirect
    versions = {pkg.name: pkg.new_version for pkg in released if pkg.new_version}

    for pkg in released:
        pins = {dep: versions[dep] for dep in pkg.dependencies if dep in versions}
        rewrite_pyproject(root / pkg.path / "pyproject.toml", versions[pkg.name], pins)
        create_or_update_changelog_file(pkg, changelogs, config, root)
        print(f"  {pkg.name}: {pkg.version} → {pkg.new_version}")


def checkout_release_branch(config: ReleaseConfig) -> None:
    """Point the release branch at the tip of the default branch."""
    step(f"Checking out {config.release_branch}")
    git("fetch", "origin", config.default_branch)
    git("checkout", "-B", config.release_branch, f"origin/{config.default_branch}")


def commit_and_push(config: ReleaseConfig) -> None:
    """Commit workspace changes and force-push the release branch."""
    git("add", "-A")
    staged = git("diff", "--cached", "--name-only", check=False)
    if not staged:
        print("  Nothing to commit")
        return
    git("commit", "-m", "chore: update release branch")
    git("push", "--force", "origin", config.release_branch)
    print("  Committed and pushed")


def create_or_update_pr(config: ReleaseConfig, body: str) -> None:
    """Open the release PR, or replace the body of the open one."""
    step("Updating release PR")
    number = gh(
        "pr", "list",
        "--head", config.release_branch,
        "--state", "open",
        "--json", "number",
        "--jq", ".[0].number",
        check=False,
    )
    if number:
        gh("pr", "edit", number, "--title", config.release_pr_title, "--body", body)
        print(f"  Updated #{number}")
    else:
        gh(
            "pr", "create",
            "--base", config.default_branch,
            "--head", config.release_branch,
            "--title", config.release_pr_title,
            "--body", body,
        )
        print("  Created release PR")


def create_or_update_release_pr(
    config: ReleaseConfig,
    root: Path | None = None,
    lookup: UserLookup | None = None,
    *,
    dry_run: bool = False,
) -> str:
    """Run the prepare workflow.

    Args:
        config: Release configuration.
        root: Workspace root, defaults to the current directory.
        lookup: Contributor lookup service, defaults to ungh.cc.
        dry_run: Compute and return the PR body without changing anything.

    Returns:
        The release PR body, or "" when there is nothing to release.
    """
    root = root or Path.cwd()
    if not dry_run:
        checkout_release_branch(config)

    step("Collecting commits since last release")
    commits = get_recent_commits(config)
    packages = discover_packages(root)

    if lookup is None:
        with UnghClient() as client:
            plan, changelogs, body = prepare_release(commits, packages, config, client)
    else:
        plan, changelogs, body = prepare_release(commits, packages, config, lookup)
    if plan.is_empty:
        print("No packages changed, skipping release PR creation.")
        return ""

    if dry_run:
        return body

    apply_release_plan(plan, changelogs, config, root)
    commit_and_push(config)
    create_or_update_pr(config, body)
    return body


def is_last_commit_a_release_commit(config: ReleaseConfig) -> bool:
    """True when HEAD is the merge of a release PR."""
    return is_release_commit(git("log", "-1", "--pretty=format:%B"), config.release_id)


def find_changelog_entry(
    pkg: PackageInfo, entries: list[PackageChangelogEntry]
) -> PackageChangelogEntry | None:
    """The PR body section for pkg, matched by name or root flag."""
    for entry in entries:
        heading = entry.heading
        if heading.package_name in (pkg.name, pkg.unscoped_name):
            return entry
        if pkg.is_root and heading.is_root:
            return entry
    return None


def match_released_packages(
    packages: dict[str, PackageInfo], entries: list[PackageChangelogEntry]
) -> list[tuple[PackageInfo, PackageChangelogEntry]]:
    """Pair workspace packages with their section of the release PR body."""
    releases: list[tuple[PackageInfo, PackageChangelogEntry]] = []
    for pkg in packages.values():
        entry = find_changelog_entry(pkg, entries)
        if entry is None:
            continue
        if entry.heading.new_version != pkg.version:
            logger.warning(
                "%s is at %s but the release PR announced %s",
                pkg.name,
                pkg.version,
                entry.heading.new_version,
            )
        releases.append((pkg, entry))
    return releases


def tag_packages(releases: list[tuple[PackageInfo, PackageChangelogEntry]]) -> None:
    step("Creating package tags")
    for pkg, _ in releases:
        tag = pkg.tag_name()
        git("tag", tag)
        print(f"  {tag}")


def publish_packages(releases: list[tuple[PackageInfo, PackageChangelogEntry]]) -> None:
    """Build and upload every public package of the release."""
    step("Publishing packages")
    for pkg, _ in releases:
        if pkg.is_private:
            print(f"  {pkg.name}: private, skipped")
            continue
        out_dir = f"dist/{pkg.name}"
        run("uv", "build", pkg.path, "--out-dir", out_dir)
        # uv expands the glob itself
        run("uv", "publish", f"{out_dir}/*")


def create_github_releases(releases: list[tuple[PackageInfo, PackageChangelogEntry]]) -> None:
    step("Creating GitHub releases")
    for pkg, entry in releases:
        tag = pkg.tag_name()
        gh("release", "create", tag, "--title", tag, "--notes", increase_heading_level(entry.content))
        print(f"  {tag}")


def publish(
    pr_body: str, config: ReleaseConfig, root: Path | None = None
) -> list[tuple[PackageInfo, PackageChangelogEntry]]:
    """Run the publish workflow for a merged release PR.

    Returns:
        The released packages with their changelog sections. Empty when the
        body holds no package sections or none matches the workspace.
    """
    step("Publishing release")

    entries = parse_release_pr_body(pr_body, config.release_id)
    if not entries:
        print("No changelog data found, skipping release creation.")
        return []

    packages = discover_packages(root)
    releases = match_released_packages(packages, entries)
    if not releases:
        print("No changed packages found, skipping release creation.")
        return []

    tag_packages(releases)
    git("push", "--tags")
    publish_packages(releases)
    create_github_releases(releases)

    print(f"\n{'=' * 60}\nDone!\n{'=' * 60}")
    return releases
