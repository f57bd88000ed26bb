"""Tests for lazy_release.pipeline."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, call, patch

import pytest

from lazy_release.config import ReleaseConfig
from lazy_release.errors import HeadingFormatError
from lazy_release.markdown import parse_release_pr_body
from lazy_release.models import Commit, Heading, PackageChangelogEntry, PackageInfo
from lazy_release.pipeline import (
    apply_release_plan,
    create_or_update_release_pr,
    discover_packages,
    find_changelog_entry,
    is_last_commit_a_release_commit,
    prepare_release,
    publish,
)
from lazy_release.toml import get_all_dependency_strings, get_project_version, load_pyproject


def _commit(subject: str, body: str = "", hash: str = "abc1234") -> Commit:
    return Commit(hash=hash, author="Jane", email="jane@example.com", subject=subject, body=body)


class NoLookup:
    def __init__(self) -> None:
        self.queries: list[str] = []

    def find_username(self, query: str) -> str | None:
        self.queries.append(query)
        return None

    def find_name(self, username: str) -> str | None:
        return None


class TestDiscoverPackages:
    @patch("lazy_release.pipeline.step")
    def test_root_and_members(self, mock_step: MagicMock, workspace: Path) -> None:
        packages = discover_packages(workspace)

        assert list(packages) == ["acme", "pkg-a", "pkg-b", "pkg-c"]
        assert packages["acme"].is_root
        assert packages["acme"].path == "."
        assert packages["pkg-b"].path == "packages/pkg-b"
        assert packages["pkg-b"].version == "2.1.0"

    @patch("lazy_release.pipeline.step")
    def test_internal_dependencies_only(self, mock_step: MagicMock, workspace: Path) -> None:
        packages = discover_packages(workspace)

        assert packages["pkg-a"].dependencies == []
        assert packages["pkg-b"].dependencies == ["pkg-a"]
        assert packages["pkg-c"].dependencies == ["pkg-b"]

    @patch("lazy_release.pipeline.step")
    def test_private_package(self, mock_step: MagicMock, workspace: Path) -> None:
        pyproject = workspace / "packages" / "pkg-a" / "pyproject.toml"
        pyproject.write_text(
            pyproject.read_text() + 'classifiers = ["Private :: Do Not Upload"]\n'
        )

        assert discover_packages(workspace)["pkg-a"].is_private

    @patch("lazy_release.pipeline.step")
    def test_workspace_without_root_project(self, mock_step: MagicMock, workspace: Path) -> None:
        (workspace / "pyproject.toml").write_text('[tool.uv.workspace]\nmembers = ["packages/*"]\n')

        packages = discover_packages(workspace)

        assert list(packages) == ["pkg-a", "pkg-b", "pkg-c"]
        assert not any(p.is_root for p in packages.values())

    @patch("lazy_release.pipeline.step")
    def test_skips_dirs_without_pyproject(self, mock_step: MagicMock, workspace: Path) -> None:
        (workspace / "packages" / "notes").mkdir()

        assert "notes" not in discover_packages(workspace)


class TestPrepareRelease:
    def test_plan_and_body(
        self, packages: dict[str, PackageInfo], config: ReleaseConfig
    ) -> None:
        commits = [_commit("feat(pkg-a): add X (#7)")]

        plan, changelogs, body = prepare_release(commits, packages, config)

        assert [p.name for p in plan.changed] == ["pkg-a"]
        assert [p.name for p in plan.indirect] == ["pkg-b", "pkg-c"]
        assert len(changelogs) == 1
        assert "## pkg-a@1.0.0➡️1.1.0" in body
        assert body.endswith("<!-- Release PR: [lazy-release] schema=1 -->")

    def test_root_scope(self, packages: dict[str, PackageInfo], config: ReleaseConfig) -> None:
        plan, _, body = prepare_release([_commit("fix(acme): tidy")], packages, config)

        assert [p.name for p in plan.changed] == ["acme"]
        assert "## 1.0.0➡️1.0.1" in body

    def test_nothing_to_release(
        self, packages: dict[str, PackageInfo], config: ReleaseConfig
    ) -> None:
        plan, changelogs, body = prepare_release([_commit("Update readme")], packages, config)

        assert plan.is_empty
        assert changelogs == []
        assert body == ""

    def test_no_lookups_when_nothing_released(
        self, packages: dict[str, PackageInfo], config: ReleaseConfig
    ) -> None:
        lookup = NoLookup()

        prepare_release([_commit("Update readme")], packages, config, lookup)

        assert lookup.queries == []

    def test_looks_up_authors_of_a_release(
        self, packages: dict[str, PackageInfo], config: ReleaseConfig
    ) -> None:
        lookup = NoLookup()

        prepare_release([_commit("fix(pkg-a): handle none")], packages, config, lookup)

        assert lookup.queries == ["jane@example.com"]

    def test_short_version_round_trips(
        self, packages: dict[str, PackageInfo], config: ReleaseConfig
    ) -> None:
        packages["pkg-a"] = packages["pkg-a"].model_copy(update={"version": "1.0"})

        _, _, body = prepare_release([_commit("fix(pkg-a): handle none")], packages, config)
        entries = parse_release_pr_body(body, config.release_id)

        assert "## pkg-a@1.0.0➡️1.0.1" in body
        assert [e.heading.package_name for e in entries] == ["pkg-a", "pkg-b", "pkg-c"]
        assert entries[0].heading.old_version == "1.0.0"


class TestApplyReleasePlan:
    @patch("lazy_release.pipeline.step")
    def test_writes_versions_and_changelogs(
        self, mock_step: MagicMock, workspace: Path, config: ReleaseConfig
    ) -> None:
        packages = discover_packages(workspace)
        plan, changelogs, _ = prepare_release([_commit("feat(pkg-a): add X")], packages, config)

        apply_release_plan(plan, changelogs, config, workspace)

        def version(name: str) -> str:
            return get_project_version(load_pyproject(workspace / "packages" / name / "pyproject.toml"))

        assert version("pkg-a") == "1.1.0"
        assert version("pkg-b") == "2.1.1"
        assert version("pkg-c") == "0.3.1"
        pkg_b_deps = get_all_dependency_strings(
            load_pyproject(workspace / "packages" / "pkg-b" / "pyproject.toml")
        )
        assert pkg_b_deps == ["pkg-a>=1.1.0"]
        assert "Add X" in (workspace / "packages" / "pkg-a" / "CHANGELOG.md").read_text()
        assert "📦 Updated due to dependency changes" in (
            workspace / "packages" / "pkg-c" / "CHANGELOG.md"
        ).read_text()
        assert not (workspace / "CHANGELOG.md").exists()


class TestCreateOrUpdateReleasePr:
    @patch("lazy_release.pipeline.gh")
    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.get_recent_commits")
    @patch("lazy_release.pipeline.step")
    def test_dry_run_touches_nothing(
        self,
        mock_step: MagicMock,
        mock_commits: MagicMock,
        mock_git: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ReleaseConfig,
    ) -> None:
        mock_commits.return_value = [_commit("fix(pkg-c): handle none")]

        body = create_or_update_release_pr(config, workspace, NoLookup(), dry_run=True)

        assert "## pkg-c@0.3.0➡️0.3.1" in body
        mock_git.assert_not_called()
        mock_gh.assert_not_called()
        assert 'version = "0.3.0"' in (workspace / "packages" / "pkg-c" / "pyproject.toml").read_text()

    @patch("lazy_release.pipeline.gh")
    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.get_recent_commits")
    @patch("lazy_release.pipeline.step")
    def test_creates_pr(
        self,
        mock_step: MagicMock,
        mock_commits: MagicMock,
        mock_git: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ReleaseConfig,
    ) -> None:
        mock_commits.return_value = [_commit("fix(pkg-c): handle none")]
        mock_git.return_value = "packages/pkg-c/pyproject.toml"
        mock_gh.return_value = ""

        body = create_or_update_release_pr(config, workspace, NoLookup())

        mock_git.assert_any_call("checkout", "-B", "lazy-release/main", "origin/main")
        mock_git.assert_any_call("push", "--force", "origin", "lazy-release/main")
        create_call = mock_gh.call_args_list[-1]
        assert create_call.args[:2] == ("pr", "create")
        assert create_call.args[-1] == body

    @patch("lazy_release.pipeline.gh")
    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.get_recent_commits")
    @patch("lazy_release.pipeline.step")
    def test_updates_existing_pr(
        self,
        mock_step: MagicMock,
        mock_commits: MagicMock,
        mock_git: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ReleaseConfig,
    ) -> None:
        mock_commits.return_value = [_commit("fix(pkg-c): handle none")]
        mock_git.return_value = "packages/pkg-c/pyproject.toml"
        mock_gh.return_value = "42"

        body = create_or_update_release_pr(config, workspace, NoLookup())

        assert mock_gh.call_args_list[-1] == call(
            "pr", "edit", "42", "--title", "Release packages", "--body", body
        )

    @patch("lazy_release.pipeline.gh")
    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.get_recent_commits")
    @patch("lazy_release.pipeline.step")
    def test_nothing_to_release(
        self,
        mock_step: MagicMock,
        mock_commits: MagicMock,
        mock_git: MagicMock,
        mock_gh: MagicMock,
        workspace: Path,
        config: ReleaseConfig,
    ) -> None:
        mock_commits.return_value = []

        assert create_or_update_release_pr(config, workspace, NoLookup()) == ""
        mock_gh.assert_not_called()


class TestIsLastCommitAReleaseCommit:
    @patch("lazy_release.pipeline.git")
    def test_release(self, mock_git: MagicMock, config: ReleaseConfig) -> None:
        mock_git.return_value = "Release packages (#9)\n\n[lazy-release]"
        assert is_last_commit_a_release_commit(config)

    @patch("lazy_release.pipeline.git")
    def test_regular(self, mock_git: MagicMock, config: ReleaseConfig) -> None:
        mock_git.return_value = "feat: x"
        assert not is_last_commit_a_release_commit(config)


class TestFindChangelogEntry:
    def _entry(self, name: str, is_root: bool = False) -> PackageChangelogEntry:
        heading = Heading(package_name=name, old_version="1.0.0", new_version="1.0.1", is_root=is_root)
        return PackageChangelogEntry(heading=heading, content="- x")

    def test_by_name(self, packages: dict[str, PackageInfo]) -> None:
        entries = [self._entry("pkg-b"), self._entry("pkg-a")]
        assert find_changelog_entry(packages["pkg-a"], entries) is entries[1]

    def test_root(self, packages: dict[str, PackageInfo]) -> None:
        entries = [self._entry("pkg-a"), self._entry("", is_root=True)]
        assert find_changelog_entry(packages["acme"], entries) is entries[1]
        assert find_changelog_entry(packages["pkg-c"], entries) is None


class TestPublish:
    BODY = (
        "# 👉 Changelog\n\n"
        "## 1.0.0➡️1.0.0\n\n- root\n\n"
        "## pkg-a@0.9.0➡️1.0.0\n\n### 🐛 Bug Fixes\n- Fix\n\n"
        "### ❤️ Contributors\n- Jane Doe (@jdoe)\n\n"
        "<!-- Release PR: [lazy-release] schema=1 -->"
    )

    @patch("lazy_release.pipeline.run")
    @patch("lazy_release.pipeline.gh")
    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.step")
    def test_tags_uploads_and_releases(
        self,
        mock_step: MagicMock,
        mock_git: MagicMock,
        mock_gh: MagicMock,
        mock_run: MagicMock,
        workspace: Path,
        config: ReleaseConfig,
    ) -> None:
        releases = publish(self.BODY, config, workspace)

        assert [pkg.name for pkg, _ in releases] == ["acme", "pkg-a"]
        assert mock_git.call_args_list == [
            call("tag", "v1.0.0"),
            call("tag", "pkg-a/v1.0.0"),
            call("push", "--tags"),
        ]
        mock_run.assert_any_call("uv", "build", "packages/pkg-a", "--out-dir", "dist/pkg-a")
        mock_run.assert_any_call("uv", "publish", "dist/pkg-a/*")
        mock_gh.assert_any_call(
            "release", "create", "pkg-a/v1.0.0", "--title", "pkg-a/v1.0.0",
            "--notes", "#### 🐛 Bug Fixes\n- Fix",
        )

    @patch("lazy_release.pipeline.run")
    @patch("lazy_release.pipeline.gh")
    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.step")
    def test_private_package_is_not_uploaded(
        self,
        mock_step: MagicMock,
        mock_git: MagicMock,
        mock_gh: MagicMock,
        mock_run: MagicMock,
        workspace: Path,
        config: ReleaseConfig,
    ) -> None:
        pyproject = workspace / "packages" / "pkg-a" / "pyproject.toml"
        pyproject.write_text(pyproject.read_text() + 'classifiers = ["Private :: Do Not Upload"]\n')

        publish(self.BODY, config, workspace)

        built = [c.args[2] for c in mock_run.call_args_list if c.args[1] == "build"]
        assert built == ["."]
        mock_git.assert_any_call("tag", "pkg-a/v1.0.0")

    @patch("lazy_release.pipeline.run")
    @patch("lazy_release.pipeline.gh")
    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.step")
    def test_no_headings(
        self,
        mock_step: MagicMock,
        mock_git: MagicMock,
        mock_gh: MagicMock,
        mock_run: MagicMock,
        workspace: Path,
        config: ReleaseConfig,
    ) -> None:
        assert publish("Just text", config, workspace) == []
        mock_git.assert_not_called()
        mock_run.assert_not_called()

    @patch("lazy_release.pipeline.git")
    @patch("lazy_release.pipeline.step")
    def test_corrupted_heading_stops_before_tagging(
        self, mock_step: MagicMock, mock_git: MagicMock, workspace: Path, config: ReleaseConfig
    ) -> None:
        with pytest.raises(HeadingFormatError):
            publish("## pkg-a@1.0➡️1.0.1\n\n- fix", config, workspace)
        mock_git.assert_not_called()
