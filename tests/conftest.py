"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit

from lazy_release.config import ReleaseConfig
from lazy_release.models import PackageInfo


@pytest.fixture
def config() -> ReleaseConfig:
    """Default configuration with a repository for links."""
    return ReleaseConfig(repository="acme/widgets")


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal~=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal==0.1", {include-group = "dev"}]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
"""
    return tomlkit.parse(content)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A uv workspace: root "acme" plus pkg-a, pkg-b (→ pkg-a), pkg-c (→ pkg-b)."""
    (tmp_path / "pyproject.toml").write_text(
        '[project]\nname = "acme"\nversion = "1.0.0"\n\n'
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    members = {
        "pkg-a": ("1.0.0", []),
        "pkg-b": ("2.1.0", ["pkg-a>=1.0"]),
        "pkg-c": ("0.3.0", ["pkg-b>=2.0", "requests>=2.0"]),
    }
    for name, (version, deps) in members.items():
        pkg_dir = tmp_path / "packages" / name
        pkg_dir.mkdir(parents=True)
        dep_list = ", ".join(f'"{d}"' for d in deps)
        (pkg_dir / "pyproject.toml").write_text(
            f'[project]\nname = "{name}"\nversion = "{version}"\n'
            f"dependencies = [{dep_list}]\n"
        )
    return tmp_path


@pytest.fixture
def packages() -> dict[str, PackageInfo]:
    """Packages matching the workspace fixture."""
    return {
        "acme": PackageInfo(name="acme", version="1.0.0", path=".", is_root=True),
        "pkg-a": PackageInfo(name="pkg-a", version="1.0.0", path="packages/pkg-a"),
        "pkg-b": PackageInfo(
            name="pkg-b", version="2.1.0", path="packages/pkg-b", dependencies=["pkg-a"]
        ),
        "pkg-c": PackageInfo(
            name="pkg-c", version="0.3.0", path="packages/pkg-c", dependencies=["pkg-b"]
        ),
    }

