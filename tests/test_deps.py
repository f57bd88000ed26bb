"""Tests for lazy_release.deps."""

from __future__ import annotations

from pathlib import Path

from lazy_release.deps import dep_canonical_name, rewrite_pyproject, update_dep_specifier
from lazy_release.toml import get_all_dependency_strings, load_pyproject


class TestDepCanonicalName:
    def test_simple_name(self) -> None:
        assert dep_canonical_name("requests") == "requests"

    def test_with_version_bound(self) -> None:
        assert dep_canonical_name("requests>=2.0,<3.0") == "requests"

    def test_with_extras(self) -> None:
        assert dep_canonical_name("requests[security]>=2.0") == "requests"

    def test_normalizes_underscores(self) -> None:
        assert dep_canonical_name("my_package>=1.0") == "my-package"

    def test_normalizes_case(self) -> None:
        assert dep_canonical_name("MyPackage>=1.0") == "mypackage"


class TestUpdateDepSpecifier:
    def test_keeps_lower_bound(self) -> None:
        assert update_dep_specifier("pkg-a>=1.0", "1.2.0") == "pkg-a>=1.2.0"

    def test_keeps_pin(self) -> None:
        assert update_dep_specifier("pkg-a==1.0.0", "1.2.0") == "pkg-a==1.2.0"

    def test_keeps_compatible_release(self) -> None:
        assert update_dep_specifier("pkg-a~=1.0", "1.2.0") == "pkg-a~=1.2.0"

    def test_range_becomes_lower_bound(self) -> None:
        assert update_dep_specifier("pkg-a>=1.0,<2", "2.0.0") == "pkg-a>=2.0.0"

    def test_upper_bound_becomes_lower_bound(self) -> None:
        assert update_dep_specifier("pkg-a<2", "2.0.0") == "pkg-a>=2.0.0"

    def test_unconstrained_is_untouched(self) -> None:
        assert update_dep_specifier("pkg-a", "1.2.0") == "pkg-a"

    def test_preserves_extras_sorted(self) -> None:
        assert update_dep_specifier("pkg[z,a]>=1.0", "3.0.0") == "pkg[a,z]>=3.0.0"

    def test_preserves_marker(self) -> None:
        result = update_dep_specifier('pkg-a>=1.0; python_version >= "3.10"', "1.1.0")
        assert result == 'pkg-a>=1.1.0; python_version >= "3.10"'


class TestRewritePyproject:
    def test_updates_version(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "2.0.0", {})
        content = tmp_pyproject.read_text()
        assert 'version = "2.0.0"' in content

    def test_updates_internal_deps_everywhere(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(
            tmp_pyproject,
            "2.0.0",
            {
                "internal-dep": "1.5.0",
                "another-internal": "0.6.0",
                "group-internal": "0.2.0",
            },
        )
        deps = get_all_dependency_strings(load_pyproject(tmp_pyproject))
        assert "internal-dep>=1.5.0" in deps
        assert "another-internal~=0.6.0" in deps
        assert "group-internal==0.2.0" in deps

    def test_leaves_external_deps(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "2.0.0", {"internal-dep": "1.5.0"})
        content = tmp_pyproject.read_text()
        assert '"requests>=2.0"' in content
        assert content.count('"pytest>=8.0"') == 2

    def test_keeps_include_group_tables(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "2.0.0", {"group-internal": "0.2.0"})
        assert "include-group" in tmp_pyproject.read_text()
