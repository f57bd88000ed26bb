"""Dependency graph utilities.

Two questions are asked of the workspace dependency graph: which packages
depend (directly or transitively) on a set of changed packages, and in what
order those dependents should be listed so dependencies come first.
"""

from __future__ import annotations

from collections.abc import Iterable

from .models import PackageInfo


def reverse_dependencies(packages: dict[str, PackageInfo]) -> dict[str, list[str]]:
    """Map each package name to the names of packages depending on it."""
    reverse_deps: dict[str, list[str]] = {n: [] for n in packages}
    for name, info in packages.items():
        for dep in info.dependencies:
            if dep in reverse_deps:
                reverse_deps[dep].append(name)
    return reverse_deps


def find_dependents(
    packages: dict[str, PackageInfo], changed: Iterable[str]
) -> set[str]:
    """Find every package that depends on a changed package.

    Walks the reverse dependency edges breadth-first, so a package that
    depends on a dependent of a changed package is found too. The changed
    packages themselves are not part of the result.

    Args:
        packages: Map of package name → PackageInfo.
        changed: Names of packages with direct changes.

    Returns:
        Names of packages that only need a dependency refresh.
    """
    reverse_deps = reverse_dependencies(packages)
    changed_set = set(changed)
    seen = set(changed_set)
    queue = list(changed_set)
    while queue:
        node = queue.pop(0)
        for dependent in reverse_deps.get(node, []):
            if dependent not in seen:
                seen.add(dependent)
                queue.append(dependent)
    return seen - changed_set


def topo_sort(packages: dict[str, PackageInfo]) -> list[str]:
    """Topologically sort packages by their internal dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come
    before dependents. Ties are broken alphabetically for deterministic
    output.

    Args:
        packages: Map of package name → PackageInfo with dependencies.

    Returns:
        List of package names, dependencies first.

    Raises:
        RuntimeError: If a dependency cycle is detected.
    """
    in_degree = {n: 0 for n in packages}
    reverse_deps: dict[str, list[str]] = {n: [] for n in packages}

    for name, info in packages.items():
        for dep in info.dependencies:
            # Dependencies outside the given packages are already released
            if dep in packages:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    queue = sorted(n for n, d in in_degree.items() if d == 0)
    order: list[str] = []

    while queue:
        node = queue.pop(0)
        order.append(node)
        for dependent in sorted(reverse_deps[node]):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(order) != len(packages):
        remaining = set(packages) - set(order)
        raise RuntimeError(f"Dependency cycle detected involving: {remaining}")

    return order
