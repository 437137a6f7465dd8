"""Dependency graph utilities.

The graph is an adjacency list of "depends on" edges: ``graph[a]`` lists
the packages ``a`` depends on. Provides the dependents closure used to
ripple version bumps and a topological order for presenting a plan.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import PackageVersion

DependencyGraph = Mapping[str, Iterable[str]]


def build_dependency_graph(packages: Iterable[PackageVersion]) -> dict[str, list[str]]:
    """Build the adjacency list from package records, dropping self-loops."""
    return {
        pkg.name: [dep for dep in pkg.dependencies if dep != pkg.name]
        for pkg in packages
    }


def reverse_dependencies(graph: DependencyGraph) -> dict[str, list[str]]:
    """Map each package to the packages that directly depend on it."""
    reverse: dict[str, list[str]] = {}
    for name, deps in graph.items():
        for dep in deps:
            if dep == name:
                continue
            dependents = reverse.setdefault(dep, [])
            if name not in dependents:
                dependents.append(name)
    return reverse


def dependents_closure(package: str, graph: DependencyGraph) -> list[str]:
    """All packages that depend on ``package``, directly or transitively.

    Breadth-first over reverse edges. A visited set guards against cycles,
    so every package is expanded at most once and appears at most once in
    the result. ``package`` itself is never included.

    Example:
        If B depends on A and C depends on B:
        dependents_closure("A", graph) → ["B", "C"]
    """
    reverse = reverse_dependencies(graph)
    visited = {package}
    order: list[str] = []
    queue = [package]
    while queue:
        node = queue.pop(0)
        for dependent in reverse.get(node, []):
            if dependent not in visited:
                visited.add(dependent)
                order.append(dependent)
                queue.append(dependent)
    return order


def topo_sort(graph: DependencyGraph, *, strict: bool = True) -> list[str]:
    """Topologically sort packages by their internal dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come
    before dependents. Packages that become ready together are sorted
    alphabetically for deterministic output. Dependencies outside the
    graph's keys are ignored.

    Args:
        graph: Map of package name → names it depends on.
        strict: If True, raise on a cycle. If False, append the packages
            stuck in cycles alphabetically after the sorted ones.

    Raises:
        RuntimeError: If a dependency cycle is detected and ``strict``.

    Example:
        If A depends on B, and B depends on C:
        topo_sort({A: [B], B: [C], C: []}) → [C, B, A]
    """
    # Count incoming edges (dependencies) for each package
    in_degree = {n: 0 for n in graph}
    # Track reverse dependencies (who depends on each package)
    reverse_deps: dict[str, list[str]] = {n: [] for n in graph}

    for name, deps in graph.items():
        for dep in set(deps):
            # Only count dependencies that are within the graph being sorted
            if dep in graph and dep != name:
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

    if len(order) != len(in_degree):
        remaining = sorted(set(in_degree) - set(order))
        if strict:
            raise RuntimeError(f"Dependency cycle detected involving: {remaining}")
        order.extend(remaining)

    return order
