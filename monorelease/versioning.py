"""Version bump detection and version policy implementation.

``compute_bump`` reduces one package's changes to a semver bump.
``apply_version_policy`` turns per-package bumps into final versions under
the independent, ripple or lockstep policy. Adaptive is a caller-level
choice between lockstep and independent, see ``select_adaptive_policy``.

Everything here is a pure function of its arguments.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .graph import DependencyGraph, dependents_closure
from .models import Bump, Change, Policy, PolicyChoice, Reason, VersionDecision
from .versions import compute_next_version, max_version

PATCH_TYPES = frozenset({"fix", "perf", "refactor"})
BUMP_RANK: dict[str, int] = {"none": 0, "patch": 1, "minor": 2, "major": 3}
DEFAULT_VERSION = "0.0.0"


def compute_bump(changes: Iterable[Change]) -> Bump:
    """Reduce a set of changes to a single bump.

    Priority, highest first:
    1. any breaking change → major
    2. any feat → minor
    3. any fix, perf or refactor → patch
    4. otherwise → none
    """
    changes = list(changes)
    if any(c.breaking for c in changes):
        return "major"
    if any(c.type == "feat" for c in changes):
        return "minor"
    if any(c.type in PATCH_TYPES for c in changes):
        return "patch"
    return "none"


def get_impact_reason(changes: Iterable[Change]) -> Reason:
    """Explain a bump with the highest-priority kind of change present."""
    changes = list(changes)
    if any(c.breaking for c in changes):
        return "breaking"
    if any(c.type == "feat" for c in changes):
        return "feat"
    if any(c.type == "fix" for c in changes):
        return "fix"
    if any(c.type == "perf" for c in changes):
        return "perf"
    return "manual"


def max_bump(bumps: Iterable[Bump]) -> Bump:
    """Return the largest bump (major > minor > patch > none)."""
    return max(bumps, key=BUMP_RANK.__getitem__, default="none")


def group_changes_by_package(changes: Iterable[Change]) -> dict[str, list[Change]]:
    """Map each package identifier to the changes touching it, in order."""
    grouped: dict[str, list[Change]] = {}
    for change in changes:
        for pkg in change.packages:
            grouped.setdefault(pkg, []).append(change)
    return grouped


def get_affected_packages(changes: Iterable[Change]) -> list[str]:
    """Packages touched by any change, in first-seen order."""
    return list(group_changes_by_package(changes))


def get_ripple_packages(package: str, dependency_graph: DependencyGraph) -> list[str]:
    """Packages that must be re-released when ``package`` changes.

    The transitive dependents of ``package``; cycles are tolerated.
    """
    return dependents_closure(package, dependency_graph)


def select_adaptive_policy(direct_bumps: Mapping[str, Bump]) -> Policy:
    """Pick lockstep when any package needs a major bump, else independent."""
    if any(bump == "major" for bump in direct_bumps.values()):
        return "lockstep"
    return "independent"


def apply_version_policy(
    changes: Iterable[Change],
    affected_packages: Iterable[str],
    current_versions: Mapping[str, str],
    policy: Policy,
    dependency_graph: DependencyGraph | None = None,
    *,
    preid: str | None = None,
) -> dict[str, VersionDecision]:
    """Decide the next version of every affected package.

    Args:
        changes: Parsed changes of the release range.
        affected_packages: Packages to version (normally those touched by
            ``changes``).
        current_versions: Current version per package. Missing entries are
            treated as 0.0.0.
        policy: "independent", "ripple" or "lockstep".
        dependency_graph: "Depends on" adjacency list, used by ripple.
        preid: Produce prerelease versions with this identifier.

    Returns:
        Map of package name → VersionDecision. Under ripple this includes
        dependents that were not directly changed.

    Policies:
    - independent: each package is bumped from its own changes.
    - ripple: independent, then every transitive dependent of an affected
      package that has no version yet gets a patch bump with reason
      "ripple" and ``ripple_from`` naming the affected packages it depends
      on. Without a dependency graph this is the same as independent.
    - lockstep: the largest bump over all changes is applied to the highest
      current version, and every affected package gets that same version.
    """
    by_package = group_changes_by_package(changes)
    affected = list(dict.fromkeys(affected_packages))

    if policy == "lockstep":
        return _lockstep(by_package, affected, current_versions, preid)

    result: dict[str, VersionDecision] = {}
    for pkg in affected:
        pkg_changes = by_package.get(pkg, [])
        bump = compute_bump(pkg_changes)
        result[pkg] = VersionDecision(
            next_version=compute_next_version(
                current_versions.get(pkg, DEFAULT_VERSION), bump, preid
            ),
            bump=bump,
            reason=get_impact_reason(pkg_changes),
        )

    if policy == "ripple" and dependency_graph:
        ripple_sources: dict[str, list[str]] = {}
        for pkg in affected:
            for dependent in get_ripple_packages(pkg, dependency_graph):
                sources = ripple_sources.setdefault(dependent, [])
                if pkg not in sources:
                    sources.append(pkg)

        for dependent, sources in ripple_sources.items():
            if dependent in result:
                continue
            result[dependent] = VersionDecision(
                next_version=compute_next_version(
                    current_versions.get(dependent, DEFAULT_VERSION), "patch", preid
                ),
                bump="patch",
                reason="ripple",
                ripple_from=sources,
            )

    return result


def _lockstep(
    by_package: Mapping[str, list[Change]],
    affected: list[str],
    current_versions: Mapping[str, str],
    preid: str | None,
) -> dict[str, VersionDecision]:
    bump = max_bump(compute_bump(by_package.get(pkg, [])) for pkg in affected)
    # Dedupe by sha: a change touching several packages counts once
    unique = {c.sha: c for pkg in affected for c in by_package.get(pkg, [])}
    reason = get_impact_reason(unique.values())

    participating = list(current_versions.values()) + [
        current_versions.get(pkg, DEFAULT_VERSION) for pkg in affected
    ]
    highest = max_version(participating, default=DEFAULT_VERSION)
    next_version = compute_next_version(highest, bump, preid)

    return {
        pkg: VersionDecision(next_version=next_version, bump=bump, reason=reason)
        for pkg in affected
    }


def resolve_policy(
    choice: PolicyChoice,
    changes: Iterable[Change],
    affected_packages: Iterable[str],
) -> Policy:
    """Turn a configured policy into a concrete one.

    Adaptive inspects each affected package's direct bump; the other
    choices are returned unchanged.
    """
    if choice != "adaptive":
        return choice
    by_package = group_changes_by_package(changes)
    direct = {pkg: compute_bump(by_package.get(pkg, [])) for pkg in affected_packages}
    return select_adaptive_policy(direct)
