"""Release planner: resolve → parse → link → version.

Wires the core together the way a release command uses it:
1. Resolve the commit range (tags, shallow clone handling)
2. Parse the range once into Change records
3. Attach provider links to every change
4. Group changes by package and pick the concrete policy
5. Apply the policy across the workspace and record the result on each
   PackageVersion

The plan is all-or-nothing: any git failure propagates and no partial plan
is returned.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

from .config import PlanOptions
from .git_range import resolve_range
from .graph import build_dependency_graph, topo_sort
from .models import PackageVersion, ReleasePlan
from .parser import parse_commits
from .providers import detect_provider, enhance_change
from .versioning import apply_version_policy, get_affected_packages, resolve_policy
from .workspace import workspace_mapper


def plan_release(
    cwd: str | Path,
    packages: Mapping[str, PackageVersion],
    options: PlanOptions | None = None,
    *,
    report: Callable[[str], None] | None = None,
) -> ReleasePlan:
    """Compute a versioned release plan for a workspace.

    Args:
        cwd: Repository root.
        packages: Discovered workspace packages by name. They are copied,
            not modified.
        options: Planning options; defaults when omitted.
        report: Optional progress callback (e.g. ``shell.step``).

    Returns:
        ReleasePlan whose ``packages`` are the packages that get a new
        version, ordered dependencies first.

    Raises:
        GitError: If the range cannot be resolved or parsed.
    """
    options = options or PlanOptions()
    notify = report or (lambda _msg: None)

    notify("Resolving git range")
    git_range = resolve_range(
        cwd,
        from_=options.from_,
        to=options.to,
        since_tag=options.since_tag,
        auto_unshallow=options.auto_unshallow,
        require_signed_tags=options.require_signed_tags,
        report=report,
    )

    notify(f"Parsing commits {git_range.from_ or '<root>'}..{git_range.to}")
    changes = parse_commits(
        cwd,
        git_range,
        ignore_authors=options.ignore_authors,
        include_types=options.include_types,
        exclude_types=options.exclude_types,
        package_path=options.package_path,
        package_mapper=workspace_mapper(dict(packages)) if packages else None,
        max_count=options.max_count,
        timeout=options.timeout,
    )

    provider = detect_provider(cwd, options.base_url)
    changes = [enhance_change(change, provider) for change in changes]

    affected = [pkg for pkg in get_affected_packages(changes) if pkg in packages]
    policy = resolve_policy(options.policy, changes, affected)
    graph = build_dependency_graph(packages.values())

    notify(f"Versioning {len(affected)} packages ({policy})")
    decisions = apply_version_policy(
        changes,
        affected,
        {name: pkg.current_version for name, pkg in packages.items()},
        policy,
        graph,
        preid=options.preid,
    )

    planned: list[PackageVersion] = []
    for name in topo_sort(graph, strict=False):
        decision = decisions.get(name)
        if decision is None or decision.bump == "none":
            continue
        planned.append(
            packages[name].model_copy(
                update={"next_version": decision.next_version, "bump": decision.bump}
            )
        )

    return ReleasePlan(
        range=git_range,
        policy=policy,
        changes=changes,
        packages=planned,
        decisions=decisions,
    )
