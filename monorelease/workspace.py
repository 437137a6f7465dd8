"""Workspace package discovery.

Reads [tool.uv.workspace].members from the root pyproject.toml to find
package directories, then builds a PackageVersion for each with its name,
version and internal dependencies.
"""

from __future__ import annotations

import glob
from collections.abc import Callable
from pathlib import Path

from .errors import WorkspaceError
from .models import PackageVersion
from .parser import PackageMapper, prefix_mapper
from .toml import (
    dep_canonical_name,
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    load_pyproject,
)


def discover_packages(
    root: str | Path, report: Callable[[str], None] | None = None
) -> dict[str, PackageVersion]:
    """Scan the workspace and discover all packages.

    Returns:
        Map of package name to PackageVersion, in member-glob order.

    Raises:
        WorkspaceError: If there is no root pyproject.toml, no workspace
            members are declared, or no member directory holds a package.
    """
    if report:
        report("Discovering workspace packages")

    root = Path(root).resolve()
    root_pyproject = root / "pyproject.toml"
    if not root_pyproject.exists():
        raise WorkspaceError(f"No pyproject.toml found in {root}")

    member_globs = get_workspace_member_globs(load_pyproject(root_pyproject))
    if not member_globs:
        raise WorkspaceError(
            "No [tool.uv.workspace] members defined in root pyproject.toml"
        )

    # Expand globs to find all package directories
    member_dirs: list[Path] = []
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if (p / "pyproject.toml").exists() and p not in member_dirs:
                member_dirs.append(p)

    if not member_dirs:
        raise WorkspaceError("No packages found matching workspace members")

    # First pass: collect basic info from each package
    packages: dict[str, PackageVersion] = {}
    raw_deps: dict[str, list[str]] = {}
    for d in member_dirs:
        doc = load_pyproject(d / "pyproject.toml")
        name = get_project_name(doc, d.name)
        packages[name] = PackageVersion(
            name=name,
            path=d.relative_to(root).as_posix(),
            current_version=get_project_version(doc),
        )
        raw_deps[name] = get_all_dependency_strings(doc)

    # Second pass: keep only internal deps (within workspace), no self-loops
    for name, deps in raw_deps.items():
        for dep_str in deps:
            dep_name = dep_canonical_name(dep_str)
            if (
                dep_name in packages
                and dep_name != name
                and dep_name not in packages[name].dependencies
            ):
                packages[name].dependencies.append(dep_name)

    return packages


def workspace_mapper(packages: dict[str, PackageVersion]) -> PackageMapper:
    """Path → package mapper for the discovered workspace layout."""
    return prefix_mapper({name: pkg.path for name, pkg in packages.items()})
