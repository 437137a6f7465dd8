"""Persistent cache of parsed changes.

Parsed Change records are stored by sha in ``<cache_dir>/cache.json``
together with a hash of the dependency graph and the HEAD they were parsed
at, plus the last release tag of each package. Because a commit always
parses to the same record, a cached parse can be diffed against a fresh one
to spot drift.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .git_range import find_last_tags
from .graph import DependencyGraph
from .models import Change, Model
from .shell import git

CACHE_FILE = "cache.json"


class CacheMeta(Model):
    graph_hash: str = ""
    head: str = Field(default="", alias="HEAD")


class TagRef(Model):
    tag: str
    sha: str


class ChangeCache(Model):
    meta: CacheMeta = Field(default_factory=CacheMeta)
    commits: dict[str, Change] = Field(default_factory=dict)
    last_tags: dict[str, TagRef] = Field(default_factory=dict)


class WriteResult(BaseModel):
    """Outcome of a cache write. ``error`` is set when ``ok`` is False."""

    ok: bool
    path: str
    error: str | None = None


def load_cache(cache_dir: str | Path) -> ChangeCache | None:
    """Load the cache, or None if it is missing or unreadable.

    A corrupt cache is treated as absent so it gets rebuilt.
    """
    path = Path(cache_dir) / CACHE_FILE
    if not path.exists():
        return None
    try:
        return ChangeCache.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError):
        return None


def save_cache(cache_dir: str | Path, cache: ChangeCache) -> WriteResult:
    """Write the cache to disk, reporting failure instead of raising."""
    path = Path(cache_dir) / CACHE_FILE
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            cache.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )
    except OSError as exc:
        return WriteResult(ok=False, path=str(path), error=str(exc))
    return WriteResult(ok=True, path=str(path))


def update_cache(
    cache: ChangeCache | None,
    changes: Iterable[Change],
    *,
    graph_hash: str | None = None,
    head: str | None = None,
) -> ChangeCache:
    """Return a new cache with ``changes`` merged in by sha."""
    base = cache or ChangeCache()
    commits = dict(base.commits)
    commits.update((c.sha, c) for c in changes)
    meta = base.meta.model_copy(
        update={
            k: v
            for k, v in {"graph_hash": graph_hash, "head": head}.items()
            if v is not None
        }
    )
    return base.model_copy(update={"commits": commits, "meta": meta})


def get_cached_change(cache: ChangeCache | None, sha: str) -> Change | None:
    if cache is None:
        return None
    return cache.commits.get(sha)


def graph_hash(graph: DependencyGraph) -> str:
    """Stable sha256 of a dependency graph (order-insensitive)."""
    canonical = {name: sorted(set(deps)) for name, deps in graph.items()}
    payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode()).hexdigest()


def is_cache_valid(cache: ChangeCache | None, current_graph_hash: str | None) -> bool:
    """A cache is valid unless missing or built for a different graph."""
    if cache is None:
        return False
    if current_graph_hash and cache.meta.graph_hash:
        return cache.meta.graph_hash == current_graph_hash
    return True


def diff_changes(cache: ChangeCache, fresh: Iterable[Change]) -> list[str]:
    """Shas whose fresh record differs from the cached one.

    Commits absent from the cache are not reported. Provider links are
    ignored since they are added after parsing.
    """
    drifted: list[str] = []
    for change in fresh:
        cached = cache.commits.get(change.sha)
        if cached is None:
            continue
        if cached.model_dump(exclude={"provider_links"}) != change.model_dump(
            exclude={"provider_links"}
        ):
            drifted.append(change.sha)
    return drifted


def update_last_tag(
    cache: ChangeCache | None, package: str, tag: str, sha: str
) -> ChangeCache:
    """Return a new cache recording ``tag`` (at ``sha``) as the package's last tag."""
    base = cache or ChangeCache()
    last_tags = dict(base.last_tags)
    last_tags[package] = TagRef(tag=tag, sha=sha)
    return base.model_copy(update={"last_tags": last_tags})


def get_last_tag(cache: ChangeCache | None, package: str) -> TagRef | None:
    if cache is None:
        return None
    return cache.last_tags.get(package)


def record_last_tags(
    cache: ChangeCache | None,
    cwd: str | Path,
    packages: Iterable[str],
    *,
    require_signed: bool = False,
) -> ChangeCache:
    """Look up each package's latest ``<name>/v*`` tag and store it.

    Packages without a tag are left as they were.

    Raises:
        GitError: If a found tag cannot be resolved to a commit.
    """
    result = cache or ChangeCache()
    for package, tag in find_last_tags(
        cwd, packages, require_signed=require_signed
    ).items():
        if tag is None:
            continue
        sha = git("rev-list", "-n", "1", tag, cwd=cwd)
        result = update_last_tag(result, package, tag, sha)
    return result
