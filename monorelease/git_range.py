"""Git range resolution with tag discovery and shallow clone detection.

Resolves the ``(from, to)`` commit range a release plan covers. When no
explicit start is given, the most recent tag reachable from ``to`` is used.
Ranges that reach past the horizon of a shallow clone are never silently
truncated: either the history is fetched (``auto_unshallow``) or a
ShallowCloneError is raised.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from .errors import GitError, ShallowCloneError
from .models import GitRange
from .shell import git

PGP_SIGNATURE_MARKER = "-----BEGIN PGP SIGNATURE-----"
SSH_SIGNATURE_MARKER = "-----BEGIN SSH SIGNATURE-----"
UNSHALLOW_HINT = "git fetch --unshallow --tags"


def resolve_range(
    cwd: str | Path,
    *,
    from_: str | None = None,
    to: str = "HEAD",
    since_tag: str | None = None,
    auto_unshallow: bool = False,
    require_signed_tags: bool = False,
    report: Callable[[str], None] | None = None,
) -> GitRange:
    """Resolve the commit range to release.

    Priority for the start of the range: ``since_tag``, then ``from_``, then
    the last tag reachable from ``to``, then ``<to>~1``. When ``to`` has no
    parent either, the range covers all history.

    Args:
        cwd: Repository directory.
        from_: Explicit start revision.
        to: End revision (default HEAD).
        since_tag: Tag to start from; takes precedence over ``from_``.
        auto_unshallow: Fetch full history if the range needs it.
        require_signed_tags: Only consider signed tags during discovery.
        report: Optional progress callback.

    Raises:
        ShallowCloneError: If the range is not reachable in a shallow clone.
        GitError: If the range is unresolvable for any other reason.
    """
    explicit = since_tag or from_
    if explicit:
        ensure_history_depth(
            cwd, explicit, to, auto_unshallow=auto_unshallow, report=report
        )
        return GitRange(from_=explicit, to=to)

    tag = find_last_tag(cwd, to=to, require_signed=require_signed_tags)
    if tag:
        if report:
            report(f"Using last tag {tag} as range start")
        return GitRange(from_=tag, to=to)

    parent = f"{to}~1"
    resolved = git(
        "rev-parse", "--verify", "--quiet", f"{parent}^{{commit}}", cwd=cwd, check=False
    )
    if resolved:
        return GitRange(from_=parent, to=to)

    # Root commit: nothing to diff against
    return GitRange(from_=None, to=to)


def find_last_tag(
    cwd: str | Path, *, to: str = "HEAD", require_signed: bool = False
) -> str | None:
    """Find the most recent tag reachable from ``to``.

    Tags are ordered by creation date, newest first.

    Returns:
        The tag name, or None if no (signed) tag exists.
    """
    tags = git(
        "tag", "--list", "--merged", to, "--sort=-creatordate", cwd=cwd, check=False
    )
    candidates = tags.splitlines() if tags else []
    if require_signed:
        candidates = filter_signed_tags(cwd, candidates)
    return candidates[0] if candidates else None


def find_package_tag(
    cwd: str | Path, package: str, *, require_signed: bool = False
) -> str | None:
    """Find the most recent release tag for one package.

    Tags follow the pattern {package-name}/v{version} and are ordered by
    version, highest first.
    """
    tags = git(
        "tag", "--list", f"{package}/v*", "--sort=-v:refname", cwd=cwd, check=False
    )
    candidates = tags.splitlines() if tags else []
    if require_signed:
        candidates = filter_signed_tags(cwd, candidates)
    return candidates[0] if candidates else None


def find_last_tags(
    cwd: str | Path, packages: Iterable[str], *, require_signed: bool = False
) -> dict[str, str | None]:
    """Find the most recent release tag for each package.

    Returns:
        Map of package name to its last tag, or None if no tag exists.
    """
    return {
        name: find_package_tag(cwd, name, require_signed=require_signed)
        for name in packages
    }


def filter_signed_tags(cwd: str | Path, tags: Iterable[str]) -> list[str]:
    """Keep only annotated tags that carry a PGP or SSH signature.

    Lightweight tags and tags that cannot be read are dropped.
    """
    signed: list[str] = []
    for tag in tags:
        content = git("cat-file", "tag", tag, cwd=cwd, check=False)
        if PGP_SIGNATURE_MARKER in content or SSH_SIGNATURE_MARKER in content:
            signed.append(tag)
    return signed


def is_shallow(cwd: str | Path) -> bool:
    """Return True if the repository is a shallow clone."""
    return git("rev-parse", "--is-shallow-repository", cwd=cwd, check=False) == "true"


def ensure_history_depth(
    cwd: str | Path,
    from_: str,
    to: str = "HEAD",
    *,
    auto_unshallow: bool = False,
    report: Callable[[str], None] | None = None,
) -> None:
    """Verify that ``from_..to`` is walkable, unshallowing if allowed.

    The check is ``git rev-list --count from..to``. If it fails in a shallow
    clone, history is fetched once and the check retried (when
    ``auto_unshallow``), otherwise ShallowCloneError is raised. If it fails
    in a complete clone, the range is simply unresolvable.

    Raises:
        ShallowCloneError: History is missing and could not be fetched.
        GitError: The range does not resolve in a complete clone.
    """
    rev_range = f"{from_}..{to}"
    try:
        git("rev-list", "--count", rev_range, cwd=cwd)
        return
    except GitError as exc:
        if not is_shallow(cwd):
            raise GitError(
                f"Cannot resolve range {rev_range}",
                command=exc.command,
                returncode=exc.returncode,
                stderr=exc.stderr,
            ) from exc
        if not auto_unshallow:
            raise ShallowCloneError(
                f"Shallow clone detected: {rev_range} is outside the fetched history. "
                f"Enable auto_unshallow or run: {UNSHALLOW_HINT}",
                command=exc.command,
                returncode=exc.returncode,
                stderr=exc.stderr,
            ) from exc

    if report:
        report("Shallow clone detected. Fetching full history...")
    try:
        git("fetch", "--prune", "--unshallow", "--tags", cwd=cwd)
    except GitError as exc:
        raise ShallowCloneError(
            f"Shallow clone detected and the full history fetch failed. "
            f"Run manually: {UNSHALLOW_HINT}",
            command=exc.command,
            returncode=exc.returncode,
            stderr=exc.stderr,
        ) from exc

    try:
        git("rev-list", "--count", rev_range, cwd=cwd)
    except GitError as exc:
        raise ShallowCloneError(
            f"Range {rev_range} is still unreachable after fetching full history",
            command=exc.command,
            returncode=exc.returncode,
            stderr=exc.stderr,
        ) from exc
