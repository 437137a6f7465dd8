"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0").
"""

from __future__ import annotations

import semver

from .models import Bump


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Full semver strings (including prerelease/build metadata) parse as-is.
    Incomplete versions are padded with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "v1.2.3" → "1.2.3"
    """
    cleaned = version_str.strip().removeprefix("v")
    try:
        return semver.Version.parse(cleaned)
    except ValueError:
        parts = cleaned.split(".")
        # Pad with zeros to ensure we have at least 3 parts
        while len(parts) < 3:
            parts.append("0")
        return semver.Version.parse(".".join(parts[:3]))


def increment(version_str: str, bump: Bump) -> str:
    """Increment a version by one semver component.

    A "none" bump returns the normalized version unchanged. A prerelease
    whose base already satisfies the bump is released as that base, so
    "2.0.0-rc.1" + major → "2.0.0" and "1.1.0-rc.1" + minor → "1.1.0".

    Examples:
        increment("1.2.3", "minor") → "1.3.0"
        increment("2.3.0", "major") → "3.0.0"
        increment("1.1.1-rc.1", "minor") → "1.2.0"
    """
    version = parse_version(version_str)
    if bump == "none":
        return str(version)
    if version.prerelease:
        base = semver.Version(version.major, version.minor, version.patch)
        if (
            bump == "patch"
            or (bump == "minor" and version.patch == 0)
            or (bump == "major" and version.minor == 0 and version.patch == 0)
        ):
            return str(base)
        version = base
    if bump == "major":
        return str(version.bump_major())
    if bump == "minor":
        return str(version.bump_minor())
    return str(version.bump_patch())


def bump_patch(version_str: str) -> str:
    """Increment the patch version and return as a string.

    Examples:
        "1.2.3" → "1.2.4"
        "1.0" → "1.0.1"
        "2" → "2.0.1"
    """
    return increment(version_str, "patch")


def compute_next_version(
    current_version: str, bump: Bump, preid: str | None = None
) -> str:
    """Compute the next version, optionally as a prerelease.

    Without ``preid`` this is ``increment``. With ``preid`` the result is
    ``<incremented>-<preid>.1``, unless the current version already is a
    ``<preid>`` prerelease of that same base, in which case only its counter
    moves: "1.1.0-rc.1" + minor → "1.1.0-rc.2", but + major → "2.0.0-rc.1".

    Examples:
        compute_next_version("1.0.0", "minor") → "1.1.0"
        compute_next_version("1.0.0", "minor", "rc") → "1.1.0-rc.1"
        compute_next_version("1.1.0-rc.1", "minor", "rc") → "1.1.0-rc.2"
    """
    if bump == "none":
        return current_version
    target = increment(current_version, bump)
    if not preid:
        return target

    current = parse_version(current_version)
    base = f"{current.major}.{current.minor}.{current.patch}"
    if (
        current.prerelease
        and current.prerelease.split(".")[0] == preid
        and target == base
    ):
        return str(current.bump_prerelease(token=preid))
    return f"{target}-{preid}.1"


def max_version(versions: list[str], default: str = "0.0.0") -> str:
    """Return the highest version by semver precedence.

    Returns ``default`` when ``versions`` is empty.
    """
    if not versions:
        return default
    return max(versions, key=parse_version)
