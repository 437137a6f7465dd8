"""Data models for monorelease.

These Pydantic models represent the records passed between the parser, the
version strategy engine and whatever renders or persists a release plan.
Fields are snake_case in Python and serialize to camelCase names with
``model_dump(by_alias=True)``.
"""

from __future__ import annotations

from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CommitType = Literal[
    "feat",
    "fix",
    "perf",
    "refactor",
    "docs",
    "build",
    "ci",
    "test",
    "chore",
    "revert",
    "style",
]
COMMIT_TYPES: tuple[str, ...] = get_args(CommitType)

Bump = Literal["major", "minor", "patch", "none"]
PlannedBump = Literal["major", "minor", "patch", "none", "auto"]
Reason = Literal["breaking", "feat", "fix", "perf", "ripple", "manual"]
Policy = Literal["independent", "ripple", "lockstep"]
PolicyChoice = Literal["independent", "ripple", "lockstep", "adaptive"]
ProviderType = Literal["github", "gitlab", "generic"]


class Model(BaseModel):
    """Base model with camelCase aliases for serialization."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Author(Model):
    name: str
    email: str


class BreakingChange(Model):
    summary: str


class Reference(Model):
    """An issue or pull request mentioned in a commit footer."""

    model_config = ConfigDict(frozen=True)

    type: Literal["issue", "pr"]
    id: str
    url: str | None = None


class ProviderLinks(Model):
    commit: str | None = None
    pr: list[str] | None = None
    issues: list[str] | None = None


class Change(Model):
    """One non-merge commit translated into a structured record.

    Attributes:
        sha: Full 40-character commit hash. Unique within a parse.
        type: Conventional commit type; unknown types are normalized to chore.
        scope: Optional scope from the commit header.
        subject: Header text after the type prefix (or the whole header).
        body: Commit body with surrounding whitespace removed.
        breaking: Breaking change notes from a ``!`` header or footer.
        refs: Issues and pull requests referenced in footers.
        packages: Package identifiers derived from ``files_changed``.
        files_changed: Paths touched by the commit, renames expanded.
        timestamp: Author date, ISO-8601.
        provider_links: Host URLs, attached after parsing.
    """

    model_config = ConfigDict(frozen=True)

    sha: str
    type: CommitType
    scope: str | None = None
    subject: str
    body: str = ""
    breaking: list[BreakingChange] = Field(default_factory=list)
    refs: list[Reference] = Field(default_factory=list)
    author: Author
    co_authors: list[Author] = Field(default_factory=list)
    packages: list[str] = Field(default_factory=list)
    files_changed: list[str] = Field(default_factory=list)
    timestamp: str
    is_revert: bool = False
    revert_of: str | None = None
    cherry_pick_of: str | None = None
    provider_links: ProviderLinks | None = None


class GitRange(Model):
    """A commit range. ``from_`` of None means all history reachable from ``to``."""

    from_: str | None = Field(default=None, alias="from")
    to: str = "HEAD"

    @property
    def is_full_history(self) -> bool:
        return not self.from_ or self.from_.endswith("^")


class GitProvider(Model):
    type: ProviderType
    base_url: str | None = None


class PackageVersion(Model):
    """A workspace package and its planned version.

    Attributes:
        name: Canonical package name.
        path: Relative path from workspace root to the package directory.
        current_version: Version declared by the package today.
        next_version: Version planned for the release.
        bump: Planned bump; "auto" until a strategy has been applied.
        dependencies: Internal (workspace) dependency names.
    """

    name: str
    path: str
    current_version: str
    next_version: str | None = None
    bump: PlannedBump = "auto"
    is_published: bool = True
    dependencies: list[str] = Field(default_factory=list)


class VersionDecision(Model):
    """The version a strategy assigned to one package, and why."""

    next_version: str
    bump: Bump
    reason: Reason
    ripple_from: list[str] | None = None


class ReleasePlan(Model):
    range: GitRange
    policy: Policy
    changes: list[Change] = Field(default_factory=list)
    packages: list[PackageVersion] = Field(default_factory=list)
    decisions: dict[str, VersionDecision] = Field(default_factory=dict)
