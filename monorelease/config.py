"""Release planning options.

Options live in the optional [tool.monorelease] table of the workspace root
pyproject.toml. Keys may be written kebab-case or snake_case.

    [tool.monorelease]
    policy = "ripple"
    ignore-authors = ["*[bot]"]
    exclude-types = ["chore"]
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .models import PolicyChoice
from .toml import get_tool_table, load_pyproject

DEFAULT_IGNORE_AUTHORS = ["*[bot]", "dependabot*", "renovate*"]


class PlanOptions(BaseModel):
    """Knobs for resolving, parsing and versioning a release range.

    Attributes:
        from_: Explicit range start (``from`` in TOML).
        since_tag: Tag to start from; wins over ``from_``.
        auto_unshallow: Fetch full history when a shallow clone is too short.
        require_signed_tags: Only signed tags count when discovering the start.
        ignore_authors: Glob patterns of commit authors to drop.
        policy: Version policy, or "adaptive" to choose per release.
        base_url: Web URL of the repository for provider links.
        preid: Prerelease identifier (e.g. "rc").
        package_path: Restrict the log to one path.
        max_count: Cap on commits walked.
        timeout: Seconds allowed for each git invocation.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_: str | None = Field(default=None, alias="from")
    to: str = "HEAD"
    since_tag: str | None = None
    auto_unshallow: bool = False
    require_signed_tags: bool = False
    ignore_authors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_IGNORE_AUTHORS)
    )
    include_types: list[str] | None = None
    exclude_types: list[str] | None = None
    policy: PolicyChoice = "independent"
    base_url: str | None = None
    preid: str | None = None
    package_path: str | None = None
    max_count: int | None = Field(default=None, gt=0)
    timeout: float | None = Field(default=None, gt=0)


def load_options(root: str | Path, **overrides: Any) -> PlanOptions:
    """Load PlanOptions from the root pyproject.toml.

    A missing file or table gives the defaults. Keyword overrides (snake_case)
    take precedence over the file.

    Raises:
        pydantic.ValidationError: If the table holds unknown keys or bad values.
    """
    pyproject = Path(root) / "pyproject.toml"
    values: dict[str, Any] = {}
    if pyproject.exists():
        table = get_tool_table(load_pyproject(pyproject), "monorelease")
        values = {key.replace("-", "_"): value for key, value in table.items()}
    if "from" in values:
        values["from_"] = values.pop("from")
    values.update({k: v for k, v in overrides.items() if v is not None})
    return PlanOptions.model_validate(values)
