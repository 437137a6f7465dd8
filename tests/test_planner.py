"""Tests for monorelease.planner."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from monorelease.config import PlanOptions
from monorelease.errors import GitError
from monorelease.models import Change, GitProvider, GitRange, PackageVersion
from monorelease.planner import plan_release
from monorelease.workspace import discover_packages

SHA_1 = "1" * 40
SHA_2 = "2" * 40

GITHUB = GitProvider(type="github", base_url="https://github.com/acme/mono")


@pytest.fixture
def packages(workspace: Path) -> dict[str, PackageVersion]:
    return discover_packages(workspace)


@patch("monorelease.planner.detect_provider")
@patch("monorelease.planner.parse_commits")
@patch("monorelease.planner.resolve_range")
class TestPlanRelease:
    """Tests for plan_release()."""

    def test_ripple_plan(
        self,
        mock_range: MagicMock,
        mock_parse: MagicMock,
        mock_provider: MagicMock,
        workspace: Path,
        packages: dict[str, PackageVersion],
        change_factory: Callable[..., Change],
    ) -> None:
        """A fix in pkg-a ripples to pkg-b and pkg-c, dependencies first."""
        mock_range.return_value = GitRange(from_="v1.0.0")
        mock_parse.return_value = [change_factory(type="fix", packages=["pkg-a"])]
        mock_provider.return_value = GITHUB

        plan = plan_release(workspace, packages, PlanOptions(policy="ripple"))

        assert plan.policy == "ripple"
        assert [p.name for p in plan.packages] == ["pkg-a", "pkg-b", "pkg-c"]
        assert [p.next_version for p in plan.packages] == ["1.0.1", "2.3.1", "0.4.2"]
        assert plan.decisions["pkg-c"].ripple_from == ["pkg-a"]
        assert plan.changes[0].provider_links is not None
        assert packages["pkg-a"].next_version is None

    def test_passes_options_through(
        self,
        mock_range: MagicMock,
        mock_parse: MagicMock,
        mock_provider: MagicMock,
        workspace: Path,
        packages: dict[str, PackageVersion],
    ) -> None:
        mock_range.return_value = GitRange(from_="v1.0.0")
        mock_parse.return_value = []
        mock_provider.return_value = GITHUB
        options = PlanOptions(
            since_tag="v1.0.0", auto_unshallow=True, exclude_types=["chore"], timeout=9
        )

        plan = plan_release(workspace, packages, options)

        assert plan.packages == []
        assert mock_range.call_args.kwargs["since_tag"] == "v1.0.0"
        assert mock_range.call_args.kwargs["auto_unshallow"]
        parse_kwargs = mock_parse.call_args.kwargs
        assert parse_kwargs["exclude_types"] == ["chore"]
        assert parse_kwargs["timeout"] == 9
        assert parse_kwargs["package_mapper"]("packages/pkg-b/x.py") == "pkg-b"

    def test_adaptive_picks_lockstep_on_major(
        self,
        mock_range: MagicMock,
        mock_parse: MagicMock,
        mock_provider: MagicMock,
        workspace: Path,
        packages: dict[str, PackageVersion],
        change_factory: Callable[..., Change],
    ) -> None:
        mock_range.return_value = GitRange(from_="v1.0.0")
        mock_parse.return_value = [
            change_factory(sha=SHA_1, type="fix", packages=["pkg-a"]),
            change_factory(sha=SHA_2, type="feat", packages=["pkg-b"], breaking=True),
        ]
        mock_provider.return_value = GITHUB

        plan = plan_release(workspace, packages, PlanOptions(policy="adaptive"))

        assert plan.policy == "lockstep"
        assert {p.name: p.next_version for p in plan.packages} == {
            "pkg-a": "3.0.0",
            "pkg-b": "3.0.0",
        }
        assert all(p.bump == "major" for p in plan.packages)

    def test_unknown_packages_ignored(
        self,
        mock_range: MagicMock,
        mock_parse: MagicMock,
        mock_provider: MagicMock,
        workspace: Path,
        packages: dict[str, PackageVersion],
        change_factory: Callable[..., Change],
    ) -> None:
        mock_range.return_value = GitRange()
        mock_parse.return_value = [change_factory(type="feat", packages=["ghost"])]
        mock_provider.return_value = GitProvider(type="generic")

        plan = plan_release(workspace, packages)

        assert plan.packages == []
        assert plan.decisions == {}

    def test_reports_phases(
        self,
        mock_range: MagicMock,
        mock_parse: MagicMock,
        mock_provider: MagicMock,
        workspace: Path,
        packages: dict[str, PackageVersion],
    ) -> None:
        mock_range.return_value = GitRange()
        mock_parse.return_value = []
        mock_provider.return_value = GITHUB
        messages: list[str] = []

        plan_release(workspace, packages, report=messages.append)

        assert messages == [
            "Resolving git range",
            "Parsing commits <root>..HEAD",
            "Versioning 0 packages (independent)",
        ]

    def test_git_failure_propagates(
        self,
        mock_range: MagicMock,
        mock_parse: MagicMock,
        mock_provider: MagicMock,
        workspace: Path,
        packages: dict[str, PackageVersion],
    ) -> None:
        mock_range.side_effect = GitError("Cannot resolve range nope..HEAD")

        with pytest.raises(GitError):
            plan_release(workspace, packages)
        mock_parse.assert_not_called()
