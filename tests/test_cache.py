"""Tests for monorelease.cache."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock, patch

from monorelease.cache import (
    CACHE_FILE,
    ChangeCache,
    diff_changes,
    get_cached_change,
    get_last_tag,
    graph_hash,
    is_cache_valid,
    load_cache,
    record_last_tags,
    save_cache,
    update_cache,
    update_last_tag,
)
from monorelease.models import Change, ProviderLinks

SHA_1 = "1" * 40
SHA_2 = "2" * 40

ChangeFactory = Callable[..., Change]


class TestLoadSaveCache:
    def test_missing(self, tmp_path: Path) -> None:
        assert load_cache(tmp_path) is None

    def test_round_trip(self, tmp_path: Path, change_factory: ChangeFactory) -> None:
        cache = update_cache(None, [change_factory(sha=SHA_1)], head=SHA_2)

        result = save_cache(tmp_path / ".cache", cache)

        assert result.ok
        assert result.path == str(tmp_path / ".cache" / CACHE_FILE)
        assert load_cache(tmp_path / ".cache") == cache

    def test_written_with_aliases(
        self, tmp_path: Path, change_factory: ChangeFactory
    ) -> None:
        save_cache(tmp_path, update_cache(None, [change_factory()], head=SHA_2))

        text = (tmp_path / CACHE_FILE).read_text()

        assert '"HEAD"' in text
        assert '"filesChanged"' in text

    def test_corrupt_cache_is_absent(self, tmp_path: Path) -> None:
        (tmp_path / CACHE_FILE).write_text("{not json")
        assert load_cache(tmp_path) is None

    def test_write_failure_reported(self, tmp_path: Path) -> None:
        blocker = tmp_path / "file"
        blocker.write_text("")

        result = save_cache(blocker / "sub", ChangeCache())

        assert not result.ok
        assert result.error


class TestUpdateCache:
    def test_merges_by_sha(self, change_factory: ChangeFactory) -> None:
        first = update_cache(None, [change_factory(sha=SHA_1)], graph_hash="g1")
        second = update_cache(first, [change_factory(sha=SHA_2)], head="h")

        assert set(second.commits) == {SHA_1, SHA_2}
        assert second.meta.graph_hash == "g1"
        assert second.meta.head == "h"
        assert set(first.commits) == {SHA_1}

    def test_get_cached_change(self, change_factory: ChangeFactory) -> None:
        cache = update_cache(None, [change_factory(sha=SHA_1)])
        assert get_cached_change(cache, SHA_1) is not None
        assert get_cached_change(cache, SHA_2) is None
        assert get_cached_change(None, SHA_1) is None


class TestGraphHash:
    def test_order_insensitive(self) -> None:
        assert graph_hash({"a": ["b", "c"], "b": []}) == graph_hash(
            {"b": [], "a": ["c", "b"]}
        )

    def test_changes_with_edges(self) -> None:
        assert graph_hash({"a": ["b"]}) != graph_hash({"a": []})


class TestIsCacheValid:
    def test_missing(self) -> None:
        assert not is_cache_valid(None, "g")

    def test_graph_mismatch(self) -> None:
        cache = update_cache(None, [], graph_hash="old")
        assert not is_cache_valid(cache, "new")
        assert is_cache_valid(cache, "old")

    def test_no_recorded_hash(self) -> None:
        assert is_cache_valid(ChangeCache(), "any")


class TestDiffChanges:
    def test_reports_drift_only(self, change_factory: ChangeFactory) -> None:
        cache = update_cache(
            None, [change_factory(sha=SHA_1), change_factory(sha=SHA_2)]
        )
        fresh = [
            change_factory(sha=SHA_1, subject="reworded"),
            change_factory(sha=SHA_2).model_copy(
                update={"provider_links": ProviderLinks(commit="https://x")}
            ),
            change_factory(sha="3" * 40),
        ]

        assert diff_changes(cache, fresh) == [SHA_1]


class TestLastTags:
    def test_update_and_get(self) -> None:
        cache = update_last_tag(None, "pkg-a", "pkg-a/v1.0.0", SHA_1)
        newer = update_last_tag(cache, "pkg-a", "pkg-a/v1.1.0", SHA_2)

        tag = get_last_tag(newer, "pkg-a")
        assert tag is not None
        assert (tag.tag, tag.sha) == ("pkg-a/v1.1.0", SHA_2)
        assert get_last_tag(cache, "pkg-a").tag == "pkg-a/v1.0.0"
        assert get_last_tag(newer, "pkg-b") is None
        assert get_last_tag(None, "pkg-a") is None

    def test_persisted(self, tmp_path: Path) -> None:
        cache = update_last_tag(None, "pkg-a", "pkg-a/v1.0.0", SHA_1)

        save_cache(tmp_path, cache)

        assert '"lastTags"' in (tmp_path / CACHE_FILE).read_text()
        assert load_cache(tmp_path) == cache

    @patch("monorelease.cache.git")
    @patch("monorelease.cache.find_last_tags")
    def test_record_last_tags(
        self, mock_find: MagicMock, mock_git: MagicMock
    ) -> None:
        mock_find.return_value = {"pkg-a": "pkg-a/v1.2.0", "pkg-b": None}
        mock_git.return_value = SHA_1

        cache = record_last_tags(None, "/repo", ["pkg-a", "pkg-b"])

        assert set(cache.last_tags) == {"pkg-a"}
        assert cache.last_tags["pkg-a"].sha == SHA_1
        mock_find.assert_called_once_with(
            "/repo", ["pkg-a", "pkg-b"], require_signed=False
        )
        mock_git.assert_called_once_with(
            "rev-list", "-n", "1", "pkg-a/v1.2.0", cwd="/repo"
        )
