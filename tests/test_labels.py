from __future__ import annotations

import pytest

from issuedash.github import Label
from issuedash.labels import (
    LabelCache,
    LabelFetchCoordinator,
    all_labels,
    label_at_cursor,
    replace_label_at_cursor,
)
from issuedash.messages import LabelsFetched, LabelsFetchFailed
from issuedash.ui.autocomplete import Autocomplete, FetchStatus


class FakeFetcher:
    """Records calls and returns canned labels (or raises)."""

    def __init__(self, labels: list[Label] | None = None, error: Exception | None = None) -> None:
        self.labels = labels or []
        self.error = error
        self.calls: list[str] = []

    async def __call__(self, repo: str) -> list[Label]:
        self.calls.append(repo)
        if self.error is not None:
            raise self.error
        return self.labels


def labels(*names: str) -> list[Label]:
    return [Label(name=n) for n in names]


def test_cache_put_get_evict_clear() -> None:
    cache = LabelCache()
    assert cache.get("o/r") is None

    entry = cache.put("o/r", labels("bug"))
    assert cache.get("o/r") is entry
    assert "o/r" in cache and len(cache) == 1
    assert entry.fetched_at > 0

    assert cache.evict("o/r") is True
    assert cache.evict("o/r") is False
    assert cache.get("o/r") is None

    cache.put("a/b", [])
    cache.put("c/d", [])
    cache.clear()
    assert len(cache) == 0


def test_cache_copies_label_list() -> None:
    cache = LabelCache()
    source = labels("bug")
    cache.put("o/r", source)
    source.append(Label(name="late"))
    assert [label.name for label in cache.get("o/r").labels] == ["bug"]


def test_request_hits_cache_without_fetch() -> None:
    fetcher = FakeFetcher()
    coordinator = LabelFetchCoordinator(fetcher)
    coordinator.cache.put("o/r", labels("bug", "ui"))
    ac = Autocomplete()

    request = coordinator.request("o/r", ac)

    assert [label.name for label in request.labels] == ["bug", "ui"]
    assert request.command is None
    assert ac.status is FetchStatus.IDLE


@pytest.mark.asyncio
async def test_request_miss_returns_fetch_command_and_does_not_write_cache() -> None:
    fetcher = FakeFetcher(labels("bug", "wip"))
    coordinator = LabelFetchCoordinator(fetcher)
    ac = Autocomplete()

    request = coordinator.request("o/r", ac)

    assert request.labels is None
    assert ac.is_loading
    assert fetcher.calls == []  # nothing runs until the command does

    msg = await request.command()
    assert isinstance(msg, LabelsFetched)
    assert msg.repo == "o/r"
    assert fetcher.calls == ["o/r"]
    # Only handle_fetched writes the cache
    assert coordinator.cached("o/r") is None

    coordinator.handle_fetched(msg)
    assert [label.name for label in coordinator.cached("o/r")] == ["bug", "wip"]


@pytest.mark.asyncio
async def test_fetch_failure_becomes_message() -> None:
    boom = RuntimeError("boom")
    coordinator = LabelFetchCoordinator(FakeFetcher(error=boom))

    msg = await coordinator.fetch_command("o/r")()

    assert isinstance(msg, LabelsFetchFailed)
    assert msg.error is boom
    assert coordinator.cached("o/r") is None


def test_forced_request_evicts_and_issues_one_fetch() -> None:
    coordinator = LabelFetchCoordinator(FakeFetcher())
    coordinator.cache.put("o/r", labels("stale"))
    ac = Autocomplete()

    request = coordinator.request("o/r", ac, force=True)

    assert request.labels is None
    assert request.command is not None
    assert "o/r" not in coordinator.cache


def test_shared_cache_is_visible_across_coordinators() -> None:
    cache = LabelCache()
    first = LabelFetchCoordinator(FakeFetcher(), cache)
    second = LabelFetchCoordinator(FakeFetcher(), cache)
    first.handle_fetched(LabelsFetched(repo="o/r", labels=labels("bug")))
    assert second.request("o/r", Autocomplete()).labels is not None


@pytest.mark.parametrize(
    ("value", "cursor", "expected"),
    [
        ("bug, ui, ", 9, ""),
        ("bug, ui", 7, "ui"),
        ("bug, ui", 2, "bug"),
        ("bug,  wo", 8, "wo"),
        ("", 0, ""),
        ("bug", 99, "bug"),
    ],
)
def test_label_at_cursor(value: str, cursor: int, expected: str) -> None:
    assert label_at_cursor(cursor, value) == expected


def test_all_labels_skips_blanks() -> None:
    assert all_labels("bug, ui, , ") == ["bug", "ui"]
    assert all_labels("") == []


def test_replace_last_label_appends_separator() -> None:
    value, cursor = replace_label_at_cursor("bug, wo", 7, "wontfix")
    assert value == "bug, wontfix, "
    assert cursor == len(value)


def test_replace_first_label_keeps_tail() -> None:
    value, cursor = replace_label_at_cursor("b, ui", 1, "bug")
    assert value == "bug, ui"
    assert value[:cursor] == "bug"
