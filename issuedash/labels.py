from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .github import Label
from .messages import Command, LabelsFetched, LabelsFetchFailed
from .ui.autocomplete import Autocomplete

logger = logging.getLogger(__name__)

LabelFetcher = Callable[[str], Awaitable[list[Label]]]


@dataclass
class LabelCacheEntry:
    repo: str
    labels: list[Label]
    fetched_at: float


class LabelCache:
    """Per-repository label cache.

    Entries never expire on their own; they are replaced by a newer fetch or
    dropped with `evict`/`clear`.
    """

    def __init__(self) -> None:
        self._entries: dict[str, LabelCacheEntry] = {}

    def get(self, repo: str) -> LabelCacheEntry | None:
        return self._entries.get(repo)

    def put(self, repo: str, labels: list[Label]) -> LabelCacheEntry:
        entry = LabelCacheEntry(repo=repo, labels=list(labels), fetched_at=time.time())
        self._entries[repo] = entry
        return entry

    def evict(self, repo: str) -> bool:
        """Drop the entry for `repo`.

        Returns:
            True if an entry was removed.
        """
        return self._entries.pop(repo, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, repo: object) -> bool:
        return repo in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class LabelRequest:
    """Outcome of `LabelFetchCoordinator.request`: cached labels or a fetch to run."""

    labels: list[Label] | None = None
    command: Command | None = None


class LabelFetchCoordinator:
    """Serves label suggestions from the cache and fetches on a miss."""

    def __init__(self, fetch: LabelFetcher, cache: LabelCache | None = None) -> None:
        """Initialize the coordinator.

        Args:
            fetch: Async callable returning the labels of a repository.
            cache: Shared cache; a private one is created when omitted.
        """
        self._fetch = fetch
        self.cache = cache if cache is not None else LabelCache()

    def cached(self, repo: str) -> list[Label] | None:
        entry = self.cache.get(repo)
        return None if entry is None else entry.labels

    def request(self, repo: str, autocomplete: Autocomplete, force: bool = False) -> LabelRequest:
        """Return cached labels for `repo`, or a command that fetches them.

        Concurrent requests for the same repository are not de-duplicated; each
        miss yields its own fetch.

        Args:
            repo: Repository in "owner/repo" format.
            autocomplete: Panel put into its loading state on a miss.
            force: Evict any cached entry first.

        Returns:
            A `LabelRequest` with either `labels` or `command` set.
        """
        if force and self.cache.evict(repo):
            logger.debug(f"Evicted cached labels for {repo}")
        labels = self.cached(repo)
        if labels is not None:
            return LabelRequest(labels=labels)
        autocomplete.set_fetch_loading()
        return LabelRequest(command=self.fetch_command(repo))

    def fetch_command(self, repo: str) -> Command:
        """Build a command that fetches labels and reports the outcome as a message."""
        fetch = self._fetch

        async def fetch_labels() -> LabelsFetched | LabelsFetchFailed:
            try:
                labels = await fetch(repo)
            except Exception as e:
                logger.warning(f"Fetching labels for {repo} failed: {e}")
                return LabelsFetchFailed(repo=repo, error=e)
            return LabelsFetched(repo=repo, labels=labels)

        return fetch_labels

    def handle_fetched(self, msg: LabelsFetched) -> LabelCacheEntry:
        """Store a successful fetch. The only writer of the cache."""
        return self.cache.put(msg.repo, msg.labels)


def label_bounds(cursor: int, value: str) -> tuple[int, int]:
    """Return the [start, end) span of the comma-delimited token around `cursor`."""
    cursor = max(0, min(cursor, len(value)))
    start = value.rfind(",", 0, cursor) + 1
    end = value.find(",", cursor)
    return start, len(value) if end == -1 else end


def label_at_cursor(cursor: int, value: str) -> str:
    """Return the label being typed at `cursor`, trimmed.

    Args:
        cursor: Offset of the cursor in `value`.
        value: Comma-separated label text.

    Returns:
        The token between the nearest commas around the cursor.
    """
    start, end = label_bounds(cursor, value)
    return value[start:end].strip()


def all_labels(value: str) -> list[str]:
    """Return every non-empty label in a comma-separated string."""
    return [label.strip() for label in value.split(",") if label.strip()]


def replace_label_at_cursor(value: str, cursor: int, label: str) -> tuple[str, int]:
    """Replace the token at `cursor` with `label`.

    When the token is the last one a ", " separator is appended so the next
    label can be typed straight away.

    Returns:
        The new text and the new cursor offset (just after the inserted label,
        or after the separator when one was appended).
    """
    start, end = label_bounds(cursor, value)
    head = value[:start] + (" " if start > 0 else "") + label
    tail = value[end:]
    if tail:
        return head + tail, len(head)
    new_value = head + ", "
    return new_value, len(new_value)
