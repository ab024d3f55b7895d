from __future__ import annotations

import asyncio
from collections.abc import Iterable
from enum import Enum

from ..messages import ClearFetchStatus, Command, FetchSuggestionsRequested

SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
CLEAR_STATUS_DELAY = 2.0
MAX_VISIBLE_SUGGESTIONS = 5


class FetchStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class Autocomplete:
    """Suggestion dropdown shown under the input box while labeling.

    Holds the full suggestion set, the filtered subset for the active token,
    the highlighted entry and the status of the fetch feeding it.
    """

    def __init__(self, clear_delay: float = CLEAR_STATUS_DELAY) -> None:
        self.suggestions: list[str] = []
        self.filtered: list[str] = []
        self.selected = 0
        self.visible = False
        self.status = FetchStatus.IDLE
        self.error: Exception | None = None
        self.frame = 0
        self.width = 40
        self.clear_delay = clear_delay

    def set_width(self, width: int) -> None:
        self.width = max(1, width)

    def set_suggestions(self, suggestions: Iterable[str] | None) -> None:
        self.suggestions = list(suggestions or [])
        self.filtered = []
        self.selected = 0

    def show(self, prefix: str, exclude: Iterable[str]) -> None:
        """Filter suggestions by `prefix` (case-insensitive) and display them.

        Args:
            prefix: The active token under the cursor.
            exclude: Values already present in the input.
        """
        excluded = set(exclude)
        needle = prefix.lower()
        self.filtered = [s for s in self.suggestions if s not in excluded and s.lower().startswith(needle)]
        self.selected = 0
        self.visible = True

    def hide(self) -> None:
        self.visible = False

    def reset(self) -> None:
        self.set_suggestions(None)
        self.visible = False
        self.status = FetchStatus.IDLE
        self.error = None

    @property
    def has_suggestions(self) -> bool:
        return self.visible and bool(self.filtered)

    def select_next(self) -> None:
        if self.filtered:
            self.selected = (self.selected + 1) % len(self.filtered)

    def select_prev(self) -> None:
        if self.filtered:
            self.selected = (self.selected - 1) % len(self.filtered)

    def selected_suggestion(self) -> str | None:
        if not self.has_suggestions:
            return None
        return self.filtered[self.selected]

    def visible_window(self) -> list[str]:
        """Return at most `MAX_VISIBLE_SUGGESTIONS` entries around the selection."""
        start = max(0, self.selected - MAX_VISIBLE_SUGGESTIONS + 1)
        return self.filtered[start : start + MAX_VISIBLE_SUGGESTIONS]

    @property
    def is_loading(self) -> bool:
        return self.status is FetchStatus.LOADING

    @property
    def spinner(self) -> str:
        return SPINNER_FRAMES[self.frame % len(SPINNER_FRAMES)]

    def tick(self) -> None:
        if self.is_loading:
            self.frame += 1

    def set_fetch_loading(self) -> None:
        self.status = FetchStatus.LOADING
        self.error = None
        self.frame = 0

    def set_fetch_success(self) -> Command:
        """Mark the fetch as done; returns a command that clears the status later."""
        self.status = FetchStatus.SUCCESS
        self.error = None
        return self._clear_status_later()

    def set_fetch_error(self, error: Exception) -> Command:
        """Record a failed fetch; returns a command that clears the status later."""
        self.status = FetchStatus.ERROR
        self.error = error
        return self._clear_status_later()

    def request_refresh(self) -> Command:
        """Command asking the owner to drop cached labels and fetch them again."""

        async def request() -> FetchSuggestionsRequested:
            return FetchSuggestionsRequested(force=True)

        return request

    def clear_fetch_status(self) -> None:
        # A newer fetch may have started since the clear was scheduled.
        if self.status is FetchStatus.LOADING:
            return
        self.status = FetchStatus.IDLE
        self.error = None

    def _clear_status_later(self) -> Command:
        delay = self.clear_delay

        async def clear() -> ClearFetchStatus:
            await asyncio.sleep(delay)
            return ClearFetchStatus()

        return clear
