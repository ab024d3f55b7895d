from __future__ import annotations

import asyncio
import logging
from typing import Any

from rich.console import Group, RenderableType
from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget

from ..action import IssueAction
from ..github import Subject
from ..issueview import IssueViewController, Update
from ..messages import Command, TaskFinished
from .render import render_autocomplete, render_input_box, render_subject

logger = logging.getLogger(__name__)

SPINNER_INTERVAL = 0.1


class IssueView(Widget, can_focus=True):
    """Detail view of one issue or pull request.

    Key presses are routed through the controller; commands it returns run as
    asyncio tasks and their results come back as `CommandResult` messages, so
    the controller only ever sees one message at a time.
    """

    DEFAULT_CSS = """
    IssueView { height: auto; padding: 0 1; }
    """

    class ActionRequested(Message):
        """The controller asked the orchestrator to act (close, reopen, quote, editor)."""

        def __init__(self, action: IssueAction) -> None:
            self.action = action
            super().__init__()

    class CommandResult(Message):
        """A finished command's result, re-entering the update loop."""

        def __init__(self, payload: Any) -> None:
            self.payload = payload
            super().__init__()

    def __init__(self, controller: IssueViewController, id: str | None = None) -> None:
        super().__init__(id=id)
        self.controller = controller
        self._pending: set[asyncio.Task] = set()

    def on_mount(self) -> None:  # type: ignore[override]
        self.set_interval(SPINNER_INTERVAL, self._tick)

    def on_resize(self, event: events.Resize) -> None:
        self.controller.set_width(event.size.width)
        parent = self.parent
        if parent is not None and getattr(parent, "size", None) is not None:
            self.controller.set_main_content_height(parent.size.height)

    def _tick(self) -> None:
        if self.controller.autocomplete.is_loading:
            self.controller.autocomplete.tick()
            self.refresh(layout=True)

    def set_subject(self, subject: Subject | None) -> None:
        self.controller.set_subject(subject)
        self.refresh(layout=True)

    def render(self) -> RenderableType:
        subject = self.controller.subject
        if subject is None:
            return Text("Loading...", style="italic")
        parts: list[RenderableType] = [
            render_subject(subject, self.controller.width, self.controller.selected_comment_index)
        ]
        if self.controller.is_text_input_focused():
            parts.append(render_input_box(self.controller.input_box))
            autocomplete = render_autocomplete(self.controller.autocomplete)
            if autocomplete is not None:
                parts.append(autocomplete)
        return Group(*parts)

    def run_command(self, command: Command | None) -> None:
        """Run `command` in the background and post its result back to this view."""
        if command is None:
            return

        async def runner() -> None:
            try:
                result = await command()
            except Exception:
                logger.exception("Background command failed")
                return
            if result is not None:
                self.post_message(self.CommandResult(result))

        task = asyncio.create_task(runner())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def apply(self, update: Update) -> None:
        self.run_command(update.command)
        if update.action is not None:
            self.post_message(self.ActionRequested(update.action))
        self.refresh(layout=True)

    def _scroll_to_selection(self) -> None:
        percent = self.controller.comment_scroll_percent()
        parent = self.parent
        if percent < 0 or not isinstance(parent, Widget):
            return
        parent.scroll_to(y=parent.max_scroll_y * percent, animate=False)

    def on_key(self, event: events.Key) -> None:
        update = self.controller.update(event)
        self.apply(update)
        if self.controller.is_comment_nav_mode:
            self._scroll_to_selection()
        if update.handled:
            event.prevent_default()
            event.stop()

    def on_issue_view_command_result(self, message: CommandResult) -> None:
        # Task completions belong to the orchestrator; let them bubble.
        if isinstance(message.payload, TaskFinished):
            return
        message.stop()
        self.apply(self.controller.update(message.payload))
