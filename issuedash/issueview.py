from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .action import IssueAction, IssueActionType
from .activity import sorted_comments
from .context import ProgramContext
from .github import Comment, Subject, label_names
from .keys import IssueKeys, key_matches
from .labels import LabelFetchCoordinator, all_labels, label_at_cursor, replace_label_at_cursor
from .messages import (
    ClearFetchStatus,
    Command,
    FetchSuggestionsRequested,
    LabelsFetched,
    LabelsFetchFailed,
)
from .tasks import GhTasks
from .ui.autocomplete import Autocomplete
from .ui.input_box import INPUT_BOX_HEIGHT, InputBox

logger = logging.getLogger(__name__)

COMMENT_PROMPT = "Leave a comment..."
QUOTE_REPLY_PROMPT = "Reply to comment..."
LABEL_PROMPT = "Add/remove labels (comma-separated)..."
ASSIGN_PROMPT = "Assign users (whitespace-separated)..."
UNASSIGN_PROMPT = "Unassign users (whitespace-separated)..."
CONFIRM_DISCARD_PROMPT = "Discard comment? (y/N)"

# Rows taken off the input box when it is not expanded for a comment.
INPUT_BOX_ADJUST = 5
# Share of the content height the input box takes while commenting.
COMMENT_BOX_RATIO = 0.75


class InteractionMode(Enum):
    BROWSING = "browsing"
    COMMENT_NAVIGATION = "comment_navigation"
    COMMENTING = "commenting"
    LABELING = "labeling"
    ASSIGNING = "assigning"
    UNASSIGNING = "unassigning"


TEXT_INPUT_MODES = frozenset(
    {
        InteractionMode.COMMENTING,
        InteractionMode.LABELING,
        InteractionMode.ASSIGNING,
        InteractionMode.UNASSIGNING,
    }
)


@dataclass
class Update:
    """Result of handling one message.

    Attributes:
        command: Async work to run; its result comes back as a later message.
        action: Out-of-band request for the orchestrator.
        handled: Whether the message was consumed (key events only).
    """

    command: Command | None = None
    action: IssueAction | None = None
    handled: bool = False


def quote_comment(comment: Comment) -> str:
    """Seed text for replying to `comment`: quoted header and body, then room for the reply."""
    lines = [f"> @{comment.author} wrote:", ">"]
    lines.extend(f"> {line}" for line in comment.body.split("\n"))
    lines.extend(["", ""])
    return "\n".join(lines)


class IssueViewController:
    """Interaction state of the issue/PR detail view.

    Owns the exclusive interaction mode, the comment selection and the embedded
    input box and autocomplete panel. `update` routes one message at a time and
    never blocks; I/O is returned as commands for the host to run.
    """

    def __init__(
        self,
        ctx: ProgramContext,
        labels: LabelFetchCoordinator,
        tasks: GhTasks,
        keys: IssueKeys | None = None,
        section_id: int = 0,
    ) -> None:
        self.ctx = ctx
        self.labels = labels
        self.tasks = tasks
        self.keys = keys or IssueKeys.from_keymap(ctx.config.keymap)
        self.subject: Subject | None = None
        self.section_id = section_id
        self.width = 80
        self.mode = InteractionMode.BROWSING
        self.selected_comment_index = -1
        self.show_confirm_cancel = False
        self.input_box = InputBox(height=INPUT_BOX_HEIGHT - INPUT_BOX_ADJUST)
        self.autocomplete = Autocomplete()

    # ---------------- Subject & layout ----------------

    def set_subject(self, subject: Subject | None) -> None:
        """Show `subject`, keeping interaction state only if it is the same one."""
        same = subject is not None and self.subject is not None and subject.identity == self.subject.identity
        self.subject = subject
        if not same:
            self._return_to_browsing()
            self.selected_comment_index = -1
            return
        count = self.num_comments()
        if self.selected_comment_index >= count:
            self.selected_comment_index = count - 1
        if count == 0 and self.mode is InteractionMode.COMMENT_NAVIGATION:
            self.mode = InteractionMode.BROWSING

    def set_width(self, width: int) -> None:
        self.width = width
        self.input_box.set_width(width)
        self.autocomplete.set_width(width - 4)

    def set_main_content_height(self, height: int) -> None:
        self.ctx.main_content_height = height

    # ---------------- Queries ----------------

    @property
    def is_comment_nav_mode(self) -> bool:
        return self.mode is InteractionMode.COMMENT_NAVIGATION

    def is_text_input_focused(self) -> bool:
        return self.mode in TEXT_INPUT_MODES

    def num_comments(self) -> int:
        return len(sorted_comments(self.subject))

    def selected_comment(self) -> Comment | None:
        if self.selected_comment_index < 0:
            return None
        comments = sorted_comments(self.subject)
        if self.selected_comment_index >= len(comments):
            return None
        return comments[self.selected_comment_index]

    def comment_scroll_percent(self) -> float:
        """Approximate scroll position (0..1) that brings the selected comment into view.

        The header and body are assumed to take the top 30% of the content.

        Returns:
            -1 when nothing is selected.
        """
        count = self.num_comments()
        if self.selected_comment_index < 0 or count == 0:
            return -1
        return 0.30 + 0.70 * (self.selected_comment_index / count)

    # ---------------- Comment navigation ----------------

    def enter_comment_nav_mode(self) -> None:
        if self.subject is None or self.num_comments() == 0:
            return
        self.mode = InteractionMode.COMMENT_NAVIGATION
        if self.selected_comment_index < 0:
            self.selected_comment_index = 0

    def exit_comment_nav_mode(self) -> None:
        self.mode = InteractionMode.BROWSING
        self.selected_comment_index = -1

    def select_next_comment(self) -> None:
        count = self.num_comments()
        if count and self.selected_comment_index < count - 1:
            self.selected_comment_index += 1

    def select_prev_comment(self) -> None:
        if self.selected_comment_index > 0:
            self.selected_comment_index -= 1
        elif self.selected_comment_index == -1 and self.num_comments() > 0:
            self.selected_comment_index = 0

    # ---------------- Mode entry ----------------

    def _expand_input_box(self) -> None:
        expanded = int(self.ctx.main_content_height * COMMENT_BOX_RATIO)
        self.input_box.set_height(max(expanded, INPUT_BOX_HEIGHT))

    def _restore_input_box_height(self) -> None:
        self.input_box.set_height(INPUT_BOX_HEIGHT - INPUT_BOX_ADJUST)

    def _return_to_browsing(self) -> None:
        if self.mode in TEXT_INPUT_MODES:
            self.input_box.blur()
            self._restore_input_box_height()
        self.autocomplete.hide()
        self.show_confirm_cancel = False
        self.mode = InteractionMode.BROWSING

    def start_commenting(self) -> None:
        if self.subject is None:
            return
        if self.mode is not InteractionMode.COMMENTING:
            self.input_box.reset()
            self.autocomplete.reset()
            self._expand_input_box()
        self.mode = InteractionMode.COMMENTING
        self.show_confirm_cancel = False
        self.input_box.set_prompt(COMMENT_PROMPT)
        self.input_box.focus()

    def start_quote_reply(self, comment: Comment | None) -> None:
        if self.subject is None or comment is None:
            return
        self.input_box.reset()
        self.autocomplete.reset()
        # Leaving comment navigation drops the highlight.
        self.selected_comment_index = -1
        self.mode = InteractionMode.COMMENTING
        self.show_confirm_cancel = False
        self._expand_input_box()
        self.input_box.set_value(quote_comment(comment))
        self.input_box.set_prompt(QUOTE_REPLY_PROMPT)
        self.input_box.focus()

    def start_labeling(self) -> Command | None:
        """Enter labeling with the current labels prefilled.

        Returns:
            A label fetch command when the repository's labels are not cached.
        """
        if self.subject is None:
            return None
        self.input_box.reset()
        self.mode = InteractionMode.LABELING
        self.input_box.set_prompt(LABEL_PROMPT)
        self.input_box.set_value(", ".join([*self.subject.labels, ""]))
        self.autocomplete.hide()
        self.autocomplete.set_suggestions(None)
        self.input_box.focus()
        return self._request_labels(force=False)

    def start_assigning(self) -> None:
        if self.subject is None:
            return
        self.input_box.reset()
        self.autocomplete.reset()
        self.mode = InteractionMode.ASSIGNING
        self.input_box.set_prompt(ASSIGN_PROMPT)
        if self.ctx.user and self.ctx.user not in self.subject.assignees:
            self.input_box.set_value(self.ctx.user)
        self.input_box.focus()

    def start_unassigning(self) -> None:
        if self.subject is None:
            return
        self.input_box.reset()
        self.autocomplete.reset()
        self.mode = InteractionMode.UNASSIGNING
        self.input_box.set_prompt(UNASSIGN_PROMPT)
        self.input_box.set_value("\n".join(self.subject.assignees))
        self.input_box.focus()

    # ---------------- Label suggestions ----------------

    def _show_suggestions(self) -> None:
        value = self.input_box.value
        current = label_at_cursor(self.input_box.cursor, value)
        self.autocomplete.show(current, all_labels(value))

    def _request_labels(self, force: bool) -> Command | None:
        request = self.labels.request(self.subject.repo, self.autocomplete, force=force)
        if request.labels is not None:
            self.autocomplete.set_suggestions(label_names(request.labels))
            self._show_suggestions()
        return request.command

    def _accept_suggestion(self) -> None:
        suggestion = self.autocomplete.selected_suggestion()
        if suggestion is None:
            return
        value, cursor = replace_label_at_cursor(self.input_box.value, self.input_box.cursor, suggestion)
        self.input_box.value = value
        self.input_box.cursor = cursor
        self._show_suggestions()

    # ---------------- Update loop ----------------

    def update(self, msg: Any) -> Update:
        """Handle one message: a key event or the result of an earlier command."""
        if isinstance(msg, LabelsFetched):
            return self._on_labels_fetched(msg)
        if isinstance(msg, LabelsFetchFailed):
            return Update(command=self.autocomplete.set_fetch_error(msg.error))
        if isinstance(msg, FetchSuggestionsRequested):
            if self.mode is InteractionMode.LABELING and self.subject is not None:
                return Update(command=self._request_labels(force=msg.force))
            return Update()
        if isinstance(msg, ClearFetchStatus):
            self.autocomplete.clear_fetch_status()
            return Update()
        if hasattr(msg, "key"):
            return self._on_key(msg)
        return Update()

    def _on_labels_fetched(self, msg: LabelsFetched) -> Update:
        self.labels.handle_fetched(msg)
        clear = self.autocomplete.set_fetch_success()
        if self.subject is not None and self.subject.repo == msg.repo:
            self.autocomplete.set_suggestions(label_names(msg.labels))
            if self.mode is InteractionMode.LABELING:
                self._show_suggestions()
        return Update(command=clear)

    def _on_key(self, event: Any) -> Update:
        if self.mode is InteractionMode.COMMENTING:
            return self._on_commenting_key(event)
        if self.mode is InteractionMode.LABELING:
            return self._on_labeling_key(event)
        if self.mode in (InteractionMode.ASSIGNING, InteractionMode.UNASSIGNING):
            return self._on_assignee_key(event)
        if self.mode is InteractionMode.COMMENT_NAVIGATION:
            return self._on_comment_nav_key(event)
        return self._on_browsing_key(event)

    def _submit(self, command: Command | None) -> Update:
        self._return_to_browsing()
        return Update(command=command, handled=True)

    def _on_commenting_key(self, event: Any) -> Update:
        if key_matches(event, self.keys.submit):
            body = self.input_box.value
            command = None
            if body.strip():
                command = self.tasks.comment(self.subject, body, self.section_id)
            return self._submit(command)

        if key_matches(event, self.keys.cancel):
            if self.show_confirm_cancel:
                self._return_to_browsing()
            else:
                self.show_confirm_cancel = True
                self.input_box.set_prompt(CONFIRM_DISCARD_PROMPT)
            return Update(handled=True)

        if self.show_confirm_cancel:
            if event.character in ("y", "Y"):
                self._return_to_browsing()
                return Update(handled=True)
            self.show_confirm_cancel = False
            self.input_box.set_prompt(COMMENT_PROMPT)
            if event.character in ("n", "N"):
                return Update(handled=True)

        self.input_box.update(event)
        return Update(handled=True)

    def _on_labeling_key(self, event: Any) -> Update:
        if key_matches(event, self.keys.submit):
            labels = all_labels(self.input_box.value)
            command = self.tasks.label(self.subject, labels, self.section_id) if labels else None
            return self._submit(command)

        if key_matches(event, self.keys.cancel):
            self._return_to_browsing()
            return Update(handled=True)

        if key_matches(event, self.keys.refresh_suggestions):
            return Update(command=self.autocomplete.request_refresh(), handled=True)

        if self.autocomplete.has_suggestions:
            if key_matches(event, self.keys.accept_suggestion):
                self._accept_suggestion()
                return Update(handled=True)
            if key_matches(event, self.keys.next_suggestion):
                self.autocomplete.select_next()
                return Update(handled=True)
            if key_matches(event, self.keys.prev_suggestion):
                self.autocomplete.select_prev()
                return Update(handled=True)

        previous = label_at_cursor(self.input_box.cursor, self.input_box.value)
        self.input_box.update(event)
        current = label_at_cursor(self.input_box.cursor, self.input_box.value)
        if current != previous:
            self._show_suggestions()
        return Update(handled=True)

    def _on_assignee_key(self, event: Any) -> Update:
        if key_matches(event, self.keys.submit):
            usernames = self.input_box.value.split()
            command = None
            if usernames:
                if self.mode is InteractionMode.ASSIGNING:
                    command = self.tasks.assign(self.subject, usernames, self.section_id)
                else:
                    command = self.tasks.unassign(self.subject, usernames, self.section_id)
            return self._submit(command)

        if key_matches(event, self.keys.cancel):
            self._return_to_browsing()
            return Update(handled=True)

        self.input_box.update(event)
        return Update(handled=True)

    def _on_comment_nav_key(self, event: Any) -> Update:
        if key_matches(event, self.keys.next_comment):
            self.select_next_comment()
        elif key_matches(event, self.keys.prev_comment):
            self.select_prev_comment()
        elif key_matches(event, self.keys.quote_reply):
            action = IssueAction(IssueActionType.QUOTE_REPLY, comment=self.selected_comment())
            return Update(action=action, handled=True)
        elif event.key == "escape" or key_matches(event, self.keys.comment_nav):
            self.exit_comment_nav_mode()
        else:
            return Update()
        return Update(handled=True)

    def _on_browsing_key(self, event: Any) -> Update:
        if self.subject is None:
            return Update()
        if key_matches(event, self.keys.comment):
            self.start_commenting()
            return Update(handled=True)
        if key_matches(event, self.keys.label):
            return Update(command=self.start_labeling(), handled=True)
        if key_matches(event, self.keys.assign):
            self.start_assigning()
            return Update(handled=True)
        if key_matches(event, self.keys.unassign):
            self.start_unassigning()
            return Update(handled=True)
        if key_matches(event, self.keys.comment_nav):
            self.enter_comment_nav_mode()
            return Update(handled=self.is_comment_nav_mode)
        if key_matches(event, self.keys.close):
            return Update(action=IssueAction(IssueActionType.CLOSE), handled=True)
        if key_matches(event, self.keys.reopen):
            return Update(action=IssueAction(IssueActionType.REOPEN), handled=True)
        if key_matches(event, self.keys.editor_comment):
            return Update(action=IssueAction(IssueActionType.EDITOR_COMMENT), handled=True)
        return Update()
