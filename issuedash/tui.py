from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from typing import ClassVar

import httpx
from textual.app import App, ComposeResult, SuspendNotSupported
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Footer, Header, Label

from .action import IssueActionType
from .config import AppConfig, load_config
from .context import ProgramContext, Task
from .editor import EditorCommentWorkflow
from .github import GitHubClient, Subject
from .issueview import IssueViewController
from .labels import LabelCache, LabelFetchCoordinator
from .messages import ErrorMessage, TaskFinished
from .tasks import GhTasks, apply_update
from .ui import StatusManager
from .ui.issue_view import IssueView

logger = logging.getLogger(__name__)

DETAIL_SECTION_ID = 0


class IssueDashApp(App):
    """Textual TUI showing one GitHub issue or pull request and acting on it."""

    CSS = """
    #detail { height: 1fr; }
    #status { padding: 0 1; height: 1; }
    """

    BINDINGS: ClassVar[list[Binding]] = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh_subject", "Refresh"),
    ]

    def __init__(
        self,
        repo: str,
        number: int,
        cfg: AppConfig | None = None,
        client: GitHubClient | None = None,
    ) -> None:
        """Initialize application state and widgets.

        Args:
            repo: Repository in "owner/repo" format.
            number: Issue or pull request number.
            cfg: Configuration; loaded from disk when omitted.
            client: GitHub client; built from the config token when omitted.
        """
        super().__init__()
        self.repo = repo
        self.number = number
        self.cfg: AppConfig = cfg or load_config()
        self.client = client or GitHubClient(self.cfg.resolved_token())
        self.ctx = ProgramContext(config=self.cfg, user=self.cfg.user, on_task_change=self._on_task_change)
        # One label cache for the whole process, shared by handle.
        self.label_cache = LabelCache()
        self._labels = LabelFetchCoordinator(self.client.list_labels, self.label_cache)
        self._tasks = GhTasks(self.ctx)
        self._editor = EditorCommentWorkflow(self._tasks)
        controller = IssueViewController(self.ctx, self._labels, self._tasks, section_id=DETAIL_SECTION_ID)
        self._view = IssueView(controller, id="issue-view")
        self._status = Label("", id="status")
        self._status_manager = StatusManager(self)
        self._refresh_task: asyncio.Task | None = None
        self._user_task: asyncio.Task | None = None

    def compose(self) -> ComposeResult:
        """Compose the layout: header, scrollable detail view, status line and footer."""
        yield Header(show_clock=False)
        with VerticalScroll(id="detail"):
            yield self._view
        yield self._status
        yield Footer()

    def on_mount(self) -> None:
        """Focus the detail view and start loading the subject."""
        self.title = f"{self.repo}#{self.number}"
        self._view.focus()
        self._schedule_refresh_subject()
        if not self.ctx.user:
            self._user_task = asyncio.create_task(self._resolve_user())

    # ---------------- Loading ----------------

    def action_refresh_subject(self) -> None:
        """Reload the subject from GitHub, keeping the view state if it is the same one."""
        self._schedule_refresh_subject()

    def _cancel_existing_refresh(self) -> None:
        """Cancel any in-flight subject load."""
        if self._refresh_task and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._refresh_task = None

    def _schedule_refresh_subject(self) -> None:
        """Load the subject in the background and show it when it arrives."""
        self._cancel_existing_refresh()
        self._status_manager.update_subject_status(loading=True)

        async def runner() -> None:
            try:
                subject = await self.client.get_subject(self.repo, self.number)
                self._view.set_subject(subject)
            except httpx.HTTPError as e:
                # Keep showing whatever was loaded before
                logger.error(f"Loading {self.repo}#{self.number} failed: {e}")
                self._show_toast(f"Failed to load {self.repo}#{self.number}: {e}", severity="error")
            finally:
                self._status_manager.update_subject_status(loading=False)

        self._refresh_task = asyncio.create_task(runner())

    async def _resolve_user(self) -> None:
        """Look up the acting user's login when the config does not name one."""
        try:
            self.ctx.user = await self.client.get_viewer_login()
        except httpx.HTTPError as e:
            logger.warning(f"Could not resolve the current user: {e}")

    def _current_subject(self) -> Subject | None:
        return self._view.controller.subject

    # ---------------- Actions from the detail view ----------------

    def on_issue_view_action_requested(self, message: IssueView.ActionRequested) -> None:
        """Carry out close/reopen, quote-reply and editor-comment requests."""
        subject = self._current_subject()
        if subject is None:
            return
        section_id = self._view.controller.section_id
        match message.action.type:
            case IssueActionType.CLOSE:
                self._view.run_command(self._tasks.close(subject, section_id))
            case IssueActionType.REOPEN:
                self._view.run_command(self._tasks.reopen(subject, section_id))
            case IssueActionType.QUOTE_REPLY:
                self._view.controller.start_quote_reply(message.action.comment)
                self._view.refresh(layout=True)
            case IssueActionType.EDITOR_COMMENT:
                self._open_editor_comment(subject, section_id)

    def _open_editor_comment(self, subject: Subject, section_id: int) -> None:
        """Hand the terminal to the user's editor and submit what they wrote.

        The event loop is blocked until the editor exits.
        """
        try:
            session = self._editor.begin(subject.number, subject.repo, subject.is_pr, section_id)
        except OSError as e:
            self._show_error(ErrorMessage(f"failed to create temp file: {e}"))
            return
        try:
            with self.suspend():
                result = self._editor.run(session)
        except SuspendNotSupported:
            with contextlib.suppress(FileNotFoundError):
                os.remove(session.path)
            self._show_error(ErrorMessage("this terminal cannot be suspended for an external editor"))
            return
        if isinstance(result, ErrorMessage):
            self._show_error(result)
            return
        self._view.run_command(self._editor.submit(result))

    # ---------------- Task completion ----------------

    def on_issue_view_command_result(self, message: IssueView.CommandResult) -> None:
        """Finish tasks and merge their optimistic updates into the shown subject."""
        payload = message.payload
        if not isinstance(payload, TaskFinished):
            return
        self.ctx.finish_task(payload.task_id, payload.error)
        if payload.error is not None:
            self._show_toast(str(payload.error), severity="error")
            return
        subject = self._current_subject()
        # Echoes started from another section do not belong to the shown subject.
        if payload.section_id != self._view.controller.section_id:
            return
        if payload.update is not None and subject is not None:
            self._view.set_subject(apply_update(subject, payload.update))

    def _on_task_change(self, task: Task) -> None:
        self._status_manager.update_task_status(task)

    # ---------------- Notifications ----------------

    def _show_toast(self, message: str, severity: str = "information") -> None:
        """Show a toast notification for a short time."""
        self.notify(message, title="issuedash", severity=severity, timeout=3, markup=False)

    def _show_error(self, error: ErrorMessage) -> None:
        self._show_toast(error.text, severity="error")
