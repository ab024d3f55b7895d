from __future__ import annotations

from ..context import Task, TaskState


class StatusManager:
    """Manages the task status line of the detail view."""

    def __init__(self, app) -> None:
        """Initialize with reference to the main app."""
        self.app = app

    def update_task_status(self, task: Task) -> None:
        """Show the latest transition of `task` in the status label.

        Args:
            task: The task that just started, finished or failed.
        """
        if task.state is TaskState.STARTED:
            text = f"{task.start_text}…"
        elif task.state is TaskState.ERROR:
            text = f"✗ {task.start_text} failed: {task.error}"
        else:
            text = f"✓ {task.finished_text}"
        running = sum(1 for t in self.app.ctx.tasks.values() if t.state is TaskState.STARTED)
        if running > 1:
            text += f" • {running} tasks running"
        self.app._status.update(text)
        self.app._status.display = True

    def update_subject_status(self, loading: bool) -> None:
        """Show whether the subject is being (re)loaded.

        Args:
            loading: Whether a subject fetch is in flight.
        """
        subject = self.app._view.controller.subject
        where = f"{self.app.repo}#{self.app.number}"
        if loading:
            text = f"Loading {where}…" if subject is None else f"Refreshing {where}…"
        else:
            text = f"{where} • {self.app._view.controller.mode.value.replace('_', ' ')}"
        self.app._status.update(text)
        self.app._status.display = True
