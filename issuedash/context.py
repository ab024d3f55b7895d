from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from .config import AppConfig

logger = logging.getLogger(__name__)


class TaskState(Enum):
    STARTED = "started"
    FINISHED = "finished"
    ERROR = "error"


@dataclass
class Task:
    """A tracked asynchronous unit of work, shown in the status line."""

    id: str
    start_text: str
    finished_text: str
    state: TaskState = TaskState.STARTED
    error: Exception | None = None


@dataclass
class ProgramContext:
    """State shared by the detail view and its orchestrator.

    Attributes:
        config: Loaded application configuration.
        user: Login of the acting user, used for assignment prefill and
            optimistic echoes.
        main_content_height: Height in rows of the detail view's content area.
        tasks: Tasks by id, most recent state only.
        on_task_change: Optional listener invoked after every task transition.
    """

    config: AppConfig = field(default_factory=AppConfig)
    user: str = ""
    main_content_height: int = 40
    tasks: dict[str, Task] = field(default_factory=dict)
    on_task_change: Callable[[Task], None] | None = None

    def start_task(self, task: Task) -> Task:
        """Register `task` as started, replacing any older task with the same id."""
        task.state = TaskState.STARTED
        task.error = None
        self.tasks[task.id] = task
        logger.debug(f"Task started: {task.id}")
        self._notify(task)
        return task

    def finish_task(self, task_id: str, error: Exception | None = None) -> Task | None:
        """Mark a task finished, or failed when `error` is given.

        Returns:
            The updated task, or None for an unknown id.
        """
        task = self.tasks.get(task_id)
        if task is None:
            logger.warning(f"Finished unknown task {task_id}")
            return None
        task.state = TaskState.ERROR if error is not None else TaskState.FINISHED
        task.error = error
        if error is not None:
            logger.error(f"Task {task_id} failed: {error}")
        self._notify(task)
        return task

    def _notify(self, task: Task) -> None:
        if self.on_task_change is not None:
            self.on_task_change(task)
