from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone

from .context import ProgramContext, Task
from .github import STATE_CLOSED, STATE_OPEN, Comment, Subject
from .messages import Command, SubjectUpdate, TaskFinished

logger = logging.getLogger(__name__)

GH_EXECUTABLE = "gh"


class GhCommandError(Exception):
    """Raised (and carried by `TaskFinished`) when a `gh` invocation fails."""

    def __init__(self, args: list[str], returncode: int | None, stderr: str = "") -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr or (f"exit status {returncode}" if returncode is not None else "not started")
        super().__init__(f"{' '.join(args[:3])} failed: {detail}")


async def run_gh(args: list[str]) -> None:
    """Run `gh` with `args` and wait for it.

    Raises:
        GhCommandError: If the process cannot be started (missing executable,
            an argument with a NUL byte) or exits non-zero.
    """
    cmd = [GH_EXECUTABLE, *args]
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Could not start {GH_EXECUTABLE}: {e}")
        raise GhCommandError(cmd, None, str(e)) from e
    _, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise GhCommandError(cmd, proc.returncode, stderr.decode("utf-8", "replace"))


def task_id(kind: str, verb: str, number: int) -> str:
    """Deterministic task id, e.g. "issue_comment_42"."""
    return f"{kind}_{verb}_{number}"


def _kind_label(is_pr: bool) -> str:
    return "PR" if is_pr else "issue"


class GhTasks:
    """Mutations of the shown subject, issued through the `gh` CLI.

    Each method registers a started task in the context right away and returns
    a command; running the command performs the call and produces a
    `TaskFinished` message carrying either the error or an optimistic
    `SubjectUpdate`.
    """

    def __init__(self, ctx: ProgramContext, runner=run_gh) -> None:
        self.ctx = ctx
        self._runner = runner

    def _start(
        self,
        kind: str,
        verb: str,
        number: int,
        start_text: str,
        finished_text: str,
        section_id: int,
        args: list[str],
        update: SubjectUpdate,
    ) -> Command:
        tid = task_id(kind, verb, number)
        self.ctx.start_task(Task(id=tid, start_text=start_text, finished_text=finished_text))
        runner = self._runner

        async def run() -> TaskFinished:
            try:
                await runner(args)
            except GhCommandError as e:
                return TaskFinished(section_id=section_id, task_id=tid, error=e)
            except Exception as e:
                logger.exception(f"Task {tid} failed")
                return TaskFinished(section_id=section_id, task_id=tid, error=e)
            return TaskFinished(section_id=section_id, task_id=tid, update=update)

        return run

    def _new_comment(self, body: str) -> Comment:
        return Comment(author=self.ctx.user, body=body, updated_at=datetime.now(timezone.utc))

    def comment(self, subject: Subject, body: str, section_id: int = 0) -> Command:
        label = _kind_label(subject.is_pr)
        return self._start(
            subject.kind,
            "comment",
            subject.number,
            f"Commenting on {label} #{subject.number}",
            f"Commented on {label} #{subject.number}",
            section_id,
            [subject.kind, "comment", str(subject.number), "-R", subject.repo, "-b", body],
            SubjectUpdate(repo=subject.repo, number=subject.number, new_comment=self._new_comment(body)),
        )

    def editor_comment(self, number: int, repo: str, is_pr: bool, body: str, section_id: int = 0) -> Command:
        """Comment composed in the external editor; keyed apart from inline comments."""
        kind = "pr" if is_pr else "issue"
        label = _kind_label(is_pr)
        return self._start(
            f"editor_{kind}",
            "comment",
            number,
            f"Commenting on {label} #{number}",
            f"Commented on {label} #{number}",
            section_id,
            [kind, "comment", str(number), "-R", repo, "-b", body],
            SubjectUpdate(repo=repo, number=number, new_comment=self._new_comment(body)),
        )

    def label(self, subject: Subject, labels: list[str], section_id: int = 0) -> Command:
        added = [name for name in labels if name not in subject.labels]
        removed = [name for name in subject.labels if name not in labels]
        args = [subject.kind, "edit", str(subject.number), "-R", subject.repo]
        if added:
            args += ["--add-label", ",".join(added)]
        if removed:
            args += ["--remove-label", ",".join(removed)]
        label = _kind_label(subject.is_pr)
        return self._start(
            subject.kind,
            "label",
            subject.number,
            f"Labeling {label} #{subject.number}",
            f"Labeled {label} #{subject.number}",
            section_id,
            args,
            SubjectUpdate(repo=subject.repo, number=subject.number, labels=list(labels)),
        )

    def assign(self, subject: Subject, usernames: list[str], section_id: int = 0) -> Command:
        args = [subject.kind, "edit", str(subject.number), "-R", subject.repo]
        for name in usernames:
            args += ["--add-assignee", name]
        label = _kind_label(subject.is_pr)
        return self._start(
            subject.kind,
            "assign",
            subject.number,
            f"Assigning {', '.join(usernames)} to {label} #{subject.number}",
            f"Assigned {', '.join(usernames)} to {label} #{subject.number}",
            section_id,
            args,
            SubjectUpdate(repo=subject.repo, number=subject.number, added_assignees=list(usernames)),
        )

    def unassign(self, subject: Subject, usernames: list[str], section_id: int = 0) -> Command:
        args = [subject.kind, "edit", str(subject.number), "-R", subject.repo]
        for name in usernames:
            args += ["--remove-assignee", name]
        label = _kind_label(subject.is_pr)
        return self._start(
            subject.kind,
            "unassign",
            subject.number,
            f"Unassigning {', '.join(usernames)} from {label} #{subject.number}",
            f"Unassigned {', '.join(usernames)} from {label} #{subject.number}",
            section_id,
            args,
            SubjectUpdate(repo=subject.repo, number=subject.number, removed_assignees=list(usernames)),
        )

    def close(self, subject: Subject, section_id: int = 0) -> Command:
        label = _kind_label(subject.is_pr)
        return self._start(
            subject.kind,
            "close",
            subject.number,
            f"Closing {label} #{subject.number}",
            f"{label.capitalize()} #{subject.number} has been closed",
            section_id,
            [subject.kind, "close", str(subject.number), "-R", subject.repo],
            SubjectUpdate(repo=subject.repo, number=subject.number, is_closed=True),
        )

    def reopen(self, subject: Subject, section_id: int = 0) -> Command:
        label = _kind_label(subject.is_pr)
        return self._start(
            subject.kind,
            "reopen",
            subject.number,
            f"Reopening {label} #{subject.number}",
            f"{label.capitalize()} #{subject.number} has been reopened",
            section_id,
            [subject.kind, "reopen", str(subject.number), "-R", subject.repo],
            SubjectUpdate(repo=subject.repo, number=subject.number, is_closed=False),
        )


def apply_update(subject: Subject, update: SubjectUpdate) -> Subject:
    """Merge an optimistic echo into a new Subject; `subject` is left untouched.

    Updates addressed to another subject return `subject` unchanged.
    """
    if subject.identity != (update.repo, update.number):
        return subject
    comments = list(subject.comments)
    if update.new_comment is not None:
        comments.append(update.new_comment)
    labels = list(update.labels) if update.labels is not None else list(subject.labels)
    assignees = [a for a in subject.assignees if a not in update.removed_assignees]
    assignees += [a for a in update.added_assignees if a not in assignees]
    state = subject.state
    if update.is_closed is not None:
        state = STATE_CLOSED if update.is_closed else STATE_OPEN
    return replace(subject, comments=comments, labels=labels, assignees=assignees, state=state)
