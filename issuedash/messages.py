from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .github import Comment, Label

# An asynchronous unit of work; its return value (if not None) is fed back into
# the update loop as the next message.
Command = Callable[[], Awaitable[Any]]


@dataclass
class LabelsFetched:
    repo: str
    labels: list[Label]


@dataclass
class LabelsFetchFailed:
    repo: str
    error: Exception


@dataclass
class FetchSuggestionsRequested:
    force: bool = False


@dataclass
class ClearFetchStatus:
    pass


@dataclass
class ErrorMessage:
    """A one-line, user-visible error."""

    text: str


@dataclass
class SubjectUpdate:
    """Optimistic local echo of a mutation, merged into the shown Subject.

    Attributes:
        repo: Repository of the mutated subject.
        number: Number of the mutated subject.
        new_comment: Comment to append, if any.
        labels: Replacement label set, if labels changed.
        added_assignees: Logins to add to the assignees.
        removed_assignees: Logins to drop from the assignees.
        is_closed: New open/closed state, if it changed.
    """

    repo: str
    number: int
    new_comment: Comment | None = None
    labels: list[str] | None = None
    added_assignees: list[str] = field(default_factory=list)
    removed_assignees: list[str] = field(default_factory=list)
    is_closed: bool | None = None


@dataclass
class TaskFinished:
    section_id: int
    task_id: str
    error: Exception | None = None
    update: SubjectUpdate | None = None
