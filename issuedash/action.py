from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from .github import Comment


class IssueActionType(Enum):
    """Out-of-band requests the detail view hands to its orchestrator."""

    CLOSE = auto()
    REOPEN = auto()
    QUOTE_REPLY = auto()
    EDITOR_COMMENT = auto()


@dataclass
class IssueAction:
    type: IssueActionType
    comment: Comment | None = None
