from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from .github import Comment, Review, Subject

logger = logging.getLogger(__name__)

RenderComment = Callable[[Comment, bool], Any]
RenderReview = Callable[[Review], Any]


class ActivityKind(Enum):
    COMMENT = "comment"
    REVIEW = "review"


@dataclass
class ActivityItem:
    """One rendered entry of the activity feed.

    Attributes:
        updated_at: Timestamp the feed is ordered by.
        kind: Comment or review.
        rendered: Whatever the render callback produced.
        nav_index: Position in comment navigation; None for whole reviews.
    """

    updated_at: datetime
    kind: ActivityKind
    rendered: Any
    nav_index: int | None = None


def sorted_comments(subject: Subject | None) -> list[Comment]:
    """Return the navigable comments of `subject`, oldest update first.

    Pull requests contribute every inline review comment (tagged with its file
    path and line) followed by the top-level comments. The sort is stable, so
    comments with equal timestamps keep that collection order. The position in
    the result is the comment's navigation index.
    """
    if subject is None:
        return []
    comments: list[Comment] = []
    if subject.is_pr:
        for thread in subject.review_threads:
            comments.extend(replace(c, path=thread.path, line=thread.line) for c in thread.comments)
    comments.extend(subject.comments)
    return sorted(comments, key=lambda c: c.updated_at)


def build_activity(
    subject: Subject,
    render_comment: RenderComment,
    render_review: RenderReview,
    selected_index: int = -1,
) -> list[ActivityItem]:
    """Merge comments and reviews into the chronological feed.

    Comments carry navigation indices `0..N-1` in `sorted_comments` order and
    are rendered as selected when their index equals `selected_index`. Reviews
    (pull requests only) are rendered without an index. A render callback that
    raises drops just that item; indices of the other comments do not shift.

    Args:
        subject: The issue or pull request.
        render_comment: Called with (comment, is_selected).
        render_review: Called with the review.
        selected_index: Currently selected navigation index, or -1.

    Returns:
        Items ordered by `updated_at`, ties keeping comments before reviews and
        each group in its own order.
    """
    items: list[ActivityItem] = []
    for index, comment in enumerate(sorted_comments(subject)):
        try:
            rendered = render_comment(comment, index == selected_index)
        except Exception as e:
            logger.debug(f"Skipping comment by {comment.author} that failed to render: {e}")
            continue
        items.append(ActivityItem(comment.updated_at, ActivityKind.COMMENT, rendered, index))

    if subject.is_pr:
        for review in subject.reviews:
            try:
                rendered = render_review(review)
            except Exception as e:
                logger.debug(f"Skipping review by {review.author} that failed to render: {e}")
                continue
            items.append(ActivityItem(review.updated_at, ActivityKind.REVIEW, rendered))

    return sorted(items, key=lambda item: item.updated_at)
