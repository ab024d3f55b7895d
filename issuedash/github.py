from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx

from .utils.time import parse_timestamp

# Set up logging
logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
PER_PAGE = 100

# Rate limiting constants
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_LIMIT_HEADER = "X-RateLimit-Limit"
FORBIDDEN_STATUS_CODE = 403

STATE_OPEN = "OPEN"
STATE_CLOSED = "CLOSED"

REVIEW_PENDING = "PENDING"
REVIEW_COMMENTED = "COMMENTED"
REVIEW_APPROVED = "APPROVED"
REVIEW_CHANGES_REQUESTED = "CHANGES_REQUESTED"
REVIEW_DISMISSED = "DISMISSED"


@dataclass
class Label:
    """A repository label."""

    name: str
    color: str = ""
    description: str = ""


@dataclass
class Comment:
    """A comment on an issue or pull request.

    Attributes:
        author: Login of the comment author.
        body: Markdown body.
        updated_at: Last update time; activity is ordered by this.
        path: File path for inline review comments, otherwise None.
        line: File line for inline review comments, otherwise None.
    """

    author: str
    body: str
    updated_at: datetime
    path: str | None = None
    line: int | None = None


@dataclass
class ReviewThread:
    """An inline review thread anchored to a file line."""

    path: str
    line: int | None
    comments: list[Comment] = field(default_factory=list)


@dataclass
class Review:
    """A whole-PR review with its decision."""

    author: str
    body: str
    state: str
    updated_at: datetime


@dataclass
class Subject:
    """Snapshot of the issue or pull request shown in the detail view.

    Snapshots are replaced wholesale on refresh; the detail view never edits one
    in place.

    Attributes:
        repo: "owner/repo" string identifying the repository.
        number: Issue or pull request number.
        title: Title.
        body: Markdown description.
        state: "OPEN" or "CLOSED".
        author: Login of the author.
        url: Web URL.
        is_pr: Whether this is a pull request.
        author_association: GitHub author association (e.g. "MEMBER").
        created_at: Creation time, if known.
        labels: Label names.
        assignees: Assignee logins.
        comments: Top-level comments.
        review_threads: Inline review threads (pull requests only).
        reviews: Whole-PR reviews (pull requests only).
    """

    repo: str
    number: int
    title: str
    body: str
    state: str
    author: str
    url: str = ""
    is_pr: bool = False
    author_association: str = ""
    created_at: datetime | None = None
    labels: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    review_threads: list[ReviewThread] = field(default_factory=list)
    reviews: list[Review] = field(default_factory=list)

    @property
    def identity(self) -> tuple[str, int]:
        return (self.repo, self.number)

    @property
    def kind(self) -> str:
        return "pr" if self.is_pr else "issue"


def label_names(labels: list[Label]) -> list[str]:
    """Return the names of `labels`, preserving order."""
    return [label.name for label in labels]


def _comment_from_api(data: dict[str, Any]) -> Comment:
    user = data.get("user") or {}
    return Comment(
        author=user.get("login", "ghost"),
        body=data.get("body") or "",
        updated_at=parse_timestamp(data.get("updated_at") or data.get("created_at")),
    )


def group_review_threads(review_comments: list[dict[str, Any]]) -> list[ReviewThread]:
    """Group REST review comments into threads by their root comment.

    Replies point at the root through `in_reply_to_id`; a reply whose root is
    missing from the page starts its own thread.

    Args:
        review_comments: Items from `GET /pulls/{n}/comments`.

    Returns:
        Threads in order of their root comment.
    """
    threads: dict[int, ReviewThread] = {}
    for item in review_comments:
        root_id = item.get("in_reply_to_id") or item.get("id")
        thread = threads.get(root_id)
        if thread is None:
            thread = ReviewThread(
                path=item.get("path", ""),
                line=item.get("line") or item.get("original_line"),
            )
            threads[root_id] = thread
        thread.comments.append(_comment_from_api(item))
    return list(threads.values())


class GitHubClient:
    """GitHub REST client for the detail view: subjects, labels and the viewer."""

    def __init__(self, token: str | None, max_retries: int = 3) -> None:
        """Initialize the client.

        Args:
            token: A GitHub personal access token. If provided, it is used for
                authenticated requests; otherwise, unauthenticated requests are
                made with stricter rate limits.
            max_retries: Maximum number of retries for failed requests.
        """
        self._headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "issuedash",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._max_retries = max_retries
        self._rate_limit_remaining = 999  # Initial value, will be updated after first request
        self._rate_limit_reset_time = 0

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """Perform a GET request and return parsed JSON.

        Args:
            url: Absolute endpoint URL.
            params: Optional query parameters.

        Returns:
            The JSON-decoded response body.

        Raises:
            httpx.HTTPStatusError: If the response indicates an HTTP error.
            httpx.RequestError: On network or timeout errors.
        """
        if self._rate_limit_remaining <= 1 and time.time() < self._rate_limit_reset_time:
            sleep_time = self._rate_limit_reset_time - time.time() + 1
            logger.warning(f"Rate limited. Sleeping for {sleep_time} seconds.")
            await asyncio.sleep(sleep_time)

        for attempt in range(self._max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=20) as client:
                    r = await client.get(url, headers=self._headers, params=params)
                    self._update_rate_limit_info(r)
                    r.raise_for_status()
                    return r.json()
            except httpx.HTTPStatusError as e:
                status_code = getattr(e.response, "status_code", None)
                if (
                    status_code == FORBIDDEN_STATUS_CODE
                    and self._rate_limit_remaining <= 1
                    and attempt < self._max_retries
                ):
                    if time.time() < self._rate_limit_reset_time:
                        sleep_time = self._rate_limit_reset_time - time.time() + 1
                        logger.warning(f"Hit rate limit. Waiting {sleep_time} seconds before retry.")
                        await asyncio.sleep(sleep_time)
                    continue
                logger.error(f"HTTP error {status_code or 'unknown'} for URL {url}: {e}")
                raise
            except httpx.RequestError as e:
                if attempt < self._max_retries:
                    logger.warning(f"Network error (attempt {attempt + 1}/{self._max_retries + 1}): {e}")
                    await asyncio.sleep(2**attempt)  # Exponential backoff
                    continue
                logger.error(f"Network error after {self._max_retries + 1} attempts: {e}")
                raise

        raise httpx.RequestError("Max retries exceeded", request=None)

    def _update_rate_limit_info(self, response: httpx.Response) -> None:
        """Update rate limit information from response headers.

        Args:
            response: The HTTP response to extract rate limit info from.
        """
        try:
            remaining = response.headers.get(RATE_LIMIT_REMAINING_HEADER)
            reset = response.headers.get(RATE_LIMIT_RESET_HEADER)
            if remaining is not None:
                self._rate_limit_remaining = int(remaining)
            if reset is not None:
                self._rate_limit_reset_time = int(reset)
        except (TypeError, ValueError):
            logger.debug("Ignoring unparsable rate limit headers")

    async def _get_all_pages(self, url: str) -> list[Any]:
        """Collect every page of a list endpoint.

        Args:
            url: Absolute endpoint URL.

        Returns:
            All items across pages.
        """
        items: list[Any] = []
        page = 1
        while True:
            data = await self._get(url, params={"per_page": PER_PAGE, "page": page})
            items.extend(data)
            if len(data) < PER_PAGE:
                return items
            page += 1

    async def list_labels(self, repo: str) -> list[Label]:
        """List every label defined in a repository.

        Args:
            repo: Repository in "owner/repo" format.

        Returns:
            The repository labels in API order.

        Raises:
            httpx.HTTPStatusError: If the API responds with an error status.
            httpx.RequestError: On network or timeout errors.
        """
        data = await self._get_all_pages(f"{GITHUB_API}/repos/{repo}/labels")
        return [
            Label(name=item["name"], color=item.get("color", ""), description=item.get("description") or "")
            for item in data
        ]

    async def get_viewer_login(self) -> str:
        """Return the login of the authenticated user."""
        data = await self._get(f"{GITHUB_API}/user")
        return data["login"]

    async def get_subject(self, repo: str, number: int) -> Subject:
        """Load an issue or pull request with its full activity.

        Args:
            repo: Repository in "owner/repo" format.
            number: Issue or pull request number.

        Returns:
            A populated `Subject`. Pull requests also carry reviews and inline
            review threads.

        Raises:
            httpx.HTTPStatusError: If the API responds with an error status.
            httpx.RequestError: On network or timeout errors.
        """
        base = f"{GITHUB_API}/repos/{repo}"
        data = await self._get(f"{base}/issues/{number}")
        is_pr = "pull_request" in data
        comments_url = f"{base}/issues/{number}/comments"
        review_threads: list[ReviewThread] = []
        reviews: list[Review] = []
        if is_pr:
            comments_data, reviews_data, review_comments = await asyncio.gather(
                self._get_all_pages(comments_url),
                self._get_all_pages(f"{base}/pulls/{number}/reviews"),
                self._get_all_pages(f"{base}/pulls/{number}/comments"),
            )
            reviews = [
                Review(
                    author=(r.get("user") or {}).get("login", "ghost"),
                    body=r.get("body") or "",
                    state=r.get("state", REVIEW_COMMENTED),
                    updated_at=parse_timestamp(r.get("submitted_at")),
                )
                for r in reviews_data
                # Pending reviews are unsubmitted drafts with no submission time.
                if r.get("state") != REVIEW_PENDING
            ]
            review_threads = group_review_threads(review_comments)
        else:
            comments_data = await self._get_all_pages(comments_url)
        return Subject(
            repo=repo,
            number=data["number"],
            title=data.get("title", ""),
            body=data.get("body") or "",
            state=str(data.get("state", "open")).upper(),
            author=(data.get("user") or {}).get("login", "ghost"),
            url=data.get("html_url", ""),
            is_pr=is_pr,
            author_association=data.get("author_association", ""),
            created_at=parse_timestamp(data.get("created_at")),
            labels=[label["name"] for label in data.get("labels", [])],
            assignees=[a["login"] for a in data.get("assignees", [])],
            comments=[_comment_from_api(c) for c in comments_data],
            review_threads=review_threads,
            reviews=reviews,
        )
