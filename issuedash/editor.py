from __future__ import annotations

import contextlib
import logging
import os
import shlex
import subprocess
import tempfile
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .messages import Command, ErrorMessage
from .tasks import GhTasks

logger = logging.getLogger(__name__)

COMMENT_MARKER = "#"
TEMP_PREFIX = "issuedash-comment-"
TEMP_SUFFIX = ".md"
DEFAULT_EDITOR = "vi"


@dataclass
class EditorSession:
    """A pending editor invocation and the subject it comments on."""

    path: str
    number: int
    repo: str
    is_pr: bool
    section_id: int


@dataclass
class EditorCommentFinished:
    body: str
    number: int
    repo: str
    is_pr: bool
    section_id: int


def get_editor_cmd(environ: Mapping[str, str] | None = None) -> str:
    """Resolve the editor: `$EDITOR`, then `$VISUAL`, then `vi`."""
    env = os.environ if environ is None else environ
    return env.get("EDITOR") or env.get("VISUAL") or DEFAULT_EDITOR


def header_text(number: int, repo: str, is_pr: bool) -> str:
    kind = "PR" if is_pr else "issue"
    return (
        f"{COMMENT_MARKER} Comment on {kind} #{number} in {repo}\n"
        f"{COMMENT_MARKER} Lines starting with '{COMMENT_MARKER}' will be ignored.\n"
        f"{COMMENT_MARKER} Save and quit to submit. Leave empty to cancel.\n"
    )


def extract_body(text: str) -> str:
    """Drop marker lines and surrounding whitespace from the edited text."""
    lines = [line for line in text.splitlines() if not line.startswith(COMMENT_MARKER)]
    return "\n".join(lines).strip()


class EditorCommentWorkflow:
    """Compose a comment in the user's editor and submit it through `gh`.

    `run` blocks until the editor exits; the caller is expected to hand the
    terminal over first (e.g. inside `App.suspend()`).
    """

    def __init__(
        self,
        tasks: GhTasks,
        environ: Mapping[str, str] | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.tasks = tasks
        self._environ = environ
        self._runner = runner

    def begin(self, number: int, repo: str, is_pr: bool, section_id: int) -> EditorSession:
        """Create the temp file with its instruction header.

        Raises:
            OSError: If the file cannot be created or written.
        """
        fd, path = tempfile.mkstemp(prefix=TEMP_PREFIX, suffix=TEMP_SUFFIX, text=True)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(header_text(number, repo, is_pr))
        return EditorSession(path=path, number=number, repo=repo, is_pr=is_pr, section_id=section_id)

    def run(self, session: EditorSession) -> EditorCommentFinished | ErrorMessage:
        """Open the editor on the session file and read the result back.

        The file is removed whatever happens.

        Returns:
            The edited body, or an `ErrorMessage` if the editor could not be
            started, exited non-zero, or the file could not be read.
        """
        try:
            editor = get_editor_cmd(self._environ)
            try:
                self._runner([*shlex.split(editor), session.path], check=True)
            except (OSError, ValueError, subprocess.CalledProcessError) as e:
                logger.error(f"Editor {editor!r} failed: {e}")
                return ErrorMessage(f"editor exited with error: {e}")
            try:
                with open(session.path, encoding="utf-8") as f:
                    body = extract_body(f.read())
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to read {session.path}: {e}")
                return ErrorMessage(f"failed to read temp file: {e}")
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.remove(session.path)
        return EditorCommentFinished(
            body=body,
            number=session.number,
            repo=session.repo,
            is_pr=session.is_pr,
            section_id=session.section_id,
        )

    def submit(self, finished: EditorCommentFinished) -> Command | None:
        """Start the comment task, or return None when the body is empty (cancelled)."""
        if not finished.body.strip():
            logger.debug("Editor comment left empty; nothing to submit")
            return None
        return self.tasks.editor_comment(
            finished.number, finished.repo, finished.is_pr, finished.body, finished.section_id
        )
