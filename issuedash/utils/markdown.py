from __future__ import annotations

import re
from functools import lru_cache

from rich.console import Console
from rich.markdown import Markdown

HTML_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)


def strip_html_comments(text: str) -> str:
    """Remove HTML comments (issue templates are full of them) and trim."""
    return HTML_COMMENT_RE.sub("", text).strip()


class MarkdownRenderer:
    """Render markdown to ANSI text at a fixed width using rich."""

    def __init__(self, width: int) -> None:
        self.width = max(1, width)
        self._console = Console(
            width=self.width,
            force_terminal=True,
            color_system="truecolor",
            legacy_windows=False,
        )

    def render(self, text: str) -> str:
        """Render `text` as markdown.

        Args:
            text: Markdown source.

        Returns:
            The rendered text, including ANSI styling.

        Raises:
            Exception: Whatever the markdown parser or console raises; callers
                decide whether a failed render is fatal.
        """
        with self._console.capture() as capture:
            self._console.print(Markdown(text))
        return capture.get()


@lru_cache(maxsize=8)
def get_markdown_renderer(width: int) -> MarkdownRenderer:
    """Return a shared renderer for `width`."""
    return MarkdownRenderer(width)
