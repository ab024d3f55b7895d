from __future__ import annotations

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from ..activity import ActivityKind, build_activity
from ..github import (
    REVIEW_APPROVED,
    REVIEW_CHANGES_REQUESTED,
    REVIEW_COMMENTED,
    REVIEW_PENDING,
    STATE_OPEN,
    Comment,
    Review,
    Subject,
)
from ..utils.markdown import MarkdownRenderer, get_markdown_renderer, strip_html_comments
from ..utils.time import time_elapsed
from .autocomplete import Autocomplete, FetchStatus
from .input_box import InputBox

PRIMARY_BORDER = "magenta"
FAINT_BORDER = "grey37"
FAINT_TEXT = "grey58"
ERROR_TEXT = "red"
OPEN_COLOR = "green4"
CLOSED_COLOR = "red3"
LABEL_COLOR = "grey30"

REVIEW_GLYPHS: dict[str, tuple[str, str]] = {
    REVIEW_PENDING: ("◷", "yellow"),
    REVIEW_COMMENTED: ("💬", FAINT_TEXT),
    REVIEW_APPROVED: ("✓", "green"),
    REVIEW_CHANGES_REQUESTED: ("✗", "red"),
}


def content_width(width: int) -> int:
    """Width left for content once the view's padding is taken off."""
    return max(10, width - 6)


def render_header(subject: Subject) -> Text:
    return Text(f"#{subject.number} · {subject.repo}", style=FAINT_TEXT)


def render_title(subject: Subject) -> Text:
    return Text(subject.title, style="bold")


def render_status_pill(subject: Subject) -> Text:
    if subject.state == STATE_OPEN:
        return Text(" Open ", style=f"bold white on {OPEN_COLOR}")
    return Text(" Closed ", style=f"bold white on {CLOSED_COLOR}")


def render_author(subject: Subject) -> Text:
    role = (subject.author_association or "unknown role").lower()
    text = Text(" by ")
    text.append(f"@{subject.author}", style="bold")
    if subject.created_at is not None:
        text.append(f" ⋅ {time_elapsed(subject.created_at)} ⋅ ", style=FAINT_TEXT)
    else:
        text.append(" ⋅ ", style=FAINT_TEXT)
    text.append(role, style=FAINT_TEXT)
    return text


def render_labels(labels: list[str]) -> Text | None:
    if not labels:
        return None
    text = Text()
    for i, name in enumerate(labels):
        if i:
            text.append(" ")
        text.append(f" {name} ", style=f"white on {LABEL_COLOR}")
    return text


def render_body(subject: Subject, width: int) -> RenderableType:
    body = strip_html_comments(subject.body)
    if not body:
        return Text("No description provided.", style=f"italic {FAINT_TEXT}")
    try:
        return Text.from_ansi(get_markdown_renderer(content_width(width)).render(body))
    except Exception:
        return Text("")


def render_comment(comment: Comment, renderer: MarkdownRenderer, is_selected: bool) -> RenderableType:
    """Render one comment; raises whatever the markdown renderer raises."""
    header = Text()
    header.append(comment.author, style="bold")
    header.append(" ")
    header.append(time_elapsed(comment.updated_at), style=FAINT_TEXT)
    parts: list[RenderableType] = [
        Panel(header, box=box.ROUNDED, border_style=PRIMARY_BORDER if is_selected else FAINT_BORDER)
    ]
    if comment.path is not None and comment.line is not None:
        parts.append(Text(f"{comment.path}#l{comment.line}", style=FAINT_TEXT))
    parts.append(Text.from_ansi(renderer.render(comment.body)))
    return Group(*parts)


def render_review(review: Review, renderer: MarkdownRenderer) -> RenderableType:
    """Render one whole-PR review; raises whatever the markdown renderer raises."""
    glyph, color = REVIEW_GLYPHS.get(review.state, ("", FAINT_TEXT))
    header = Text()
    if glyph:
        header.append(glyph, style=color)
        header.append(" ")
    header.append(review.author, style="bold")
    header.append(f" reviewed {time_elapsed(review.updated_at)}", style=FAINT_TEXT)
    return Group(header, Text.from_ansi(renderer.render(review.body)))


def render_activity(subject: Subject, width: int, selected_index: int) -> RenderableType:
    renderer = get_markdown_renderer(content_width(width) - 2)
    items = build_activity(
        subject,
        lambda c, selected: render_comment(c, renderer, selected),
        lambda r: render_review(r, renderer),
        selected_index,
    )
    count = sum(1 for item in items if item.kind is ActivityKind.COMMENT)
    title = Text(f" {count} comments" if subject.is_pr else " Comments", style="underline")
    if not items:
        return Group(title, Text(""), Text("No comments...", style="italic"))
    return Group(title, Text(""), *[item.rendered for item in items])


def render_input_box(input_box: InputBox) -> RenderableType:
    text = Text()
    value = input_box.value
    cursor = min(input_box.cursor, len(value))
    text.append(value[:cursor])
    if input_box.focused:
        under = value[cursor : cursor + 1]
        text.append(under if under and under != "\n" else " ", style="reverse")
        if under == "\n":
            text.append("\n")
        text.append(value[cursor + 1 :])
    else:
        text.append(value[cursor:])
    if not value and not input_box.focused:
        text = Text(input_box.prompt, style=FAINT_TEXT)
    prompt_style = ERROR_TEXT if input_box.prompt.startswith("Discard") else FAINT_TEXT
    return Panel(
        text,
        title=Text(input_box.prompt, style=prompt_style),
        title_align="left",
        box=box.ROUNDED,
        border_style=PRIMARY_BORDER if input_box.focused else FAINT_BORDER,
        height=input_box.height + 2,
        width=input_box.width,
    )


def render_autocomplete(ac: Autocomplete) -> RenderableType | None:
    lines: list[Text] = []
    if ac.status is FetchStatus.LOADING:
        lines.append(Text(f"{ac.spinner} Fetching labels...", style=FAINT_TEXT))
    elif ac.status is FetchStatus.ERROR:
        lines.append(Text(f"✗ Failed to fetch labels: {ac.error}", style=ERROR_TEXT))
    elif ac.status is FetchStatus.SUCCESS:
        lines.append(Text("✓ Labels fetched", style="green"))
    if ac.has_suggestions:
        selected = ac.selected_suggestion()
        for name in ac.visible_window():
            style = f"bold {PRIMARY_BORDER}" if name == selected else ""
            lines.append(Text(f"{'›' if name == selected else ' '} {name}", style=style))
    if not lines:
        return None
    return Panel(Group(*lines), box=box.ROUNDED, border_style=FAINT_BORDER, width=ac.width)


def render_subject(subject: Subject, width: int, selected_index: int) -> RenderableType:
    parts: list[RenderableType] = [
        render_header(subject),
        render_title(subject),
        Text(""),
        render_status_pill(subject),
        Text(""),
        render_author(subject),
        Text(""),
    ]
    labels = render_labels(subject.labels)
    if labels is not None:
        parts += [labels, Text("")]
    parts += [render_body(subject, width), Text(""), render_activity(subject, width, selected_index)]
    return Group(*parts)
