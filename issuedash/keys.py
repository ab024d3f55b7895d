from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any

# Default bindings; config `keymap` entries override by action name using a
# comma-separated key list, e.g. {"next_comment": "n,down"}.
DEFAULT_KEYMAP: dict[str, str] = {
    "comment": "c",
    "label": "L",
    "assign": "a",
    "unassign": "A",
    "close": "x",
    "reopen": "X",
    "editor_comment": "e",
    "comment_nav": "tab",
    "next_comment": "j,down",
    "prev_comment": "k,up",
    "quote_reply": "q",
    "submit": "ctrl+d",
    "cancel": "escape,ctrl+c",
    "refresh_suggestions": "ctrl+f",
    "accept_suggestion": "tab",
    "next_suggestion": "down,ctrl+n",
    "prev_suggestion": "up,ctrl+p",
}


def parse_keys(value: str) -> list[str]:
    """Split a comma-separated key list, dropping blanks."""
    return [k.strip() for k in value.split(",") if k.strip()]


def key_matches(event: Any, keys: list[str]) -> bool:
    """Return True if a Textual key event matches any of `keys`.

    Both the key name and the typed character are compared so that shifted
    letters match however the terminal reports them.

    Args:
        event: An object with `key` and `character` attributes.
        keys: Key names or characters.
    """
    if event.key in keys:
        return True
    character = getattr(event, "character", None)
    return bool(character) and character.isprintable() and character in keys


@dataclass
class IssueKeys:
    comment: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["comment"]))
    label: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["label"]))
    assign: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["assign"]))
    unassign: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["unassign"]))
    close: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["close"]))
    reopen: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["reopen"]))
    editor_comment: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["editor_comment"]))
    comment_nav: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["comment_nav"]))
    next_comment: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["next_comment"]))
    prev_comment: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["prev_comment"]))
    quote_reply: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["quote_reply"]))
    submit: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["submit"]))
    cancel: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["cancel"]))
    refresh_suggestions: list[str] = field(
        default_factory=lambda: parse_keys(DEFAULT_KEYMAP["refresh_suggestions"])
    )
    accept_suggestion: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["accept_suggestion"]))
    next_suggestion: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["next_suggestion"]))
    prev_suggestion: list[str] = field(default_factory=lambda: parse_keys(DEFAULT_KEYMAP["prev_suggestion"]))

    @classmethod
    def from_keymap(cls, keymap: dict[str, str] | None) -> IssueKeys:
        """Build bindings from defaults plus config overrides.

        Unknown action names are ignored.

        Args:
            keymap: Mapping of action name to comma-separated keys.

        Returns:
            The resolved bindings.
        """
        keys = cls()
        names = {f.name for f in fields(cls)}
        for name, value in (keymap or {}).items():
            if name in names and parse_keys(value):
                setattr(keys, name, parse_keys(value))
        return keys
