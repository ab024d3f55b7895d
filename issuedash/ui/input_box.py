from __future__ import annotations

from typing import Any

# Resting height of the input area, in rows.
INPUT_BOX_HEIGHT = 8


class InputBox:
    """Editable multi-line text buffer embedded in the detail view.

    The view owns focus and rendering; this object only holds the text, the
    cursor offset and presentation hints, and applies key events to them.
    """

    def __init__(self, height: int = INPUT_BOX_HEIGHT, width: int = 80) -> None:
        self.value = ""
        self.cursor = 0
        self.prompt = ""
        self.height = height
        self.width = width
        self.focused = False

    def reset(self) -> None:
        self.value = ""
        self.cursor = 0

    def set_value(self, value: str) -> None:
        """Replace the text and move the cursor to its end."""
        self.value = value
        self.cursor = len(value)

    def set_prompt(self, prompt: str) -> None:
        self.prompt = prompt

    def set_height(self, height: int) -> None:
        self.height = max(1, height)

    def set_width(self, width: int) -> None:
        self.width = max(1, width)

    def focus(self) -> None:
        self.focused = True

    def blur(self) -> None:
        self.focused = False

    def _line_bounds(self, pos: int) -> tuple[int, int]:
        start = self.value.rfind("\n", 0, pos) + 1
        end = self.value.find("\n", pos)
        return start, len(self.value) if end == -1 else end

    def _insert(self, text: str) -> None:
        self.value = self.value[: self.cursor] + text + self.value[self.cursor :]
        self.cursor += len(text)

    def _move_vertical(self, down: bool) -> None:
        start, end = self._line_bounds(self.cursor)
        column = self.cursor - start
        if down:
            if end >= len(self.value):
                return
            next_start, next_end = self._line_bounds(end + 1)
            self.cursor = min(next_start + column, next_end)
        else:
            if start == 0:
                return
            prev_start, prev_end = self._line_bounds(start - 1)
            self.cursor = min(prev_start + column, prev_end)

    def update(self, event: Any) -> bool:
        """Apply a key event to the buffer.

        Args:
            event: A Textual key event (anything with `key` and `character`).

        Returns:
            True if the event edited the text or moved the cursor.
        """
        if not self.focused:
            return False
        key = event.key
        if key == "left":
            self.cursor = max(0, self.cursor - 1)
        elif key == "right":
            self.cursor = min(len(self.value), self.cursor + 1)
        elif key == "home":
            self.cursor = self._line_bounds(self.cursor)[0]
        elif key == "end":
            self.cursor = self._line_bounds(self.cursor)[1]
        elif key == "up":
            self._move_vertical(down=False)
        elif key == "down":
            self._move_vertical(down=True)
        elif key == "backspace":
            if self.cursor > 0:
                self.value = self.value[: self.cursor - 1] + self.value[self.cursor :]
                self.cursor -= 1
        elif key == "delete":
            self.value = self.value[: self.cursor] + self.value[self.cursor + 1 :]
        elif key == "enter":
            self._insert("\n")
        else:
            character = getattr(event, "character", None)
            if not character or not character.isprintable():
                return False
            self._insert(character)
        return True
