"""Text blocks and the line measurer they are wrapped with.

A ``TextBlock`` holds raw text only.  Its visual lines depend on the width
and overflow settings of the division that owns it, so every measuring
method takes those settings as arguments.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from terminal_jumper.errors import OutOfRange
from terminal_jumper.utils import expand_tabs, visible_width, wrap_text_with_ansi

if TYPE_CHECKING:
    from terminal_jumper.division import Division

OverflowX = Literal["wrap", "scroll"]

# ---------------------------------------------------------------------------
# Measurement cache (capped at 256 entries)
# ---------------------------------------------------------------------------

_MeasureKey = tuple[str, int, str, bool]

_measure_cache: dict[_MeasureKey, tuple[str, ...]] = {}
_MEASURE_CACHE_MAX = 256


def measure(
    text: str,
    width: int,
    mode: OverflowX = "wrap",
    wrap_on_word: bool = True,
) -> list[str]:
    """Split *text* into the visual lines it occupies in *width* columns.

    ``scroll`` mode splits on explicit newlines only; overlong lines are
    left for the renderer to clip.  ``wrap`` mode additionally wraps each
    line to *width* columns, at word boundaries when *wrap_on_word* is set
    and every *width* columns otherwise.  Tabs are expanded first.
    """
    text = expand_tabs(text)
    key = (text, width, mode, wrap_on_word)
    cached = _measure_cache.get(key)
    if cached is not None:
        return list(cached)

    if mode == "scroll":
        lines = text.split("\n")
    elif mode == "wrap":
        lines = wrap_text_with_ansi(text, width, break_on_word=wrap_on_word)
    else:
        raise ValueError(f'Unknown overflow mode "{mode}".')

    if len(_measure_cache) >= _MEASURE_CACHE_MAX:
        _measure_cache.clear()
    _measure_cache[key] = tuple(lines)
    return lines


class TextBlock:
    """A unit of text content owned by exactly one division."""

    def __init__(self, text: str | list[str] = "") -> None:
        self.text = ""
        self.division: Division | None = None
        self.append(text)

    # -- content ------------------------------------------------------------

    def append(self, text: str | list[str]) -> TextBlock:
        """Append *text* (a string or list of fragments) to this block."""
        before = self._current_height()
        self.text += expand_tabs(_join(text))
        self._notify(before)
        return self

    def set_content(self, text: str | list[str]) -> TextBlock:
        """Replace this block's text."""
        before = self._current_height()
        self.text = expand_tabs(_join(text))
        self._notify(before)
        return self

    # -- measurement ---------------------------------------------------------

    def lines(
        self,
        width: int,
        overflow_x: OverflowX = "wrap",
        wrap_on_word: bool = True,
    ) -> list[str]:
        return measure(self.text, width, overflow_x, wrap_on_word)

    def height(
        self,
        width: int,
        overflow_x: OverflowX = "wrap",
        wrap_on_word: bool = True,
    ) -> int:
        return len(self.lines(width, overflow_x, wrap_on_word))

    def get_row(
        self,
        row: int,
        width: int,
        overflow_x: OverflowX = "wrap",
        wrap_on_word: bool = True,
    ) -> str:
        """Return visual line *row*; negative rows count from the end."""
        lines = self.lines(width, overflow_x, wrap_on_word)
        if row < -len(lines) or row >= len(lines):
            raise OutOfRange(
                f"Row {row} is outside of a block with {len(lines)} rows."
            )
        return lines[row]

    def get_width_on_row(
        self,
        row: int,
        width: int,
        overflow_x: OverflowX = "wrap",
        wrap_on_word: bool = True,
    ) -> int:
        return visible_width(self.get_row(row, width, overflow_x, wrap_on_word))

    # -- lifecycle ---------------------------------------------------------

    def destroy(self) -> None:
        self.division = None

    # -- internals ---------------------------------------------------------

    def _current_height(self) -> int | None:
        """Height at the owning division's current measuring settings."""
        if self.division is None:
            return None
        params = self.division.measure_params()
        if params is None:
            return None
        return self.height(*params)

    def _notify(self, height_before: int | None) -> None:
        if self.division is None:
            return
        height_after = self._current_height()
        if height_before is None or height_before != height_after:
            self.division.on_block_resized(self)
        else:
            self.division.on_block_changed(self)


def _join(text: str | list[str]) -> str:
    if isinstance(text, str):
        return text
    return "".join(text)
