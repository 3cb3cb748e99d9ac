"""Division: a rectangular terminal region with declarative geometry.

A division's position and size are declared as numbers, expressions
(``"50% - 2"``) or references to other divisions (``"{header} + 1"``), and
are resolved by :meth:`Division.recompute` against the terminal size and
the already-resolved geometry of the divisions it references.

Resolution order inside ``recompute``:

1. width
2. content lines (wrapped at the width)
3. height, unclamped (explicit, or the natural content height)
4. top (a bottom-anchored division needs the height from step 3)
5. height, clamped so the division stays inside the viewport
6. left
7. scroll bounds, with scrollbar rows/columns reserved
8. scroll offsets re-clamped into the new bounds
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, TypedDict, Union

from terminal_jumper.errors import (
    ConfigurationError,
    GeometryNotResolved,
    JumperLookupError,
    OutOfRange,
)
from terminal_jumper.escapes import cursor_move, cursor_to
from terminal_jumper.text_block import TextBlock
from terminal_jumper.utils import (
    apply_line_reset,
    pad_to_width,
    slice_by_column,
    visible_width,
)

if TYPE_CHECKING:
    from terminal_jumper.jumper import TerminalJumper

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

FILL_HEIGHT = "fill"

GeometryValue = Union[int, float, str]


class ScrollBarOptions(TypedDict):
    foreground: str
    background: str


class DivisionOptions(TypedDict, total=False):
    id: str
    top: GeometryValue
    bottom: GeometryValue
    left: GeometryValue
    right: GeometryValue
    width: GeometryValue
    height: GeometryValue
    overflow_x: Literal["wrap", "scroll"]
    overflow_y: Literal["auto", "scroll"]
    wrap_on_word: bool
    scroll_bar_x: Union[ScrollBarOptions, bool]
    scroll_bar_y: Union[ScrollBarOptions, bool]
    render_order: int


_DEFAULT_OPTIONS: DivisionOptions = {
    "overflow_x": "wrap",
    "overflow_y": "auto",
    "wrap_on_word": True,
    "scroll_bar_x": False,
    "scroll_bar_y": False,
    "render_order": 0,
}

_GEOMETRY_FIELDS = ("top", "bottom", "left", "right", "width", "height")

# ``{id}`` optionally followed by the property to read from that division
REFERENCE_RE = re.compile(
    r"\{([^{}]+)\}(top|left|bottom|right|width|height)?(?![A-Za-z])"
)

# Scrollbar glyphs
_GREY = "\x1b[38;2;102;102;102m"
_WHITE = "\x1b[37m"
_BOLD = "\x1b[1m"
_RESET = "\x1b[0m"

SCROLL_BAR_VERTICAL_BACKGROUND = f"{_BOLD}{_GREY}⎹{_RESET}"
SCROLL_BAR_VERTICAL_FOREGROUND = f"{_BOLD}{_WHITE}⎹{_RESET}"
SCROLL_BAR_HORIZONTAL_BACKGROUND = f"{_GREY}▁{_RESET}"
SCROLL_BAR_HORIZONTAL_FOREGROUND = f"{_WHITE}▁{_RESET}"


def _is_geometry(value: object) -> bool:
    return isinstance(value, (int, float, str)) and not isinstance(value, bool)


def _parse_options(options: DivisionOptions) -> DivisionOptions:
    """Validate *options* and merge them over the defaults."""
    division_id = options.get("id")
    if not division_id or not isinstance(division_id, str):
        raise ConfigurationError('Options property "id" must be present.')
    if "." in division_id:
        raise ConfigurationError(
            f'Division id "{division_id}" must not contain ".".'
        )

    has_top = _is_geometry(options.get("top"))
    has_bottom = _is_geometry(options.get("bottom"))
    if has_top == has_bottom:
        raise ConfigurationError(
            f'Division "{division_id}": set exactly one of "top" or "bottom".'
        )

    has_left = _is_geometry(options.get("left"))
    has_right = _is_geometry(options.get("right"))
    if has_left == has_right:
        raise ConfigurationError(
            f'Division "{division_id}": set exactly one of "left" or "right".'
        )

    if not _is_geometry(options.get("width")):
        raise ConfigurationError(
            f'Division "{division_id}": options property "width" must be given.'
        )

    merged: DivisionOptions = {**_DEFAULT_OPTIONS, **options}

    if merged["overflow_x"] not in ("wrap", "scroll"):
        raise ConfigurationError(
            f'Division "{division_id}": overflow_x must be "wrap" or "scroll".'
        )
    if merged["overflow_y"] not in ("auto", "scroll"):
        raise ConfigurationError(
            f'Division "{division_id}": overflow_y must be "auto" or "scroll".'
        )

    height = merged.get("height")
    if height is not None and not _is_geometry(height):
        raise ConfigurationError(
            f'Division "{division_id}": "height" must be a number or a string.'
        )
    if merged["overflow_y"] == "scroll" and height is None:
        raise ConfigurationError(
            f'Division "{division_id}": must set height when overflow_y is "scroll".'
        )
    if height == FILL_HEIGHT and has_bottom:
        raise ConfigurationError(
            f'Division "{division_id}": a "{FILL_HEIGHT}" height needs a "top" anchor.'
        )

    for axis, overflow in (("x", "overflow_x"), ("y", "overflow_y")):
        bar = merged[f"scroll_bar_{axis}"]  # type: ignore[literal-required]
        if not bar:
            continue
        if merged[overflow] != "scroll":  # type: ignore[literal-required]
            raise ConfigurationError(
                f'Division "{division_id}": must set {overflow} as "scroll" '
                f"if scroll bars are present."
            )
        if isinstance(bar, dict) and not {"foreground", "background"} <= set(bar):
            raise ConfigurationError(
                f'Division "{division_id}": scroll_bar_{axis} needs '
                f'"foreground" and "background".'
            )

    return merged


def _constrain(value: int, maximum: int) -> int:
    """Cap the magnitude of *value* at *maximum*, keeping its sign."""
    if abs(value) > maximum:
        return maximum if value >= 0 else -maximum
    return value


def scroll_bar_glyphs(
    length: int,
    total: int,
    position: int,
    max_scroll: int,
    foreground: str,
    background: str,
) -> list[str]:
    """Build a scrollbar of *length* cells for a window onto *total* rows.

    The thumb is ``max(1, length * length // total)`` cells long and sits
    at the scroll position's share of the remaining travel; at the maximum
    scroll position it is flush with the far end.
    """
    if length <= 0:
        return []
    thumb = length if total <= 0 else max(1, (length * length) // total)
    thumb = min(thumb, length)
    travel = length - thumb

    if max_scroll <= 0:
        start = 0
    elif position >= max_scroll:
        start = travel
    else:
        start = (position * travel) // max_scroll

    return (
        [background] * start
        + [foreground] * thumb
        + [background] * (length - start - thumb)
    )


@dataclass(frozen=True)
class RenderRect:
    """Absolute terminal rectangle a division last drew into."""

    top: int
    left: int
    width: int
    height: int

    def shifted(self, rows: int) -> RenderRect:
        return RenderRect(self.top + rows, self.left, self.width, self.height)


# ---------------------------------------------------------------------------
# Division
# ---------------------------------------------------------------------------


class Division:
    """A rectangular region holding an ordered list of text blocks."""

    def __init__(self, options: DivisionOptions) -> None:
        self.options: DivisionOptions = _parse_options(options)
        self.jumper: TerminalJumper | None = None

        # Computed geometry; ``None`` while invalid
        self._top: int | None = None
        self._left: int | None = None
        self._width: int | None = None
        self._height: int | None = None
        self._max_scroll_x: int | None = None
        self._max_scroll_y: int | None = None
        self._scroll_bar_x = False
        self._scroll_bar_y = False

        # Survive recomputation
        self._scroll_x = 0
        self._scroll_y = 0

        # Content
        self.block_ids: list[str] = []
        self._blocks: dict[str, TextBlock] = {}
        self._block_positions: dict[str, tuple[int, int]] = {}
        self._wrap_width: int | None = None
        self._all_lines: list[str] | None = None
        self._lines_stale = False
        self._id_counter = 0

        self._last_render: RenderRect | None = None

    def __repr__(self) -> str:
        return f"Division(id={self.id!r})"

    # ------------------------------------------------------------------
    # Identity / options
    # ------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.options["id"]

    @property
    def render_order(self) -> int:
        return self.options["render_order"]

    @property
    def is_fill(self) -> bool:
        return self.options.get("height") == FILL_HEIGHT

    def references(self) -> set[str]:
        """Ids of the divisions this division's geometry refers to."""
        refs: set[str] = set()
        for name in _GEOMETRY_FIELDS:
            value = self.options.get(name)
            if isinstance(value, str):
                refs.update(m.group(1) for m in REFERENCE_RE.finditer(value))
        return refs

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def add_block(
        self,
        text: str | list[str] = "",
        block_id: str | None = None,
        index: int | None = None,
    ) -> TextBlock:
        """Create a block from *text* at *index* (default: the end)."""
        if block_id is None:
            block_id = self._generate_block_id()
        elif block_id in self._blocks:
            raise ConfigurationError(
                f'Block "{block_id}" already exists in division "{self.id}".'
            )

        block = TextBlock(text)
        position = len(self.block_ids) if index is None else index
        self.block_ids.insert(position, block_id)
        self._blocks[block_id] = block
        self._block_positions[block_id] = (0, 0)
        block.division = self

        self._set_dirty()
        return block

    def _generate_block_id(self) -> str:
        while True:
            block_id = f"block-{self._id_counter}"
            self._id_counter += 1
            if block_id not in self._blocks:
                return block_id

    def get_block(self, block_id: str) -> TextBlock:
        block = self._blocks.get(block_id)
        if block is None:
            raise JumperLookupError(
                f'Could not find block "{block_id}" in division "{self.id}".'
            )
        return block

    def has_block(self, block_id: str) -> bool:
        return block_id in self._blocks

    def remove_block(self, block_id: str) -> None:
        block = self.get_block(block_id)
        block.destroy()
        self.block_ids.remove(block_id)
        del self._blocks[block_id]
        del self._block_positions[block_id]
        self._set_dirty()

    def get_block_at_index(self, index: int) -> TextBlock:
        if not self.has_block_at_index(index):
            raise JumperLookupError(
                f'Could not find block at index {index} in division "{self.id}".'
            )
        return self._blocks[self.block_ids[index]]

    def has_block_at_index(self, index: int) -> bool:
        return 0 <= index < len(self.block_ids)

    def remove_block_at_index(self, index: int) -> None:
        self.get_block_at_index(index)
        self.remove_block(self.block_ids[index])

    def set_content(self, content: str | list[str] | None) -> None:
        """Replace the blocks positionally with *content*.

        Block ``i`` receives item ``i``; missing blocks are created and
        surplus blocks removed.
        """
        if not content:
            items: list[str] = []
        elif isinstance(content, str):
            items = [content]
        else:
            items = list(content)

        for i, text in enumerate(items):
            if self.has_block_at_index(i):
                self.get_block_at_index(i).set_content(text)
            else:
                self.add_block(text)

        while self.has_block_at_index(len(items)):
            self.remove_block_at_index(len(items))

    def reset(self) -> None:
        """Drop every block and both scroll offsets."""
        for block in self._blocks.values():
            block.destroy()
        self.block_ids = []
        self._blocks = {}
        self._block_positions = {}
        self._id_counter = 0
        self._scroll_x = self._scroll_y = 0
        self._set_dirty()

    def measure_params(self) -> tuple[int, str, bool] | None:
        """``(width, overflow_x, wrap_on_word)`` blocks are measured with.

        ``None`` until the width has been resolved.
        """
        if self._wrap_width is None:
            return None
        return (
            self._wrap_width,
            self.options["overflow_x"],
            self.options["wrap_on_word"],
        )

    def on_block_resized(self, block: TextBlock) -> None:
        """A block edit changed its height: full relayout."""
        self._set_dirty()

    def on_block_changed(self, block: TextBlock) -> None:
        """A block edit kept its height: redraw only.

        The edit may still change the content width enough to add or drop
        a scrollbar, which takes a full relayout.
        """
        self._lines_stale = True
        if self.is_valid() and (
            self.options["scroll_bar_x"] or self.options["scroll_bar_y"]
        ):
            self.refresh_content()
            bars = (self._scroll_bar_x, self._scroll_bar_y)
            if self._scroll_bars_needed(*bars) != bars:
                self._set_dirty()
                return
        self._set_needs_render()

    # ------------------------------------------------------------------
    # Geometry accessors
    # ------------------------------------------------------------------

    def is_valid(self) -> bool:
        return (
            self._top is not None
            and self._left is not None
            and self._width is not None
            and self._height is not None
            and self._all_lines is not None
        )

    def _require(self, value: int | None, name: str) -> int:
        if value is None:
            raise GeometryNotResolved(
                f'Division "{self.id}": {name} is read before recompute().'
            )
        return value

    @property
    def top(self) -> int:
        return self._require(self._top, "top")

    @property
    def left(self) -> int:
        return self._require(self._left, "left")

    @property
    def width(self) -> int:
        return self._require(self._width, "width")

    @property
    def height(self) -> int:
        return self._require(self._height, "height")

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def content_width(self) -> int:
        """Width minus the vertical scrollbar column."""
        return max(0, self.width - (1 if self._scroll_bar_y else 0))

    @property
    def content_height(self) -> int:
        """Height minus the horizontal scrollbar row."""
        return max(0, self.height - (1 if self._scroll_bar_x else 0))

    @property
    def all_lines(self) -> list[str]:
        if self._all_lines is None:
            raise GeometryNotResolved(
                f'Division "{self.id}": lines are read before recompute().'
            )
        return self._all_lines

    @property
    def natural_width(self) -> int:
        return max((visible_width(line) for line in self.all_lines), default=0)

    @property
    def natural_height(self) -> int:
        return len(self.all_lines)

    @property
    def max_scroll_x(self) -> int:
        return self._require(self._max_scroll_x, "max_scroll_x")

    @property
    def max_scroll_y(self) -> int:
        return self._require(self._max_scroll_y, "max_scroll_y")

    @property
    def scroll_pos_x(self) -> int:
        return self._scroll_x

    @property
    def scroll_pos_y(self) -> int:
        return self._scroll_y

    @property
    def has_scroll_bar_x(self) -> bool:
        return self._scroll_bar_x

    @property
    def has_scroll_bar_y(self) -> bool:
        return self._scroll_bar_y

    @property
    def last_render(self) -> RenderRect | None:
        return self._last_render

    def block_position(self, block_id: str) -> tuple[int, int]:
        """``(row, col)`` of *block_id* inside the division's content."""
        self.get_block(block_id)
        if self._all_lines is None:
            raise GeometryNotResolved(
                f'Division "{self.id}": block positions are read before recompute().'
            )
        return self._block_positions[block_id]

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def invalidate(self, capture_erase: bool = True) -> None:
        """Drop cached geometry and lines.

        With *capture_erase*, and once the engine has rendered, the last
        render rectangle is queued for erasing at the start of the next pass.
        """
        jumper = self.jumper
        if (
            capture_erase
            and jumper is not None
            and jumper.is_initially_rendered
            and self._last_render is not None
        ):
            jumper.render_injects.set(f"before:erase:{self.id}", self.erase_string())

        self._top = self._left = self._width = self._height = None
        self._max_scroll_x = self._max_scroll_y = None
        self._wrap_width = None
        self._all_lines = None
        self._lines_stale = False

    def recompute(self, force: bool = False) -> None:
        """Resolve geometry, content lines and scroll bounds."""
        if self.is_valid() and not force:
            return

        jumper = self._require_jumper()
        available_height = jumper.available_height
        width = max(0, self._evaluate("width", jumper.width))
        self._width = width

        bar_x = bar_y = False
        for attempt in range(3):
            wrap_width = width - (1 if bar_y else 0)
            self._populate_lines(wrap_width)

            height = self._unclamped_height(available_height, bar_x)
            top = self._resolve_top(height, available_height)
            if self.is_fill:
                height = jumper.fill_height - top
            self._top = top
            self._height = max(0, min(height, available_height - top))

            next_x, next_y = self._scroll_bars_needed(bar_x, bar_y)
            if (next_x, next_y) == (bar_x, bar_y) or attempt == 2:
                break
            bar_x, bar_y = next_x, next_y

        self._scroll_bar_x = bar_x
        self._scroll_bar_y = bar_y
        self._left = self._resolve_left(width)
        self._update_scroll_bounds()

        logger.debug(
            "Division %r resolved to top=%d left=%d width=%d height=%d",
            self.id,
            self._top,
            self._left,
            self._width,
            self._height,
        )

    def _unclamped_height(self, available_height: int, bar_x: bool) -> int:
        value = self.options.get("height")
        if value is None:
            return self.natural_height + (1 if bar_x else 0)
        if value == FILL_HEIGHT:
            return 0
        return self._evaluate("height", available_height)

    def _resolve_top(self, height: int, available_height: int) -> int:
        if _is_geometry(self.options.get("top")):
            top = self._evaluate("top", available_height)
        else:
            top = available_height - height - self._evaluate("bottom", available_height)
        return max(0, top)

    def _resolve_left(self, width: int) -> int:
        jumper = self._require_jumper()
        if _is_geometry(self.options.get("left")):
            left = self._evaluate("left", jumper.width)
        else:
            left = jumper.width - width - self._evaluate("right", jumper.width)
        return max(0, left)

    def _scroll_bars_needed(self, bar_x: bool, bar_y: bool) -> tuple[bool, bool]:
        """Which scrollbars the current layout calls for."""
        width, height = self._width, self._height
        if width is None or height is None:
            raise GeometryNotResolved(
                f'Division "{self.id}": scrollbars are checked before recompute().'
            )
        max_x = self.natural_width - (width - (1 if bar_y else 0))
        max_y = self.natural_height - (height - (1 if bar_x else 0))
        return (
            bool(self.options["scroll_bar_x"]) and max_x > 0,
            bool(self.options["scroll_bar_y"]) and max_y > 0,
        )

    def _update_scroll_bounds(self) -> None:
        self._max_scroll_x = max(0, self.natural_width - self.content_width)
        self._max_scroll_y = max(0, self.natural_height - self.content_height)
        self._scroll_x = _constrain(self._scroll_x, self._max_scroll_x)
        self._scroll_y = _constrain(self._scroll_y, self._max_scroll_y)

    def _populate_lines(self, wrap_width: int) -> None:
        self._wrap_width = max(0, wrap_width)
        overflow_x = self.options["overflow_x"]
        wrap_on_word = self.options["wrap_on_word"]

        lines: list[str] = []
        for block_id in self.block_ids:
            block = self._blocks[block_id]
            self._block_positions[block_id] = (len(lines), 0)
            lines.extend(block.lines(self._wrap_width, overflow_x, wrap_on_word))

        self._all_lines = lines
        self._lines_stale = False

    def refresh_content(self) -> None:
        """Re-read block text after edits that kept every block's height."""
        wrap_width = self._wrap_width
        if not self._lines_stale or wrap_width is None or not self.is_valid():
            return
        self._populate_lines(wrap_width)
        self._update_scroll_bounds()

    def _evaluate(self, name: str, basis: int) -> int:
        """Evaluate geometry option *name* with *basis* as the ``%`` base."""
        expression = self.options[name]  # type: ignore[literal-required]
        return self._require_jumper().evaluate(expression, name, basis)

    def reference_value(self, name: str, prop: str | None = None) -> int:
        """Value this division contributes to another's *name* expression.

        An explicit *prop* reads that edge or size directly.  Otherwise a
        ``top`` reference aligns below this division, ``left`` to its
        right, ``bottom`` above it and ``right`` to its left.
        """
        if prop is not None:
            return getattr(self, prop)

        jumper = self._require_jumper()
        if name == "top":
            return self.bottom
        if name == "left":
            return self.right
        if name == "bottom":
            return jumper.available_height - self.top
        if name == "right":
            return jumper.width - self.left
        if name == "width":
            return self.width
        return self.height

    # ------------------------------------------------------------------
    # Scrolling
    # ------------------------------------------------------------------

    def scroll(self, x: int | None = None, y: int | None = None) -> Division:
        """Set either or both scroll offsets, clamped to the scroll bounds."""
        changed = False
        if x is not None:
            if self._max_scroll_x is not None:
                x = _constrain(x, self._max_scroll_x)
            x = max(0, x)
            if x != self._scroll_x:
                self._scroll_x = x
                changed = True
        if y is not None:
            if self._max_scroll_y is not None:
                y = _constrain(y, self._max_scroll_y)
            y = max(0, y)
            if y != self._scroll_y:
                self._scroll_y = y
                changed = True
        if changed:
            self._set_needs_render()
        return self

    def scroll_x(self, x: int) -> Division:
        return self.scroll(x=x)

    def scroll_y(self, y: int) -> Division:
        return self.scroll(y=y)

    def scroll_up(self, amount: int) -> Division:
        return self.scroll(y=self._scroll_y - amount)

    def scroll_down(self, amount: int) -> Division:
        return self.scroll(y=self._scroll_y + amount)

    def scroll_left(self, amount: int) -> Division:
        return self.scroll(x=self._scroll_x - amount)

    def scroll_right(self, amount: int) -> Division:
        return self.scroll(x=self._scroll_x + amount)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> Division:
        jumper = self._require_jumper()
        jumper.terminal.write(self.render_string())
        return self

    def render_string(self) -> str:
        """Control sequences that draw the visible part of this division."""
        jumper = self._require_jumper()
        self.refresh_content()

        injects = jumper.render_injects
        tag = re.escape(self.id)
        out = [injects.inject(f"^{tag}:before:")]

        width = self.width
        height = self.height
        content_width = self.content_width
        content_height = self.content_height
        start_left = jumper.origin.col + self.left
        start_top = jumper.origin.row + self.top

        visible = self.all_lines[self._scroll_y : self._scroll_y + content_height]
        blank = " " * content_width
        for i in range(content_height):
            if i < len(visible):
                line = slice_by_column(visible[i], self._scroll_x, content_width)
                line = pad_to_width(apply_line_reset(line), content_width)
            else:
                line = blank
            out.append(cursor_to(start_left, start_top + i) + line)

        if self._scroll_bar_y:
            glyphs = self._scroll_bar("y", content_height)
            injects.set(
                f"{self.id}:after:scroll-bar-y",
                cursor_to(start_left + width - 1, start_top)
                + cursor_move(-1, 1).join(glyphs),
            )
        if self._scroll_bar_x:
            glyphs = self._scroll_bar("x", content_width)
            injects.set(
                f"{self.id}:after:scroll-bar-x",
                cursor_to(start_left, start_top + height - 1) + "".join(glyphs),
            )

        out.append(injects.inject(f"^{tag}:after:"))
        self._last_render = RenderRect(start_top, start_left, width, height)
        return "".join(out)

    def _scroll_bar(self, axis: str, length: int) -> list[str]:
        option = self.options["scroll_bar_x" if axis == "x" else "scroll_bar_y"]
        if isinstance(option, dict):
            fg, bg = option["foreground"], option["background"]
        elif axis == "x":
            fg, bg = SCROLL_BAR_HORIZONTAL_FOREGROUND, SCROLL_BAR_HORIZONTAL_BACKGROUND
        else:
            fg, bg = SCROLL_BAR_VERTICAL_FOREGROUND, SCROLL_BAR_VERTICAL_BACKGROUND

        if axis == "x":
            return scroll_bar_glyphs(
                length, self.natural_width, self._scroll_x, self.max_scroll_x, fg, bg
            )
        return scroll_bar_glyphs(
            length, self.natural_height, self._scroll_y, self.max_scroll_y, fg, bg
        )

    def erase(self) -> Division:
        jumper = self._require_jumper()
        jumper.terminal.write(self.erase_string())
        return self

    def erase_string(self, rect: RenderRect | None = None) -> str:
        """Blank out *rect*, by default the rectangle of the last render.

        Falls back to the current geometry if the division never rendered.
        """
        if rect is None:
            rect = self._last_render
        if rect is None:
            jumper = self._require_jumper()
            rect = RenderRect(
                jumper.origin.row + self.top,
                jumper.origin.col + self.left,
                self.width,
                self.height,
            )

        blank = " " * rect.width
        return "".join(
            cursor_to(rect.left, rect.top + i) + blank for i in range(rect.height)
        )

    def shift_render_cache(self, rows: int) -> None:
        """Move the recorded render rectangle after the terminal scrolled."""
        if self._last_render is not None:
            self._last_render = self._last_render.shifted(rows)

    # ------------------------------------------------------------------
    # Cursor addressing
    # ------------------------------------------------------------------

    def jump_to_string(self, col: int = 0, row: int = 0) -> str:
        """Move the cursor to *col*, *row* of this division's content.

        Negative values count from the far edge: ``row=-1`` is the last
        line and ``col=-1`` the cell just after that line's last character.
        """
        lines = self.all_lines
        if lines or row not in (0, -1):
            if row < -len(lines) or row >= len(lines):
                raise OutOfRange(
                    f'Row {row} is outside of division "{self.id}" '
                    f"with {len(lines)} rows."
                )
        if lines and row < 0:
            row += len(lines)
        if col < 0:
            line_width = visible_width(lines[row]) if lines else 0
            col += line_width + 1
        if col < 0 or row < 0:
            raise OutOfRange(f'Column {col} is outside of division "{self.id}".')
        return self._jump_to_content(col, row)

    def jump_to_block_string(
        self,
        block_id: str,
        col: int = 0,
        row: int = 0,
    ) -> str:
        """Move the cursor to *col*, *row* of block *block_id*."""
        block = self.get_block(block_id)
        block_row, block_col = self.block_position(block_id)
        params = self.measure_params()
        if params is None:
            raise GeometryNotResolved(
                f'Division "{self.id}": blocks are addressed before recompute().'
            )

        block_height = block.height(*params)
        if row < -block_height or row >= block_height:
            raise OutOfRange(
                f'Row {row} is outside of block "{block_id}" '
                f"with {block_height} rows."
            )
        if row < 0:
            row += block_height
        if col < 0:
            col += block.get_width_on_row(row, *params) + 1
        if col < 0:
            raise OutOfRange(f'Column {col} is outside of block "{block_id}".')

        return self._jump_to_content(block_col + col, block_row + row)

    def _jump_to_content(self, x: int, y: int) -> str:
        """Cursor move to content cell (*x*, *y*), scrolling it into view."""
        jumper = self._require_jumper()
        out: list[str] = []

        scrolled = False
        rel_x = x - self._scroll_x
        rel_y = y - self._scroll_y
        if rel_x < 0:
            self.scroll_left(-rel_x)
            scrolled = True
        elif rel_x > self.content_width:
            self.scroll_right(rel_x - self.content_width)
            scrolled = True
        if rel_y < 0:
            self.scroll_up(-rel_y)
            scrolled = True
        elif rel_y >= self.content_height:
            self.scroll_down(rel_y - self.content_height + 1)
            scrolled = True

        if scrolled:
            out.append(jumper.render_string())

        rel_x = x - self._scroll_x
        rel_y = y - self._scroll_y
        out.append(
            cursor_to(
                jumper.origin.col + self.left + rel_x,
                jumper.origin.row + self.top + rel_y,
            )
        )
        return "".join(out)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, jumper: TerminalJumper) -> None:
        self.jumper = jumper

    def destroy(self) -> None:
        """Release every block and the engine back-reference."""
        for block in self._blocks.values():
            block.destroy()
        self.block_ids = []
        self._blocks = {}
        self._block_positions = {}
        self._all_lines = None
        self._last_render = None
        self.jumper = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_jumper(self) -> TerminalJumper:
        if self.jumper is None:
            raise GeometryNotResolved(
                f'Division "{self.id}" is not registered with a TerminalJumper.'
            )
        return self.jumper

    def _set_dirty(self) -> None:
        if self.jumper is not None and self.id in self.jumper.graph:
            self.jumper.graph.set_dirty(self)
        else:
            self.invalidate(capture_erase=False)

    def _set_needs_render(self) -> None:
        if self.jumper is not None and self.id in self.jumper.graph:
            self.jumper.graph.set_needs_render(self)
