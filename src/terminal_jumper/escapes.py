"""Terminal control sequences used by the renderer.

Coordinates are zero-based ``(x, y)`` = ``(column, row)``; they are
converted to the one-based form the terminal expects here and nowhere else.
"""

from __future__ import annotations

import re

ESC = "\x1b"
CSI = "\x1b["

ERASE_DOWN = "\x1b[J"
ERASE_LINE_END = "\x1b[K"
CURSOR_POSITION_QUERY = "\x1b[6n"

_CURSOR_TO_FMT = "\x1b[{};{}H"
_CURSOR_UP_FMT = "\x1b[{}A"
_CURSOR_DOWN_FMT = "\x1b[{}B"
_CURSOR_FORWARD_FMT = "\x1b[{}C"
_CURSOR_BACK_FMT = "\x1b[{}D"

_CURSOR_POSITION_RE = re.compile(r"\x1b\[(\d+);(\d+)R")


def cursor_to(x: int, y: int) -> str:
    """Move the cursor to column *x*, row *y* (both zero-based)."""
    return _CURSOR_TO_FMT.format(y + 1, x + 1)


def cursor_move(x: int, y: int = 0) -> str:
    """Move the cursor relative to its current position.

    Negative *x* moves left, negative *y* moves up.  A zero delta emits
    nothing.
    """
    parts: list[str] = []
    if x < 0:
        parts.append(_CURSOR_BACK_FMT.format(-x))
    elif x > 0:
        parts.append(_CURSOR_FORWARD_FMT.format(x))
    if y < 0:
        parts.append(_CURSOR_UP_FMT.format(-y))
    elif y > 0:
        parts.append(_CURSOR_DOWN_FMT.format(y))
    return "".join(parts)


def parse_cursor_position(data: str) -> tuple[int, int] | None:
    """Parse a ``ESC[<row>;<col>R`` reply into zero-based ``(row, col)``.

    Returns ``None`` when *data* holds no complete reply.
    """
    m = _CURSOR_POSITION_RE.search(data)
    if m is None:
        return None
    return int(m.group(1)) - 1, int(m.group(2)) - 1
