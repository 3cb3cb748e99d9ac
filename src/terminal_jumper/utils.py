"""Terminal text utilities: ANSI handling, width measurement, wrapping.

All widths are terminal display columns: escape sequences count as zero,
East Asian wide characters and emoji count as two, and a tab counts as
``TAB_WIDTH`` columns.
"""

from __future__ import annotations

import re
import unicodedata

import grapheme
import wcwidth as _wcwidth

TAB_WIDTH = 8
RESET = "\x1b[0m"

# ---------------------------------------------------------------------------
# Regex patterns for ANSI / OSC / APC sequences
# ---------------------------------------------------------------------------

_STRIP_RE = re.compile(
    r"\x1b\[[0-9;?]*[@-~]"                   # CSI
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"    # OSC (hyperlinks, titles)
    r"|\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)"     # APC
)

# ---------------------------------------------------------------------------
# Width cache (capped at 512 entries)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def _cache_width(key: str, value: int) -> int:
    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[key] = value
    return value


# ---------------------------------------------------------------------------
# Grapheme width
# ---------------------------------------------------------------------------


def _grapheme_width(g: str) -> int:
    """Return the display width of a single grapheme cluster."""
    if not g:
        return 0

    if g == "\t":
        return TAB_WIDTH

    if len(g) == 1:
        cp = ord(g)
        if cp < 0x20 or 0x7F <= cp <= 0x9F:
            return 0
        return max(_wcwidth.wcwidth(g), 0)

    for ch in g:
        cp = ord(ch)
        # VS16, ZWJ sequences, skin tones and flags render as emoji
        if cp in (0xFE0F, 0x200D):
            return 2
        if 0x1F3FB <= cp <= 0x1F3FF or 0x1F1E6 <= cp <= 0x1F1FF:
            return 2

    first = g[0]
    if ord(first) >= 0x1F000:
        return 2
    if unicodedata.category(first) in ("Mn", "Me", "Mc", "Cf"):
        return 0
    return max(_wcwidth.wcwidth(first), 0)


# ---------------------------------------------------------------------------
# Escape sequence extraction
# ---------------------------------------------------------------------------


def extract_ansi_code(text: str, pos: int) -> tuple[str, int] | None:
    """Extract the escape sequence starting at *pos* in *text*.

    Returns ``(code, length)`` or ``None`` if no complete CSI, OSC or APC
    sequence starts at *pos*.
    """
    if pos + 1 >= len(text) or text[pos] != "\x1b":
        return None

    kind = text[pos + 1]

    if kind == "[":
        i = pos + 2
        while i < len(text):
            ch = text[i]
            if ch.isdigit() or ch in ";?":
                i += 1
                continue
            if "@" <= ch <= "~":
                code = text[pos : i + 1]
                return code, len(code)
            return None
        return None

    if kind in "]_":
        i = pos + 2
        while i < len(text):
            ch = text[i]
            if ch == "\x07":
                code = text[pos : i + 1]
                return code, len(code)
            if ch == "\x1b" and i + 1 < len(text) and text[i + 1] == "\\":
                code = text[pos : i + 2]
                return code, len(code)
            i += 1
        return None

    return None


def _segments(text: str) -> list[tuple[str, int | None]]:
    """Split *text* into escape sequences and grapheme clusters.

    Escape sequences are paired with ``None``; clusters with their width.
    """
    out: list[tuple[str, int | None]] = []
    run_start = 0
    i = 0
    n = len(text)

    def flush_run(end: int) -> None:
        if run_start < end:
            for g in grapheme.graphemes(text[run_start:end]):
                out.append((g, _grapheme_width(g)))

    while i < n:
        if text[i] == "\x1b":
            extracted = extract_ansi_code(text, i)
            if extracted is not None:
                code, length = extracted
                flush_run(i)
                out.append((code, None))
                i += length
                run_start = i
                continue
        i += 1

    flush_run(n)
    return out


# ---------------------------------------------------------------------------
# Width measurement
# ---------------------------------------------------------------------------


def strip_ansi(text: str) -> str:
    """Remove every escape sequence from *text*."""
    return _STRIP_RE.sub("", text)


def expand_tabs(text: str) -> str:
    """Replace each tab with ``TAB_WIDTH`` spaces."""
    return text.replace("\t", " " * TAB_WIDTH)


def visible_width(text: str) -> int:
    """Calculate the display width of *text* in terminal columns."""
    if not text:
        return 0

    stripped = expand_tabs(strip_ansi(text))
    if not stripped:
        return 0

    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = sum(_grapheme_width(g) for g in grapheme.graphemes(stripped))
    return _cache_width(stripped, total)


# ---------------------------------------------------------------------------
# AnsiCodeTracker
# ---------------------------------------------------------------------------

_SGR_SET = {
    1: "bold",
    2: "dim",
    3: "italic",
    4: "underline",
    5: "blink",
    7: "inverse",
    8: "hidden",
    9: "strikethrough",
}

_SGR_UNSET = {
    22: ("bold", "dim"),
    23: ("italic",),
    24: ("underline",),
    25: ("blink",),
    27: ("inverse",),
    28: ("hidden",),
    29: ("strikethrough",),
    39: ("fg",),
    49: ("bg",),
}


class AnsiCodeTracker:
    """Track the active SGR attributes across a run of text.

    Used to re-open styles at the start of a wrapped line and to close them
    with a reset at its end.
    """

    def __init__(self) -> None:
        self._active: dict[str, str] = {}

    def process(self, code: str) -> None:
        """Update the tracked state from a sequence like ``ESC[1;31m``."""
        if not code.startswith("\x1b[") or not code.endswith("m"):
            return

        body = code[2:-1]
        if not body:
            self.clear()
            return

        params = body.split(";")
        i = 0
        while i < len(params):
            try:
                val = int(params[i]) if params[i] else 0
            except ValueError:
                i += 1
                continue

            if val == 0:
                self.clear()
            elif val in _SGR_SET:
                self._active[_SGR_SET[val]] = f"\x1b[{val}m"
            elif val in _SGR_UNSET:
                for slot in _SGR_UNSET[val]:
                    self._active.pop(slot, None)
            elif 30 <= val <= 37 or 90 <= val <= 97:
                self._active["fg"] = f"\x1b[{val}m"
            elif 40 <= val <= 47 or 100 <= val <= 107:
                self._active["bg"] = f"\x1b[{val}m"
            elif val in (38, 48) and i + 1 < len(params):
                slot = "fg" if val == 38 else "bg"
                mode = params[i + 1]
                if mode == "5" and i + 2 < len(params):
                    self._active[slot] = f"\x1b[{val};5;{params[i + 2]}m"
                    i += 2
                elif mode == "2" and i + 4 < len(params):
                    rgb = ";".join(params[i + 2 : i + 5])
                    self._active[slot] = f"\x1b[{val};2;{rgb}m"
                    i += 4
                else:
                    i += 1
            i += 1

    def clear(self) -> None:
        self._active.clear()

    def has_active_codes(self) -> bool:
        return bool(self._active)

    def get_active_codes(self) -> str:
        """Return the codes that re-establish the current state."""
        return "".join(self._active.values())


# ---------------------------------------------------------------------------
# Wrapping
# ---------------------------------------------------------------------------


def wrap_text_with_ansi(
    text: str,
    width: int,
    break_on_word: bool = True,
) -> list[str]:
    """Wrap *text* to *width* columns, preserving escape sequences.

    Each explicit newline starts a new physical line, which is then wrapped
    independently.  With *break_on_word* lines are broken at the last space
    that fits; otherwise every line is hard-cut every *width* columns.
    Styles that are open at a break are closed with a reset and re-opened
    on the following line.
    """
    if width <= 0:
        return text.split("\n")

    tracker = AnsiCodeTracker()
    result: list[str] = []
    for physical_line in text.split("\n"):
        result.extend(_wrap_line(physical_line, width, tracker, break_on_word))
    return result


def hard_wrap_text_with_ansi(text: str, width: int) -> list[str]:
    """Cut *text* every *width* columns regardless of word boundaries."""
    return wrap_text_with_ansi(text, width, break_on_word=False)


def _wrap_line(
    line: str,
    width: int,
    tracker: AnsiCodeTracker,
    break_on_word: bool,
) -> list[str]:
    if not line:
        return [""]

    rows: list[str] = []
    current: list[tuple[str, int | None]] = []
    current_width = 0

    def emit(segments: list[tuple[str, int | None]]) -> None:
        parts = [tracker.get_active_codes()]
        for chunk, w in segments:
            parts.append(chunk)
            if w is None:
                tracker.process(chunk)
        if tracker.has_active_codes():
            parts.append(RESET)
        rows.append("".join(parts))

    for chunk, w in _segments(line):
        if w is None or w == 0:
            current.append((chunk, w))
            continue

        if break_on_word and chunk == " " and current_width == 0 and rows:
            # Spaces never start a wrapped row
            continue

        if current_width + w <= width or current_width == 0:
            current.append((chunk, w))
            current_width += w
            continue

        if break_on_word and chunk == " ":
            # The overflowing space itself becomes the break
            emit(_drop_trailing_spaces(current))
            current = []
            current_width = 0
            continue

        split = _find_word_break(current) if break_on_word else None
        if split is None:
            emit(current)
            current = [(chunk, w)]
            current_width = w
            continue

        emit(_drop_trailing_spaces(current[:split]))
        current = _drop_leading_spaces(current[split + 1 :])
        current.append((chunk, w))
        current_width = sum(cw for _, cw in current if cw)

    if current or not rows:
        emit(current)
    return rows


def _find_word_break(segments: list[tuple[str, int | None]]) -> int | None:
    """Return the index of the last space preceded by visible text."""
    seen_text = False
    last_space: int | None = None
    for idx, (chunk, w) in enumerate(segments):
        if w is None:
            continue
        if chunk == " ":
            if seen_text:
                last_space = idx
        else:
            seen_text = True
    return last_space


def _drop_trailing_spaces(
    segments: list[tuple[str, int | None]],
) -> list[tuple[str, int | None]]:
    result = list(segments)
    i = len(result) - 1
    while i >= 0:
        chunk, w = result[i]
        if w is not None:
            if chunk != " ":
                break
            del result[i]
        i -= 1
    return result


def _drop_leading_spaces(
    segments: list[tuple[str, int | None]],
) -> list[tuple[str, int | None]]:
    result: list[tuple[str, int | None]] = []
    leading = True
    for chunk, w in segments:
        if leading and w is not None and chunk == " ":
            continue
        if w is not None:
            leading = False
        result.append((chunk, w))
    return result


# ---------------------------------------------------------------------------
# Slicing and padding
# ---------------------------------------------------------------------------


def slice_by_column(line: str, start_col: int, length: int) -> str:
    """Return *length* display columns of *line* starting at *start_col*.

    Escape sequences before the window are kept so styles that began
    earlier stay in effect.  A wide character cut by either edge of the
    window is replaced with spaces for the part inside it.
    """
    result, _width = slice_with_width(line, start_col, length)
    return result


def slice_with_width(line: str, start_col: int, length: int) -> tuple[str, int]:
    """Like :func:`slice_by_column` but also return the sliced width."""
    if length <= 0:
        return "", 0

    end_col = start_col + length
    parts: list[str] = []
    col = 0
    width = 0
    segments = _segments(line)
    idx = 0

    while idx < len(segments):
        chunk, w = segments[idx]
        if w is None:
            parts.append(chunk)
            idx += 1
            continue
        if col >= end_col:
            break

        char_end = col + w
        if char_end <= start_col:
            pass
        elif col < start_col or char_end > end_col:
            overlap = min(char_end, end_col) - max(col, start_col)
            parts.append(" " * overlap)
            width += overlap
        else:
            parts.append(chunk)
            width += w
        col = char_end
        idx += 1

    # Trailing escape codes (typically a reset) directly after the window
    while idx < len(segments) and segments[idx][1] is None:
        parts.append(segments[idx][0])
        idx += 1

    return "".join(parts), width


def apply_line_reset(line: str) -> str:
    """Append a reset if *line* carries SGR codes but does not end with one."""
    if "\x1b[" not in line or line.endswith(RESET):
        return line
    return line + RESET


def pad_to_width(line: str, width: int) -> str:
    """Right-pad *line* with spaces to exactly *width* display columns."""
    missing = width - visible_width(line)
    if missing <= 0:
        return line
    return line + " " * missing
