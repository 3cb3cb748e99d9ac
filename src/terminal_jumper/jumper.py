"""Render orchestrator.

``TerminalJumper`` owns the divisions, their dependency graph and the
render-inject queue, and turns the current state into one string of
terminal control sequences per render pass:

1. recompute every dirty division (referenced divisions first), then the
   ``fill`` divisions if the total height changed
2. flush global ``before:`` injects (erasures captured while invalidating)
3. scroll the terminal if the layout no longer fits below the origin
4. draw every division that needs it, by ``render_order``
5. flush global ``after:`` injects
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass

from terminal_jumper.division import REFERENCE_RE, Division, DivisionOptions
from terminal_jumper.errors import ConfigurationError, JumperError, JumperLookupError
from terminal_jumper.escapes import ERASE_DOWN, cursor_to
from terminal_jumper.evaluator import evaluate
from terminal_jumper.graph import DependencyGraph
from terminal_jumper.render_injects import RenderInjects
from terminal_jumper.terminal import ProcessTerminal, Terminal
from terminal_jumper.text_block import TextBlock

logger = logging.getLogger(__name__)

DEFAULT_DIVISION: DivisionOptions = {
    "id": "default",
    "top": 0,
    "left": 0,
    "width": "100%",
}

_DEFAULT_RESIZE_DEBOUNCE_MS = 200


@dataclass
class Position:
    """Zero-based terminal cell."""

    row: int
    col: int


class TerminalJumper:
    """Lays out divisions on the terminal and redraws them incrementally."""

    def __init__(
        self,
        divisions: Iterable[DivisionOptions] | None = None,
        terminal: Terminal | None = None,
        resize_debounce: float | None = None,
    ) -> None:
        self.terminal: Terminal = terminal if terminal is not None else ProcessTerminal()
        self.graph = DependencyGraph()
        self.render_injects = RenderInjects()

        self._divisions: dict[str, Division] = {}
        self.origin: Position | None = None
        self.is_initially_rendered = False

        self._columns = self.terminal.columns
        self._rows = self.terminal.rows
        self._fill_height: int | None = None

        # Resize coalescing window, in seconds
        if resize_debounce is None:
            resize_debounce = (
                float(
                    os.environ.get(
                        "TERMINAL_JUMPER_RESIZE_DEBOUNCE_MS",
                        _DEFAULT_RESIZE_DEBOUNCE_MS,
                    )
                )
                / 1000
            )
        self.resize_debounce: float = resize_debounce
        self._resize_handle: asyncio.TimerHandle | None = None

        self.add_divisions(list(divisions) if divisions else [DEFAULT_DIVISION])

    # ------------------------------------------------------------------
    # Size
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        """Terminal columns."""
        return self._columns

    @property
    def available_height(self) -> int:
        """Terminal rows."""
        return self._rows

    @property
    def height(self) -> int:
        """Rows the layout occupies: the lowest bottom edge of any
        division whose height is not ``fill``."""
        return max(
            (d.bottom for d in self._divisions.values() if not d.is_fill),
            default=0,
        )

    @property
    def fill_height(self) -> int:
        """Total height ``fill`` divisions stretch to."""
        return self._fill_height or 0

    # ------------------------------------------------------------------
    # Divisions
    # ------------------------------------------------------------------

    @property
    def divisions(self) -> list[Division]:
        return list(self._divisions.values())

    def add_division(self, options: DivisionOptions) -> Division:
        return self.add_divisions([options])[0]

    def add_divisions(self, options_list: Iterable[DivisionOptions]) -> list[Division]:
        """Register several divisions at once.

        Divisions added together may reference each other in any order.
        If any of them is invalid none are added.
        """
        added: list[Division] = []
        try:
            for options in options_list:
                division = Division(options)
                if division.id in self._divisions:
                    raise ConfigurationError(
                        f'Division id "{division.id}" is already in use.'
                    )
                division.attach(self)
                self._divisions[division.id] = division
                self.graph.add_division(division)
                added.append(division)
            self.graph.calculate_graph()
        except JumperError:
            for division in added:
                self.graph.remove_division(division.id)
                del self._divisions[division.id]
                division.destroy()
            self.graph.calculate_graph()
            raise

        for division in added:
            logger.debug("Added division %r", division.id)
        return added

    def get_division(self, division_id: str) -> Division:
        division = self._divisions.get(division_id)
        if division is None:
            raise JumperLookupError(f'Could not find division "{division_id}".')
        return division

    def has_division(self, division_id: str) -> bool:
        return division_id in self._divisions

    def remove_division(self, division_id: str) -> None:
        self.remove_divisions([division_id])

    def remove_divisions(self, division_ids: Iterable[str]) -> None:
        """Remove divisions, erasing whatever they last drew.

        Raises ``ConfigurationError`` if a division that stays references
        one being removed.
        """
        ids = list(division_ids)
        for division_id in ids:
            self.get_division(division_id)
        removing = set(ids)
        for division_id in ids:
            blocked = set(self.graph.dependents_of(division_id)) - removing
            if blocked:
                raise ConfigurationError(
                    f'Cannot remove division "{division_id}": referenced by '
                    f"{', '.join(sorted(blocked))}."
                )

        for division_id in ids:
            division = self._divisions.pop(division_id)
            if self.is_initially_rendered and division.last_render is not None:
                self.render_injects.set(
                    f"before:erase:{division_id}", division.erase_string()
                )
            self.render_injects.remove(f"^{re.escape(division_id)}:")
            self.graph.remove_division(division_id)
            division.destroy()
            logger.debug("Removed division %r", division_id)

    # ------------------------------------------------------------------
    # Blocks by path
    # ------------------------------------------------------------------

    @staticmethod
    def _split_path(path: str) -> tuple[str, str | None]:
        """Split ``"division.block"`` at the first dot."""
        division_id, sep, block_id = path.partition(".")
        if sep and not block_id:
            raise JumperLookupError(f'Block path "{path}" names no block.')
        return division_id, block_id if sep else None

    def _block_path(self, path: str) -> tuple[Division, str]:
        division_id, block_id = self._split_path(path)
        if block_id is None:
            raise JumperLookupError(
                f'Expected a "division.block" path, got "{path}".'
            )
        return self.get_division(division_id), block_id

    def add_block(
        self,
        path: str,
        text: str | list[str] = "",
        index: int | None = None,
    ) -> TextBlock:
        """Add a block at *path*; a bare division id generates a block id."""
        division_id, block_id = self._split_path(path)
        return self.get_division(division_id).add_block(text, block_id, index)

    def get_block(self, path: str) -> TextBlock:
        division, block_id = self._block_path(path)
        return division.get_block(block_id)

    def has_block(self, path: str) -> bool:
        division_id, block_id = self._split_path(path)
        if block_id is None or division_id not in self._divisions:
            return False
        return self._divisions[division_id].has_block(block_id)

    def remove_block(self, path: str) -> None:
        division, block_id = self._block_path(path)
        division.remove_block(block_id)

    def set_content(self, path: str, content: str | list[str]) -> None:
        """Replace the text of a block, or of a whole division's blocks."""
        division_id, block_id = self._split_path(path)
        division = self.get_division(division_id)
        if block_id is None:
            division.set_content(content)
        elif division.has_block(block_id):
            division.get_block(block_id).set_content(content)
        else:
            division.add_block(content, block_id)

    def append(self, path: str, text: str | list[str]) -> TextBlock:
        """Append to a block; a bare division id appends a new block."""
        division_id, block_id = self._split_path(path)
        division = self.get_division(division_id)
        if block_id is None:
            return division.add_block(text)
        if not division.has_block(block_id):
            return division.add_block(text, block_id)
        return division.get_block(block_id).append(text)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def evaluate(self, expression: str | int | float, field: str, basis: int) -> int:
        """Evaluate a geometry value for *field* of some division.

        ``{id}`` references are replaced with the referenced division's
        value for *field* first; ``%`` is a share of *basis*.  The result is
        floored to a whole cell.
        """
        if isinstance(expression, str):

            def replace(m: re.Match[str]) -> str:
                other = self.get_division(m.group(1))
                return str(other.reference_value(field, m.group(2)))

            expression = REFERENCE_RE.sub(replace, expression)
        return math.floor(evaluate(expression, {"%": basis}))

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self) -> TerminalJumper:
        self.terminal.write(self.render_string())
        return self

    def render_string(self) -> str:
        """Run a render pass and return what it would write.

        Nothing is written to the terminal, but the pass consumes pending
        injects and leaves every division ``CLEAN``.
        """
        if self.origin is None:
            row, col = self.terminal.get_cursor_position()
            self.origin = Position(row, col)

        recomputed = self._recompute_dirty()

        out = [self.render_injects.inject("^before:")]

        overflow = self.origin.row + self.height - self.available_height
        if overflow > 0:
            out.append(cursor_to(0, self.available_height - 1) + "\n" * overflow)
            self.origin.row -= overflow
            for division in self._divisions.values():
                division.shift_render_cache(-overflow)

        rendered = 0
        for node in self.graph.needs_render_nodes():
            out.append(node.division.render_string())
            rendered += 1

        out.append(self.render_injects.inject("^after:"))

        self.graph.clear()
        self.is_initially_rendered = True
        logger.debug(
            "Render pass: %d recomputed, %d rendered, overflow %d",
            recomputed,
            rendered,
            max(0, overflow),
        )
        return "".join(out)

    def _recompute_dirty(self) -> int:
        count = 0
        for node in self.graph.dirty_nodes():
            node.division.recompute(force=True)
            self.graph.mark_recomputed(node)
            count += 1

        total = self.height
        if total != self._fill_height:
            self._fill_height = total
            for division in self._divisions.values():
                if division.is_fill:
                    self.graph.set_dirty(division)
            for node in self.graph.dirty_nodes():
                node.division.recompute(force=True)
                self.graph.mark_recomputed(node)
                count += 1
        return count

    def erase(self) -> TerminalJumper:
        self.terminal.write(self.erase_string())
        return self

    def erase_string(self) -> str:
        """Clear everything from the origin down.

        Every division will be drawn again on the next pass.
        """
        self.graph.set_all_needs_render()
        self.render_injects.remove("^before:erase:")
        if self.origin is None:
            return ""
        return cursor_to(self.origin.col, self.origin.row) + ERASE_DOWN

    def jump_to(self, target: str, col: int = 0, row: int = 0) -> TerminalJumper:
        self.terminal.write(self.jump_to_string(target, col, row))
        return self

    def jump_to_string(self, target: str, col: int = 0, row: int = 0) -> str:
        """Cursor move to *col*, *row* of a division or ``"division.block"``.

        Pending changes are rendered first.
        """
        out: list[str] = []
        if not self.is_initially_rendered or self.graph.has_pending():
            out.append(self.render_string())

        division_id, block_id = self._split_path(target)
        division = self.get_division(division_id)
        if block_id is None:
            out.append(division.jump_to_string(col, row))
        else:
            out.append(division.jump_to_block_string(block_id, col, row))
        return "".join(out)

    def reset(self, divisions: Iterable[DivisionOptions] | None = None) -> None:
        """Replace every division, clearing what was drawn on the next pass."""
        for division in self._divisions.values():
            division.destroy()
        self._divisions = {}
        self.graph = DependencyGraph()
        self.render_injects.clear()
        self._fill_height = None

        if self.is_initially_rendered and self.origin is not None:
            self.render_injects.set(
                "before:erase:all",
                cursor_to(self.origin.col, self.origin.row) + ERASE_DOWN,
            )

        self.add_divisions(list(divisions) if divisions else [DEFAULT_DIVISION])

    # ------------------------------------------------------------------
    # Resize
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start listening for terminal resizes."""
        self.terminal.start(self.handle_resize)

    def stop(self) -> None:
        if self._resize_handle is not None:
            self._resize_handle.cancel()
            self._resize_handle = None
        self.terminal.stop()

    def handle_resize(self) -> None:
        """Schedule a relayout; a later resize supersedes a pending one."""
        if self._resize_handle is not None:
            self._resize_handle.cancel()
            self._resize_handle = None
        if self.resize_debounce <= 0:
            self._on_resize()
            return
        try:
            loop = asyncio.get_running_loop()
            self._resize_handle = loop.call_later(self.resize_debounce, self._on_resize)
        except RuntimeError:
            self._on_resize()

    def _on_resize(self) -> None:
        self._resize_handle = None
        self._columns = self.terminal.columns
        self._rows = self.terminal.rows
        logger.debug("Resized to %dx%d", self._columns, self._rows)

        self.graph.set_dirty(None)
        self.render_injects.remove("^before:erase:")
        self._fill_height = None

        out: list[str] = []
        if self.origin is not None:
            self.origin.row = max(0, min(self.origin.row, self._rows - 1))
            out.append(cursor_to(self.origin.col, self.origin.row) + ERASE_DOWN)
        out.append(self.render_string())
        self.terminal.write("".join(out))
