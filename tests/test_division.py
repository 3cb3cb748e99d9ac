"""Tests for terminal_jumper.division -- options, geometry, scrolling, drawing."""

from __future__ import annotations

import pytest

from terminal_jumper.division import (
    FILL_HEIGHT,
    SCROLL_BAR_VERTICAL_FOREGROUND,
    Division,
    RenderRect,
    scroll_bar_glyphs,
)
from terminal_jumper.errors import (
    ConfigurationError,
    GeometryNotResolved,
    JumperLookupError,
    OutOfRange,
)
from terminal_jumper.escapes import cursor_to
from terminal_jumper.graph import NodeStatus
from terminal_jumper.jumper import TerminalJumper

from .virtual_terminal import VirtualTerminal


def _lines(count: int) -> str:
    return "\n".join(f"line {i}" for i in range(count))


def _jumper(*divisions: dict, rows: int = 24, columns: int = 80) -> TerminalJumper:
    return TerminalJumper(
        divisions=list(divisions),  # type: ignore[arg-type]
        terminal=VirtualTerminal(rows=rows, columns=columns),
        resize_debounce=0,
    )


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class TestOptionValidation:
    @pytest.mark.parametrize(
        "options",
        [
            {"top": 0, "left": 0, "width": 10},
            {"id": "", "top": 0, "left": 0, "width": 10},
            {"id": "a.b", "top": 0, "left": 0, "width": 10},
            {"id": "a", "left": 0, "width": 10},
            {"id": "a", "top": 0, "bottom": 0, "left": 0, "width": 10},
            {"id": "a", "top": 0, "width": 10},
            {"id": "a", "top": 0, "left": 0},
            {"id": "a", "top": 0, "left": 0, "width": 10, "overflow_y": "scroll"},
            {"id": "a", "top": 0, "left": 0, "width": 10, "scroll_bar_x": True},
            {"id": "a", "top": 0, "left": 0, "width": 10, "height": 5, "scroll_bar_y": True},
            {"id": "a", "top": 0, "left": 0, "width": 10, "overflow_x": "clip"},
            {"id": "a", "bottom": 0, "left": 0, "width": 10, "height": FILL_HEIGHT},
            {
                "id": "a",
                "top": 0,
                "left": 0,
                "width": 10,
                "overflow_x": "scroll",
                "scroll_bar_x": {"foreground": "#"},
            },
        ],
    )
    def test_invalid_options(self, options: dict) -> None:
        with pytest.raises(ConfigurationError):
            Division(options)  # type: ignore[arg-type]

    def test_defaults_are_merged(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        assert division.options["overflow_x"] == "wrap"
        assert division.options["overflow_y"] == "auto"
        assert division.options["wrap_on_word"] is True
        assert division.render_order == 0

    def test_references(self) -> None:
        division = Division(
            {"id": "b", "top": "{a} + 1", "left": "{side}right", "width": "{a}width"}
        )
        assert division.references() == {"a", "side"}

    def test_geometry_read_before_recompute(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        with pytest.raises(GeometryNotResolved):
            division.top
        with pytest.raises(GeometryNotResolved):
            division.all_lines


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


class TestBlocks:
    def test_generated_ids(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        division.add_block("one")
        division.add_block("two")
        assert division.block_ids == ["block-0", "block-1"]

    def test_insert_at_index(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        division.add_block("one", "first")
        division.add_block("zero", "before", index=0)
        assert division.block_ids == ["before", "first"]
        assert division.get_block_at_index(0).text == "zero"

    def test_duplicate_block_id(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        division.add_block("one", "x")
        with pytest.raises(ConfigurationError):
            division.add_block("two", "x")

    def test_lookup_errors(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        with pytest.raises(JumperLookupError):
            division.get_block("missing")
        with pytest.raises(JumperLookupError):
            division.get_block_at_index(0)
        assert not division.has_block_at_index(-1)

    def test_remove_block(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        block = division.add_block("one", "x")
        division.remove_block("x")
        assert not division.has_block("x")
        assert block.division is None

    def test_set_content_positional(self) -> None:
        division = Division({"id": "a", "top": 0, "left": 0, "width": 10})
        division.set_content(["a", "b", "c"])
        assert [division.get_block_at_index(i).text for i in range(3)] == ["a", "b", "c"]
        division.set_content("only")
        assert len(division.block_ids) == 1
        assert division.get_block_at_index(0).text == "only"
        division.set_content(None)
        assert division.block_ids == []

    def test_reset(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 10, "height": 2, "overflow_y": "scroll"})
        division = jumper.get_division("a")
        division.add_block(_lines(5))
        jumper.render_string()
        division.scroll_down(2)
        division.reset()
        assert division.block_ids == []
        assert division.scroll_pos_y == 0
        assert jumper.graph.status_of("a") == NodeStatus.DIRTY


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class TestGeometry:
    def test_bottom_anchor_with_natural_height(self) -> None:
        jumper = _jumper({"id": "status", "bottom": 0, "left": 0, "width": "100%"})
        division = jumper.get_division("status")
        division.add_block(_lines(5))
        jumper.render_string()
        assert division.top == 19
        assert division.height == 5

    def test_bottom_offset(self) -> None:
        jumper = _jumper({"id": "status", "bottom": 2, "left": 0, "width": "100%", "height": 3})
        jumper.render_string()
        assert jumper.get_division("status").top == 19

    def test_height_clamped_to_viewport(self) -> None:
        jumper = _jumper({"id": "a", "top": 20, "left": 0, "width": 10}, rows=24)
        division = jumper.get_division("a")
        division.add_block(_lines(10))
        jumper.render_string()
        assert division.top == 20
        assert division.height == 4

    def test_top_clamped_at_zero(self) -> None:
        jumper = _jumper({"id": "a", "bottom": 0, "left": 0, "width": 10}, rows=4)
        division = jumper.get_division("a")
        division.add_block(_lines(10))
        jumper.render_string()
        assert division.top == 0
        assert division.height == 4

    def test_percentages_use_terminal_size(self) -> None:
        jumper = _jumper(
            {"id": "a", "top": "25%", "left": "50%", "width": "50% - 2", "height": "50%"},
            rows=20,
            columns=80,
        )
        jumper.render_string()
        division = jumper.get_division("a")
        assert (division.top, division.left, division.width, division.height) == (5, 40, 38, 10)

    def test_values_are_floored(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": "33%"}, columns=10)
        jumper.render_string()
        assert jumper.get_division("a").width == 3

    def test_right_anchor(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "right": 0, "width": 5})
        jumper.render_string()
        division = jumper.get_division("a")
        assert division.left == 75
        assert division.right == 80

    def test_reference_defaults(self) -> None:
        jumper = _jumper(
            {"id": "a", "top": 1, "left": 2, "width": 10, "height": 3},
            {"id": "below", "top": "{a}", "left": "{a}left", "width": "{a}"},
            {"id": "beside", "top": "{a}top", "left": "{a} + 1", "width": 5},
        )
        jumper.render_string()
        below = jumper.get_division("below")
        beside = jumper.get_division("beside")
        assert (below.top, below.left, below.width) == (4, 2, 10)
        assert (beside.top, beside.left) == (1, 13)

    def test_wrapping_uses_width(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 5})
        division = jumper.get_division("a")
        division.add_block("hello world")
        jumper.render_string()
        assert division.all_lines == ["hello", "world"]
        assert division.natural_height == 2
        assert division.natural_width == 5

    def test_block_positions(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 20})
        division = jumper.get_division("a")
        division.add_block("one\ntwo", "first")
        division.add_block("three", "second")
        jumper.render_string()
        assert division.block_position("first") == (0, 0)
        assert division.block_position("second") == (2, 0)


# ---------------------------------------------------------------------------
# Scrolling
# ---------------------------------------------------------------------------


def _scroller(**extra: object) -> tuple[TerminalJumper, Division]:
    options = {
        "id": "log",
        "top": 0,
        "left": 0,
        "width": 20,
        "height": 3,
        "overflow_y": "scroll",
    }
    options.update(extra)
    jumper = _jumper(options)
    division = jumper.get_division("log")
    division.add_block(_lines(10))
    jumper.render_string()
    return jumper, division


class TestScrolling:
    def test_bounds(self) -> None:
        _, division = _scroller()
        assert division.max_scroll_y == 7
        assert division.max_scroll_x == 0

    def test_clamping(self) -> None:
        _, division = _scroller()
        division.scroll_down(100)
        assert division.scroll_pos_y == 7
        division.scroll_up(100)
        assert division.scroll_pos_y == 0
        division.scroll_y(-5)
        assert division.scroll_pos_y == 0
        division.scroll_right(3)
        assert division.scroll_pos_x == 0

    def test_scroll_marks_needs_render_only_on_change(self) -> None:
        jumper, division = _scroller()
        division.scroll_up(1)
        assert jumper.graph.status_of("log") == NodeStatus.CLEAN
        division.scroll_down(1)
        assert jumper.graph.status_of("log") == NodeStatus.NEEDS_RENDER

    def test_scroll_before_first_render_is_clamped_on_recompute(self) -> None:
        jumper = _jumper(
            {"id": "log", "top": 0, "left": 0, "width": 20, "height": 3, "overflow_y": "scroll"}
        )
        division = jumper.get_division("log")
        division.add_block(_lines(10))
        division.scroll_y(50)
        jumper.render_string()
        assert division.scroll_pos_y == 7

    def test_shrinking_content_reclamps(self) -> None:
        jumper, division = _scroller()
        division.scroll_down(7)
        division.set_content(_lines(4))
        jumper.render_string()
        assert division.max_scroll_y == 1
        assert 0 <= division.scroll_pos_y <= division.max_scroll_y

    def test_render_shows_scrolled_window(self) -> None:
        jumper, division = _scroller()
        division.scroll_down(5)
        output = jumper.render_string()
        assert "line 5" in output
        assert "line 7" in output
        assert "line 8" not in output
        assert "line 4" not in output

    def test_horizontal_scroll(self) -> None:
        jumper = _jumper({"id": "wide", "top": 0, "left": 0, "width": 5, "overflow_x": "scroll"})
        division = jumper.get_division("wide")
        division.add_block("abcdefghij")
        jumper.render_string()
        assert division.max_scroll_x == 5
        division.scroll_right(3)
        assert "defgh" in jumper.render_string()
        division.scroll_right(100)
        assert division.scroll_pos_x == 5


class TestScrollBars:
    def test_thumb_geometry(self) -> None:
        assert scroll_bar_glyphs(4, 8, 0, 4, "#", ".") == ["#", "#", ".", "."]
        assert scroll_bar_glyphs(4, 8, 2, 4, "#", ".") == [".", "#", "#", "."]
        assert scroll_bar_glyphs(4, 8, 4, 4, "#", ".") == [".", ".", "#", "#"]

    def test_thumb_is_at_least_one_cell(self) -> None:
        assert scroll_bar_glyphs(3, 100, 0, 97, "#", ".").count("#") == 1

    def test_vertical_bar_reserves_a_column(self) -> None:
        jumper = _jumper(
            {
                "id": "log",
                "top": 0,
                "left": 0,
                "width": 20,
                "height": 4,
                "overflow_y": "scroll",
                "scroll_bar_y": True,
            }
        )
        division = jumper.get_division("log")
        division.add_block(_lines(8))
        output = jumper.render_string()
        assert division.has_scroll_bar_y
        assert division.content_width == 19
        assert division.max_scroll_y == 4
        assert cursor_to(19, 0) + SCROLL_BAR_VERTICAL_FOREGROUND in output

    def test_no_bar_when_content_fits(self) -> None:
        jumper = _jumper(
            {
                "id": "log",
                "top": 0,
                "left": 0,
                "width": 20,
                "height": 4,
                "overflow_y": "scroll",
                "scroll_bar_y": True,
            }
        )
        division = jumper.get_division("log")
        division.add_block(_lines(2))
        jumper.render_string()
        assert not division.has_scroll_bar_y
        assert division.content_width == 20

    def test_custom_glyphs(self) -> None:
        jumper = _jumper(
            {
                "id": "wide",
                "top": 0,
                "left": 0,
                "width": 4,
                "overflow_x": "scroll",
                "scroll_bar_x": {"foreground": "=", "background": "-"},
            }
        )
        division = jumper.get_division("wide")
        division.add_block("abcdefgh")
        output = jumper.render_string()
        assert division.has_scroll_bar_x
        assert division.height == 2
        assert division.content_height == 1
        assert cursor_to(0, 1) + "==--" in output

    def test_widening_edit_adds_horizontal_bar(self) -> None:
        jumper = _jumper(
            {
                "id": "pane",
                "top": 0,
                "left": 0,
                "width": 10,
                "height": 3,
                "overflow_x": "scroll",
                "overflow_y": "scroll",
                "scroll_bar_x": True,
            }
        )
        division = jumper.get_division("pane")
        block = division.add_block("abc")
        jumper.render_string()
        assert not division.has_scroll_bar_x

        block.set_content("x" * 30)
        assert jumper.graph.status_of("pane") == NodeStatus.DIRTY
        jumper.render_string()
        assert division.has_scroll_bar_x
        assert division.max_scroll_x == 20
        assert division.content_height == 2

    def test_narrowing_edit_drops_horizontal_bar(self) -> None:
        jumper = _jumper(
            {
                "id": "pane",
                "top": 0,
                "left": 0,
                "width": 10,
                "height": 3,
                "overflow_x": "scroll",
                "overflow_y": "scroll",
                "scroll_bar_x": True,
            }
        )
        division = jumper.get_division("pane")
        block = division.add_block("x" * 30)
        jumper.render_string()
        assert division.has_scroll_bar_x

        block.set_content("abc")
        jumper.render_string()
        assert not division.has_scroll_bar_x
        assert division.max_scroll_x == 0
        assert division.content_height == 3


# ---------------------------------------------------------------------------
# Rendering and erasing
# ---------------------------------------------------------------------------


class TestRenderErase:
    def test_rows_padded_to_content_width(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 3, "width": 6})
        jumper.get_division("a").add_block("ab")
        assert jumper.render_string() == cursor_to(3, 0) + "ab    "

    def test_blank_rows_fill_explicit_height(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 3, "height": 2})
        jumper.get_division("a").add_block("ab")
        assert jumper.render_string() == cursor_to(0, 0) + "ab " + cursor_to(0, 1) + "   "

    def test_styled_rows_are_reset(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 4})
        jumper.get_division("a").add_block("\x1b[31mred\x1b[0m and more")
        output = jumper.render_string()
        assert "\x1b[31mred" in output

    def test_last_render_rect(self) -> None:
        jumper = _jumper({"id": "a", "top": 2, "left": 1, "width": 5, "height": 3})
        jumper.render_string()
        assert jumper.get_division("a").last_render == RenderRect(2, 1, 5, 3)

    def test_erase_uses_last_rendered_rectangle(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 6})
        division = jumper.get_division("a")
        division.add_block(_lines(5))
        jumper.render_string()

        division.set_content(_lines(2))
        expected = "".join(cursor_to(0, row) + "      " for row in range(5))
        assert division.erase_string() == expected

    def test_shrink_queues_erase_before_redraw(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 6})
        division = jumper.get_division("a")
        division.add_block(_lines(5))
        jumper.render_string()

        division.set_content(_lines(2))
        erase = "".join(cursor_to(0, row) + "      " for row in range(5))
        output = jumper.render_string()
        assert output.startswith(erase)
        assert division.last_render == RenderRect(0, 0, 6, 2)

    def test_same_height_edit_only_needs_render(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 10})
        division = jumper.get_division("a")
        block = division.add_block("abc")
        jumper.render_string()

        block.set_content("xyz")
        assert jumper.graph.status_of("a") == NodeStatus.NEEDS_RENDER
        output = jumper.render_string()
        assert "xyz" in output
        assert "abc" not in output


# ---------------------------------------------------------------------------
# Cursor addressing
# ---------------------------------------------------------------------------


class TestJumpTo:
    def test_block_before_layout(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 20})
        division = jumper.get_division("a")
        division.add_block("one", "x")
        with pytest.raises(GeometryNotResolved):
            division.jump_to_block_string("x")

    def test_content_cell(self) -> None:
        jumper = _jumper({"id": "a", "top": 2, "left": 4, "width": 20})
        division = jumper.get_division("a")
        division.add_block("hello\nworld")
        jumper.render_string()
        assert division.jump_to_string(1, 1) == cursor_to(5, 3)

    def test_negative_values_count_from_the_end(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 20})
        division = jumper.get_division("a")
        division.add_block("hello\nabc")
        jumper.render_string()
        assert division.jump_to_string(-1, -1) == cursor_to(3, 1)

    def test_block_relative(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 20})
        division = jumper.get_division("a")
        division.add_block("first", "one")
        division.add_block("ab\ncd", "two")
        jumper.render_string()
        assert division.jump_to_block_string("two", 1, 1) == cursor_to(1, 2)
        assert division.jump_to_block_string("two", -1, 0) == cursor_to(2, 1)

    def test_out_of_range(self) -> None:
        jumper = _jumper({"id": "a", "top": 0, "left": 0, "width": 20})
        division = jumper.get_division("a")
        division.add_block("one", "x")
        jumper.render_string()
        with pytest.raises(OutOfRange):
            division.jump_to_block_string("x", 0, 1)
        with pytest.raises(OutOfRange):
            division.jump_to_string(0, -2)
        with pytest.raises(OutOfRange):
            division.jump_to_block_string("x", -10, 0)

    def test_scrolls_target_into_view(self) -> None:
        jumper, division = _scroller()
        output = division.jump_to_string(0, 8)
        assert division.scroll_pos_y == 6
        assert "line 8" in output
        assert output.endswith(cursor_to(0, 2))

    def test_scrolls_back_up(self) -> None:
        jumper, division = _scroller()
        division.scroll_down(7)
        jumper.render_string()
        output = division.jump_to_string(0, 1)
        assert division.scroll_pos_y == 1
        assert output.endswith(cursor_to(0, 0))
