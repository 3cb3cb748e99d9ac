"""Tests for terminal_jumper.escapes and terminal_jumper.terminal."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from terminal_jumper.escapes import (
    ERASE_DOWN,
    cursor_move,
    cursor_to,
    parse_cursor_position,
)
from terminal_jumper.terminal import ProcessTerminal


# ---------------------------------------------------------------------------
# Control sequences
# ---------------------------------------------------------------------------


class TestEscapes:
    def test_cursor_to_is_one_based(self) -> None:
        assert cursor_to(0, 0) == "\x1b[1;1H"
        assert cursor_to(4, 2) == "\x1b[3;5H"

    def test_cursor_move(self) -> None:
        assert cursor_move(-1, 1) == "\x1b[1D\x1b[1B"
        assert cursor_move(3) == "\x1b[3C"
        assert cursor_move(0, -2) == "\x1b[2A"
        assert cursor_move(0, 0) == ""

    def test_erase_down(self) -> None:
        assert ERASE_DOWN == "\x1b[J"


class TestParseCursorPosition:
    def test_reply(self) -> None:
        assert parse_cursor_position("\x1b[12;40R") == (11, 39)

    def test_reply_after_noise(self) -> None:
        assert parse_cursor_position("junk\x1b[1;1R") == (0, 0)

    def test_incomplete_reply(self) -> None:
        assert parse_cursor_position("\x1b[12;4") is None
        assert parse_cursor_position("") is None


# ---------------------------------------------------------------------------
# ProcessTerminal
# ---------------------------------------------------------------------------


class TestProcessTerminal:
    def test_size_falls_back_without_a_tty(self) -> None:
        terminal = ProcessTerminal(stdin=io.StringIO(), stdout=io.StringIO())
        assert terminal.columns == 80
        assert terminal.rows == 24

    def test_cursor_position_without_a_tty(self) -> None:
        stdout = io.StringIO()
        terminal = ProcessTerminal(stdin=io.StringIO(), stdout=stdout)
        assert terminal.get_cursor_position() == (0, 0)
        assert stdout.getvalue() == ""

    def test_write(self) -> None:
        stdout = io.StringIO()
        terminal = ProcessTerminal(stdin=io.StringIO(), stdout=stdout)
        terminal.write("hello")
        assert stdout.getvalue() == "hello"

    def test_write_log(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        log = tmp_path / "writes.log"
        monkeypatch.setenv("TERMINAL_JUMPER_WRITE_LOG", str(log))
        terminal = ProcessTerminal(stdin=io.StringIO(), stdout=io.StringIO())
        terminal.write("a")
        terminal.write("b")
        assert log.read_text() == "ab"
