"""terminal-jumper: Terminal layout engine with incremental redraw."""

# Division geometry and content
from terminal_jumper.division import (
    FILL_HEIGHT,
    Division,
    DivisionOptions,
    RenderRect,
    ScrollBarOptions,
    scroll_bar_glyphs,
)

# Errors
from terminal_jumper.errors import (
    ConfigurationError,
    GeometryNotResolved,
    InvalidExpression,
    JumperError,
    JumperLookupError,
    OutOfRange,
    UnresolvedUnit,
)

# Control sequences
from terminal_jumper.escapes import (
    ERASE_DOWN,
    ERASE_LINE_END,
    cursor_move,
    cursor_to,
    parse_cursor_position,
)

# Expression evaluation
from terminal_jumper.evaluator import evaluate, parse, tokenize

# Dependency graph
from terminal_jumper.graph import DependencyGraph, GraphNode, NodeStatus

# Render orchestrator
from terminal_jumper.jumper import DEFAULT_DIVISION, Position, TerminalJumper

# Deferred render output
from terminal_jumper.render_injects import RenderInjects

# Terminal interface and implementations
from terminal_jumper.terminal import ProcessTerminal, Terminal

# Text content
from terminal_jumper.text_block import TextBlock, measure

# Utilities
from terminal_jumper.utils import (
    hard_wrap_text_with_ansi,
    slice_by_column,
    strip_ansi,
    visible_width,
    wrap_text_with_ansi,
)

__all__ = [
    # Division
    "FILL_HEIGHT",
    "Division",
    "DivisionOptions",
    "RenderRect",
    "ScrollBarOptions",
    "scroll_bar_glyphs",
    # Errors
    "ConfigurationError",
    "GeometryNotResolved",
    "InvalidExpression",
    "JumperError",
    "JumperLookupError",
    "OutOfRange",
    "UnresolvedUnit",
    # Escapes
    "ERASE_DOWN",
    "ERASE_LINE_END",
    "cursor_move",
    "cursor_to",
    "parse_cursor_position",
    # Evaluator
    "evaluate",
    "parse",
    "tokenize",
    # Graph
    "DependencyGraph",
    "GraphNode",
    "NodeStatus",
    # Orchestrator
    "DEFAULT_DIVISION",
    "Position",
    "TerminalJumper",
    # Render injects
    "RenderInjects",
    # Terminal
    "ProcessTerminal",
    "Terminal",
    # Text
    "TextBlock",
    "measure",
    # Utilities
    "hard_wrap_text_with_ansi",
    "slice_by_column",
    "strip_ansi",
    "visible_width",
    "wrap_text_with_ansi",
]
