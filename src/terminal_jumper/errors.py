"""Exception types raised by terminal-jumper.

Every error is a programmer error (bad configuration or bad API usage) and
propagates to the caller.  Each class also derives from the closest builtin
so callers can catch either the specific type or the builtin one.
"""

from __future__ import annotations


class JumperError(Exception):
    """Base class for all terminal-jumper errors."""


class ConfigurationError(JumperError, ValueError):
    """A division was registered with an invalid configuration."""


class JumperLookupError(JumperError, LookupError):
    """An unknown division id or block id was referenced."""


class InvalidExpression(JumperError, ValueError):
    """A geometry expression could not be parsed or evaluated."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(f'Invalid expression "{expression}": {reason}')
        self.expression = expression
        self.reason = reason


class UnresolvedUnit(InvalidExpression):
    """A unit in an expression has no handler to resolve it."""

    def __init__(self, expression: str, unit: str) -> None:
        super().__init__(
            expression,
            f'do not know how to calculate unit "{unit}"',
        )
        self.unit = unit


class OutOfRange(JumperError, IndexError):
    """A row or column lies outside a division's or block's extent."""


class GeometryNotResolved(JumperError, RuntimeError):
    """Geometry was read before the division was recomputed."""
