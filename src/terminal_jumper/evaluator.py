"""Arithmetic expression evaluator for geometry values.

Grammar::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := "-" unary | "+" unary | primary
    primary := NUMBER [UNIT] | "(" expr ")" [UNIT]

Units are ``%`` or up to three letters (``%w``, ``px``, ...) written
directly after a number or a closing parenthesis.  ``*`` and ``/`` bind
tighter than ``+`` and ``-``; operators of equal precedence associate left
to right.

Division references (``{id}``) are not known here; callers substitute them
with numbers before evaluating.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Union

from terminal_jumper.errors import InvalidExpression, UnresolvedUnit

UnitCallback = Callable[[float, str], float]
UnitHandler = Union[float, int, Callable[[float], float]]
UnitResolver = Union[UnitCallback, Mapping[str, UnitHandler], None]

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<number>(?:\d+\.?\d*|\.\d+))(?P<unit>%[A-Za-z]{0,2}|[A-Za-z]{1,3}(?![A-Za-z]))?"
    r"|(?P<op>[-+*/])"
    r"|(?P<lparen>\()"
    r"|(?P<rparen>\))(?P<group_unit>%[A-Za-z]{0,2}|[A-Za-z]{1,3}(?![A-Za-z]))?"
    r")"
)


@dataclass(frozen=True)
class Token:
    kind: str  # "number" | "op" | "(" | ")" | "end"
    text: str
    pos: int
    value: float = 0.0
    unit: str = ""


def tokenize(expression: str) -> list[Token]:
    """Split *expression* into tokens, ending with an ``end`` token."""
    tokens: list[Token] = []
    pos = 0
    length = len(expression)

    while pos < length:
        if expression[pos:].strip() == "":
            break
        m = _TOKEN_RE.match(expression, pos)
        if m is None or m.end() == pos:
            raise InvalidExpression(
                expression, f'unexpected character at position {pos}'
            )
        if m.group("number") is not None:
            tokens.append(
                Token(
                    "number",
                    m.group(0).strip(),
                    m.start("number"),
                    float(m.group("number")),
                    m.group("unit") or "",
                )
            )
        elif m.group("op") is not None:
            tokens.append(Token("op", m.group("op"), m.start("op")))
        elif m.group("lparen") is not None:
            tokens.append(Token("(", "(", m.start("lparen")))
        else:
            tokens.append(
                Token(
                    ")",
                    ")",
                    m.start("rparen"),
                    unit=m.group("group_unit") or "",
                )
            )
        pos = m.end()

    tokens.append(Token("end", "", length))
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Number:
    value: float
    unit: str = ""


@dataclass(frozen=True)
class Group:
    inner: Node
    unit: str = ""


@dataclass(frozen=True)
class Negate:
    operand: Node


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Node
    right: Node


Node = Union[Number, Group, Negate, BinaryOp]


class _Parser:
    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = tokenize(expression)
        self.index = 0

    def peek(self) -> Token:
        return self.tokens[self.index]

    def advance(self) -> Token:
        tok = self.tokens[self.index]
        self.index += 1
        return tok

    def fail(self, reason: str) -> InvalidExpression:
        return InvalidExpression(self.expression, reason)

    def parse(self) -> Node:
        if self.peek().kind == "end":
            raise self.fail("expression is empty")
        node = self.parse_expr()
        tok = self.peek()
        if tok.kind == ")":
            raise self.fail(
                f"could not find matching parenthesis for ')' at position {tok.pos}"
            )
        if tok.kind != "end":
            raise self.fail(f'unexpected "{tok.text}" at position {tok.pos}')
        return node

    def parse_expr(self) -> Node:
        node = self.parse_term()
        while self.peek().kind == "op" and self.peek().text in "+-":
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_term())
        return node

    def parse_term(self) -> Node:
        node = self.parse_unary()
        while self.peek().kind == "op" and self.peek().text in "*/":
            op = self.advance().text
            node = BinaryOp(op, node, self.parse_unary())
        return node

    def parse_unary(self) -> Node:
        tok = self.peek()
        if tok.kind == "op" and tok.text == "-":
            self.advance()
            return Negate(self.parse_unary())
        if tok.kind == "op" and tok.text == "+":
            self.advance()
            return self.parse_unary()
        return self.parse_primary()

    def parse_primary(self) -> Node:
        tok = self.advance()
        if tok.kind == "number":
            return Number(tok.value, tok.unit)
        if tok.kind == "(":
            inner = self.parse_expr()
            close = self.advance()
            if close.kind != ")":
                raise self.fail(
                    f"could not find matching parenthesis for '(' at position {tok.pos}"
                )
            return Group(inner, close.unit)
        if tok.kind == "end":
            raise self.fail("unexpected end of expression")
        raise self.fail(f'unexpected "{tok.text}" at position {tok.pos}')


def parse(expression: str) -> Node:
    """Parse *expression* into an AST."""
    return _Parser(expression).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def resolve_unit(
    number: float,
    unit: str,
    units: UnitResolver,
    expression: str,
) -> float:
    """Convert ``number`` + ``unit`` into a plain number.

    *units* is either a callback ``(number, unit) -> value`` or a mapping.
    In a mapping, ``%`` is a basis (``number * basis / 100``) and any other
    unit must map to a one-argument handler.
    """
    if not unit:
        return number

    if callable(units):
        result = units(number, unit)
        if result is None:
            raise UnresolvedUnit(expression, unit)
        return float(result)

    if units is None or unit not in units:
        raise UnresolvedUnit(expression, unit)

    handler = units[unit]
    if callable(handler):
        return float(handler(number))
    if unit == "%" and isinstance(handler, (int, float)):
        return number * handler / 100
    raise UnresolvedUnit(expression, unit)


def _eval_node(node: Node, units: UnitResolver, expression: str) -> float:
    if isinstance(node, Number):
        return resolve_unit(node.value, node.unit, units, expression)
    if isinstance(node, Group):
        inner = _eval_node(node.inner, units, expression)
        return resolve_unit(inner, node.unit, units, expression)
    if isinstance(node, Negate):
        return -_eval_node(node.operand, units, expression)

    left = _eval_node(node.left, units, expression)
    right = _eval_node(node.right, units, expression)
    if node.op == "+":
        return left + right
    if node.op == "-":
        return left - right
    if node.op == "*":
        return left * right
    if right == 0:
        raise InvalidExpression(expression, "division by zero")
    return left / right


def evaluate(expression: str | int | float, units: UnitResolver = None) -> float:
    """Evaluate *expression*; a bare number is returned unchanged."""
    if isinstance(expression, (int, float)) and not isinstance(expression, bool):
        return expression
    if not isinstance(expression, str):
        raise InvalidExpression(str(expression), "expected a number or a string")
    return _eval_node(parse(expression), units, expression)
