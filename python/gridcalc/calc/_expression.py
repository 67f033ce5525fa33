"""Arithmetic expressions: tokenizer, recursive descent parser, AST evaluation.

Grammar (standard precedence, left-associative)::

    expr    := term (("+" | "-") term)*
    term    := unary (("*" | "/") unary)*
    unary   := ("+" | "-") unary | primary
    primary := NUMBER | STRING | REF | "(" expr ")"

``REF`` is an address-shaped token (``[A-Z]+[0-9]+``). References are kept
as AST leaves and resolved during evaluation, so a referenced number acts
as an unquoted literal, text as a quoted string literal, and an empty cell
as ``0``. Nothing here ever hands formula text to ``eval``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union, cast

from gridcalc._errors import EvaluationError
from gridcalc.calc._functions import first_error, is_error, is_number

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"""
    \s*(?:
        (?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
      | (?P<ref>[A-Z]+[0-9]+)
      | "(?P<string>[^"]*)"
      | (?P<op>[-+*/()])
    )
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    kind: str  # "number" | "ref" | "string" | "op"
    text: str
    pos: int


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens; raise EvaluationError on stray text."""
    tokens: list[Token] = []
    pos = 0
    # Trailing whitespace carries no tokens.
    end = len(expression.rstrip())
    while pos < end:
        m = _TOKEN_RE.match(expression, pos)
        if m is None or m.end() == pos:
            raise EvaluationError(f"Unexpected character at {pos}: {expression[pos:]!r}")
        kind = cast(str, m.lastgroup)
        tokens.append(Token(kind, m.group(kind), m.start(kind)))
        pos = m.end()
    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


class Operator(str, Enum):
    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"


@dataclass(frozen=True)
class Number:
    value: int | float


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Reference:
    address: str


@dataclass(frozen=True)
class Negate:
    operand: Node


@dataclass(frozen=True)
class BinaryOp:
    op: Operator
    left: Node
    right: Node


@dataclass(frozen=True)
class Paren:
    inner: Node


Node = Union[Number, Text, Reference, Negate, BinaryOp, Paren]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self) -> Node:
        if not self._tokens:
            raise EvaluationError("Empty expression")
        node = self._expr()
        if self._pos != len(self._tokens):
            tok = self._tokens[self._pos]
            raise EvaluationError(f"Unexpected {tok.text!r} at {tok.pos}")
        return node

    def _peek_op(self, *ops: str) -> str | None:
        if self._pos < len(self._tokens):
            tok = self._tokens[self._pos]
            if tok.kind == "op" and tok.text in ops:
                return tok.text
        return None

    def _expr(self) -> Node:
        node = self._term()
        op = self._peek_op("+", "-")
        while op is not None:
            self._pos += 1
            node = BinaryOp(Operator(op), node, self._term())
            op = self._peek_op("+", "-")
        return node

    def _term(self) -> Node:
        node = self._unary()
        op = self._peek_op("*", "/")
        while op is not None:
            self._pos += 1
            node = BinaryOp(Operator(op), node, self._unary())
            op = self._peek_op("*", "/")
        return node

    def _unary(self) -> Node:
        op = self._peek_op("+", "-")
        if op is not None:
            self._pos += 1
            operand = self._unary()
            return Negate(operand) if op == "-" else operand
        return self._primary()

    def _primary(self) -> Node:
        if self._pos >= len(self._tokens):
            raise EvaluationError("Unexpected end of expression")
        tok = self._tokens[self._pos]
        self._pos += 1
        if tok.kind == "number":
            try:
                if re.fullmatch(r"\d+", tok.text):
                    return Number(int(tok.text))
                return Number(float(tok.text))
            except ValueError as e:
                raise EvaluationError(f"Bad number at {tok.pos}: {e}") from e
        if tok.kind == "string":
            return Text(tok.text)
        if tok.kind == "ref":
            return Reference(tok.text)
        if tok.text == "(":
            inner = self._expr()
            if self._peek_op(")") is None:
                raise EvaluationError(f"Unbalanced '(' at {tok.pos}")
            self._pos += 1
            return Paren(inner)
        raise EvaluationError(f"Unexpected {tok.text!r} at {tok.pos}")


def parse_expression(expression: str) -> Node:
    """Parse an arithmetic expression (no leading ``=``) into an AST."""
    return _Parser(tokenize(expression)).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def _binary_op(left: Any, op: Operator, right: Any) -> Any:
    """Evaluate an arithmetic operation on two resolved operands."""
    # Error propagation: if either operand is an error, propagate it
    err = first_error(left, right)
    if err is not None:
        return err
    if not is_number(left) or not is_number(right):
        raise EvaluationError(
            f"Unsupported operand types for {op.value}: {left!r} and {right!r}"
        )
    if op is Operator.ADD:
        return left + right
    if op is Operator.SUB:
        return left - right
    if op is Operator.MUL:
        return left * right
    if right == 0:
        raise EvaluationError("Division by zero")
    return left / right


def evaluate_node(node: Node, lookup: Callable[[str], Any]) -> Any:
    """Evaluate an AST; *lookup* resolves a reference to its display value."""
    if isinstance(node, Number):
        return node.value
    if isinstance(node, Text):
        return node.value
    if isinstance(node, Reference):
        value = lookup(node.address)
        return 0 if value is None else value
    if isinstance(node, Paren):
        return evaluate_node(node.inner, lookup)
    if isinstance(node, Negate):
        value = evaluate_node(node.operand, lookup)
        if is_error(value):
            return value
        if not is_number(value):
            raise EvaluationError(f"Cannot negate {value!r}")
        return -value
    if isinstance(node, BinaryOp):
        left = evaluate_node(node.left, lookup)
        right = evaluate_node(node.right, lookup)
        try:
            return _binary_op(left, node.op, right)
        except OverflowError as e:
            raise EvaluationError(str(e)) from e
    raise EvaluationError(f"Unknown node: {node!r}")
