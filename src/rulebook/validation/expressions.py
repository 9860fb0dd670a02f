"""
Syntax checks for PromQL/MetricsQL expressions.

This is a structural check only: it does not resolve functions or metric
names and never executes a query. It catches the mistakes that break rule
files in practice - unbalanced brackets, unterminated strings, empty
groupings and dangling operators.

Usage:
    from rulebook.validation.expressions import validate_expression

    validate_expression('sum(rate(http_requests_total{job="api"}[5m]))')
"""

from __future__ import annotations

import re
from typing import Protocol

from rulebook.core.errors import ExpressionError

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {v: k for k, v in _OPENERS.items()}
_QUOTES = {'"', "'", "`"}

_TRAILING_OPERATOR = re.compile(
    r"(\+|-|\*|/|%|\^|==|!=|>=|<=|>|<|\band|\bor|\bunless|\bdefault|\bif|\bifnot)\s*$",
    re.IGNORECASE,
)
_IDENT_CHAR = re.compile(r"[A-Za-z0-9_:]")


class ExpressionValidator(Protocol):
    """Validates query expression syntax; raises on invalid input."""

    def validate(self, expr: str) -> None: ...


class SyntaxExpressionValidator:
    """
    Default structural validator for query expressions.

    This is not a PromQL parser: token sequences such as ``foo bar baz`` or
    ``up ==== 0`` pass as long as brackets, strings and trailing operators
    are well formed. For full checking, wrap a real parser (for example the
    ``promql-parser`` package) in an object with a ``validate(expr)`` method
    and pass it as ``expression_validator`` to ``parse``, ``RuleLoader`` or
    ``validate_group``.
    """

    def validate(self, expr: str) -> None:
        """
        Check expression syntax.

        Raises:
            ExpressionError: On the first syntax problem found
        """
        if not expr.strip():
            raise ExpressionError("expression is empty")

        stack: list[tuple[str, int]] = []
        code: list[str] = []
        i = 0
        n = len(expr)

        while i < n:
            ch = expr[i]

            if ch == "#":
                end = expr.find("\n", i)
                i = n if end == -1 else end
                continue

            if ch in _QUOTES:
                i = self._skip_string(expr, i)
                code.append(" ")
                continue

            if ch in _OPENERS:
                if ch == "(" and self._is_empty_group(expr, i):
                    raise ExpressionError(f"empty parentheses at position {i}")
                stack.append((ch, i))
            elif ch in _CLOSERS:
                if not stack or stack[-1][0] != _CLOSERS[ch]:
                    raise ExpressionError(f"unexpected {ch!r} at position {i}")
                stack.pop()

            code.append(ch)
            i += 1

        if stack:
            opener, pos = stack[-1]
            raise ExpressionError(f"unclosed {opener!r} opened at position {pos}")

        stripped = "".join(code).strip()
        if not stripped:
            raise ExpressionError("expression contains only comments")

        match = _TRAILING_OPERATOR.search(stripped)
        if match:
            raise ExpressionError(f"expression ends with operator {match.group(1)!r}")

    @staticmethod
    def _skip_string(expr: str, start: int) -> int:
        quote = expr[start]
        i = start + 1
        while i < len(expr):
            ch = expr[i]
            if ch == "\\" and quote != "`":
                i += 2
                continue
            if ch == quote:
                return i + 1
            i += 1
        raise ExpressionError(f"unterminated string literal starting at position {start}")

    @staticmethod
    def _is_empty_group(expr: str, pos: int) -> bool:
        """True for ``()`` that is not a function call like ``time()``."""
        rest = expr[pos + 1 :].lstrip()
        if not rest.startswith(")"):
            return False
        before = expr[:pos].rstrip()
        return not before or _IDENT_CHAR.match(before[-1]) is None


_default_validator = SyntaxExpressionValidator()


def validate_expression(expr: str) -> None:
    """Validate an expression with the default syntax validator."""
    _default_validator.validate(expr)
