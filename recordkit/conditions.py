"""Compilation of declarative conditions into parameterized WHERE/HAVING fragments.

A condition is one of:

- a mapping ``{"status": "active", "deleted_at": None, "id": [1, 2]}``: equality,
  ``IS NULL`` and ``IN`` tests joined with ``AND``;
- an operator tuple ``("like", "title", "news")``, ``(">=", "views", 10)``,
  ``("in", "id", [1, 2])``, ``("between", "age", [18, 65])``; the column-first
  spelling ``("views", ">=", 10)`` is accepted too;
- a combinator ``("or", cond, cond, ...)`` / ``("and", cond, cond, ...)``;
- a raw string fragment, written by the caller (never built from input).

Every value is bound, never interpolated. Parameter names carry a running
counter and the column name (``p3_status``) so they never collide within one
compiled statement, even when the same column appears several times.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

from .dialects import Dialect
from .exceptions import InvalidCondition
from .utils.identifiers import parameter_slug, validate_identifier

COMBINATORS = ("AND", "OR")
LIKE_OPERATORS = ("LIKE", "NOT LIKE", "ILIKE", "NOT ILIKE")
IN_OPERATORS = ("IN", "NOT IN")
BETWEEN_OPERATORS = ("BETWEEN", "NOT BETWEEN")
COMPARISON_OPERATORS = ("=", "!=", "<>", ">", ">=", "<", "<=")
OPERATORS = LIKE_OPERATORS + IN_OPERATORS + BETWEEN_OPERATORS + COMPARISON_OPERATORS


def _normalize_operator(operator: Any) -> str | None:
    if not isinstance(operator, str):
        return None
    normalized = " ".join(operator.upper().split())
    return "!=" if normalized == "<>" else normalized


def is_empty_condition(condition: Any) -> bool:
    """True for None, '', {} and empty sequences."""
    if condition is None:
        return True
    if isinstance(condition, (str, Mapping, list, tuple)):
        return len(condition) == 0
    return False


class CompiledCondition(BaseModel):
    """Result of ConditionCompiler.compile()."""

    model_config = {"frozen": True}

    fragment: str = ""
    """SQL fragment without the WHERE/HAVING keyword; empty for an empty condition."""
    bindings: dict[str, Any] = Field(default_factory=dict)
    """Parameter name (without placeholder decoration) to value."""
    next_seed: int = 0
    """Counter value to pass as seed when compiling the next fragment of the same statement."""


class ConditionCompiler:
    """Turns a condition value into ``(fragment, bindings, next_seed)`` for a dialect."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect
        self._seed = 0
        self._bindings: dict[str, Any] = {}

    def compile(self, condition: Any, seed: int = 0) -> CompiledCondition:
        """Compile condition; parameter numbering starts at seed."""
        self._seed = seed
        self._bindings = {}
        fragment, _ = self._compile(condition)
        return CompiledCondition(fragment=fragment, bindings=self._bindings, next_seed=self._seed)

    # binding

    def _bind(self, column: str, value: Any) -> str:
        name = f"p{self._seed}_{parameter_slug(column)}"
        self._seed += 1
        self._bindings[name] = value
        return self.dialect.placeholder(name)

    # dispatch; every method returns (fragment, compound) where compound means
    # "needs parentheses when combined with siblings"

    def _compile(self, condition: Any) -> tuple[str, bool]:
        if is_empty_condition(condition):
            return "", False
        if isinstance(condition, str):
            return condition, True
        if isinstance(condition, Mapping):
            return self._compile_mapping(condition)
        if isinstance(condition, (list, tuple)):
            head = _normalize_operator(condition[0])
            if head in COMBINATORS:
                return self._compile_combinator(head, condition[1:])
            if len(condition) == 3:
                if head in OPERATORS:
                    return self._compile_operator(head, condition[1], condition[2]), False
                middle = _normalize_operator(condition[1])
                if middle in OPERATORS:
                    return self._compile_operator(middle, condition[0], condition[2]), False
            raise InvalidCondition(f"Unsupported condition: {condition!r}")
        raise InvalidCondition(f"Unsupported condition type {type(condition).__name__}: {condition!r}")

    def _compile_mapping(self, condition: Mapping) -> tuple[str, bool]:
        parts = []
        for column, value in condition.items():
            validate_identifier(column, "column")
            parts.append(self._equality(column, value))
        return " AND ".join(parts), len(parts) > 1

    def _compile_combinator(self, combinator: str, children) -> tuple[str, bool]:
        parts = []
        for child in children:
            fragment, compound = self._compile(child)
            if not fragment:
                continue
            parts.append((fragment, compound))
        if not parts:
            return "", False
        if len(parts) == 1:
            return parts[0]
        return f" {combinator} ".join(f"({f})" if c else f for f, c in parts), True

    def _compile_operator(self, operator: str, column: Any, value: Any) -> str:
        validate_identifier(column, "column")
        if operator in LIKE_OPERATORS:
            return self._like(operator, column, value)
        if operator in IN_OPERATORS:
            if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
                raise InvalidCondition(f"{operator} on {column} expects a list of values, got {value!r}")
            return self._in(column, operator, value)
        if operator in BETWEEN_OPERATORS:
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise InvalidCondition(f"{operator} on {column} expects [low, high], got {value!r}")
            low = self._bind(column, value[0])
            high = self._bind(column, value[1])
            return f"{column} {operator} {low} AND {high}"
        if value is None and operator == "=":
            return f"{column} IS NULL"
        if value is None and operator == "!=":
            return f"{column} IS NOT NULL"
        return f"{column} {operator} {self._bind(column, value)}"

    # clauses

    def _equality(self, column: str, value: Any) -> str:
        if value is None:
            return f"{column} IS NULL"
        if isinstance(value, (list, tuple, set, frozenset)):
            return self._in(column, "IN", value)
        return f"{column} = {self._bind(column, value)}"

    def _in(self, column: str, operator: str, values) -> str:
        values = list(values)
        if not values:
            # nothing is IN an empty list, everything is NOT IN it
            return "1 = 0" if operator == "IN" else "1 = 1"
        placeholders = [self._bind(column, value) for value in values]
        return f"{column} {operator} ({', '.join(placeholders)})"

    def _like(self, operator: str, column: str, value: Any) -> str:
        value = "" if value is None else str(value)
        if "%" not in value:
            value = f"%{value}%"
        negated = operator.startswith("NOT ")
        keyword = self.dialect.like_operator(case_insensitive="ILIKE" in operator)
        if negated:
            keyword = f"NOT {keyword}"
        return f"{column} {keyword} {self._bind(column, value)}"
