"""Query builder and execution.

This module provides a fluent Query API that accumulates SELECT, FROM, JOIN,
WHERE, GROUP BY, HAVING, ORDER BY, LIMIT and OFFSET, compiles them into one
parameterized statement for the connection's dialect, and runs it. The same
accumulated table and conditions also drive UPDATE/DELETE/INSERT statements.

Unlike condition keys, ORDER BY and GROUP BY columns, select expressions and
join ``ON`` clauses are taken as written: they come from code, not from input.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterable, Optional

from pydantic import BaseModel, Field

from .conditions import ConditionCompiler, is_empty_condition
from .connection import WriteResult
from .exceptions import InvalidIdentifier
from .utils.identifiers import parameter_slug, validate_identifier

_DIRECTIONS = ("ASC", "DESC")


def normalize_direction(direction: Any) -> str:
    """'desc'/'DESC' -> 'DESC'; anything that is not a known direction -> 'ASC'."""
    if isinstance(direction, str) and direction.strip().upper() in _DIRECTIONS:
        return direction.strip().upper()
    return "ASC"


def validate_table_reference(table: str) -> str:
    """Validate ``table``, ``table alias`` or ``table AS alias``."""
    tokens = table.split() if isinstance(table, str) else []
    if len(tokens) == 3 and tokens[1].upper() == "AS":
        tokens = [tokens[0], tokens[2]]
    if not 1 <= len(tokens) <= 2:
        raise InvalidIdentifier(f"Invalid table: {table!r}")
    for token in tokens:
        validate_identifier(token, "table")
    return table


def parse_order_by(orders: Any) -> list[tuple[str, str]]:
    """Normalize ORDER BY input into (column, direction) pairs.

    Accepts ``"col"``, ``"col DESC"``, ``"-col"``, ``"a DESC, b"``, a dict
    ``{"col": "desc"}``, or a list mixing strings and ``(col, direction)`` pairs.
    """
    if orders is None:
        return []
    if isinstance(orders, str):
        orders = [part for part in orders.split(",") if part.strip()]
    elif isinstance(orders, Mapping):
        orders = list(orders.items())
    result = []
    for order in orders:
        if isinstance(order, str):
            tokens = order.split()
            if len(tokens) not in (1, 2):
                raise InvalidIdentifier(f"Invalid order: {order!r}")
            column = tokens[0]
            direction = tokens[1] if len(tokens) == 2 else "ASC"
            if column.startswith("-"):
                column, direction = column[1:], "DESC"
        else:
            column, direction = order
        result.append((validate_identifier(column, "column"), normalize_direction(direction)))
    return result


class CompiledQuery(BaseModel):
    """SQL with named placeholders, and the values to bind to them."""

    model_config = {"frozen": True}

    sql: str
    params: dict[str, Any] = Field(default_factory=dict)


class Query(BaseModel):
    """Fluent, mutable query builder bound to one Connection.

    Every builder method changes this instance and returns it; terminal
    methods (all, one, scalar, column, count, exists) compile the current
    state each time they are called.
    """

    model_config = {"arbitrary_types_allowed": True}

    connection: Any
    """The recordkit Connection statements run on."""
    select_columns: list[str] = Field(default_factory=lambda: ["*"])
    """Select expressions, as written."""
    distinct_value: bool = False
    from_table: Optional[str] = None
    joins: list[tuple[str, str, str]] = Field(default_factory=list)
    """(join type, table, on) triples."""
    where_parts: list[tuple[str, Any]] = Field(default_factory=list)
    """(combinator, condition) pairs; the first combinator is ignored."""
    bound_params: dict[str, Any] = Field(default_factory=dict)
    """Parameters supplied by the caller for raw string fragments."""
    group_by_columns: list[str] = Field(default_factory=list)
    having_condition: Any = None
    order_by_columns: list[tuple[str, str]] = Field(default_factory=list)
    limit_value: Optional[int] = None
    """Optional LIMIT (stored to avoid shadowing the limit() method)."""
    offset_value: Optional[int] = None
    """Optional OFFSET (stored to avoid shadowing the offset() method)."""

    @classmethod
    def find(cls, connection) -> Query:
        """Start a new query on connection."""
        return cls(connection=connection)

    @property
    def _dialect(self):
        return self.connection.dialect

    # --- builder methods ---

    def select(self, columns: str | Iterable[str]) -> Query:
        """Replace the select list."""
        self.select_columns = [columns] if isinstance(columns, str) else list(columns)
        return self

    def add_select(self, columns: str | Iterable[str]) -> Query:
        """Append to the select list (replacing the implicit ``*``)."""
        columns = [columns] if isinstance(columns, str) else list(columns)
        if self.select_columns == ["*"]:
            self.select_columns = columns
        else:
            self.select_columns = self.select_columns + columns
        return self

    def distinct(self, value: bool = True) -> Query:
        self.distinct_value = value
        return self

    def from_(self, table: str) -> Query:
        """Set the table to select from (``table``, ``table alias`` or ``table AS alias``)."""
        self.from_table = validate_table_reference(table)
        return self

    def where(self, condition: Any, params: Optional[Mapping[str, Any]] = None) -> Query:
        """Replace all conditions with condition."""
        self.where_parts = [("AND", condition)]
        return self.add_params(params)

    def and_where(self, condition: Any, params: Optional[Mapping[str, Any]] = None) -> Query:
        self.where_parts = self.where_parts + [("AND", condition)]
        return self.add_params(params)

    def or_where(self, condition: Any, params: Optional[Mapping[str, Any]] = None) -> Query:
        self.where_parts = self.where_parts + [("OR", condition)]
        return self.add_params(params)

    def add_params(self, params: Optional[Mapping[str, Any]]) -> Query:
        """Add parameters for placeholders written in raw string fragments."""
        if params:
            self.bound_params = {**self.bound_params, **params}
        return self

    def join(self, join_type: str, table: str, on: str = "") -> Query:
        self.joins = self.joins + [(join_type.upper(), validate_table_reference(table), on)]
        return self

    def inner_join(self, table: str, on: str = "") -> Query:
        return self.join("INNER JOIN", table, on)

    def left_join(self, table: str, on: str = "") -> Query:
        return self.join("LEFT JOIN", table, on)

    def right_join(self, table: str, on: str = "") -> Query:
        return self.join("RIGHT JOIN", table, on)

    def group_by(self, columns: str | Iterable[str]) -> Query:
        columns = [c.strip() for c in columns.split(",")] if isinstance(columns, str) else list(columns)
        self.group_by_columns = [validate_identifier(c, "column") for c in columns]
        return self

    def having(self, condition: Any, params: Optional[Mapping[str, Any]] = None) -> Query:
        self.having_condition = condition
        return self.add_params(params)

    def order_by(self, orders: Any) -> Query:
        """Replace ORDER BY; see parse_order_by() for accepted shapes."""
        self.order_by_columns = parse_order_by(orders)
        return self

    def limit(self, limit: Optional[int]) -> Query:
        self.limit_value = None if limit is None else int(limit)
        return self

    def offset(self, offset: Optional[int]) -> Query:
        self.offset_value = None if offset is None else int(offset)
        return self

    # --- SQL-generating methods ---

    def _require_table(self) -> str:
        if not self.from_table:
            raise ValueError("Query has no table; call from_() first")
        return self.from_table

    def _sql_where(self, compiler: ConditionCompiler, params: dict[str, Any], seed: int) -> tuple[str, int]:
        """Compile the accumulated conditions; return (fragment, next seed)."""
        pieces = []
        for combinator, condition in self.where_parts:
            if is_empty_condition(condition):
                continue
            compiled = compiler.compile(condition, seed)
            seed = compiled.next_seed
            params.update(compiled.bindings)
            pieces.append((combinator, compiled.fragment))
        if not pieces:
            return "", seed
        if len(pieces) == 1:
            return pieces[0][1], seed
        fragment, last = f"({pieces[0][1]})", None
        for combinator, piece in pieces[1:]:
            if last is not None and combinator != last:
                fragment = f"({fragment})"
            fragment = f"{fragment} {combinator} ({piece})"
            last = combinator
        return fragment, seed

    def build(self) -> CompiledQuery:
        """Compile the current state into one SELECT statement."""
        table = self._require_table()
        compiler = ConditionCompiler(self._dialect)
        params = dict(self.bound_params)
        sql = "SELECT "
        if self.distinct_value:
            sql += "DISTINCT "
        sql += ", ".join(self.select_columns) + f" FROM {table}"
        for join_type, join_table, on in self.joins:
            sql += f" {join_type} {join_table}"
            if on:
                sql += f" ON {on}"
        where, seed = self._sql_where(compiler, params, 0)
        if where:
            sql += f" WHERE {where}"
        if self.group_by_columns:
            sql += " GROUP BY " + ", ".join(self.group_by_columns)
        if not is_empty_condition(self.having_condition):
            compiled = compiler.compile(self.having_condition, seed)
            params.update(compiled.bindings)
            sql += f" HAVING {compiled.fragment}"
        if self.order_by_columns:
            sql += " ORDER BY " + ", ".join(f"{c} {d}" for c, d in self.order_by_columns)
        sql += self._dialect.limit_clause(self.limit_value, self.offset_value)
        return CompiledQuery(sql=sql, params=params)

    @property
    def sql(self) -> str:
        """Return the compiled SQL string for this query."""
        return self.build().sql

    # --- terminal executors ---

    def all(self) -> list[dict[str, Any]]:
        """Execute and return every row as a dict."""
        compiled = self.build()
        return self.connection.execute(compiled.sql, compiled.params, rows_as_dicts=True)

    def one(self) -> Optional[dict[str, Any]]:
        """Execute with LIMIT 1 and return the row, or None."""
        self.limit(1)
        rows = self.all()
        return rows[0] if rows else None

    def scalar(self) -> Any:
        """First column of the first row, or None."""
        compiled = self.build()
        rows = self.connection.execute(compiled.sql, compiled.params)
        return rows[0][0] if rows else None

    def column(self) -> list[Any]:
        """First column of every row."""
        compiled = self.build()
        return [row[0] for row in self.connection.execute(compiled.sql, compiled.params)]

    def count(self, expression: str = "*") -> int:
        """COUNT(expression) over the current FROM/JOIN/WHERE.

        Select, ordering, limit and offset are swapped out for the duration of
        the call and restored afterwards, even if the statement fails.
        """
        saved = (self.select_columns, self.order_by_columns, self.limit_value,
                 self.offset_value, self.distinct_value)
        try:
            self.order_by_columns, self.limit_value, self.offset_value = [], None, None
            if (self.group_by_columns or self.distinct_value) and expression == "*":
                inner = self.build()
                sql = f"SELECT COUNT(*) FROM ({inner.sql}) AS counted"
                rows = self.connection.execute(sql, inner.params)
                value = rows[0][0] if rows else 0
            else:
                self.select_columns, self.distinct_value = [f"COUNT({expression})"], False
                value = self.scalar()
        finally:
            (self.select_columns, self.order_by_columns, self.limit_value,
             self.offset_value, self.distinct_value) = saved
        return int(value or 0)

    def exists(self) -> bool:
        return self.one() is not None

    # --- write statements ---

    def insert(self, data: Mapping[str, Any], returning: Optional[str] = None) -> WriteResult:
        """INSERT one row into the table; returning names the generated key column."""
        table = self._require_table()
        dialect = self._dialect
        if data:
            columns = [validate_identifier(c, "column") for c in data]
            params = {f"v_{parameter_slug(c)}": data[c] for c in columns}
            placeholders = ", ".join(dialect.placeholder(name) for name in params)
            sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        else:
            params = {}
            sql = f"INSERT INTO {table} {dialect.default_values_clause()}"
        if returning:
            sql += dialect.returning_clause(validate_identifier(returning, "column"))
        return self.connection.execute_write(sql, params)

    def insert_many(self, rows: list[Mapping[str, Any]], columns: Optional[list[str]] = None) -> WriteResult:
        """INSERT several rows in one statement; columns default to the first row's keys."""
        table = self._require_table()
        if not rows:
            raise ValueError("insert_many() needs at least one row")
        columns = [validate_identifier(c, "column") for c in (columns or list(rows[0]))]
        params: dict[str, Any] = {}
        tuples = []
        for index, row in enumerate(rows):
            names = []
            for column in columns:
                name = f"r{index}_{parameter_slug(column)}"
                params[name] = row.get(column)
                names.append(self._dialect.placeholder(name))
            tuples.append(f"({', '.join(names)})")
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES {', '.join(tuples)}"
        return self.connection.execute_write(sql, params)

    def update(self, data: Mapping[str, Any]) -> int:
        """UPDATE every row matched by the current conditions; return the affected row count."""
        table = self._require_table()
        if not data:
            return 0
        params = dict(self.bound_params)
        assignments = []
        for column, value in data.items():
            validate_identifier(column, "column")
            name = f"s_{parameter_slug(column)}"
            params[name] = value
            assignments.append(f"{column} = {self._dialect.placeholder(name)}")
        sql = f"UPDATE {table} SET {', '.join(assignments)}"
        where, _ = self._sql_where(ConditionCompiler(self._dialect), params, 0)
        if where:
            sql += f" WHERE {where}"
        return self.connection.execute_write(sql, params).rowcount

    def delete(self) -> int:
        """DELETE every row matched by the current conditions; return the affected row count."""
        table = self._require_table()
        params = dict(self.bound_params)
        sql = f"DELETE FROM {table}"
        where, _ = self._sql_where(ConditionCompiler(self._dialect), params, 0)
        if where:
            sql += f" WHERE {where}"
        return self.connection.execute_write(sql, params).rowcount


__all__ = ["CompiledQuery", "Query", "normalize_direction", "parse_order_by", "validate_table_reference"]
