"""Parameterized SQL builder for variable-length predicate lists.

Clauses and their parameters are accumulated together so user input only ever
travels as bound parameters. Identifiers (tables, columns) must come from code
and are validated against a strict pattern.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
import re
from typing import Any


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
LIKE_ESCAPE = "\\"


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def contains_pattern(value: str) -> str:
    return f"%{escape_like(value)}%"


@dataclass(frozen=True)
class Predicate:
    """A SQL fragment with the parameters its placeholders bind to."""

    sql: str
    params: tuple[Any, ...] = ()

    def __and__(self, other: Predicate) -> Predicate:
        return Predicate(f"({self.sql} AND {other.sql})", self.params + other.params)

    def __or__(self, other: Predicate) -> Predicate:
        return Predicate(f"({self.sql} OR {other.sql})", self.params + other.params)

    @classmethod
    def like_any(cls, columns: Sequence[str], value: str) -> Predicate:
        """Match when any of ``columns`` contains ``value``."""
        if not columns:
            raise ValueError("like_any requires at least one column")
        pattern = contains_pattern(value)
        parts = [f"{_check_identifier(column)} LIKE ? ESCAPE '{LIKE_ESCAPE}'" for column in columns]
        return cls("(" + " OR ".join(parts) + ")", tuple(pattern for _ in columns))

    @classmethod
    def in_(cls, column: str, values: Sequence[Any]) -> Predicate:
        if not values:
            # Nothing can be IN an empty set.
            return cls("0")
        placeholders = ", ".join("?" for _ in values)
        return cls(f"{_check_identifier(column)} IN ({placeholders})", tuple(values))

    @classmethod
    def eq(cls, column: str, value: Any) -> Predicate:
        return cls(f"{_check_identifier(column)} = ?", (value,))


@dataclass
class SelectBuilder:
    """Accumulate a SELECT statement and its bound parameters in order."""

    table: str
    _columns: list[Predicate] = field(default_factory=list)
    _joins: list[str] = field(default_factory=list)
    _where: list[Predicate] = field(default_factory=list)
    _order_by: list[str] = field(default_factory=list)
    _limit: int | None = None
    _offset: int | None = None

    def __post_init__(self) -> None:
        _check_identifier(self.table)

    def column(self, expression: str, *params: Any, alias: str | None = None) -> SelectBuilder:
        sql = expression if alias is None else f"{expression} AS {_check_identifier(alias)}"
        self._columns.append(Predicate(sql, params))
        return self

    def columns(self, names: Iterable[str]) -> SelectBuilder:
        for name in names:
            self._columns.append(Predicate(_check_identifier(name)))
        return self

    def join(self, table: str, on: str) -> SelectBuilder:
        self._joins.append(f"JOIN {_check_identifier(table)} ON {on}")
        return self

    def where(self, predicate: Predicate) -> SelectBuilder:
        self._where.append(predicate)
        return self

    def order_by(self, *expressions: str) -> SelectBuilder:
        self._order_by.extend(expressions)
        return self

    def limit(self, limit: int, offset: int | None = None) -> SelectBuilder:
        self._limit = max(0, int(limit))
        self._offset = None if offset is None else max(0, int(offset))
        return self

    def build(self) -> tuple[str, tuple[Any, ...]]:
        """Return the SQL text and the flat parameter tuple."""
        if not self._columns:
            raise ValueError("SELECT requires at least one column")
        params: list[Any] = []
        select_sql = []
        for column in self._columns:
            select_sql.append(column.sql)
            params.extend(column.params)

        sql = f"SELECT {', '.join(select_sql)} FROM {self.table}"
        if self._joins:
            sql += " " + " ".join(self._joins)
        if self._where:
            sql += " WHERE " + " AND ".join(predicate.sql for predicate in self._where)
            for predicate in self._where:
                params.extend(predicate.params)
        if self._order_by:
            sql += " ORDER BY " + ", ".join(self._order_by)
        if self._limit is not None:
            sql += " LIMIT ?"
            params.append(self._limit)
            if self._offset is not None:
                sql += " OFFSET ?"
                params.append(self._offset)
        return sql, tuple(params)
