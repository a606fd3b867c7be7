"""SQLite dialect implementation."""

from __future__ import annotations

from pysqlingo.dialect._base import Dialect, DialectName


class SQLiteDialect(Dialect):
    """SQLite dialect: double-quoted identifiers, no length limit."""

    name = DialectName.SQLITE

    def identifier_quotes(self) -> tuple[str, str]:
        return '"', '"'

    def max_identifier_length(self) -> int | None:
        return None
