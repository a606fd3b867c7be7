"""PostgreSQL dialect implementation."""

from __future__ import annotations

from pysqlingo.dialect._base import Dialect, DialectName


class PostgresDialect(Dialect):
    """PostgreSQL dialect: double-quoted identifiers."""

    name = DialectName.POSTGRESQL

    def identifier_quotes(self) -> tuple[str, str]:
        return '"', '"'

    def max_identifier_length(self) -> int | None:
        return 63
