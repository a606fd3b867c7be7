"""MySQL dialect implementation."""

from __future__ import annotations

from pysqlingo.dialect._base import Dialect, DialectName


class MySQLDialect(Dialect):
    """MySQL dialect: backtick-quoted identifiers."""

    name = DialectName.MYSQL

    def identifier_quotes(self) -> tuple[str, str]:
        return "`", "`"

    def max_identifier_length(self) -> int | None:
        return 64
