"""SQL Server dialect implementation."""

from __future__ import annotations

from pysqlingo.dialect._base import Dialect, DialectName


class MSSQLDialect(Dialect):
    """SQL Server dialect: bracket-quoted identifiers."""

    name = DialectName.MSSQL

    def identifier_quotes(self) -> tuple[str, str]:
        return "[", "]"

    def max_identifier_length(self) -> int | None:
        return 128
