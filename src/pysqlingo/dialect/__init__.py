"""SQL dialect system for identifier quoting."""

from pysqlingo.dialect._base import Dialect, DialectName
from pysqlingo.dialect.mssql import MSSQLDialect
from pysqlingo.dialect.mysql import MySQLDialect
from pysqlingo.dialect.postgres import PostgresDialect
from pysqlingo.dialect.sqlite import SQLiteDialect

__all__ = [
    "Dialect",
    "DialectName",
    "MSSQLDialect",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "get_dialect",
]

_REGISTRY: dict[str, type[Dialect]] = {
    DialectName.MYSQL: MySQLDialect,
    DialectName.POSTGRESQL: PostgresDialect,
    DialectName.SQLITE: SQLiteDialect,
    DialectName.MSSQL: MSSQLDialect,
}


def get_dialect(name: str) -> Dialect:
    """Get a dialect instance by name.

    Args:
        name: Dialect name (e.g., "mysql", "postgresql", "sqlite", "mssql").

    Returns:
        A Dialect instance.

    Raises:
        ValueError: If the dialect name is unknown.
    """
    cls = _REGISTRY.get(name)
    if cls is None:
        raise ValueError(
            f"unknown dialect: {name!r}. "
            f"Available: {', '.join(sorted(_REGISTRY))}"
        )
    return cls()
