"""Abstract base class for SQL dialects."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod

from pysqlingo._errors import InvalidFieldNameError
from pysqlingo._utils import validate_identifier


class DialectName(enum.StrEnum):
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"
    MSSQL = "mssql"


class Dialect(ABC):
    """Abstract base class defining the identifier rules of a database.

    Literal escaping is shared by every dialect; only table, field and
    alias names are dialect-specific.
    """

    name: DialectName

    @abstractmethod
    def identifier_quotes(self) -> tuple[str, str]: ...

    @abstractmethod
    def max_identifier_length(self) -> int | None: ...

    def quote_identifier(self, identifier: str) -> str:
        """Quote an identifier, doubling any embedded closing quote character."""
        validate_identifier(identifier)
        limit = self.max_identifier_length()
        if limit is not None and len(identifier) > limit:
            raise InvalidFieldNameError(
                "identifier too long",
                f"identifier '{identifier}' exceeds {limit} characters for {self.name}",
            )
        open_quote, close_quote = self.identifier_quotes()
        escaped = identifier.replace(close_quote, close_quote * 2)
        return f"{open_quote}{escaped}{close_quote}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
