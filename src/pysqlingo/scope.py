"""Rendering context and the statement capabilities the renderer consumes."""

from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pysqlingo._constants import DEFAULT_MAX_RENDER_DEPTH
from pysqlingo._errors import MaxDepthExceededError
from pysqlingo.dialect._base import Dialect
from pysqlingo.dialect.mysql import MySQLDialect


class TableReference(ABC):
    """A table that expressions can resolve field names against."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def render(self, scope: Scope) -> str: ...

    @abstractmethod
    def fields(self) -> Sequence[Any]: ...


class SelectStatement(ABC):
    """A finalized SELECT, embeddable as a parenthesized subquery."""

    @abstractmethod
    def render(self) -> str: ...


class UpdateStatement(ABC):
    """A finalized UPDATE, embedded verbatim."""

    @abstractmethod
    def render(self) -> str: ...


@dataclass(frozen=True)
class Scope:
    """Tables and dialect an expression is rendered against.

    A scope is never mutated; ``descend`` and ``join`` return new scopes.
    """

    dialect: Dialect = field(default_factory=MySQLDialect)
    tables: tuple[TableReference, ...] = ()
    last_join: TableReference | None = None
    depth: int = 0
    max_depth: int = DEFAULT_MAX_RENDER_DEPTH

    def __post_init__(self) -> None:
        object.__setattr__(self, "tables", tuple(self.tables))

    @classmethod
    def of(
        cls,
        *tables: TableReference,
        dialect: Dialect | None = None,
        max_depth: int | None = None,
    ) -> Scope:
        """Build a scope over the given tables.

        Args:
            *tables: Contributing tables, in statement order.
            dialect: Identifier rules to render with. Defaults to MySQL.
            max_depth: Maximum expression nesting depth.
        """
        kwargs: dict[str, Any] = {"tables": tables}
        if dialect is not None:
            kwargs["dialect"] = dialect
        if max_depth is not None:
            kwargs["max_depth"] = max_depth
        return cls(**kwargs)

    def descend(self) -> Scope:
        """Return the scope for rendering one level deeper in the tree."""
        depth = self.depth + 1
        if depth > self.max_depth:
            raise MaxDepthExceededError(
                "maximum expression depth exceeded",
                f"depth {depth} exceeds limit {self.max_depth}",
            )
        return dataclasses.replace(self, depth=depth)

    def join(self, table: TableReference) -> Scope:
        """Return a scope with ``table`` appended as the most recent join."""
        return dataclasses.replace(self, tables=(*self.tables, table), last_join=table)
