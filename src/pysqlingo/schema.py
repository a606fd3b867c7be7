"""Table and field bindings that expressions reference."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from pysqlingo._errors import InvalidFieldNameError
from pysqlingo._expression import Builder, Expression
from pysqlingo._utils import validate_identifier
from pysqlingo.scope import Scope, TableReference


@dataclass(frozen=True, eq=False)
class FieldReference(Builder):
    """Renders a field name, qualified by its table when the scope needs it."""

    table: Table
    name: str

    def render(self, scope: Scope) -> str:
        field_sql = scope.dialect.quote_identifier(self.name)
        if (
            len(scope.tables) != 1
            or scope.last_join is not None
            or scope.tables[0] is not self.table
        ):
            return f"{self.table.render(scope)}.{field_sql}"
        return field_sql


class Table(TableReference):
    """A table with named fields and O(1) field lookup."""

    def __init__(self, name: str, *field_names: str, alias: str | None = None) -> None:
        validate_identifier(name, "table name")
        if alias is not None:
            validate_identifier(alias, "table alias")
        self._name = name
        self._alias = alias
        self._fields: dict[str, Expression] = {}
        for field_name in field_names:
            validate_identifier(field_name)
            if field_name in self._fields:
                raise InvalidFieldNameError(
                    "duplicate field name",
                    f"field '{field_name}' declared twice on table '{name}'",
                )
            self._fields[field_name] = Expression(builder=FieldReference(self, field_name))

    @property
    def name(self) -> str:
        return self._name

    @property
    def alias(self) -> str | None:
        return self._alias

    def as_(self, alias: str) -> Table:
        """Return a copy of this table referenced by ``alias``."""
        return Table(self._name, *self._fields, alias=alias)

    def render(self, scope: Scope) -> str:
        return scope.dialect.quote_identifier(self._alias or self._name)

    def fields(self) -> tuple[Expression, ...]:
        return tuple(self._fields.values())

    def field_names(self) -> list[str]:
        return list(self._fields)

    def find_field(self, name: str) -> Expression | None:
        return self._fields.get(name)

    def field(self, name: str) -> Expression:
        found = self._fields.get(name)
        if found is None:
            raise InvalidFieldNameError(
                "unknown field",
                f"table '{self._name}' has no field '{name}'",
            )
        return found

    def __getitem__(self, name: str) -> Expression:
        return self.field(name)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Expression]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        alias = f", alias={self._alias!r}" if self._alias else ""
        return f"Table({self._name!r}, {len(self._fields)} fields{alias})"
