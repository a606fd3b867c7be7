"""Expression nodes, operator compilation, and value marshalling.

An :class:`Expression` is either a pre-rendered SQL fragment or a
:class:`Builder` that renders its captured operands against a
:class:`~pysqlingo.scope.Scope`. Every operator returns a new node, so trees
can be shared between statements and rendered from several threads.
"""

from __future__ import annotations

import dataclasses
import datetime
import math
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from io import StringIO
from typing import Any

from pysqlingo._errors import (
    ERR_MSG_INVALID_EXPRESSION,
    ERR_MSG_UNSUPPORTED_TYPE,
    InvalidExpressionError,
    UnsupportedTypeError,
)
from pysqlingo._operators import Precedence
from pysqlingo._utils import (
    flatten_values,
    freeze_value,
    is_expandable,
    quote_bytes,
    quote_string,
    validate_identifier,
)
from pysqlingo.scope import Scope, SelectStatement, TableReference, UpdateStatement


def _write_operand(w: StringIO, sql: str, parenthesize: bool) -> None:
    if parenthesize:
        w.write("(")
        w.write(sql)
        w.write(")")
    else:
        w.write(sql)


class Builder(ABC):
    """A deferred render operation holding its captured operands."""

    @abstractmethod
    def render(self, scope: Scope) -> str: ...


@dataclass(frozen=True)
class BinaryOperation(Builder):
    """``left OP right``, left-associative."""

    left: Expression
    operator: str
    right: Any
    precedence: int

    def render(self, scope: Scope) -> str:
        # The left spine is walked iteratively: a chain of any length uses
        # one render depth level and constant stack.
        spine = [self]
        bottom = self.left
        while bottom.sql is None and isinstance(bottom.builder, BinaryOperation):
            spine.append(bottom.builder)
            bottom = bottom.builder.left

        spine.reverse()
        wrapped = []
        precedence = bottom.precedence
        for operation in spine:
            wrapped.append(precedence > operation.precedence)
            precedence = operation.precedence

        # Every wrapped left operand starts at the bottom of the spine
        w = StringIO()
        w.write("(" * sum(wrapped))
        w.write(bottom.render(scope))
        for operation, close in zip(spine, wrapped):
            if close:
                w.write(")")
            right_sql, right_precedence = marshal(scope, operation.right)
            w.write(f" {operation.operator} ")
            # Equal precedence on the right keeps a - (b - c) explicit
            _write_operand(w, right_sql, right_precedence >= operation.precedence)
        return w.getvalue()


@dataclass(frozen=True)
class PrefixSuffixOperation(Builder):
    """``prefix operand suffix``, e.g. ``NOT x`` or ``x IS NULL``."""

    operand: Expression
    prefix: str
    suffix: str
    precedence: int

    def render(self, scope: Scope) -> str:
        return _wrap_prefix_suffix(
            self.operand.render(scope),
            self.operand.precedence,
            self.prefix,
            self.suffix,
            self.precedence,
        )


def _wrap_prefix_suffix(
    sql: str, operand_precedence: int, prefix: str, suffix: str, precedence: int
) -> str:
    parenthesize = (
        operand_precedence > precedence
        or (not suffix and operand_precedence == precedence)
        # "--" starts a comment
        or (prefix.endswith("-") and sql.startswith("-"))
    )
    w = StringIO()
    w.write(prefix)
    _write_operand(w, sql, parenthesize)
    w.write(suffix)
    return w.getvalue()


@dataclass(frozen=True)
class Membership(Builder):
    """``operand [NOT] IN (v1, v2, ...)`` or ``operand [NOT] IN (subquery)``."""

    operand: Expression
    values: tuple[Any, ...]
    negated: bool = False

    def render(self, scope: Scope) -> str:
        if len(self.values) == 1 and isinstance(self.values[0], SelectStatement):
            values_sql = self.values[0].render()
        else:
            values_sql = comma_values(scope, self.values)
        w = StringIO()
        _write_operand(
            w,
            self.operand.render(scope),
            self.operand.precedence > Precedence.COMPARISON,
        )
        w.write(" NOT IN (" if self.negated else " IN (")
        w.write(values_sql)
        w.write(")")
        return w.getvalue()


@dataclass(frozen=True)
class Range(Builder):
    """``operand [NOT] BETWEEN low AND high``."""

    operand: Expression
    low: Any
    high: Any
    negated: bool = False

    def render(self, scope: Scope) -> str:
        operand_sql = self.operand.render(scope)
        low_sql, _ = marshal(scope, self.low)
        high_sql, _ = marshal(scope, self.high)
        w = StringIO()
        _write_operand(w, operand_sql, self.operand.precedence > Precedence.BETWEEN)
        w.write(" NOT BETWEEN " if self.negated else " BETWEEN ")
        w.write(low_sql)
        w.write(" AND ")
        w.write(high_sql)
        return w.getvalue()


@dataclass(frozen=True)
class FunctionCall(Builder):
    """``NAME(arg1, arg2, ...)``."""

    name: str
    args: tuple[Any, ...]

    def render(self, scope: Scope) -> str:
        return f"{self.name}({comma_values(scope, self.args)})"


@dataclass(frozen=True)
class ValueLiteral(Builder):
    """A plain value marshalled at render time."""

    value: Any

    def render(self, scope: Scope) -> str:
        return marshal(scope, self.value)[0]


@dataclass(frozen=True)
class CaseOperation(Builder):
    """``CASE [operand] WHEN ... THEN ... [ELSE ...] END``."""

    case: CaseExpression

    def render(self, scope: Scope) -> str:
        case = self.case
        w = StringIO()
        w.write("CASE ")
        if case.operand is not None:
            w.write(marshal(scope, case.operand)[0])
            w.write(" ")
        for condition, result in case.branches:
            w.write("WHEN ")
            w.write(marshal(scope, condition)[0])
            w.write(" THEN ")
            w.write(marshal(scope, result)[0])
            w.write(" ")
        if case.else_value is not None:
            w.write("ELSE ")
            w.write(marshal(scope, case.else_value)[0])
            w.write(" ")
        w.write("END")
        return w.getvalue()


@dataclass(frozen=True)
class Expression:
    """An immutable node of a SQL expression tree.

    Exactly one of ``sql`` (a pre-rendered fragment) and ``builder`` (a
    deferred render operation) is set. ``precedence`` is the binding strength
    of the outermost operator and decides parenthesization when the node is
    an operand. ``is_definitely_true``, ``is_definitely_false`` and
    ``is_boolean`` classify the node for boolean short-circuit simplification.

    Python operators map onto the fluent methods: ``+ - * / // % <<
    >>`` and unary ``-`` are arithmetic, ``& | ^ ~`` are the boolean
    ``AND``/``OR``/``XOR``/``NOT``.
    """

    sql: str | None = None
    builder: Builder | None = None
    precedence: int = Precedence.ATOM
    is_definitely_true: bool = False
    is_definitely_false: bool = False
    is_boolean: bool = False

    def __post_init__(self) -> None:
        if (self.sql is None) == (self.builder is None):
            raise InvalidExpressionError(
                ERR_MSG_INVALID_EXPRESSION,
                "expression requires exactly one of sql or builder",
            )
        if self.is_definitely_true and self.is_definitely_false:
            raise InvalidExpressionError(
                ERR_MSG_INVALID_EXPRESSION,
                "expression cannot be both definitely true and definitely false",
            )

    def render(self, scope: Scope | None = None) -> str:
        """Render the node to SQL text.

        Args:
            scope: Tables and dialect to resolve names against. Defaults to
                an empty MySQL scope.

        Raises:
            ExpressionError: If any part of the tree cannot be rendered.
        """
        if self.sql is not None:
            return self.sql
        if scope is None:
            scope = Scope()
        return self.builder.render(scope.descend())

    # ---- Builders ----

    def _binary(self, operator: str, other: Any, precedence: int, is_bool: bool) -> Expression:
        return Expression(
            builder=BinaryOperation(self, operator, freeze_value(other), precedence),
            precedence=precedence,
            is_boolean=is_bool,
        )

    def _prefix_suffix(
        self, prefix: str, suffix: str, precedence: int, is_bool: bool
    ) -> Expression:
        if self.sql is not None:
            return Expression(
                sql=_wrap_prefix_suffix(self.sql, self.precedence, prefix, suffix, precedence),
                precedence=precedence,
                is_boolean=is_bool,
            )
        return Expression(
            builder=PrefixSuffixOperation(self, prefix, suffix, precedence),
            precedence=precedence,
            is_boolean=is_bool,
        )

    # ---- Comparison ----

    def equals(self, other: Any) -> Expression:
        return self._binary("=", other, Precedence.COMPARISON, True)

    def not_equals(self, other: Any) -> Expression:
        return self._binary("<>", other, Precedence.COMPARISON, True)

    def less_than(self, other: Any) -> Expression:
        return self._binary("<", other, Precedence.COMPARISON, True)

    def less_than_or_equals(self, other: Any) -> Expression:
        return self._binary("<=", other, Precedence.COMPARISON, True)

    def greater_than(self, other: Any) -> Expression:
        return self._binary(">", other, Precedence.COMPARISON, True)

    def greater_than_or_equals(self, other: Any) -> Expression:
        return self._binary(">=", other, Precedence.COMPARISON, True)

    def like(self, pattern: Any) -> Expression:
        return self._binary("LIKE", pattern, Precedence.COMPARISON, True)

    def is_null(self) -> Expression:
        return self._prefix_suffix("", " IS NULL", Precedence.COMPARISON, True)

    def is_not_null(self) -> Expression:
        return self._prefix_suffix("", " IS NOT NULL", Precedence.COMPARISON, True)

    def is_true(self) -> Expression:
        return self._prefix_suffix("", " IS TRUE", Precedence.COMPARISON, True)

    def is_not_true(self) -> Expression:
        return self._prefix_suffix("", " IS NOT TRUE", Precedence.COMPARISON, True)

    def is_false(self) -> Expression:
        return self._prefix_suffix("", " IS FALSE", Precedence.COMPARISON, True)

    def is_not_false(self) -> Expression:
        return self._prefix_suffix("", " IS NOT FALSE", Precedence.COMPARISON, True)

    # ---- Boolean ----

    def and_(self, other: Any) -> Expression:
        if self.is_definitely_false:
            return self
        if self.is_definitely_true:
            folded = _as_boolean(other)
            if folded is not None:
                return folded
        return self._binary("AND", other, Precedence.AND, True)

    def or_(self, other: Any) -> Expression:
        if self.is_definitely_true:
            return self
        if self.is_definitely_false:
            folded = _as_boolean(other)
            if folded is not None:
                return folded
        return self._binary("OR", other, Precedence.OR, True)

    def xor(self, other: Any) -> Expression:
        return self._binary("XOR", other, Precedence.XOR, True)

    def not_(self) -> Expression:
        if self.is_definitely_true:
            return false()
        if self.is_definitely_false:
            return true()
        return self._prefix_suffix("NOT ", "", Precedence.NOT, True)

    # ---- Arithmetic ----

    def add(self, other: Any) -> Expression:
        return self._binary("+", other, Precedence.ADDITIVE, False)

    def sub(self, other: Any) -> Expression:
        return self._binary("-", other, Precedence.ADDITIVE, False)

    def mul(self, other: Any) -> Expression:
        return self._binary("*", other, Precedence.MULTIPLICATIVE, False)

    def div(self, other: Any) -> Expression:
        return self._binary("/", other, Precedence.MULTIPLICATIVE, False)

    def int_div(self, other: Any) -> Expression:
        return self._binary("DIV", other, Precedence.MULTIPLICATIVE, False)

    def mod(self, other: Any) -> Expression:
        return self._binary("%", other, Precedence.MULTIPLICATIVE, False)

    def neg(self) -> Expression:
        return self._prefix_suffix("-", "", Precedence.UNARY, False)

    # ---- Bitwise ----

    def bit_and(self, other: Any) -> Expression:
        return self._binary("&", other, Precedence.BIT_AND, False)

    def bit_or(self, other: Any) -> Expression:
        return self._binary("|", other, Precedence.BIT_OR, False)

    def shift_left(self, other: Any) -> Expression:
        return self._binary("<<", other, Precedence.SHIFT, False)

    def shift_right(self, other: Any) -> Expression:
        return self._binary(">>", other, Precedence.SHIFT, False)

    def bit_not(self) -> Expression:
        return self._prefix_suffix("~", "", Precedence.UNARY, False)

    # ---- Aggregates ----

    def sum(self) -> Expression:
        return function("SUM", self)

    def avg(self) -> Expression:
        return function("AVG", self)

    def min(self) -> Expression:
        return function("MIN", self)

    def max(self) -> Expression:
        return function("MAX", self)

    def count(self) -> Expression:
        return function("COUNT", self)

    # ---- Membership / range ----

    def in_(self, *values: Any) -> Expression:
        """``self IN (values...)``; nested sequences are flattened.

        No values is the constant false; a single plain value renders as
        ``self = value``; a single :class:`SelectStatement` renders as a
        subquery.
        """
        return self._membership(values, negated=False)

    def not_in(self, *values: Any) -> Expression:
        """``self NOT IN (values...)``; no values is the constant true."""
        return self._membership(values, negated=True)

    def _membership(self, values: Iterable[Any], negated: bool) -> Expression:
        flat = flatten_values(values)
        if not flat:
            return true() if negated else false()
        if len(flat) == 1 and not isinstance(flat[0], SelectStatement):
            return self.not_equals(flat[0]) if negated else self.equals(flat[0])
        return Expression(
            builder=Membership(self, tuple(flat), negated),
            precedence=Precedence.COMPARISON,
            is_boolean=True,
        )

    def between(self, low: Any, high: Any) -> Expression:
        return Expression(
            builder=Range(self, freeze_value(low), freeze_value(high)),
            precedence=Precedence.BETWEEN,
            is_boolean=True,
        )

    def not_between(self, low: Any, high: Any) -> Expression:
        return Expression(
            builder=Range(self, freeze_value(low), freeze_value(high), negated=True),
            precedence=Precedence.BETWEEN,
            is_boolean=True,
        )

    # ---- Strings ----

    def concat(self, *others: Any) -> Expression:
        return concat(self, *others)

    def lower(self) -> Expression:
        return function("LOWER", self)

    def upper(self) -> Expression:
        return function("UPPER", self)

    def left(self, count: Any) -> Expression:
        return function("LEFT", self, count)

    def right(self, count: Any) -> Expression:
        return function("RIGHT", self, count)

    def trim(self) -> Expression:
        return function("TRIM", self)

    def char_length(self) -> Expression:
        return function("CHAR_LENGTH", self)

    def contains(self, substring: Any) -> Expression:
        return function("LOCATE", substring, self).greater_than(0)

    def has_prefix(self, prefix: Any) -> Expression:
        return self.left(function("CHAR_LENGTH", prefix)).equals(prefix)

    def has_suffix(self, suffix: Any) -> Expression:
        return self.right(function("CHAR_LENGTH", suffix)).equals(suffix)

    def is_empty(self) -> Expression:
        return self.equals("")

    def if_empty(self, alt_value: Any) -> Expression:
        return if_(self.not_equals(""), self, alt_value)

    # ---- Conditionals ----

    def if_(self, true_value: Any, false_value: Any) -> Expression:
        return if_(self, true_value, false_value)

    def if_null(self, alt_value: Any) -> Expression:
        return if_null(self, alt_value)

    # ---- Aliases / ordering ----

    def as_(self, name: str) -> Alias:
        return Alias(self, name)

    def desc(self) -> OrderBy:
        return OrderBy(self, descending=True)

    def asc(self) -> OrderBy:
        return OrderBy(self)

    # ---- Python operators ----

    def __add__(self, other: Any) -> Expression:
        return self.add(other)

    def __sub__(self, other: Any) -> Expression:
        return self.sub(other)

    def __mul__(self, other: Any) -> Expression:
        return self.mul(other)

    def __truediv__(self, other: Any) -> Expression:
        return self.div(other)

    def __floordiv__(self, other: Any) -> Expression:
        return self.int_div(other)

    def __mod__(self, other: Any) -> Expression:
        return self.mod(other)

    def __lshift__(self, other: Any) -> Expression:
        return self.shift_left(other)

    def __rshift__(self, other: Any) -> Expression:
        return self.shift_right(other)

    def __neg__(self) -> Expression:
        return self.neg()

    def __and__(self, other: Any) -> Expression:
        return self.and_(other)

    def __or__(self, other: Any) -> Expression:
        return self.or_(other)

    def __xor__(self, other: Any) -> Expression:
        return self.xor(other)

    def __invert__(self) -> Expression:
        return self.not_()


def _as_boolean(value: Any) -> Expression | None:
    """Return ``value`` as a boolean node, or None if it is not one."""
    if not isinstance(value, Expression):
        return None
    if value.is_definitely_true:
        return true()
    if value.is_definitely_false:
        return false()
    if value.is_boolean:
        return value
    return None


@dataclass(frozen=True)
class Alias:
    """``expression AS name``; never used as an operand."""

    expression: Expression
    name: str

    def __post_init__(self) -> None:
        validate_identifier(self.name, "alias")

    def render(self, scope: Scope | None = None) -> str:
        return f"{self.expression.render(scope)} AS {self.name}"


@dataclass(frozen=True)
class OrderBy:
    """An ORDER BY item: ``expression [DESC]``."""

    by: Expression
    descending: bool = False

    def render(self, scope: Scope | None = None) -> str:
        sql = self.by.render(scope)
        if self.descending:
            return sql + " DESC"
        return sql


@dataclass(frozen=True)
class Assignment:
    """``field = value`` for INSERT ... ON DUPLICATE KEY UPDATE and UPDATE SET."""

    field: Expression
    value: Any

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", freeze_value(self.value))

    def render(self, scope: Scope | None = None) -> str:
        if scope is None:
            scope = Scope()
        value_sql, _ = marshal(scope, self.value)
        field_sql = self.field.render(scope)
        return f"{field_sql} = {value_sql}"


@dataclass(frozen=True)
class CaseExpression:
    """Immutable CASE builder; :meth:`end` closes it into an Expression.

    With an ``operand`` this is a simple CASE (``CASE x WHEN 1 THEN ...``),
    otherwise a searched CASE (``CASE WHEN cond THEN ...``).
    """

    operand: Any = None
    branches: tuple[tuple[Any, Any], ...] = ()
    else_value: Any = None

    def when(self, condition: Any, result: Any) -> CaseExpression:
        return dataclasses.replace(
            self,
            branches=(*self.branches, (freeze_value(condition), freeze_value(result))),
        )

    def else_(self, value: Any) -> CaseExpression:
        return dataclasses.replace(self, else_value=freeze_value(value))

    def end(self) -> Expression:
        if not self.branches:
            raise InvalidExpressionError(
                ERR_MSG_INVALID_EXPRESSION,
                "CASE expression requires at least one WHEN branch",
            )
        return Expression(builder=CaseOperation(self))


# ---- Constructors ----


def true() -> Expression:
    """The constant true condition, rendered as ``1``."""
    return Expression(sql="1", is_definitely_true=True, is_boolean=True)


def false() -> Expression:
    """The constant false condition, rendered as ``0``."""
    return Expression(sql="0", is_definitely_false=True, is_boolean=True)


def raw(sql: str) -> Expression:
    """Inject a SQL fragment verbatim.

    The fragment gets the loosest precedence, so every enclosing operator
    parenthesizes it.
    """
    return Expression(sql=sql, precedence=Precedence.RAW)


def and_(*conditions: Any) -> Expression:
    """Join conditions with AND; no conditions is the constant true."""
    result: Expression | None = None
    for condition in conditions:
        result = literal(condition) if result is None else result.and_(condition)
    return true() if result is None else result


def or_(*conditions: Any) -> Expression:
    """Join conditions with OR; no conditions is the constant false."""
    result: Expression | None = None
    for condition in conditions:
        result = literal(condition) if result is None else result.or_(condition)
    return false() if result is None else result


def literal(value: Any) -> Expression:
    """Wrap a plain value so operators can be applied to it, e.g. ``literal(1).add(x)``."""
    if isinstance(value, Expression):
        return value
    return Expression(builder=ValueLiteral(freeze_value(value)))


def function(name: str, *args: Any) -> Expression:
    """A SQL function call ``NAME(arg1, arg2, ...)``."""
    return Expression(builder=FunctionCall(name, freeze_value(args)))


def if_(predicate: Any, true_value: Any, false_value: Any) -> Expression:
    return function("IF", predicate, true_value, false_value)


def if_null(value: Any, alt_value: Any) -> Expression:
    return function("IFNULL", value, alt_value)


def concat(*values: Any) -> Expression:
    return function("CONCAT", *values)


def case(operand: Any = None) -> CaseExpression:
    """Start a CASE expression, simple when ``operand`` is given."""
    return CaseExpression(operand=freeze_value(operand))


# ---- Value marshalling ----


def marshal(scope: Scope, value: Any) -> tuple[str, int]:
    """Convert a value into SQL text and its effective precedence.

    Raises:
        UnsupportedTypeError: If the value's type has no SQL rendering.
    """
    if value is None:
        return "NULL", Precedence.ATOM
    if isinstance(value, bool):
        return ("1" if value else "0"), Precedence.ATOM
    if isinstance(value, int):
        return str(int(value)), Precedence.ATOM
    if isinstance(value, str):
        return quote_string(value), Precedence.ATOM
    if isinstance(value, Expression):
        return value.render(scope), value.precedence
    if isinstance(value, Assignment):
        return value.render(scope), Precedence.ATOM
    if isinstance(value, SelectStatement):
        return f"({value.render()})", Precedence.ATOM
    if isinstance(value, UpdateStatement):
        return value.render(), Precedence.ATOM
    if isinstance(value, TableReference):
        return value.render(scope), Precedence.ATOM
    if isinstance(value, CaseExpression):
        return value.end().render(scope), Precedence.ATOM
    if isinstance(value, datetime.datetime):
        naive = value.replace(tzinfo=None)
        if naive == datetime.datetime.min:
            return "NULL", Precedence.ATOM
        return quote_string(naive.isoformat(sep=" ", timespec="microseconds")), Precedence.ATOM
    if isinstance(value, datetime.date):
        return quote_string(value.isoformat()), Precedence.ATOM
    return _marshal_dynamic(scope, value), Precedence.ATOM


def _marshal_dynamic(scope: Scope, value: Any) -> str:
    """Render values outside the fixed cases by inspecting their runtime type."""
    if isinstance(value, float):
        if not math.isfinite(value):
            raise UnsupportedTypeError(
                ERR_MSG_UNSUPPORTED_TYPE,
                f"non-finite float {value!r} has no SQL literal",
            )
        return float.__repr__(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise UnsupportedTypeError(
                ERR_MSG_UNSUPPORTED_TYPE,
                f"non-finite decimal {value!r} has no SQL literal",
            )
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return quote_bytes(bytes(value))
    if is_expandable(value):
        return f"({comma_values(scope.descend(), value)})"
    render_sql = getattr(value, "__sql__", None)
    if callable(render_sql):
        return render_sql(scope)
    if type(value).__str__ is not object.__str__:
        return quote_string(str(value))
    raise UnsupportedTypeError(
        ERR_MSG_UNSUPPORTED_TYPE,
        f"cannot marshal value of type {type(value).__qualname__}",
    )


def comma_values(scope: Scope, values: Iterable[Any]) -> str:
    """Marshal each value and join them with ``, ``."""
    return ", ".join(marshal(scope, value)[0] for value in values)
