"""pysqlingo - Build SQL expressions from Python and render them safely."""

from __future__ import annotations

import logging
from typing import Any

from celpy.celparser import CELParseError, CELParser

from pysqlingo._cel import compile_tree
from pysqlingo._constants import DEFAULT_MAX_CEL_DEPTH, DEFAULT_MAX_SQL_OUTPUT_LENGTH
from pysqlingo._errors import (
    ERR_MSG_SYNTAX_ERROR,
    AmbiguousFieldError,
    CELSyntaxError,
    ExpressionError,
    InvalidArgumentsError,
    InvalidExpressionError,
    InvalidFieldNameError,
    MaxDepthExceededError,
    MaxOutputLengthExceededError,
    UnknownFieldError,
    UnsupportedExpressionError,
    UnsupportedTypeError,
)
from pysqlingo._expression import (
    Alias,
    Assignment,
    CaseExpression,
    Expression,
    OrderBy,
    and_,
    case,
    concat,
    false,
    function,
    if_,
    if_null,
    literal,
    marshal,
    or_,
    raw,
    true,
)
from pysqlingo._operators import Precedence
from pysqlingo.dialect import (
    Dialect,
    MSSQLDialect,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
    get_dialect,
)
from pysqlingo.schema import Table
from pysqlingo.scope import Scope, SelectStatement, TableReference, UpdateStatement

__version__ = "0.1.0"

__all__ = [
    "render",
    "from_cel",
    "marshal",
    "Expression",
    "Alias",
    "Assignment",
    "CaseExpression",
    "OrderBy",
    "Precedence",
    "Table",
    "Scope",
    "SelectStatement",
    "TableReference",
    "UpdateStatement",
    "and_",
    "or_",
    "case",
    "concat",
    "false",
    "function",
    "if_",
    "if_null",
    "literal",
    "raw",
    "true",
    "Dialect",
    "MSSQLDialect",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "get_dialect",
    "ExpressionError",
    "AmbiguousFieldError",
    "CELSyntaxError",
    "InvalidArgumentsError",
    "InvalidExpressionError",
    "InvalidFieldNameError",
    "MaxDepthExceededError",
    "MaxOutputLengthExceededError",
    "UnknownFieldError",
    "UnsupportedExpressionError",
    "UnsupportedTypeError",
]

logger = logging.getLogger(__name__)

_parser = CELParser()


def render(
    value: Any,
    scope: Scope | None = None,
    *,
    max_output_length: int | None = None,
) -> str:
    """Render an expression, or any marshallable value, to SQL text.

    Args:
        value: An Expression, Alias, OrderBy, Assignment or plain value.
        scope: Tables and dialect to resolve names against. Defaults to an
            empty MySQL scope.
        max_output_length: Maximum SQL output length. Defaults to 1000000.

    Returns:
        The SQL text.

    Raises:
        ExpressionError: If rendering fails or the output is too long.
    """
    if scope is None:
        scope = Scope()
    if max_output_length is None:
        max_output_length = DEFAULT_MAX_SQL_OUTPUT_LENGTH

    try:
        if isinstance(value, (Alias, OrderBy)):
            sql = value.render(scope)
        else:
            sql, _ = marshal(scope, value)
    except RecursionError as e:
        raise MaxDepthExceededError(
            "maximum expression depth exceeded",
            f"interpreter recursion limit reached below depth {scope.max_depth}",
            wrapped=e,
        ) from e

    if len(sql) > max_output_length:
        raise MaxOutputLengthExceededError(
            "maximum SQL output length exceeded",
            f"output length {len(sql)} exceeds limit {max_output_length}",
        )
    logger.debug("rendered %d characters of SQL for %s", len(sql), scope.dialect.name)
    return sql


def from_cel(
    cel_expr: str,
    *tables: Table,
    max_depth: int | None = None,
) -> Expression:
    """Build an Expression from a CEL expression.

    Args:
        cel_expr: The CEL expression to convert.
        *tables: Tables whose fields the CEL identifiers refer to.
        max_depth: Maximum recursion depth. Defaults to 100.

    Returns:
        The equivalent Expression; render it with :func:`render`.

    Raises:
        CELSyntaxError: If the CEL expression cannot be parsed.
        ExpressionError: If the expression cannot be converted.
    """
    if max_depth is None:
        max_depth = DEFAULT_MAX_CEL_DEPTH

    try:
        tree = _parser.parse(cel_expr)
    except CELParseError as e:
        raise CELSyntaxError(
            ERR_MSG_SYNTAX_ERROR,
            f"cannot parse {cel_expr!r}: {e}",
            wrapped=e,
        ) from e

    logger.debug("converting CEL expression of %d characters", len(cel_expr))
    return compile_tree(tree, tables, max_depth)
