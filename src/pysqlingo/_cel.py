"""CEL front end - Lark Interpreter that builds Expression trees from CEL."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from lark import Token, Tree
from lark.visitors import Interpreter

from pysqlingo._constants import DEFAULT_MAX_CEL_DEPTH
from pysqlingo._errors import (
    ERR_MSG_INVALID_ARGUMENTS,
    ERR_MSG_INVALID_FIELD_ACCESS,
    ERR_MSG_UNSUPPORTED_EXPRESSION,
    AmbiguousFieldError,
    InvalidArgumentsError,
    MaxDepthExceededError,
    UnknownFieldError,
    UnsupportedExpressionError,
)
from pysqlingo._expression import (
    Expression,
    FunctionCall,
    concat,
    false,
    function,
    if_,
    literal,
    true,
)
from pysqlingo._operators import (
    COMPARISON_METHODS,
    MULTIPLICATION_METHODS,
    NULL_AWARE_OPS,
    STRING_METHODS,
    STRING_PREDICATES,
)
from pysqlingo.schema import Table

logger = logging.getLogger(__name__)

_RAW_STRING_PREFIXES = ("r'", 'r"', "R'", 'R"')

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "\\": "\\",
    "'": "'",
    '"': '"',
    "0": "\0",
}

_HEX_ESCAPE_WIDTHS = {"x": 2, "u": 4}


def _strip_quotes(s: str) -> str:
    """Strip surrounding quotes from a CEL string literal token."""
    if s.startswith(_RAW_STRING_PREFIXES):
        s = s[1:]
    if s.startswith('"""') or s.startswith("'''"):
        return s[3:-3]
    if s.startswith('"') or s.startswith("'"):
        return s[1:-1]
    return s


def _process_escapes(s: str) -> str:
    """Process CEL string escape sequences."""
    result = []
    i = 0
    while i < len(s):
        if s[i] == "\\" and i + 1 < len(s):
            nxt = s[i + 1]
            if nxt in _SIMPLE_ESCAPES:
                result.append(_SIMPLE_ESCAPES[nxt])
                i += 2
                continue
            width = _HEX_ESCAPE_WIDTHS.get(nxt)
            if width is not None and i + 2 + width <= len(s):
                try:
                    result.append(chr(int(s[i + 2 : i + 2 + width], 16)))
                    i += 2 + width
                    continue
                except ValueError:
                    pass
            result.append(s[i])
            i += 1
        else:
            result.append(s[i])
            i += 1
    return "".join(result)


def _unwrap_to_data(tree: Tree | Token, target_data: str) -> Tree | None:
    """Unwrap single-child tree nodes to find a node with the given data."""
    node: Tree | Token = tree
    while isinstance(node, Tree):
        if node.data == target_data:
            return node
        if len(node.children) == 1:
            node = node.children[0]
        else:
            return None
    return None


def _is_bool_constant(value: Any) -> bool:
    return isinstance(value, Expression) and (
        value.is_definitely_true or value.is_definitely_false
    )


def _is_text(value: Any) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, Expression) and (
        isinstance(value.builder, FunctionCall) and value.builder.name == "CONCAT"
    )


def _concat_parts(value: Any) -> tuple[Any, ...]:
    if isinstance(value, Expression) and isinstance(value.builder, FunctionCall):
        if value.builder.name == "CONCAT":
            return value.builder.args
    return (value,)


class CELCompiler(Interpreter):
    """Converts a CEL Lark parse tree into an Expression.

    Visit methods return either an :class:`Expression` or a plain Python
    value (literals, lists) that the expression operators marshal later.
    """

    def __init__(
        self,
        tables: Sequence[Table] = (),
        max_depth: int = DEFAULT_MAX_CEL_DEPTH,
    ) -> None:
        self._tables = list(tables)
        self._max_depth = max_depth
        self._depth = 0

    def compile(self, tree: Tree) -> Expression:
        return literal(self._visit_child(tree))

    def _visit_child(self, tree: Tree | Token) -> Any:
        """Visit a child node, incrementing depth."""
        self._depth += 1
        try:
            if self._depth > self._max_depth:
                raise MaxDepthExceededError(
                    "maximum recursion depth exceeded",
                    f"depth {self._depth} exceeds limit {self._max_depth}",
                )
            if isinstance(tree, Token):
                raise UnsupportedExpressionError(
                    ERR_MSG_UNSUPPORTED_EXPRESSION,
                    f"unexpected bare token {tree.type}",
                )
            return self.visit(tree)
        finally:
            self._depth -= 1

    def _single(self, tree: Tree) -> Any:
        if len(tree.children) != 1:
            raise UnsupportedExpressionError(
                ERR_MSG_UNSUPPORTED_EXPRESSION,
                f"{tree.data} has {len(tree.children)} children",
            )
        return self._visit_child(tree.children[0])

    # ---- expr: top-level, potentially ternary ----

    def expr(self, tree: Tree) -> Any:
        children = tree.children
        if len(children) == 3:
            return if_(
                self._visit_child(children[0]),
                self._visit_child(children[1]),
                self._visit_child(children[2]),
            )
        return self._single(tree)

    # ---- Logical operators ----

    def conditionalor(self, tree: Tree) -> Any:
        children = tree.children
        if len(children) == 2:
            lhs = literal(self._visit_child(children[0]))
            return lhs.or_(self._visit_child(children[1]))
        return self._single(tree)

    def conditionaland(self, tree: Tree) -> Any:
        children = tree.children
        if len(children) == 2:
            lhs = literal(self._visit_child(children[0]))
            return lhs.and_(self._visit_child(children[1]))
        return self._single(tree)

    # ---- Comparison / relation ----

    def relation(self, tree: Tree) -> Any:
        children = tree.children
        if len(children) == 1:
            return self._visit_child(children[0])

        # children[0] is the operator prefix node (e.g. relation_eq) holding
        # the left operand, children[1] is the right operand
        op_node, rhs_tree = children
        if not isinstance(op_node, Tree) or not op_node.children:
            raise UnsupportedExpressionError(
                "unsupported relation operator",
                f"expected operator tree, got {type(op_node).__name__}",
            )
        op_name = op_node.data
        lhs = self._visit_child(op_node.children[0])
        rhs = self._visit_child(rhs_tree)

        if op_name == "relation_in":
            if not isinstance(rhs, list):
                raise UnsupportedExpressionError(
                    "in operator requires a list literal",
                    f"right operand of 'in' is {type(rhs).__name__}",
                )
            return literal(lhs).in_(rhs)

        if op_name in NULL_AWARE_OPS:
            equal = op_name == "relation_eq"
            if rhs is None or lhs is None:
                operand = literal(lhs if rhs is None else rhs)
                return operand.is_null() if equal else operand.is_not_null()
            if _is_bool_constant(rhs) or _is_bool_constant(lhs):
                operand, constant = (lhs, rhs) if _is_bool_constant(rhs) else (rhs, lhs)
                operand = literal(operand)
                if constant.is_definitely_true:
                    return operand.is_true() if equal else operand.is_not_true()
                return operand.is_false() if equal else operand.is_not_false()

        method = COMPARISON_METHODS.get(op_name)
        if method is None:
            raise UnsupportedExpressionError(
                "unsupported comparison operator",
                f"unknown relation operator: {op_name}",
            )
        return getattr(literal(lhs), method)(rhs)

    # ---- Arithmetic ----

    def addition(self, tree: Tree) -> Any:
        children = tree.children
        if len(children) == 1:
            return self._visit_child(children[0])

        op_node, rhs_tree = children
        lhs = self._visit_child(op_node.children[0])
        rhs = self._visit_child(rhs_tree)

        if op_node.data == "addition_add":
            if _is_text(lhs) or _is_text(rhs):
                return concat(*_concat_parts(lhs), *_concat_parts(rhs))
            return literal(lhs).add(rhs)
        if op_node.data == "addition_sub":
            return literal(lhs).sub(rhs)
        raise UnsupportedExpressionError(
            "unsupported addition operator",
            f"unknown addition operator: {op_node.data}",
        )

    def multiplication(self, tree: Tree) -> Any:
        children = tree.children
        if len(children) == 1:
            return self._visit_child(children[0])

        op_node, rhs_tree = children
        method = MULTIPLICATION_METHODS.get(op_node.data)
        if method is None:
            raise UnsupportedExpressionError(
                "unsupported multiplication operator",
                f"unknown multiplication operator: {op_node.data}",
            )
        lhs = self._visit_child(op_node.children[0])
        return getattr(literal(lhs), method)(self._visit_child(rhs_tree))

    # ---- Unary ----

    def unary(self, tree: Tree) -> Any:
        children = tree.children
        if len(children) == 1:
            return self._visit_child(children[0])

        op_node, operand_tree = children
        operand = self._visit_child(operand_tree)
        if isinstance(op_node, Tree) and op_node.data == "unary_not":
            return literal(operand).not_()
        if isinstance(op_node, Tree) and op_node.data == "unary_neg":
            if isinstance(operand, (int, float)) and not isinstance(operand, bool):
                return -operand
            return literal(operand).neg()
        raise UnsupportedExpressionError(
            "unsupported unary expression",
            f"unary has {len(children)} children",
        )

    # ---- Member access ----

    def member(self, tree: Tree) -> Any:
        return self._single(tree)

    def member_dot(self, tree: Tree) -> Any:
        """Qualified field access: table.field."""
        obj, field_token = tree.children[0], tree.children[1]
        ident = _unwrap_to_data(obj, "ident")
        if ident is None:
            raise UnsupportedExpressionError(
                ERR_MSG_INVALID_FIELD_ACCESS,
                "only table.field access is supported",
            )
        table_name = str(ident.children[0])
        for table in self._tables:
            if table_name in (table.name, table.alias):
                found = table.find_field(str(field_token))
                if found is None:
                    raise UnknownFieldError(
                        "unknown field",
                        f"table '{table_name}' has no field '{field_token}'",
                    )
                return found
        raise UnknownFieldError(
            "unknown table",
            f"no table named '{table_name}'",
        )

    def member_dot_arg(self, tree: Tree) -> Any:
        """Method call: a.method(args)."""
        obj = tree.children[0]
        method_name = str(tree.children[1])
        args_node = tree.children[2] if len(tree.children) > 2 else None
        args = args_node.children if args_node is not None else []

        if method_name in STRING_METHODS:
            if args:
                raise InvalidArgumentsError(
                    ERR_MSG_INVALID_ARGUMENTS,
                    f"{method_name}() takes no arguments, got {len(args)}",
                )
            target = literal(self._visit_child(obj))
            return getattr(target, STRING_METHODS[method_name])()
        if method_name in STRING_PREDICATES:
            if len(args) != 1:
                raise InvalidArgumentsError(
                    ERR_MSG_INVALID_ARGUMENTS,
                    f"{method_name}() requires exactly 1 argument, got {len(args)}",
                )
            target = literal(self._visit_child(obj))
            return getattr(target, STRING_PREDICATES[method_name])(self._visit_child(args[0]))

        raise UnsupportedExpressionError(
            "unsupported method call",
            f"unknown method: {method_name}",
        )

    def member_index(self, tree: Tree) -> Any:
        raise UnsupportedExpressionError("index access not supported in SQL conversion")

    def member_object(self, tree: Tree) -> Any:
        raise UnsupportedExpressionError("object construction not supported in SQL conversion")

    # ---- Primary expressions ----

    def primary(self, tree: Tree) -> Any:
        return self._single(tree)

    def ident(self, tree: Tree) -> Any:
        """Bare identifier, resolved against every table's fields."""
        name = str(tree.children[0])
        matches = [
            found
            for found in (table.find_field(name) for table in self._tables)
            if found is not None
        ]
        if not matches:
            raise UnknownFieldError(
                "unknown field",
                f"no table has a field named '{name}'",
            )
        if len(matches) > 1:
            raise AmbiguousFieldError(
                "ambiguous field",
                f"field '{name}' exists in {len(matches)} tables",
            )
        return matches[0]

    def ident_arg(self, tree: Tree) -> Any:
        """Function call: func(args)."""
        func_name = str(tree.children[0])
        args_node = tree.children[1] if len(tree.children) > 1 else None
        args = [self._visit_child(arg) for arg in (args_node.children if args_node else [])]

        if func_name == "size":
            if len(args) != 1:
                raise InvalidArgumentsError(
                    ERR_MSG_INVALID_ARGUMENTS,
                    f"size() requires exactly 1 argument, got {len(args)}",
                )
            return literal(args[0]).char_length()

        # Generic uppercase function
        return function(func_name.upper(), *args)

    def dot_ident_arg(self, tree: Tree) -> Any:
        raise UnsupportedExpressionError("qualified function calls not supported")

    def dot_ident(self, tree: Tree) -> Any:
        raise UnsupportedExpressionError("qualified identifiers not supported")

    def paren_expr(self, tree: Tree) -> Any:
        """Parenthesized expression; operator precedence re-adds parentheses."""
        return self._visit_child(tree.children[0])

    # ---- Literals ----

    def literal(self, tree: Tree) -> Any:
        token = tree.children[0]
        if not isinstance(token, Token):
            raise UnsupportedExpressionError("unexpected literal structure")

        if token.type == "NULL_LIT":
            return None
        if token.type == "BOOL_LIT":
            return true() if str(token).lower() == "true" else false()
        if token.type == "INT_LIT":
            return int(str(token), 0)
        if token.type == "UINT_LIT":
            return int(str(token).rstrip("uU"), 0)
        if token.type == "FLOAT_LIT":
            return float(str(token))
        if token.type in ("STRING_LIT", "MLSTRING_LIT"):
            raw = _strip_quotes(str(token))
            if not str(token).startswith(_RAW_STRING_PREFIXES):
                raw = _process_escapes(raw)
            return raw
        if token.type == "BYTES_LIT":
            inner = str(token)[1:]
            return _strip_quotes(inner).encode("utf-8")
        raise UnsupportedExpressionError(
            "unsupported literal type",
            f"unknown token type: {token.type}",
        )

    def list_lit(self, tree: Tree) -> list[Any]:
        """List literal: [1, 2, 3] -> a Python list marshalled as (1, 2, 3)."""
        if not tree.children:
            return []
        exprlist = tree.children[0]
        if isinstance(exprlist, Tree) and exprlist.data == "exprlist":
            return [self._visit_child(child) for child in exprlist.children]
        return []

    def map_lit(self, tree: Tree) -> Any:
        raise UnsupportedExpressionError("map literals not supported in SQL conversion")


def compile_tree(tree: Tree, tables: Sequence[Table], max_depth: int) -> Expression:
    """Build an Expression from a parsed CEL tree."""
    compiler = CELCompiler(tables, max_depth=max_depth)
    expression = compiler.compile(tree)
    logger.debug("compiled CEL tree %s against %d table(s)", tree.data, len(tables))
    return expression
