"""Operator precedence table and SQL operator mappings."""

import enum


class Precedence(enum.IntEnum):
    """Binding strength of an operator; lower binds tighter.

    Follows the MySQL operator precedence list:

    1 INTERVAL
    2 BINARY, COLLATE
    3 !
    4 - (unary minus), ~ (unary bit inversion)
    5 ^
    6 *, /, DIV, %, MOD
    7 -, +
    8 <<, >>
    9 &
    10 |
    11 = (comparison), <=>, >=, >, <=, <, <>, !=, IS, LIKE, REGEXP, IN
    12 BETWEEN, CASE, WHEN, THEN, ELSE
    13 NOT
    14 AND, &&
    15 XOR
    16 OR, ||
    17 = (assignment), :=
    """

    ATOM = 0
    UNARY = 4
    MULTIPLICATIVE = 6
    ADDITIVE = 7
    SHIFT = 8
    BIT_AND = 9
    BIT_OR = 10
    COMPARISON = 11
    BETWEEN = 12
    NOT = 13
    AND = 14
    XOR = 15
    OR = 16
    RAW = 99


# Lark relation rule name -> Expression comparison method
COMPARISON_METHODS: dict[str, str] = {
    "relation_eq": "equals",
    "relation_ne": "not_equals",
    "relation_lt": "less_than",
    "relation_le": "less_than_or_equals",
    "relation_gt": "greater_than",
    "relation_ge": "greater_than_or_equals",
}

# Relations that get IS NULL / IS TRUE handling against literals
NULL_AWARE_OPS = {"relation_eq", "relation_ne"}

# Lark multiplication rule name -> Expression arithmetic method
MULTIPLICATION_METHODS: dict[str, str] = {
    "multiplication_mul": "mul",
    "multiplication_div": "div",
    "multiplication_mod": "mod",
}

# CEL string methods taking no arguments -> Expression method
STRING_METHODS: dict[str, str] = {
    "lowerAscii": "lower",
    "upperAscii": "upper",
    "trim": "trim",
    "size": "char_length",
}

# CEL string predicates taking one argument -> Expression method
STRING_PREDICATES: dict[str, str] = {
    "contains": "contains",
    "startsWith": "has_prefix",
    "endsWith": "has_suffix",
}
