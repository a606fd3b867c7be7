"""CEL front end tests: CEL filters compiled into expression trees."""

import pytest

from pysqlingo import (
    AmbiguousFieldError,
    CELSyntaxError,
    ExpressionError,
    InvalidArgumentsError,
    MaxDepthExceededError,
    Scope,
    Table,
    UnknownFieldError,
    UnsupportedExpressionError,
    from_cel,
    render,
)
from pysqlingo.dialect.postgres import PostgresDialect


@pytest.fixture
def accounts():
    return Table("accounts", "active", "email")


@pytest.fixture
def convert(users, scope):
    def _convert(cel_expr):
        return render(from_cel(cel_expr, users), scope)

    return _convert


class TestLogical:
    def test_and(self, convert):
        assert convert("age >= 10 && name == 'a'") == "`age` >= 10 AND `name` = 'a'"

    def test_or(self, convert):
        assert convert("age < 18 || age > 65") == "`age` < 18 OR `age` > 65"

    def test_grouping_survives(self, convert):
        assert convert("(age < 18 || age > 65) && name != 'x'") == (
            "(`age` < 18 OR `age` > 65) AND `name` <> 'x'"
        )

    def test_not(self, convert):
        assert convert("!(age > 1)") == "NOT `age` > 1"

    def test_constant_folding(self, convert):
        assert convert("true && age > 1") == "`age` > 1"
        assert convert("false || age > 1") == "`age` > 1"
        assert convert("false && age > 1") == "0"
        assert convert("true || age > 1") == "1"

    def test_ternary(self, convert):
        assert convert("age > 18 ? 'adult' : 'minor'") == "IF(`age` > 18, 'adult', 'minor')"


class TestRelations:
    @pytest.mark.parametrize(
        "cel_expr, expected",
        [
            ("age == 20", "`age` = 20"),
            ("age != 20", "`age` <> 20"),
            ("age < 20", "`age` < 20"),
            ("age <= 20", "`age` <= 20"),
            ("age > 20", "`age` > 20"),
            ("age >= 20", "`age` >= 20"),
        ],
    )
    def test_comparisons(self, convert, cel_expr, expected):
        assert convert(cel_expr) == expected

    def test_null(self, convert):
        assert convert("age == null") == "`age` IS NULL"
        assert convert("null != age") == "`age` IS NOT NULL"

    def test_bool(self, accounts):
        scope = Scope.of(accounts)
        assert render(from_cel("active == true", accounts), scope) == "`active` IS TRUE"
        assert render(from_cel("active != true", accounts), scope) == "`active` IS NOT TRUE"
        assert render(from_cel("active == false", accounts), scope) == "`active` IS FALSE"
        assert render(from_cel("false != active", accounts), scope) == "`active` IS NOT FALSE"

    def test_in_list(self, convert):
        assert convert("age in [1, 2, 3]") == "`age` IN (1, 2, 3)"
        assert convert("name in ['a', 'b']") == "`name` IN ('a', 'b')"

    def test_in_single_value(self, convert):
        assert convert("age in [5]") == "`age` = 5"

    def test_in_requires_list(self, convert):
        with pytest.raises(UnsupportedExpressionError):
            convert("age in 5")


class TestArithmetic:
    def test_precedence(self, convert):
        assert convert("(age + 1) * 2 > 10") == "(`age` + 1) * 2 > 10"
        assert convert("age * 2 + 1 > 10") == "`age` * 2 + 1 > 10"

    def test_subtraction(self, convert):
        assert convert("age - (age - 1) == 1") == "`age` - (`age` - 1) = 1"

    def test_modulo(self, convert):
        assert convert("age % 2 == 0") == "`age` % 2 = 0"

    def test_division(self, convert):
        assert convert("age / 2 > 1") == "`age` / 2 > 1"

    def test_negative_literal(self, convert):
        assert convert("age > -5") == "`age` > -5"

    def test_negated_field(self, convert):
        assert convert("-age < 0") == "-`age` < 0"

    def test_float_and_uint(self, convert):
        assert convert("age > 1.5") == "`age` > 1.5"
        assert convert("age > 5u") == "`age` > 5"


class TestStrings:
    def test_concatenation(self, convert):
        assert convert("name + '!' == 'hi!'") == "CONCAT(`name`, '!') = 'hi!'"

    def test_concatenation_is_merged(self, convert):
        assert convert("'a' + name + 'b' == 'x'") == "CONCAT('a', `name`, 'b') = 'x'"

    def test_starts_with(self, convert):
        assert convert("name.startsWith('A')") == "LEFT(`name`, CHAR_LENGTH('A')) = 'A'"

    def test_ends_with(self, convert):
        assert convert("name.endsWith('z')") == "RIGHT(`name`, CHAR_LENGTH('z')) = 'z'"

    def test_contains(self, convert):
        assert convert("name.contains('bob')") == "LOCATE('bob', `name`) > 0"

    def test_size(self, convert):
        assert convert("size(name) > 3") == "CHAR_LENGTH(`name`) > 3"
        assert convert("name.size() > 3") == "CHAR_LENGTH(`name`) > 3"

    def test_case_methods(self, convert):
        assert convert("name.lowerAscii() == 'bob'") == "LOWER(`name`) = 'bob'"
        assert convert("name.upperAscii() == 'BOB'") == "UPPER(`name`) = 'BOB'"
        assert convert("name.trim() == 'bob'") == "TRIM(`name`) = 'bob'"

    def test_escape_sequences(self, convert):
        assert convert(r"name == 'a\nb'") == "`name` = 'a\\\nb'"
        assert convert(r"name == '\x41'") == "`name` = 'A'"
        assert convert('name == "it\'s"') == r"`name` = 'it\'s'"

    def test_bytes(self, convert):
        assert convert("name == b'ab'") == "`name` = X'6162'"


class TestFields:
    def test_qualified_single_table(self, convert):
        assert convert("users.age > 1") == "`age` > 1"

    def test_qualified_two_tables(self, users, orders):
        expr = from_cel("users.id == orders.user_id", users, orders)
        assert render(expr, Scope.of(users, orders)) == "`users`.`id` = `orders`.`user_id`"

    def test_unqualified_two_tables(self, users, orders):
        expr = from_cel("name == 'a' && total > 10", users, orders)
        assert render(expr, Scope.of(users, orders)) == (
            "`users`.`name` = 'a' AND `orders`.`total` > 10"
        )

    def test_alias(self, users):
        u = users.as_("u")
        assert render(from_cel("u.age > 1", u), Scope.of(u)) == "`age` > 1"

    def test_unknown_field(self, users):
        with pytest.raises(UnknownFieldError, match="unknown field") as exc_info:
            from_cel("salary > 1", users)
        assert "salary" not in str(exc_info.value)
        assert "salary" in exc_info.value.internal()

    def test_unknown_qualified_field(self, users):
        with pytest.raises(UnknownFieldError):
            from_cel("users.salary > 1", users)

    def test_unknown_table(self, users):
        with pytest.raises(UnknownFieldError, match="unknown table"):
            from_cel("nope.id == 1", users)

    def test_ambiguous_field(self, users, orders):
        with pytest.raises(AmbiguousFieldError, match="ambiguous field"):
            from_cel("id == 1", users, orders)

    def test_dialect(self, users):
        scope = Scope.of(users, dialect=PostgresDialect())
        assert render(from_cel("age > 1", users), scope) == '"age" > 1'

    def test_result_composes(self, users, scope):
        expr = from_cel("age > 1", users).and_(users["name"].equals("x"))
        assert render(expr, scope) == "`age` > 1 AND `name` = 'x'"


class TestFunctions:
    def test_generic_function(self, convert):
        assert convert("coalesce(age, 0) > 1") == "COALESCE(`age`, 0) > 1"

    def test_string_method_arguments(self, convert):
        with pytest.raises(InvalidArgumentsError, match="invalid function arguments") as exc_info:
            convert("name.startsWith('a', 'b')")
        assert "startsWith" in exc_info.value.internal()

    def test_no_arg_method_with_argument(self, convert):
        with pytest.raises(InvalidArgumentsError):
            convert("name.lowerAscii('x')")

    def test_size_arguments(self, convert):
        with pytest.raises(InvalidArgumentsError):
            convert("size(name, 1) > 1")

    def test_unknown_method(self, convert):
        with pytest.raises(UnsupportedExpressionError, match="unsupported method call"):
            convert("name.matches('a.*')")


class TestErrors:
    def test_syntax_error(self, users):
        with pytest.raises(CELSyntaxError, match="invalid CEL syntax") as exc_info:
            from_cel("age >", users)
        assert exc_info.value.wrapped is not None

    def test_errors_share_a_base(self, users):
        with pytest.raises(ExpressionError):
            from_cel("age >", users)

    def test_map_literal(self, users):
        with pytest.raises(UnsupportedExpressionError):
            from_cel("{'a': 1}", users)

    def test_index_access(self, users):
        with pytest.raises(UnsupportedExpressionError):
            from_cel("name[0] == 'a'", users)

    def test_depth_limit(self, users):
        with pytest.raises(MaxDepthExceededError):
            from_cel("age > 1", users, max_depth=1)

    def test_nested_parentheses_within_default_limit(self, convert):
        assert convert("((((age > 1))))") == "`age` > 1"
