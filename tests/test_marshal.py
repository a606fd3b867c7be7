"""Value marshalling tests: literals, escaping, and runtime type dispatch."""

import datetime
import enum
from decimal import Decimal

import pytest

from pysqlingo import (
    Scope,
    SelectStatement,
    UnsupportedTypeError,
    UpdateStatement,
    case,
    marshal,
    render,
)
from pysqlingo._operators import Precedence
from pysqlingo._utils import flatten_values, quote_string


class FakeSelect(SelectStatement):
    def __init__(self, sql):
        self.sql = sql

    def render(self):
        return self.sql


class FakeUpdate(UpdateStatement):
    def render(self):
        return "UPDATE `users` SET `age` = 1"


class Color(enum.StrEnum):
    RED = "red"


class Level(enum.IntEnum):
    LOW = 1


class Ratio(float):
    def __repr__(self):
        return f"Ratio({float(self)})"


def unquote_string(literal):
    body = literal[1:-1]
    result = []
    i = 0
    while i < len(body):
        if body[i] == "\\" and i + 1 < len(body):
            i += 1
        result.append(body[i])
        i += 1
    return "".join(result)


class TestScalars:
    def test_none(self):
        assert render(None) == "NULL"

    def test_bools(self):
        assert render(True) == "1"
        assert render(False) == "0"

    def test_ints(self):
        assert render(42) == "42"
        assert render(-7) == "-7"

    def test_float(self):
        assert render(1.5) == "1.5"
        assert render(0.1) == "0.1"

    def test_float_subclass_ignores_custom_repr(self):
        assert render(Ratio(1.5)) == "1.5"
        assert render(Ratio(2.0)) == "2.0"

    def test_non_finite_float(self):
        with pytest.raises(UnsupportedTypeError, match="unsupported type"):
            render(float("inf"))
        with pytest.raises(UnsupportedTypeError):
            render(float("nan"))

    def test_decimal(self):
        assert render(Decimal("1.10")) == "1.10"

    def test_non_finite_decimal(self):
        with pytest.raises(UnsupportedTypeError):
            render(Decimal("NaN"))

    def test_bytes(self):
        assert render(b"\x01\xab") == "X'01AB'"
        assert render(bytearray(b"ab")) == "X'6162'"

    def test_precedence_of_plain_values_is_atom(self):
        assert marshal(Scope(), 5) == ("5", Precedence.ATOM)
        assert marshal(Scope(), "x") == ("'x'", Precedence.ATOM)


class TestStrings:
    def test_plain(self):
        assert render("abc") == "'abc'"

    def test_empty(self):
        assert render("") == "''"

    def test_single_quote(self):
        assert render("'") == r"'\''"

    def test_unicode_untouched(self):
        assert render("héllo") == "'héllo'"

    @pytest.mark.parametrize(
        "char",
        ["\x00", "\n", "\r", "\\", "'", '"', "\x1a"],
        ids=["nul", "newline", "cr", "backslash", "quote", "dquote", "ctrl-z"],
    )
    def test_special_characters_get_backslash(self, char):
        assert quote_string(f"a{char}b") == f"'a\\{char}b'"

    @pytest.mark.parametrize(
        "value",
        ["it's", 'say "hi"', "line1\nline2\r\n", "C:\\path\\", "\x00\x1a", "plain"],
    )
    def test_round_trip(self, value):
        assert unquote_string(quote_string(value)) == value

    def test_str_enum_renders_its_value(self):
        assert render(Color.RED) == "'red'"

    def test_int_enum_renders_as_number(self):
        assert render(Level.LOW) == "1"


class TestTemporal:
    def test_datetime(self):
        value = datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert render(value) == "'2024-01-02 03:04:05.000000'"

    def test_datetime_microseconds(self):
        value = datetime.datetime(2024, 1, 2, 3, 4, 5, 123)
        assert render(value) == "'2024-01-02 03:04:05.000123'"

    def test_zero_datetime_is_null(self):
        assert render(datetime.datetime.min) == "NULL"

    def test_date(self):
        assert render(datetime.date(2024, 2, 29)) == "'2024-02-29'"


class TestContainers:
    def test_list(self):
        assert render([1, "a", None]) == "(1, 'a', NULL)"

    def test_tuple(self):
        assert render((1, 2)) == "(1, 2)"

    def test_nested(self):
        assert render([1, [2, 3]]) == "(1, (2, 3))"

    def test_iterator(self):
        assert render(iter([1, 2])) == "(1, 2)"

    def test_mapping_is_unsupported(self):
        with pytest.raises(UnsupportedTypeError):
            render({"a": 1})

    def test_flatten_values(self):
        assert flatten_values([1, [2, (3, [4])], None, "ab"]) == [1, 2, 3, 4, None, "ab"]


class TestDynamicTypes:
    def test_sql_method(self):
        class Now:
            def __sql__(self, scope):
                return "NOW()"

        assert render(Now()) == "NOW()"

    def test_str_override_is_quoted(self):
        class Tag:
            def __str__(self):
                return "a'b"

        assert render(Tag()) == r"'a\'b'"

    def test_unsupported_object(self):
        with pytest.raises(UnsupportedTypeError, match="unsupported type") as exc_info:
            render(object())
        assert "object" in exc_info.value.internal()


class TestStatements:
    def test_select_is_parenthesized(self):
        assert render(FakeSelect("SELECT 1")) == "(SELECT 1)"

    def test_update_is_verbatim(self):
        assert render(FakeUpdate()) == "UPDATE `users` SET `age` = 1"

    def test_table(self, users):
        assert render(users) == "`users`"

    def test_open_case_is_closed(self, users, scope):
        builder = case().when(users["age"].less_than(18), "minor")
        assert render(builder, scope) == "CASE WHEN `age` < 18 THEN 'minor' END"

    def test_comparison_with_subquery(self, users, scope):
        sql = render(users["id"].equals(FakeSelect("SELECT MAX(`id`) FROM `users`")), scope)
        assert sql == "`id` = (SELECT MAX(`id`) FROM `users`)"
