"""Shared test fixtures."""

import pytest

from pysqlingo import Scope, Table
from pysqlingo.dialect.mysql import MySQLDialect
from pysqlingo.dialect.postgres import PostgresDialect


@pytest.fixture
def users():
    return Table("users", "id", "name", "age")


@pytest.fixture
def orders():
    return Table("orders", "id", "user_id", "total")


@pytest.fixture
def scope(users):
    return Scope.of(users)


@pytest.fixture
def mysql_dialect():
    return MySQLDialect()


@pytest.fixture
def pg_dialect():
    return PostgresDialect()
