import logging

import pytest
from graphql import GraphQLError
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from tableql.adapters import (
    BaseAdapter,
    MySQLAdapter,
    PostgresAdapter,
    SQLiteAdapter,
    get_adapter,
)
from tableql.core.result import Err, Ok, collect
from tableql.errors import ArgumentError, ExecutionError, SchemaError, to_graphql_error
from tests.models import User


def test_argument_error_carries_path():
    err = ArgumentError("Invalid value", 'where.id.eq')
    gql = to_graphql_error(err, operation='users')
    assert isinstance(gql, GraphQLError)
    assert gql.message == "Invalid value (at where.id.eq)"
    assert gql.extensions == {'code': 'BAD_USER_INPUT', 'argumentPath': 'where.id.eq'}


def test_argument_errors_are_logged_as_warnings(caplog):
    with caplog.at_level(logging.WARNING, logger='tableql'):
        to_graphql_error(ArgumentError("bad", 'limit'), operation='posts')
    assert any('posts rejected' in r.getMessage() for r in caplog.records)


def test_execution_error_keeps_driver_message():
    orig = Exception('UNIQUE constraint failed: users.id')
    wrapped = ExecutionError.wrap(IntegrityError('INSERT ...', {}, orig))
    assert wrapped.message == 'UNIQUE constraint failed: users.id'
    assert ExecutionError.wrap(wrapped) is wrapped
    gql = to_graphql_error(wrapped)
    assert gql.extensions == {'code': 'EXECUTION_ERROR'}


def test_other_errors_pass_through():
    gql = GraphQLError('already')
    assert to_graphql_error(gql) is gql
    assert to_graphql_error(SchemaError('x')).extensions['code'] == 'SCHEMA_ERROR'
    assert to_graphql_error(RuntimeError()).message == 'RuntimeError'


def test_result_helpers():
    assert Ok(2).map(lambda v: v * 3).unwrap() == 6
    err = Err(ArgumentError('nope'))
    assert err.map(lambda v: v) is err
    assert Ok(1).and_then(lambda v: err) is err
    with pytest.raises(ArgumentError):
        err.unwrap()
    assert collect([Ok(1), Ok(2)]).value == [1, 2]
    assert collect([Ok(1), err, Ok(3)]) is err


@pytest.mark.parametrize('dialect, cls', [
    ('postgresql', PostgresAdapter),
    ('postgres', PostgresAdapter),
    ('mysql', MySQLAdapter),
    ('mariadb', MySQLAdapter),
    ('sqlite', SQLiteAdapter),
    ('oracle', BaseAdapter),
    (None, BaseAdapter),
])
def test_adapter_for_dialect(dialect, cls):
    assert type(get_adapter(dialect)) is cls


def test_mutation_modes():
    assert MySQLAdapter().mutation_mode == 'boolean'
    assert SQLiteAdapter().mutation_mode == 'returning'


def test_conflict_skipping_statements():
    table = User.__table__
    sql = str(SQLiteAdapter().insert(table, skip_conflicts=True).compile(dialect=sqlite.dialect()))
    assert 'ON CONFLICT DO NOTHING' in sql
    sql = str(PostgresAdapter().insert(table, skip_conflicts=True).compile(dialect=postgresql.dialect()))
    assert 'ON CONFLICT DO NOTHING' in sql
    sql = str(MySQLAdapter().insert(table, skip_conflicts=True).compile(dialect=mysql.dialect()))
    assert sql.startswith('INSERT IGNORE')
    sql = str(SQLiteAdapter().insert(table).compile(dialect=sqlite.dialect()))
    assert 'ON CONFLICT' not in sql
