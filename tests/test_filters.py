import pytest
from sqlalchemy.sql.elements import False_

from tableql.core.filters import FilterCompiler, compile_filters, operators_for
from tableql.core.scalars import PrimitiveTypeMapper
from tableql.core.schema import SchemaRegistry
from tableql.errors import ArgumentError, SchemaError
from tests.schema import schema_map


@pytest.fixture(scope="module")
def compiler():
    return FilterCompiler(SchemaRegistry.from_input(schema_map), PrimitiveTypeMapper())


def _sql(expr):
    return str(expr.compile(compile_kwargs={"literal_binds": True}))


def test_empty_filter_matches_everything(compiler):
    assert compiler.compile('posts', None).value is None
    assert compiler.compile('posts', {}).value is None
    assert compiler.compile('posts', {'AND': []}).value is None
    assert compiler.compile('posts', {'title': {}}).value is None


def test_or_with_empty_member_matches_everything(compiler):
    assert compiler.compile('posts', {'OR': [{}, {'id': {'eq': 1}}]}).value is None


def test_not_of_empty_matches_nothing(compiler):
    assert isinstance(compiler.compile('posts', {'NOT': [{}]}).value, False_)


def test_columns_and_combinators_are_anded(compiler):
    expr = compiler.compile('posts', {
        'title': {'like': 'a%'},
        'OR': [{'id': {'eq': 1}}, {'id': {'gt': 5}}],
    }).value
    sql = _sql(expr)
    assert "posts.title LIKE 'a%'" in sql
    assert ' AND ' in sql
    assert 'posts.id = 1 OR posts.id > 5' in sql


def test_not_negates_conjunction(compiler):
    sql = _sql(compiler.compile('posts', {'NOT': [{'id': {'eq': 1}}, {'author_id': {'eq': 2}}]}).value)
    assert sql.startswith('NOT coalesce(')
    assert 'posts.id = 1 AND posts.author_id = 2' in sql


def test_several_operators_on_one_column(compiler):
    sql = _sql(compiler.compile('posts', {'id': {'gte': 2, 'lt': 4}}).value)
    assert sql == 'posts.id >= 2 AND posts.id < 4'


def test_values_are_deserialized(compiler):
    sql = _sql(compiler.compile('posts', {'views': {'eq': '9007199254740993'}}).value)
    assert sql == 'posts.views = 9007199254740993'


def test_null_operator_values_are_skipped(compiler):
    assert compiler.compile('posts', {'id': {'eq': None}}).value is None
    sql = _sql(compiler.compile('users', {'email': {'isNull': True}}).value)
    assert sql == 'users.email IS NULL'
    assert compiler.compile('users', {'email': {'isNull': False}}).value is None


@pytest.mark.parametrize('where, path, message', [
    ({'titel': {'eq': 'x'}}, 'where.titel', "Unknown column 'titel'"),
    ({'AND': [{'id': {'eq': 1}}, {'title': {'eq': ['a']}}]}, 'where.AND[1].title.eq', 'expects a single value'),
    ({'id': {'inArray': 1}}, 'where.id.inArray', 'expects a list'),
    ({'id': {'between': [1, 2]}}, 'where.id.between', "Unknown filter operator 'between'"),
    ({'id': {'like': '%1'}}, 'where.id.like', 'is not supported'),
    ({'metadata_json': {'eq': {}}}, 'where.metadata_json.eq', 'is not supported'),
    ({'status': {'eq': 'ARCHIVED'}}, 'where.status.eq', 'Invalid value'),
    ({'id': 1}, 'where.id', 'must be an operator object'),
    ({'OR': 'x'}, 'where.OR', 'expects a list'),
    ({'OR': [{'id': {'inArray': [1, None]}}]}, 'where.OR[0].id.inArray[1]', 'Null is not allowed'),
])
def test_errors_carry_the_offending_path(compiler, where, path, message):
    result = compiler.compile('posts', where)
    assert not result.is_ok
    err = result.error
    assert isinstance(err, ArgumentError)
    assert err.path == path
    assert message in err.message


def test_unknown_table_is_schema_error(compiler):
    result = compiler.compile('nope', {'id': {'eq': 1}})
    assert isinstance(result.error, SchemaError)


def test_functional_shortcut_uses_given_path():
    registry = SchemaRegistry.from_input(schema_map)
    result = compile_filters(registry, PrimitiveTypeMapper(), 'posts', {'x': {'eq': 1}}, path='posts.where')
    assert result.error.path == 'posts.where.x'


def test_operator_sets():
    mapper = PrimitiveTypeMapper()
    registry = SchemaRegistry.from_input(schema_map)
    posts = registry.table('posts')
    assert 'ilike' in operators_for(mapper.map_column('posts', posts.c.title))
    assert 'ilike' not in operators_for(mapper.map_column('posts', posts.c.views))
    assert operators_for(mapper.map_column('posts', posts.c.metadata_json)) == ('isNull', 'isNotNull')


def test_ne_keeps_null_rows(compiler):
    sql = _sql(compiler.compile('users', {'email': {'ne': 'a@example.com'}}).value)
    assert sql == "users.email IS DISTINCT FROM 'a@example.com'"
