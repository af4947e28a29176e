import pytest

from tableql.core.ordering import OrderDirection, compile_order_by, dir_value, order_clauses
from tableql.core.schema import SchemaRegistry
from tests.schema import schema, schema_map


@pytest.fixture(scope="module")
def registry():
    return SchemaRegistry.from_input(schema_map)


def test_pairs_follow_column_order_not_payload_order(registry):
    result = compile_order_by(registry, 'posts', {'title': 'asc', 'id': OrderDirection.desc})
    assert result.value == [('id', 'desc'), ('title', 'asc')]


def test_none_and_null_entries(registry):
    assert compile_order_by(registry, 'posts', None).value == []
    assert compile_order_by(registry, 'posts', {'id': None}).value == []


def test_unknown_column_and_direction(registry):
    err = compile_order_by(registry, 'posts', {'nope': 'asc'}).error
    assert err.path == 'orderBy.nope'
    err = compile_order_by(registry, 'posts', {'id': 'sideways'}, path='posts.orderBy').error
    assert err.path == 'posts.orderBy.id'
    assert 'Invalid direction' in err.message


def test_dir_value():
    assert dir_value(None) == 'asc'
    assert dir_value(OrderDirection.desc) == 'desc'
    assert dir_value('DESC') == 'desc'


def test_order_clauses(registry):
    clauses = order_clauses(registry.table('posts'), [('id', 'desc'), ('title', 'asc')])
    assert [str(c) for c in clauses] == ['posts.id DESC', 'posts.title ASC']


@pytest.mark.asyncio
async def test_root_ordering_single(db_session, populated_db):
    q = """
    query { posts(where: {created_at: {isNotNull: true}}, orderBy: {created_at: desc}) { id } }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    ids = [p['id'] for p in res.data['posts']]
    assert ids == [2, 1]


@pytest.mark.asyncio
async def test_root_ordering_multi_uses_column_order(db_session, populated_db):
    q = """
    query { comments(orderBy: {rate: asc, post_id: desc}) { id } }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    # post_id is declared before rate, so it sorts first
    assert [c['id'] for c in res.data['comments']] == [3, 1, 2]
