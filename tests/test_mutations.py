import pytest
from sqlalchemy import func, select

from tableql import SQLAlchemyExecutor, TableQLSchema
from tableql.adapters import MySQLAdapter
from tests.models import Post, User
from tests.schema import schema, schema_map


@pytest.mark.asyncio
async def test_insert_many_returns_rows(db_session, populated_db):
    m = """
    mutation {
      insertIntoUsers(values: [{name: "Dan"}, {name: "Eve", email: "eve@example.com"}]) { id name email is_admin }
    }
    """
    res = await schema.execute(m, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    rows = res.data['insertIntoUsers']
    assert [r['name'] for r in rows] == ['Dan', 'Eve']
    assert rows[1]['email'] == 'eve@example.com'
    assert all(r['is_admin'] is False for r in rows)
    total = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
    assert total == 5


@pytest.mark.asyncio
async def test_insert_single_with_bigint_and_binary(db_session, populated_db):
    m = """
    mutation {
      insertIntoPostsSingle(values: {title: "Big", author_id: 2, views: "9007199254740995", blob: "AAEC"}) {
        title views blob status
      }
    }
    """
    res = await schema.execute(m, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data['insertIntoPostsSingle'] == {
        'title': 'Big',
        'views': '9007199254740995',
        'blob': 'AAEC',
        'status': 'DRAFT',
    }
    stored = (await db_session.execute(select(Post.views, Post.blob).where(Post.title == 'Big'))).one()
    assert stored.views == 9007199254740995
    assert stored.blob == b'\x00\x01\x02'


@pytest.mark.asyncio
async def test_insert_rejects_bad_base64(db_session, populated_db):
    m = """
    mutation { insertIntoPostsSingle(values: {title: "x", author_id: 1, blob: "***"}) { id } }
    """
    res = await schema.execute(m, context_value={'db_session': db_session})
    assert res.errors is not None
    assert res.errors[0].extensions['argumentPath'] == 'values.blob'


@pytest.mark.asyncio
async def test_insert_conflict_is_skipped(db_session, populated_db):
    m = """
    mutation { insertIntoUsersSingle(values: {id: 1, name: "Duplicate"}) { id name } }
    """
    res = await schema.execute(m, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data['insertIntoUsersSingle'] is None
    name = (await db_session.execute(select(User.name).where(User.id == 1))).scalar_one()
    assert name == 'Alice'


@pytest.mark.asyncio
async def test_insert_conflict_errors_when_configured(db_session, populated_db):
    strict = TableQLSchema(schema_map, on_conflict='error')
    m = """
    mutation { insertIntoUsersSingle(values: {id: 1, name: "Duplicate"}) { id } }
    """
    res = await strict.execute(m, context_value={'db_session': db_session})
    assert res.errors is not None
    assert res.errors[0].extensions['code'] == 'EXECUTION_ERROR'
    # the failed statement was rolled back; the session is usable again
    total = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
    assert total == 3


@pytest.mark.asyncio
async def test_empty_insert_list_rejected_without_query(recording_executor):
    m = """
    mutation { insertIntoUsers(values: []) { id } }
    """
    res = await schema.execute(m, context_value={'executor': recording_executor})
    assert res.errors is not None
    assert 'No values were provided!' in res.errors[0].message
    assert recording_executor.calls == []


@pytest.mark.asyncio
async def test_empty_update_rejected_without_query(recording_executor):
    m = """
    mutation { updateUsers(set: {}, where: {id: {eq: 1}}) { id } }
    """
    res = await schema.execute(m, context_value={'executor': recording_executor})
    assert res.errors is not None
    assert 'Unable to update with no values specified!' in res.errors[0].message
    assert res.errors[0].extensions['code'] == 'BAD_USER_INPUT'
    assert recording_executor.calls == []


@pytest.mark.asyncio
async def test_update_returns_changed_rows(db_session, populated_db):
    m = """
    mutation { updateUsers(set: {name: "Robert", email: null}, where: {id: {eq: 2}}) { id name email } }
    """
    res = await schema.execute(m, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data['updateUsers'] == [{'id': 2, 'name': 'Robert', 'email': None}]


@pytest.mark.asyncio
async def test_delete_returns_removed_rows(db_session, populated_db):
    m = """
    mutation { deleteFromPosts(where: {id: {eq: 2}}) { id title } }
    """
    res = await schema.execute(m, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data['deleteFromPosts'] == [{'id': 2, 'title': 'GraphQL tips'}]
    remaining = (await db_session.execute(select(Post.id).order_by(Post.id))).scalars().all()
    assert remaining == [1, 3]


@pytest.mark.asyncio
async def test_boolean_mutation_mode(db_session, populated_db):
    boolean = TableQLSchema(schema_map, mutation_mode='boolean')
    m = """
    mutation {
      insertIntoUsers(values: [{name: "Zed"}]) { isSuccess }
      updateUsers(set: {is_admin: true}, where: {name: {eq: "Zed"}}) { isSuccess }
    }
    """
    res = await boolean.execute(m, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data == {
        'insertIntoUsers': {'isSuccess': True},
        'updateUsers': {'isSuccess': True},
    }
    admin = (await db_session.execute(select(User.is_admin).where(User.name == 'Zed'))).scalar_one()
    assert admin is True


def test_mysql_dialect_defaults_to_boolean_mode():
    assert TableQLSchema(schema_map, dialect='mysql').mutation_mode == 'boolean'
    assert TableQLSchema(schema_map, dialect='postgresql').mutation_mode == 'returning'


@pytest.mark.asyncio
async def test_mutation_projection_follows_selection(recording_executor):
    m = """
    mutation { insertIntoUsers(values: [{name: "Dan"}]) { name } }
    """
    res = await schema.execute(m, context_value={'executor': recording_executor})
    assert res.errors is None, res.errors
    assert res.data['insertIntoUsers'] == [{'name': 'Dan'}]
    kind, rows = recording_executor.calls[0]
    assert kind == 'insert'
    assert rows == [{'name': 'Dan'}]


@pytest.mark.asyncio
async def test_inserted_row_reads_back_through_query(db_session, populated_db):
    big = 2 ** 53 + 7
    m = """
    mutation($views: String!) {
      insertIntoPostsSingle(values: {title: "Round", author_id: 3, views: $views, blob: "3q2+7w=="}) { id }
    }
    """
    res = await schema.execute(m, variable_values={'views': str(big)}, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    q = """
    query { posts(where: {title: {eq: "Round"}}) { id title views blob author { name } } }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    [post] = res.data['posts']
    assert post['views'] == str(big)
    assert post['blob'] == '3q2+7w=='
    assert post['author'] == {'name': 'Carol'}


@pytest.mark.asyncio
async def test_insert_many_keeps_input_order(db_session, populated_db):
    m = """
    mutation {
      insertIntoUsers(values: [{name: "Dan"}, {name: "Eve", email: "eve@example.com"}, {name: "Fay"}]) { name }
    }
    """
    res = await schema.execute(m, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert [r['name'] for r in res.data['insertIntoUsers']] == ['Dan', 'Eve', 'Fay']


@pytest.mark.asyncio
async def test_returning_mode_on_dialect_without_returning_fails(db_session, populated_db):
    executor = SQLAlchemyExecutor(db_session, adapter=MySQLAdapter())
    m = """
    mutation { insertIntoUsers(values: [{name: "Dan"}]) { id } }
    """
    res = await schema.execute(m, context_value={'executor': executor})
    assert res.errors is not None
    assert res.errors[0].extensions['code'] == 'EXECUTION_ERROR'
    assert "cannot return mutated rows" in res.errors[0].message
    total = (await db_session.execute(select(func.count()).select_from(User))).scalar_one()
    assert total == 3
