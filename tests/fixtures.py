"""Database fixtures for TableQL tests (shared)."""

from datetime import datetime

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.models import Post, PostComment, PostStatus, User

BIG_VIEWS = 9007199254740993  # 2**53 + 1


async def create_sample_data(session: AsyncSession):
    """Three users, three posts, three comments with fixed ids."""
    users = [
        User(id=1, name="Alice", email="alice@example.com", is_admin=True),
        User(id=2, name="Bob", email="bob@example.com", is_admin=False),
        User(id=3, name="Carol", email=None, is_admin=False),
    ]
    posts = [
        Post(id=1, title="Intro to SQL", content="select 1", author_id=1, status=PostStatus.PUBLISHED,
             views=10, created_at=datetime(2024, 1, 1, 12, 0, 0), metadata_json={"tags": ["sql"]}),
        Post(id=2, title="GraphQL tips", content=None, author_id=1, status=PostStatus.DRAFT,
             views=5, created_at=datetime(2024, 2, 1, 8, 30, 0)),
        Post(id=3, title="Hello", content="hi", author_id=2, status=PostStatus.PUBLISHED,
             views=BIG_VIEWS, blob=b"hello", created_at=None),
    ]
    comments = [
        PostComment(id=1, content="Nice", post_id=1, author_id=2, rate=3),
        PostComment(id=2, content="Great", post_id=1, author_id=3, rate=5),
        PostComment(id=3, content="Thanks", post_id=3, author_id=1, rate=1),
    ]
    session.add_all(users)
    await session.flush()
    session.add_all(posts)
    await session.flush()
    session.add_all(comments)
    await session.commit()
    return users, posts, comments


@pytest.fixture(scope="function")
async def populated_db(db_session: AsyncSession):
    return await create_sample_data(db_session)


@pytest.fixture(scope="function")
async def intro_db(db_session: AsyncSession):
    """One user with an 'Intro' post and an unrelated one."""
    db_session.add(User(id=1, name="A"))
    await db_session.flush()
    db_session.add_all([
        Post(id=1, title="Intro", author_id=1),
        Post(id=2, title="Other", author_id=1),
    ])
    await db_session.commit()


class RecordingExecutor:
    """Executor stand-in that records calls and returns canned rows."""

    def __init__(self, rows=None):
        self.rows = list(rows or [])
        self.calls = []

    async def find_many(self, plan):
        self.calls.append(('find_many', plan))
        return list(self.rows)

    async def find_first(self, plan):
        self.calls.append(('find_first', plan))
        return self.rows[0] if self.rows else None

    async def insert(self, table, rows, *, returning, skip_conflicts=False):
        self.calls.append(('insert', rows))
        return list(rows) if returning is not None else len(rows)

    async def update(self, table, values, where, *, returning):
        self.calls.append(('update', values))
        return [] if returning is not None else 0

    async def delete(self, table, where, *, returning):
        self.calls.append(('delete', where))
        return [] if returning is not None else 0


@pytest.fixture
def recording_executor():
    return RecordingExecutor()


