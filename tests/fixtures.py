"""Sample data for tickql tests (shared)."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tickql.adapters import MemoryStore

from .models import Category, Like, Repo, Review, User

CATEGORIES = [
    {'id': 1, 'name': 'Web'},
    {'id': 2, 'name': 'Tools'},
]

USERS = [
    {'id': 1, 'name': 'Alice Johnson', 'email': 'alice@example.com'},
    {'id': 2, 'name': 'Bob Smith', 'email': 'bob@example.com'},
    {'id': 3, 'name': 'Carol White', 'email': 'carol@example.com'},
]

REPOS = [
    {'id': 1, 'name': 'tickql', 'url': 'https://example.com/tickql', 'category_id': 1},
    {'id': 2, 'name': 'rails', 'url': 'https://example.com/rails', 'category_id': 1},
    {'id': 3, 'name': 'sqlalchemy', 'url': None, 'category_id': 2},
]

REVIEWS = [
    {'id': 1, 'repo_id': 1, 'user_id': 1, 'body': 'Great', 'rating': 5},
    {'id': 2, 'repo_id': 1, 'user_id': 2, 'body': 'Nice', 'rating': 4},
    {'id': 3, 'repo_id': 2, 'user_id': 3, 'body': 'Solid', 'rating': 4},
    {'id': 4, 'repo_id': 3, 'user_id': 1, 'body': 'Deep', 'rating': 5},
]

LIKES = [
    {'id': 1, 'repo_id': 1, 'user_id': 3},
    {'id': 2, 'repo_id': 2, 'user_id': 1},
]

MODELS = {
    'categories': Category,
    'users': User,
    'repos': Repo,
    'reviews': Review,
    'likes': Like,
}


def _by_id(rows):
    return {row['id']: dict(row) for row in rows}


def make_memory_store(**kwargs) -> MemoryStore:
    """Store over the sample rows, exposing them as (transient) model instances."""
    tables = {
        'categories': _by_id(CATEGORIES),
        'users': _by_id(USERS),
        'repos': _by_id(REPOS),
        'reviews': _by_id(REVIEWS),
        'likes': _by_id(LIKES),
    }
    kwargs.setdefault('indexes', {
        'reviews_by_repo': ('reviews', 'repo_id'),
        'likes_by_repo': ('likes', 'repo_id'),
    })
    kwargs.setdefault('unique', {'users': ['email']})
    kwargs.setdefault('factories', {name: (lambda row, model=model: model(**row)) for name, model in MODELS.items()})
    return MemoryStore(tables, **kwargs)


@pytest.fixture(scope="function")
def memory_store() -> MemoryStore:
    return make_memory_store()


async def create_sample_data(session: AsyncSession):
    """Insert and commit every sample row; parents first."""
    for name in ('categories', 'users', 'repos', 'reviews', 'likes'):
        rows = {'categories': CATEGORIES, 'users': USERS, 'repos': REPOS, 'reviews': REVIEWS, 'likes': LIKES}[name]
        session.add_all(MODELS[name](**row) for row in rows)
        await session.flush()
    await session.commit()


@pytest.fixture(scope="function")
async def populated_db(db_session: AsyncSession):
    await create_sample_data(db_session)
    return db_session
