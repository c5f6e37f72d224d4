"""
Basic example of using tickql with SQLAlchemy.

This example demonstrates:
- Declaring object types, a union and a mutation result union
- Loading relations through per-request batch loaders (no N+1)
- Returning Success/Failure envelopes from a mutation
"""

import asyncio
import json
import logging

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from tickql import Engine, EngineSettings, Schema, Success
from tickql.adapters import Collection, Insert, SQLAlchemyStore
from tickql.core.fields import field, list_field, relation
from tickql.validation import format_of, presence, validated


# SQLAlchemy Models
class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(100))
    email = Column(String(255), unique=True, nullable=False)


class Repo(Base):
    __tablename__ = 'repos'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)


class Review(Base):
    __tablename__ = 'reviews'

    id = Column(Integer, primary_key=True)
    repo_id = Column(Integer, ForeignKey('repos.id'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    body = Column(String(500))


# Schema
schema = Schema()


@schema.type(name='User', model=User)
class UserType:
    id = field('ID', null=False)
    name = field('String')
    email = field('String', null=False)


@schema.type(name='Review', model=Review)
class ReviewType:
    body = field('String')
    user = relation('User', collection='users', key='user_id', null=False)


@schema.type(name='Repo', model=Repo)
class RepoType:
    name = field('String', null=False)
    name_reversed = field('String', null=False)
    reviews = relation('Review', collection='reviews_by_repo', key='id', many=True, null=False)

    def resolve_name_reversed(repo, info):
        return repo.name[::-1]


@schema.query
class Query:
    repos = list_field('Repo', null=False, args={'ids': '[ID!]!'})

    async def resolve_repos(root, info, ids):
        return await info.loader('repos').load_many([int(i) for i in ids])


@schema.type(name='AuthenticatedUser')
class AuthenticatedUser:
    user = field('User', null=False)
    token = field('String', null=False)


schema.result_union('SignupResult', success='AuthenticatedUser')

SIGNUP_RULES = {'email': [presence(), format_of(r'@', allow_none=True)]}


@schema.mutation
class Mutation:
    signup = field('SignupResult', null=False, args={'email': 'String', 'name': 'String'})

    async def resolve_signup(root, info, email=None, name=None):
        checked = validated({'email': email}, SIGNUP_RULES)
        if not checked.is_success:
            return checked
        result = await info.store.apply(Insert('users', {'email': email, 'name': name}))
        if not result.is_success:
            return result
        return Success({'user': result.payload, 'token': f"token-{result.payload.id}"})


REPOS_QUERY = """
{
  repos(ids: [1, 2]) {
    name
    nameReversed
    reviews { body user { name } }
  }
}
"""

SIGNUP_MUTATION = """
mutation ($email: String) {
  signup(email: $email, name: "Dave") {
    __typename
    ... on AuthenticatedUser { token user { email } }
    ... on ValidationError { errors { fullMessages attributeErrors { attribute errors } } }
  }
}
"""


async def main():
    logging.basicConfig(level=logging.INFO)
    db = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with db.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessions = async_sessionmaker(db, class_=AsyncSession, expire_on_commit=False)
    async with sessions() as session:
        session.add_all([
            User(id=1, name='Alice', email='alice@example.com'),
            User(id=2, name='Bob', email='bob@example.com'),
            Repo(id=1, name='tickql'),
            Repo(id=2, name='rails'),
        ])
        await session.flush()
        session.add_all([
            Review(repo_id=1, user_id=1, body='Great'),
            Review(repo_id=1, user_id=2, body='Nice'),
            Review(repo_id=2, user_id=1, body='Solid'),
        ])
        await session.commit()

        store = SQLAlchemyStore(session, {
            'users': User,
            'repos': Repo,
            'reviews_by_repo': Collection(Review, key='repo_id', many=True, order_by='id'),
        })
        engine = Engine(schema, store, settings=EngineSettings.from_env(), validate_documents=True)

        result = await engine.execute(REPOS_QUERY)
        print(json.dumps(result.to_dict(), indent=2))
        # three statements in total: repos, reviews_by_repo, users
        print("statements:", store.statements)

        for email in ('dave@example.com', None, 'alice@example.com'):
            result = await engine.execute(SIGNUP_MUTATION, {'email': email})
            print(json.dumps(result.to_dict(), indent=2))

    await db.dispose()


if __name__ == "__main__":
    asyncio.run(main())
