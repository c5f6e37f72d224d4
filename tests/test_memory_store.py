import pytest

from tickql.adapters import BackingStore, Delete, Insert, MemoryStore, Update
from tickql.validation import presence


@pytest.mark.asyncio
async def test_fetch_many_returns_only_known_keys(memory_store):
    rows = await memory_store.fetch_many('users', {1, 42})
    assert list(rows) == [1]
    assert rows[1].email == 'alice@example.com'
    assert memory_store.calls == [('users', frozenset({1, 42}))]


@pytest.mark.asyncio
async def test_grouped_collections(memory_store):
    rows = await memory_store.fetch_many('reviews_by_repo', {1, 2, 99})
    assert sorted(rows) == [1, 2]
    assert [r.body for r in rows[1]] == ['Great', 'Nice']


@pytest.mark.asyncio
async def test_unknown_collection_raises():
    store = MemoryStore({})
    with pytest.raises(KeyError):
        await store.fetch_many('nothing', {1})


@pytest.mark.asyncio
async def test_rules_are_checked_before_writing():
    store = MemoryStore({'users': {}})
    result = await store.apply(Insert('users', {'email': ''}, rules={'email': [presence()]}))
    assert result.errors.full_messages == ["Email can't be blank"]
    assert store.tables['users'] == {}


@pytest.mark.asyncio
async def test_insert_assigns_ids_and_enforces_uniqueness():
    store = MemoryStore({'users': {5: {'id': 5, 'email': 'a@example.com'}}}, unique={'users': ['email']})
    created = await store.apply(Insert('users', {'email': 'b@example.com'}))
    assert created.payload == {'id': 6, 'email': 'b@example.com'}
    taken = await store.apply(Insert('users', {'email': 'a@example.com'}))
    assert taken.errors.full_messages == ['Email has already been taken']
    clash = await store.apply(Insert('users', {'id': 5, 'email': 'c@example.com'}))
    assert clash.errors.full_messages == ['Id has already been taken']


@pytest.mark.asyncio
async def test_update_and_delete():
    store = MemoryStore({'users': {1: {'id': 1, 'email': 'a@example.com'}, 2: {'id': 2, 'email': 'b@example.com'}}},
                        unique={'users': ['email']})
    updated = await store.apply(Update('users', 1, {'email': 'z@example.com'}))
    assert updated.payload['email'] == 'z@example.com'
    # keeping its own value is not a uniqueness clash
    assert (await store.apply(Update('users', 1, {'email': 'z@example.com'}))).is_success
    clash = await store.apply(Update('users', 1, {'email': 'b@example.com'}))
    assert clash.errors.messages_for('email') == ['has already been taken']
    assert (await store.apply(Delete('users', 2))).is_success
    assert (await store.apply(Delete('users', 2))).errors.full_messages == ['Record not found']


def test_memory_store_satisfies_the_protocol():
    assert isinstance(MemoryStore(), BackingStore)


@pytest.mark.asyncio
async def test_auto_ids_skip_explicitly_inserted_keys():
    store = MemoryStore({'users': {1: {'id': 1, 'email': 'a'}}})
    assert (await store.apply(Insert('users', {'email': 'b'}))).payload['id'] == 2
    assert (await store.apply(Insert('users', {'id': 3, 'email': 'c'}))).is_success
    created = await store.apply(Insert('users', {'email': 'd'}))
    assert created.payload == {'email': 'd', 'id': 4}
    assert store.tables['users'][3] == {'id': 3, 'email': 'c'}
