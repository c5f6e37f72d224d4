import pytest

from tickql import Engine, EngineSettings, NOT_FOUND, ResolutionContext

from tests.fixtures import make_memory_store
from tests.schema import schema

pytestmark = pytest.mark.asyncio


async def test_sibling_fields_share_one_fetch(memory_store):
    engine = Engine(schema, memory_store)
    res = await engine.execute("""
    {
      a: user(id: 1) { name }
      b: user(id: 2) { name }
      c: user(id: 3) { email }
    }
    """)
    assert res.errors == []
    assert res.data == {
        'a': {'name': 'Alice Johnson'},
        'b': {'name': 'Bob Smith'},
        'c': {'email': 'carol@example.com'},
    }
    assert memory_store.calls_for('users') == [frozenset({1, 2, 3})]


async def test_nested_lists_fetch_once_per_collection(memory_store):
    engine = Engine(schema, memory_store)
    res = await engine.execute("""
    {
      repos(ids: [1, 2, 3]) {
        name
        category { name }
        reviews { body user { name } }
      }
    }
    """)
    assert res.errors == []
    repos = res.data['repos']
    assert [r['name'] for r in repos] == ['tickql', 'rails', 'sqlalchemy']
    assert [r['category']['name'] for r in repos] == ['Web', 'Web', 'Tools']
    assert [rv['body'] for rv in repos[0]['reviews']] == ['Great', 'Nice']
    assert repos[1]['reviews'][0]['user'] == {'name': 'Carol White'}
    # one batch per collection instead of one fetch per parent
    assert memory_store.calls_for('repos') == [frozenset({1, 2, 3})]
    assert memory_store.calls_for('categories') == [frozenset({1, 2})]
    assert memory_store.calls_for('reviews_by_repo') == [frozenset({1, 2, 3})]
    assert memory_store.calls_for('users') == [frozenset({1, 2, 3})]
    assert len(memory_store.calls) == 4


async def test_same_key_in_one_wave_is_fetched_once(memory_store):
    engine = Engine(schema, memory_store)
    res = await engine.execute('{ a: user(id: 1) { name } b: user(id: 1) { email } }')
    assert res.data == {'a': {'name': 'Alice Johnson'}, 'b': {'email': 'alice@example.com'}}
    assert memory_store.calls_for('users') == [frozenset({1})]


async def test_repeated_load_hits_cache(memory_store):
    ctx = ResolutionContext(schema, memory_store)

    async def work():
        loader = ctx.loader_for('users')
        first = await loader.load(1)
        second = await loader.load(1)
        return loader, first, second

    loader, first, second = await ctx.drive(work())
    assert first is second
    assert first.name == 'Alice Johnson'
    assert loader.cache_hits == 1
    assert loader.fetch_count == 1
    assert memory_store.calls_for('users') == [frozenset({1})]


async def test_load_many_deduplicates_keys(memory_store):
    ctx = ResolutionContext(schema, memory_store)

    async def work():
        return await ctx.loader_for('users').load_many([1, 1, 2])

    users = await ctx.drive(work())
    assert [u.name for u in users] == ['Alice Johnson', 'Alice Johnson', 'Bob Smith']
    assert users[0] is users[1]
    assert memory_store.calls_for('users') == [frozenset({1, 2})]


async def test_missing_key_resolves_not_found(memory_store):
    ctx = ResolutionContext(schema, memory_store)

    async def work():
        return await ctx.loader_for('users').load(99)

    assert await ctx.drive(work()) is NOT_FOUND

    res = await Engine(schema, memory_store).execute('{ repo(id: 99) { name } }')
    assert res.data == {'repo': None}
    assert res.errors == []


async def test_primed_value_skips_the_store(memory_store):
    ctx = ResolutionContext(schema, memory_store)
    ghost = {'id': 42, 'name': 'Ghost', 'email': 'ghost@example.com'}

    async def work():
        loader = ctx.loader_for('users')
        loader.prime(42, ghost)
        return await loader.load(42)

    assert await ctx.drive(work()) is ghost
    assert memory_store.calls_for('users') == []


async def test_max_batch_size_splits_a_wave():
    store = make_memory_store()
    engine = Engine(schema, store, settings=EngineSettings(max_batch_size=2))
    res = await engine.execute('{ repos(ids: [1, 2, 3]) { name } }')
    assert [r['name'] for r in res.data['repos']] == ['tickql', 'rails', 'sqlalchemy']
    calls = store.calls_for('repos')
    assert len(calls) == 2
    assert all(len(keys) <= 2 for keys in calls)
    assert frozenset().union(*calls) == {1, 2, 3}


async def test_failed_chunk_only_fails_its_own_keys(memory_store):
    calls = []

    def fetch_users(collection, keys):
        calls.append(frozenset(keys))
        if 3 in keys:
            raise ConnectionError("replica down")
        return {k: {'name': f"user-{k}"} for k in keys}

    engine = Engine(schema, memory_store, settings=EngineSettings(max_batch_size=2),
                    fetchers={'users': fetch_users})
    res = await engine.execute('{ u1: user(id: 1) { name } u2: user(id: 2) { name } u3: user(id: 3) { name } }')
    assert len(calls) == 2
    failed = next(keys for keys in calls if 3 in keys)
    for key in (1, 2, 3):
        if key in failed:
            assert res.data[f"u{key}"] is None
        else:
            assert res.data[f"u{key}"] == {'name': f"user-{key}"}
    assert sorted(e.path for e in res.errors) == sorted((f"u{k}",) for k in failed)
    assert {e.kind for e in res.errors} == {'batch_fetch_failed'}


async def test_fetchers_override_the_store(memory_store):
    seen = []

    def fetch_users(collection, keys):
        seen.append((collection, set(keys)))
        return {k: {'id': k, 'name': f"user-{k}", 'email': f"u{k}@example.com"} for k in keys}

    engine = Engine(schema, memory_store, fetchers={'users': fetch_users})
    res = await engine.execute('{ a: user(id: 7) { name } b: user(id: 8) { name } }')
    assert res.data == {'a': {'name': 'user-7'}, 'b': {'name': 'user-8'}}
    assert seen == [('users', {7, 8})]
    assert memory_store.calls_for('users') == []


async def test_waves_follow_query_depth(memory_store):
    ctx = ResolutionContext(schema, memory_store)
    plan = Engine(schema).plan('{ repo(id: 1) { reviews { user { name } } } }')
    res = await ctx.run(plan)
    assert res.errors == []
    # repos -> reviews_by_repo -> users
    assert ctx.scheduler.waves == 3
