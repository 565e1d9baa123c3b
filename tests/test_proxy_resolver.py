import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.data.database import Base
from storefront.errors import GenerationError
from storefront.proxy import CachePolicy, CacheStatus, FetchOrGenerate, ResolveStatus, SQLCacheStore


class CountingGenerator:
    def __init__(self, fail_times=0, delay=0):
        self.calls = []
        self.fail_times = fail_times
        self.delay = delay

    async def __call__(self, inputs):
        self.calls.append(inputs)
        if self.delay:
            await asyncio.sleep(self.delay)
        if len(self.calls) <= self.fail_times:
            raise GenerationError("model returned nothing")
        return {"value": f"generated:{inputs}"}


@pytest.fixture
def store(session_factory):
    return SQLCacheStore(session_factory, "test")


async def test_second_resolve_is_a_cache_hit(store):
    generator = CountingGenerator()
    proxy = FetchOrGenerate(store, generator)

    first = await proxy.resolve("k1")
    second = await proxy.resolve("k1")

    assert first.status == ResolveStatus.GENERATED
    assert second.status == ResolveStatus.HIT
    assert second.cached and second.ready
    assert second.result == first.result == {"value": "generated:k1"}
    assert len(generator.calls) == 1


async def test_generator_receives_materialized_inputs(store):
    generator = CountingGenerator()

    await FetchOrGenerate(store, generator).resolve("p1:dinner", {"handle": "p1"})

    assert generator.calls == [{"handle": "p1"}]


async def test_in_flight_key_is_not_regenerated(store):
    generator = CountingGenerator()
    assert store.claim("k1") is True

    outcome = await FetchOrGenerate(store, generator).resolve("k1")

    assert outcome.status == ResolveStatus.PROCESSING
    assert outcome.result is None
    assert generator.calls == []


async def test_failure_is_persisted_and_reraised(store):
    proxy = FetchOrGenerate(store, CountingGenerator(fail_times=1))

    with pytest.raises(GenerationError):
        await proxy.resolve("k1")

    entry = store.get("k1")
    assert entry.status == CacheStatus.FAILED
    assert entry.result is None
    assert entry.error == "model returned nothing"


async def test_failed_entry_is_regenerated(store):
    generator = CountingGenerator(fail_times=1)
    proxy = FetchOrGenerate(store, generator)

    with pytest.raises(GenerationError):
        await proxy.resolve("k1")
    outcome = await proxy.resolve("k1")

    assert outcome.status == ResolveStatus.GENERATED
    assert store.get("k1").status == CacheStatus.COMPLETED
    assert store.get("k1").error is None
    assert len(generator.calls) == 2


class FlakyCompleteStore(SQLCacheStore):
    def __init__(self, session_factory, namespace):
        super().__init__(session_factory, namespace)
        self.complete_failures = 1

    def complete(self, key, result):
        if self.complete_failures:
            self.complete_failures -= 1
            raise RuntimeError("database went away")
        super().complete(key, result)


async def test_unpersisted_result_does_not_leave_key_processing(session_factory):
    store = FlakyCompleteStore(session_factory, "test")
    generator = CountingGenerator()
    proxy = FetchOrGenerate(store, generator)

    with pytest.raises(RuntimeError):
        await proxy.resolve("k1")

    entry = store.get("k1")
    assert entry.status == CacheStatus.FAILED
    assert entry.error == "Result not persisted: database went away"

    outcome = await proxy.resolve("k1")
    assert outcome.status == ResolveStatus.GENERATED
    assert len(generator.calls) == 2


@pytest.mark.parametrize("existing", [CacheStatus.FAILED, CacheStatus.COMPLETED, CacheStatus.PROCESSING])
async def test_skip_existing_never_calls_generator(store, existing):
    store.claim("k1")
    if existing == CacheStatus.FAILED:
        store.fail("k1", "earlier failure")
    elif existing == CacheStatus.COMPLETED:
        store.complete("k1", {"value": "old"})
    generator = CountingGenerator()

    outcome = await FetchOrGenerate(store, generator, policy=CachePolicy.SKIP_EXISTING).resolve("k1")

    assert outcome.status == ResolveStatus.SKIPPED
    assert generator.calls == []
    assert store.get("k1").status == existing


def test_claim_is_exclusive(store):
    assert store.claim("k1") is True
    assert store.claim("k1") is False

    store.fail("k1", "boom")
    assert store.claim("k1", reclaim_failed=False) is False
    assert store.claim("k1") is True
    assert store.claim("k1") is False
    assert store.get("k1").status == CacheStatus.PROCESSING


def test_namespaces_are_isolated(session_factory):
    images = SQLCacheStore(session_factory, "processed_image")
    recipes = SQLCacheStore(session_factory, "recipe")

    images.claim("same-key")
    images.complete("same-key", {"processed_url": "u"})

    assert recipes.get("same-key") is None
    assert recipes.claim("same-key") is True


def test_list_and_delete(store):
    store.claim("a")
    store.complete("a", {"n": 1})
    store.claim("b")
    store.fail("b", "x" * 5000)

    assert {entry.key for entry in store.list()} == {"a", "b"}
    assert [entry.key for entry in store.list(CacheStatus.COMPLETED)] == ["a"]
    assert len(store.get("b").error) == 2000

    assert store.delete("b") is True
    assert store.delete("b") is False
    assert store.get("b") is None


async def test_racing_first_callers_generate_once(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    store = SQLCacheStore(sessionmaker(bind=engine), "race")
    generator = CountingGenerator(delay=0.05)
    proxy = FetchOrGenerate(store, generator)

    outcomes = await asyncio.gather(*(proxy.resolve("k1") for _ in range(4)))

    assert len(generator.calls) == 1
    statuses = sorted(outcome.status.value for outcome in outcomes)
    assert statuses.count(ResolveStatus.GENERATED.value) == 1
    assert set(statuses) <= {ResolveStatus.GENERATED.value, ResolveStatus.PROCESSING.value, ResolveStatus.HIT.value}
    engine.dispose()
