"""
Tests for the refresh coordinator.

Tests cover:
- Freshness policy (HIT / MISS / REFRESH)
- Degradation (STALE / FALLBACK / UNAVAILABLE)
- Single-flight refresh across get(), force_refresh() and concurrent callers
- Durable store outages behaving like a cache miss
"""

import asyncio

import pytest

from backend.domain.dashboard.models import CacheStatus
from backend.domain.dashboard.store import MemorySnapshotStore
from tests.fakes import (
    IDENTITY,
    FailingStore,
    FakeBuilder,
    FakeFallback,
    make_coordinator,
    make_snapshot,
    upstream_down,
)


async def _seed(store, snapshot):
    result = await store.write(IDENTITY, snapshot)
    assert result.is_success()


@pytest.mark.asyncio
async def test_fresh_cache_is_a_hit_without_upstream_calls():
    store = MemorySnapshotStore()
    cached = make_snapshot(age_minutes=10)
    await _seed(store, cached)
    builder = FakeBuilder()
    coordinator = make_coordinator(store=store, builder=builder)

    result = await coordinator.get()

    assert result.status is CacheStatus.HIT
    assert result.snapshot == cached
    assert builder.calls == 0


@pytest.mark.asyncio
async def test_snapshot_exactly_at_ttl_is_still_fresh():
    store = MemorySnapshotStore()
    await _seed(store, make_snapshot(age_minutes=30))
    builder = FakeBuilder()
    coordinator = make_coordinator(store=store, builder=builder)

    result = await coordinator.get()

    assert result.status is CacheStatus.HIT
    assert builder.calls == 0


@pytest.mark.asyncio
async def test_expired_cache_is_refreshed_and_persisted():
    store = MemorySnapshotStore()
    await _seed(store, make_snapshot(age_minutes=45))
    builder = FakeBuilder()
    coordinator = make_coordinator(store=store, builder=builder)

    result = await coordinator.get()

    assert result.status is CacheStatus.REFRESH
    assert result.snapshot.payload["readme"] == "# fresh-1"
    stored = (await store.read(IDENTITY)).unwrap()
    assert stored.to_json() == result.snapshot.to_json()


@pytest.mark.asyncio
async def test_empty_cache_is_a_miss():
    store = MemorySnapshotStore()
    builder = FakeBuilder()
    coordinator = make_coordinator(store=store, builder=builder)

    result = await coordinator.get()

    assert result.status is CacheStatus.MISS
    assert builder.calls == 1
    assert (await store.read(IDENTITY)).unwrap() is not None


@pytest.mark.asyncio
async def test_failed_refresh_serves_stale_cache():
    store = MemorySnapshotStore()
    cached = make_snapshot(age_minutes=45, marker="old")
    await _seed(store, cached)
    fallback = FakeFallback(make_snapshot(marker="disk", source="local-snapshot"))
    coordinator = make_coordinator(
        store=store, builder=FakeBuilder(error=upstream_down()), fallback=fallback
    )

    result = await coordinator.get()

    assert result.status is CacheStatus.STALE
    assert result.snapshot == cached
    assert fallback.calls == 0
    # The stale document is left untouched for the next attempt.
    assert (await store.read(IDENTITY)).unwrap() == cached


@pytest.mark.asyncio
async def test_failed_refresh_without_cache_uses_local_snapshot():
    store = MemorySnapshotStore()
    disk = make_snapshot(marker="disk", source="local-snapshot")
    coordinator = make_coordinator(
        store=store, builder=FakeBuilder(error=upstream_down()), fallback=FakeFallback(disk)
    )

    result = await coordinator.get()

    assert result.status is CacheStatus.FALLBACK
    assert result.snapshot.meta.source == "local-snapshot"
    assert (await store.read(IDENTITY)).unwrap() == disk


@pytest.mark.asyncio
async def test_nothing_to_serve_is_unavailable():
    error = upstream_down()
    coordinator = make_coordinator(
        builder=FakeBuilder(error=error), fallback=FakeFallback(None)
    )

    result = await coordinator.get()

    assert result.status is CacheStatus.UNAVAILABLE
    assert result.snapshot is None
    assert result.error is error
    assert not result.available


@pytest.mark.asyncio
async def test_snapshot_without_timestamp_is_treated_as_expired():
    store = MemorySnapshotStore()
    await store.write(IDENTITY, make_snapshot())
    store._documents[IDENTITY] = store._documents[IDENTITY].replace(
        '"fetched_at":"2024-06-01T12:00:00.000Z"', '"fetched_at":"not-a-date"'
    )
    builder = FakeBuilder()
    coordinator = make_coordinator(store=store, builder=builder)

    result = await coordinator.get()

    assert result.status is CacheStatus.REFRESH
    assert builder.calls == 1


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_refresh():
    builder = FakeBuilder()
    builder.hold()
    coordinator = make_coordinator(builder=builder)

    pending = [asyncio.create_task(coordinator.get()) for _ in range(20)]
    await asyncio.sleep(0)
    assert coordinator.refresh_in_flight
    builder.release.set()
    results = await asyncio.gather(*pending)

    assert builder.calls == 1
    assert {result.status for result in results} == {CacheStatus.MISS}
    documents = {result.snapshot.to_json() for result in results}
    assert len(documents) == 1
    assert not coordinator.refresh_in_flight


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_failure():
    builder = FakeBuilder(error=upstream_down())
    builder.hold()
    fallback = FakeFallback(None)
    coordinator = make_coordinator(builder=builder, fallback=fallback)

    pending = [asyncio.create_task(coordinator.get()) for _ in range(5)]
    await asyncio.sleep(0)
    builder.release.set()
    results = await asyncio.gather(*pending)

    assert builder.calls == 1
    assert {result.status for result in results} == {CacheStatus.UNAVAILABLE}


@pytest.mark.asyncio
async def test_get_joins_manual_refresh_in_flight():
    builder = FakeBuilder()
    builder.hold()
    coordinator = make_coordinator(builder=builder)

    manual = asyncio.create_task(coordinator.force_refresh())
    await asyncio.sleep(0)
    reader = asyncio.create_task(coordinator.get())
    await asyncio.sleep(0)
    builder.release.set()
    manual_result, read_result = await asyncio.gather(manual, reader)

    assert builder.calls == 1
    assert manual_result.status is CacheStatus.REFRESH
    assert read_result.status is CacheStatus.MISS
    assert manual_result.snapshot == read_result.snapshot


@pytest.mark.asyncio
async def test_claim_is_released_after_failure():
    builder = FakeBuilder(error=upstream_down())
    coordinator = make_coordinator(builder=builder, fallback=FakeFallback(None))

    first = await coordinator.get()
    assert first.status is CacheStatus.UNAVAILABLE
    assert not coordinator.refresh_in_flight

    builder.error = None
    second = await coordinator.get()

    assert builder.calls == 2
    assert second.status is CacheStatus.MISS


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_refresh():
    store = MemorySnapshotStore()
    builder = FakeBuilder()
    builder.hold()
    coordinator = make_coordinator(store=store, builder=builder)

    caller = asyncio.create_task(coordinator.get())
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller

    builder.release.set()
    for _ in range(5):
        await asyncio.sleep(0)

    assert (await store.read(IDENTITY)).unwrap() is not None
    assert not coordinator.refresh_in_flight


@pytest.mark.asyncio
async def test_force_refresh_bypasses_fresh_cache():
    store = MemorySnapshotStore()
    await _seed(store, make_snapshot(age_minutes=1, marker="recent"))
    builder = FakeBuilder()
    coordinator = make_coordinator(store=store, builder=builder)

    result = await coordinator.force_refresh()

    assert result.status is CacheStatus.REFRESH
    assert builder.calls == 1
    assert result.snapshot.payload["readme"] == "# fresh-1"


@pytest.mark.asyncio
async def test_force_refresh_failure_never_serves_stale():
    store = MemorySnapshotStore()
    await _seed(store, make_snapshot(age_minutes=45))
    fallback = FakeFallback(make_snapshot(source="local-snapshot"))
    coordinator = make_coordinator(
        store=store, builder=FakeBuilder(error=upstream_down()), fallback=fallback
    )

    result = await coordinator.force_refresh()

    assert result.status is CacheStatus.UNAVAILABLE
    assert result.snapshot is None
    assert fallback.calls == 0


@pytest.mark.asyncio
async def test_store_outage_behaves_like_miss_and_still_serves():
    store = FailingStore()
    builder = FakeBuilder()
    coordinator = make_coordinator(store=store, builder=builder)

    result = await coordinator.get()

    assert result.status is CacheStatus.MISS
    assert result.snapshot is not None
    assert store.writes == 1


@pytest.mark.asyncio
async def test_store_outage_with_failing_upstream_falls_back():
    disk = make_snapshot(source="local-snapshot")
    coordinator = make_coordinator(
        store=FailingStore(),
        builder=FakeBuilder(error=upstream_down()),
        fallback=FakeFallback(disk),
    )

    result = await coordinator.get()

    assert result.status is CacheStatus.FALLBACK
    assert result.snapshot == disk


@pytest.mark.asyncio
async def test_warm_up_seeds_store_from_local_snapshot():
    store = MemorySnapshotStore()
    disk = make_snapshot(source="local-snapshot")
    coordinator = make_coordinator(
        store=store, builder=FakeBuilder(error=upstream_down()), fallback=FakeFallback(disk)
    )

    result = await coordinator.warm_up()

    assert result.status is CacheStatus.FALLBACK
    assert (await store.read(IDENTITY)).unwrap() == disk


@pytest.mark.asyncio
async def test_warm_up_keeps_existing_cache_when_upstream_fails():
    store = MemorySnapshotStore()
    cached = make_snapshot(age_minutes=90)
    await _seed(store, cached)
    fallback = FakeFallback(make_snapshot(source="local-snapshot"))
    coordinator = make_coordinator(
        store=store, builder=FakeBuilder(error=upstream_down()), fallback=fallback
    )

    result = await coordinator.warm_up()

    assert result.status is CacheStatus.STALE
    assert fallback.calls == 0
    assert (await store.read(IDENTITY)).unwrap() == cached


@pytest.mark.asyncio
async def test_describe_reports_cache_state():
    store = MemorySnapshotStore()
    coordinator = make_coordinator(store=store)

    empty = await coordinator.describe()
    assert empty["snapshot_source"] is None
    assert empty["snapshot_age_seconds"] is None
    assert empty["store"] == "memory"

    await _seed(store, make_snapshot(age_minutes=2))
    described = await coordinator.describe()

    assert described["identity"] == IDENTITY
    assert described["snapshot_source"] == "github-api"
    assert described["snapshot_age_seconds"] == 120.0
    assert described["refresh_in_flight"] is False


@pytest.mark.asyncio
async def test_live_refresh_during_fallback_load_is_not_overwritten():
    store = MemorySnapshotStore()
    builder = FakeBuilder(error=upstream_down())
    fallback = FakeFallback(make_snapshot(marker="disk", source="local-snapshot"))
    fallback.hold()
    coordinator = make_coordinator(store=store, builder=builder, fallback=fallback)

    reader = asyncio.create_task(coordinator.get())
    for _ in range(50):
        if fallback.calls:
            break
        await asyncio.sleep(0)
    assert fallback.calls == 1

    # Upstream recovers while the local file is still loading.
    builder.error = None
    manual = await coordinator.force_refresh()
    assert manual.status is CacheStatus.REFRESH

    fallback.release.set()
    result = await reader

    stored = (await store.read(IDENTITY)).unwrap()
    assert stored.meta.source == "github-api"
    assert stored.to_json() == manual.snapshot.to_json()
    assert result.status is CacheStatus.REFRESH
    assert result.snapshot.meta.source == "github-api"


@pytest.mark.asyncio
async def test_callers_sharing_a_failed_refresh_share_one_fallback_load():
    store = MemorySnapshotStore()
    builder = FakeBuilder(error=upstream_down())
    builder.hold()
    fallback = FakeFallback(make_snapshot(marker="disk", source="local-snapshot"))
    coordinator = make_coordinator(store=store, builder=builder, fallback=fallback)

    pending = [asyncio.create_task(coordinator.get()) for _ in range(5)]
    await asyncio.sleep(0)
    builder.release.set()
    results = await asyncio.gather(*pending)

    assert builder.calls == 1
    assert fallback.calls == 1
    assert {result.status for result in results} == {CacheStatus.FALLBACK}
    assert len({result.snapshot.to_json() for result in results}) == 1
    assert (await store.read(IDENTITY)).unwrap().meta.source == "local-snapshot"
