"""
Integration tests for the batch scheduler against a real SQLite store.
"""

import asyncio

import pytest

from searchprobe.core.errors import BatchNotFound, HomepageLoadError
from searchprobe.core.guardrails import GuardrailViolation
from searchprobe.core.models import BatchStatus, ItemStatus, ProbeResult, Verdict
from searchprobe.memory.artifacts import ArtifactStore
from searchprobe.probe.engine import ProbeEngine
from searchprobe.probe.judgment import JudgmentClient
from searchprobe.scheduler.batch import BatchScheduler
from tests.fakes import FakeLLM, FakeSession, scripted_oracle


def skip_result(domain: str, job_id: str) -> ProbeResult:
    return ProbeResult(job_id=job_id, domain=domain, verdict=Verdict.SKIP, verdict_reason="all passed")


async def instant_runner(domain: str, job_id: str) -> ProbeResult:
    return skip_result(domain, job_id)


async def assert_counters_match(store, batch_id: str) -> None:
    batch = await store.get_batch(batch_id)
    counts = await store.count_items_by_status(batch_id)
    assert batch.completed_count == counts.get(ItemStatus.COMPLETED, 0)
    assert batch.failed_count == counts.get(ItemStatus.FAILED, 0)


@pytest.mark.asyncio
async def test_enqueue_persists_pending_batch(settings, store):
    scheduler = BatchScheduler(settings, store, instant_runner)

    job = await scheduler.enqueue(["allbirds.com", "https://allbirds.com", "glossier.com"])

    batch = await store.get_batch(job.batch_id)
    items = await store.get_items(job.batch_id)
    assert batch.status == BatchStatus.PENDING
    assert batch.total_count == 2
    assert [i.status for i in items] == [ItemStatus.QUEUED, ItemStatus.QUEUED]


@pytest.mark.asyncio
async def test_enqueue_rejects_invalid_only(settings, store):
    scheduler = BatchScheduler(settings, store, instant_runner)

    with pytest.raises(GuardrailViolation):
        await scheduler.enqueue(["localhost", "   "])


@pytest.mark.asyncio
async def test_tick_runs_batch_to_completion(settings, store):
    scheduler = BatchScheduler(settings, store, instant_runner)
    job = await scheduler.enqueue(["a-shop.com", "b-shop.com", "c-shop.com"])

    dispatched = await scheduler.tick()

    batch = await store.get_batch(job.batch_id)
    items = await store.get_items(job.batch_id)
    assert dispatched == 3
    assert batch.status == BatchStatus.COMPLETED
    assert batch.completed_count == 3
    assert all(i.result["verdict"] == "SKIP" for i in items)
    assert await scheduler.tick() == 0


@pytest.mark.asyncio
async def test_concurrency_ceiling_bounds_simultaneous_probes(settings, store):
    active = 0
    peak = 0

    async def runner(domain, job_id):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return skip_result(domain, job_id)

    scheduler = BatchScheduler(settings, store, runner)
    await scheduler.enqueue([f"shop{i}.com" for i in range(5)])

    await scheduler.tick()

    assert peak == settings.batch_concurrency


@pytest.mark.asyncio
async def test_page_size_limits_items_per_tick(settings, store):
    settings.batch_page_size = 2
    scheduler = BatchScheduler(settings, store, instant_runner)
    job = await scheduler.enqueue([f"shop{i}.com" for i in range(3)])

    assert await scheduler.tick() == 2
    assert (await store.get_batch(job.batch_id)).status == BatchStatus.RUNNING
    assert await scheduler.tick() == 1
    assert (await store.get_batch(job.batch_id)).status == BatchStatus.COMPLETED


@pytest.mark.asyncio
async def test_timeout_marks_item_failed_and_recover_leaves_it(settings, store):
    settings.item_timeout_s = 0.1

    async def hanging(domain, job_id):
        await asyncio.sleep(10)

    scheduler = BatchScheduler(settings, store, hanging)
    job = await scheduler.enqueue(["slow-shop.com"])

    await scheduler.tick()

    [item] = await store.get_items(job.batch_id)
    assert item.status == ItemStatus.FAILED
    assert item.error == "Probe timed out after 0.1s"

    assert await scheduler.recover() == 0
    assert (await store.get_item(item.id)).status == ItemStatus.FAILED
    await assert_counters_match(store, job.batch_id)


@pytest.mark.asyncio
async def test_failing_item_does_not_abort_siblings(settings, store):
    async def runner(domain, job_id):
        if "broken" in domain:
            raise HomepageLoadError(f"Failed to load {domain}: net::ERR_NAME_NOT_RESOLVED")
        return skip_result(domain, job_id)

    scheduler = BatchScheduler(settings, store, runner)
    job = await scheduler.enqueue(["broken-shop.com", "good-shop.com"])

    await scheduler.tick()

    items = {i.domain: i for i in await store.get_items(job.batch_id)}
    assert items["https://broken-shop.com"].status == ItemStatus.FAILED
    assert items["https://broken-shop.com"].error == (
        "Failed to load https://broken-shop.com: net::ERR_NAME_NOT_RESOLVED"
    )
    assert items["https://good-shop.com"].status == ItemStatus.COMPLETED
    batch = await store.get_batch(job.batch_id)
    assert batch.status == BatchStatus.COMPLETED
    assert (batch.completed_count, batch.failed_count) == (1, 1)


@pytest.mark.asyncio
async def test_crash_recovery_requeues_and_tick_picks_up(settings, store):
    scheduler = BatchScheduler(settings, store, instant_runner)
    job = await scheduler.enqueue(["crashed-shop.com"])
    [item] = await store.get_items(job.batch_id)
    await store.set_batch_status(job.batch_id, BatchStatus.RUNNING)
    await store.mark_items_running([item.id])

    assert await scheduler.recover() == 1
    assert (await store.get_item(item.id)).status == ItemStatus.QUEUED
    assert await scheduler.recover() == 0

    assert await scheduler.tick() == 1
    assert (await store.get_item(item.id)).status == ItemStatus.COMPLETED
    assert (await store.get_batch(job.batch_id)).status == BatchStatus.COMPLETED


@pytest.mark.asyncio
async def test_retry_failed_reopens_completed_batch(settings, store):
    calls: list[str] = []

    async def flaky(domain, job_id):
        calls.append(domain)
        if len(calls) == 1:
            raise RuntimeError("Browserbase session creation failed: 429")
        return skip_result(domain, job_id)

    scheduler = BatchScheduler(settings, store, flaky)
    job = await scheduler.enqueue(["flaky-shop.com"])
    await scheduler.tick()
    assert (await store.get_batch(job.batch_id)).status == BatchStatus.COMPLETED

    assert await scheduler.retry_failed(job.batch_id) == 1

    batch = await store.get_batch(job.batch_id)
    [item] = await store.get_items(job.batch_id)
    assert batch.status == BatchStatus.PENDING
    assert batch.failed_count == 0
    assert item.status == ItemStatus.QUEUED
    assert item.error is None

    await scheduler.tick()
    assert (await store.get_item(item.id)).status == ItemStatus.COMPLETED


@pytest.mark.asyncio
async def test_retry_unknown_batch_raises(settings, store):
    scheduler = BatchScheduler(settings, store, instant_runner)

    with pytest.raises(BatchNotFound):
        await scheduler.retry_failed("missing")


@pytest.mark.asyncio
async def test_concurrent_tick_returns_immediately(settings, store):
    release = asyncio.Event()

    async def blocked(domain, job_id):
        await release.wait()
        return skip_result(domain, job_id)

    scheduler = BatchScheduler(settings, store, blocked)
    await scheduler.enqueue(["shop.com"])

    first = asyncio.create_task(scheduler.tick())
    await asyncio.sleep(0.05)
    assert scheduler.processing
    assert await scheduler.tick() == 0

    release.set()
    assert await first == 1
    assert not scheduler.processing


@pytest.mark.asyncio
async def test_poll_loop_processes_in_background(settings, store):
    scheduler = BatchScheduler(settings, store, instant_runner)
    job = await scheduler.enqueue(["a-shop.com", "b-shop.com"])

    await scheduler.start()
    assert scheduler.status()["running"]
    try:
        for _ in range(100):
            if (await store.get_batch(job.batch_id)).status == BatchStatus.COMPLETED:
                break
            await asyncio.sleep(0.02)
    finally:
        await scheduler.stop()

    assert (await store.get_batch(job.batch_id)).status == BatchStatus.COMPLETED
    assert not scheduler.status()["running"]


@pytest.mark.asyncio
async def test_end_to_end_with_probe_engine(settings, store):
    llm = FakeLLM(scripted_oracle(
        failures=[False, False, True],
        queries=["boots", "black boots", "vegan leather boots"],
    ))
    sessions: list[FakeSession] = []

    async def factory():
        session = FakeSession()
        sessions.append(session)
        return session

    engine = ProbeEngine(settings, JudgmentClient(llm, store), factory, ArtifactStore(settings.artifacts_dir))
    scheduler = BatchScheduler(settings, store, engine.run)
    job = await scheduler.enqueue(["acme-boots.com"])

    await scheduler.tick()

    [item] = await store.get_items(job.batch_id)
    assert item.status == ItemStatus.COMPLETED
    assert item.result["verdict"] == "OUTREACH"
    assert item.result["proof_query"] == "vegan leather boots"
    assert len(item.result["queries_tested"]) == 3
    assert sessions[0].close_calls == 1

    logs = await store.get_llm_logs(item.id)
    assert logs[0].phase == "brand_discovery"
    assert logs[-1].phase == "insight"


@pytest.mark.asyncio
async def test_batch_stays_open_while_an_item_is_running(settings, store):
    scheduler = BatchScheduler(settings, store, instant_runner)
    job = await scheduler.enqueue(["a-shop.com", "b-shop.com"])
    first, second = await store.get_items(job.batch_id)
    await store.mark_items_running([first.id, second.id])
    await store.complete_item(first.id, {"verdict": "SKIP"})

    await scheduler._complete_if_done(job.batch_id)
    assert (await store.get_batch(job.batch_id)).status == BatchStatus.PENDING

    await store.fail_item(second.id, "Probe timed out after 300s")
    await scheduler._complete_if_done(job.batch_id)
    assert (await store.get_batch(job.batch_id)).status == BatchStatus.COMPLETED
