"""
Batch Scheduler.
Polls the store for queued items and runs the probe engine on them in
chunks bounded by the concurrency ceiling, each under a wall-clock timeout.
"""

import asyncio
from typing import Any, Awaitable, Callable

from ..core.config import Settings
from ..core.errors import BatchNotFound
from ..core.guardrails import Guardrails
from ..core.models import TERMINAL_ITEM_STATUSES, BatchItem, BatchJob, BatchStatus, ItemStatus, ProbeResult
from ..memory.store import BatchStore
from ..probe.base import BaseComponent


# (domain, job_id) -> result
ProbeRunner = Callable[[str, str], Awaitable[ProbeResult]]


class BatchScheduler(BaseComponent):
    """
    Turns domain lists into individually tracked probe runs.

    Assumes it is the only scheduler running against its store.
    """

    def __init__(
        self,
        settings: Settings,
        store: BatchStore,
        probe_runner: ProbeRunner,
        guardrails: Guardrails | None = None,
    ):
        """
        Initialize scheduler.

        Args:
            settings: Application settings (concurrency, page size, timeouts)
            store: Persistent batch store
            probe_runner: Coroutine function running one probe
            guardrails: Domain validation for enqueue
        """
        super().__init__(name="batch")
        self.settings = settings
        self.store = store
        self.probe_runner = probe_runner
        self.guardrails = guardrails or Guardrails()

        self.running = False
        self._tick_lock = asyncio.Lock()
        self._loop_task: asyncio.Task | None = None
        self._triggered: set[asyncio.Task] = set()

    @property
    def processing(self) -> bool:
        return self._tick_lock.locked()

    # =========================================================================
    # Queue operations
    # =========================================================================

    async def enqueue(self, domains: list[str]) -> BatchJob:
        """
        Persist a pending batch with one queued item per valid domain.

        Raises:
            GuardrailViolation: If no valid domain remains
        """
        roots = self.guardrails.validate_batch(domains)
        job = BatchJob(total_count=len(roots))
        items = [BatchItem(batch_id=job.batch_id, domain=root) for root in roots]
        await self.store.create_batch(job, items)
        self.log(f"Enqueued batch {job.batch_id} with {len(items)} domains")
        return job

    async def recover(self) -> int:
        """
        Reset items left running by a previous process back to queued.

        Returns:
            Number of items reset
        """
        count, batch_ids = await self.store.reset_running_items()
        for batch_id in batch_ids:
            await self.store.recompute_counters(batch_id)
        if count:
            self.log(f"Recovered {count} stuck items (reset to queued)")
        return count

    async def retry_failed(self, batch_id: str) -> int:
        """
        Requeue the failed items of a batch, reopening it if it had completed.

        Returns:
            Number of items requeued

        Raises:
            BatchNotFound: If the batch does not exist
        """
        batch = await self.store.get_batch(batch_id)
        if not batch:
            raise BatchNotFound(f"Batch {batch_id} not found")

        count = await self.store.reset_failed_items(batch_id)
        if count and batch.status == BatchStatus.COMPLETED:
            await self.store.set_batch_status(batch_id, BatchStatus.PENDING)
        await self.store.recompute_counters(batch_id)
        self.log(f"Requeued {count} failed items in batch {batch_id}")
        return count

    # =========================================================================
    # Processing
    # =========================================================================

    async def tick(self) -> int:
        """
        One scheduling pass over the oldest active batch.
        Returns immediately if a pass is already in progress.

        Returns:
            Number of items dispatched
        """
        if self._tick_lock.locked():
            return 0
        async with self._tick_lock:
            return await self._process_next_batch()

    async def _process_next_batch(self) -> int:
        batch = await self.store.next_active_batch()
        if not batch:
            return 0

        if batch.status == BatchStatus.PENDING:
            await self.store.set_batch_status(batch.batch_id, BatchStatus.RUNNING)
            self.log(f"Started processing batch {batch.batch_id}")

        items = await self.store.get_items(
            batch.batch_id, status=ItemStatus.QUEUED, limit=self.settings.batch_page_size
        )
        if items:
            self.log(f"Processing {len(items)} items from batch {batch.batch_id}")
            await self.dispatch(batch.batch_id, items)

        await self._complete_if_done(batch.batch_id)
        return len(items)

    async def _complete_if_done(self, batch_id: str) -> None:
        counts = await self.store.count_items_by_status(batch_id)
        if any(n for status, n in counts.items() if status not in TERMINAL_ITEM_STATUSES):
            return
        completed, failed = await self.store.recompute_counters(batch_id)
        await self.store.set_batch_status(batch_id, BatchStatus.COMPLETED)
        self.log(f"Batch {batch_id} completed ({completed} completed, {failed} failed)")

    async def dispatch(self, batch_id: str, items: list[BatchItem]) -> None:
        """
        Run items in chunks of the concurrency ceiling.
        Counters are recomputed from the store after each chunk.
        """
        size = self.settings.batch_concurrency
        for start in range(0, len(items), size):
            chunk = items[start:start + size]
            await self.store.mark_items_running([item.id for item in chunk])

            results = await asyncio.gather(
                *(self._run_probe(item) for item in chunk),
                return_exceptions=True,
            )

            succeeded = failed = 0
            for item, result in zip(chunk, results):
                if isinstance(result, BaseException):
                    await self.store.fail_item(item.id, self._error_message(result))
                    self.log(f"✗ {item.domain} - {self._error_message(result)}")
                    failed += 1
                else:
                    await self.store.complete_item(item.id, result)
                    self.log(f"✓ {item.domain} - {result.get('verdict')}")
                    succeeded += 1

            await self.store.recompute_counters(batch_id)
            self.log(f"Chunk complete: {succeeded} succeeded, {failed} failed")

    async def _run_probe(self, item: BatchItem) -> dict[str, Any]:
        self.log(f"Processing: {item.domain}")
        result = await asyncio.wait_for(
            self.probe_runner(item.domain, item.id),
            timeout=self.settings.item_timeout_s,
        )
        return result.to_payload()

    def _error_message(self, error: BaseException) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"Probe timed out after {self.settings.item_timeout_s:g}s"
        if isinstance(error, asyncio.CancelledError):
            return "Probe cancelled"
        return str(error) or type(error).__name__

    # =========================================================================
    # Poll loop
    # =========================================================================

    async def start(self) -> None:
        """Start the poll loop in the background."""
        if self.running:
            self.log("Scheduler already running")
            return

        self.running = True
        self.log(f"Concurrency limit: {self.settings.batch_concurrency}")
        self.log(f"Poll interval: {self.settings.poll_interval_s}s")
        self._loop_task = asyncio.create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        while self.running:
            await self._safe_tick()
            await asyncio.sleep(self.settings.poll_interval_s)

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except Exception as e:
            self.log(f"Tick failed: {e}")

    def trigger(self) -> None:
        """Schedule an immediate tick without waiting for the poll interval."""
        task = asyncio.create_task(self._safe_tick())
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)

    async def stop(self) -> None:
        """Stop the poll loop, cancelling any pass in progress."""
        self.running = False
        tasks = [t for t in [self._loop_task, *self._triggered] if t is not None]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._loop_task = None
        self.log("Scheduler stopped")

    def status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "processing": self.processing,
            "concurrency": self.settings.batch_concurrency,
            "poll_interval_s": self.settings.poll_interval_s,
            "item_timeout_s": self.settings.item_timeout_s,
        }
