"""
Batch Store - SQLite storage for batch jobs, batch items, and the LLM audit log.
The single shared mutable resource of the scheduler.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from ..core.models import (
    BatchItem,
    BatchJob,
    BatchStatus,
    ItemStatus,
    LLMLogEntry,
)


class BatchStore:
    """
    SQLite-based storage for batch bookkeeping and audit logging.
    Counters are always recomputed from item statuses.
    """

    def __init__(self, db_path: str):
        """
        Initialize batch store.

        Args:
            db_path: Path to SQLite database file (":memory:" for tests)
        """
        self.db_path = db_path
        self.db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Initialize database and create tables."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db = await aiosqlite.connect(self.db_path)
        self.db.row_factory = aiosqlite.Row

        await self.db.executescript("""
            -- Batch jobs table
            CREATE TABLE IF NOT EXISTS batch_jobs (
                batch_id TEXT PRIMARY KEY,
                status TEXT NOT NULL DEFAULT 'pending',
                total_count INTEGER NOT NULL DEFAULT 0,
                completed_count INTEGER NOT NULL DEFAULT 0,
                failed_count INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP,
                updated_at TIMESTAMP,
                completed_at TIMESTAMP
            );

            -- Batch items table
            CREATE TABLE IF NOT EXISTS batch_items (
                id TEXT PRIMARY KEY,
                batch_id TEXT NOT NULL REFERENCES batch_jobs(batch_id),
                domain TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'queued',
                result JSON,
                error TEXT,
                created_at TIMESTAMP,
                updated_at TIMESTAMP
            );

            -- Oracle audit log (append-only)
            CREATE TABLE IF NOT EXISTS llm_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id TEXT,
                domain TEXT,
                phase TEXT,
                prompt TEXT,
                response TEXT,
                model TEXT,
                tokens_used INTEGER,
                duration_ms INTEGER,
                created_at TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_batch_jobs_status
                ON batch_jobs(status, created_at);
            CREATE INDEX IF NOT EXISTS idx_batch_items_batch_status
                ON batch_items(batch_id, status);
            CREATE INDEX IF NOT EXISTS idx_llm_logs_job
                ON llm_logs(job_id);
        """)

        await self.db.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None

    # =========================================================================
    # Batch Operations
    # =========================================================================

    async def create_batch(self, job: BatchJob, items: list[BatchItem]) -> None:
        """Persist a batch job and all of its items in one transaction."""
        await self.db.execute("""
            INSERT INTO batch_jobs
            (batch_id, status, total_count, completed_count, failed_count,
             created_at, updated_at)
            VALUES (?, ?, ?, 0, 0, ?, ?)
        """, (
            job.batch_id,
            job.status.value,
            len(items),
            job.created_at.isoformat(),
            job.updated_at.isoformat(),
        ))
        await self.db.executemany("""
            INSERT INTO batch_items
            (id, batch_id, domain, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, [
            (
                item.id,
                job.batch_id,
                item.domain,
                item.status.value,
                item.created_at.isoformat(),
                item.updated_at.isoformat(),
            )
            for item in items
        ])
        await self.db.commit()

    async def get_batch(self, batch_id: str) -> BatchJob | None:
        """Get batch by ID."""
        async with self.db.execute(
            "SELECT * FROM batch_jobs WHERE batch_id = ?", (batch_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return _row_to_job(row)
        return None

    async def list_batches(self, limit: int = 50) -> list[BatchJob]:
        """Most recent batches first."""
        async with self.db.execute(
            "SELECT * FROM batch_jobs ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,)
        ) as cursor:
            return [_row_to_job(row) async for row in cursor]

    async def next_active_batch(self) -> BatchJob | None:
        """Oldest batch that is pending or running."""
        async with self.db.execute("""
            SELECT * FROM batch_jobs
            WHERE status IN (?, ?)
            ORDER BY created_at ASC, rowid ASC
            LIMIT 1
        """, (BatchStatus.PENDING.value, BatchStatus.RUNNING.value)) as cursor:
            row = await cursor.fetchone()
            if row:
                return _row_to_job(row)
        return None

    async def set_batch_status(self, batch_id: str, status: BatchStatus) -> None:
        """Update batch status; completion stamps completed_at."""
        now = datetime.now().isoformat()
        completed_at = now if status == BatchStatus.COMPLETED else None
        await self.db.execute("""
            UPDATE batch_jobs
            SET status = ?, updated_at = ?, completed_at = ?
            WHERE batch_id = ?
        """, (status.value, now, completed_at, batch_id))
        await self.db.commit()

    async def recompute_counters(self, batch_id: str) -> tuple[int, int]:
        """
        Recount completed/failed items and persist them on the batch.

        Returns:
            (completed_count, failed_count)
        """
        counts = await self.count_items_by_status(batch_id)
        completed = counts.get(ItemStatus.COMPLETED, 0)
        failed = counts.get(ItemStatus.FAILED, 0)
        await self.db.execute("""
            UPDATE batch_jobs
            SET completed_count = ?, failed_count = ?, total_count = ?, updated_at = ?
            WHERE batch_id = ?
        """, (completed, failed, sum(counts.values()), datetime.now().isoformat(), batch_id))
        await self.db.commit()
        return completed, failed

    # =========================================================================
    # Item Operations
    # =========================================================================

    async def get_item(self, item_id: str) -> BatchItem | None:
        """Get item by ID."""
        async with self.db.execute(
            "SELECT * FROM batch_items WHERE id = ?", (item_id,)
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return _row_to_item(row)
        return None

    async def get_items(
        self,
        batch_id: str,
        status: ItemStatus | None = None,
        limit: int | None = None
    ) -> list[BatchItem]:
        """Items of a batch in submission order, optionally filtered by status."""
        query = "SELECT * FROM batch_items WHERE batch_id = ?"
        params: list[Any] = [batch_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY created_at ASC, rowid ASC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with self.db.execute(query, params) as cursor:
            return [_row_to_item(row) async for row in cursor]

    async def count_items_by_status(self, batch_id: str) -> dict[ItemStatus, int]:
        """Live count of items per status."""
        counts: dict[ItemStatus, int] = {}
        async with self.db.execute("""
            SELECT status, COUNT(*) AS n FROM batch_items
            WHERE batch_id = ?
            GROUP BY status
        """, (batch_id,)) as cursor:
            async for row in cursor:
                counts[ItemStatus(row["status"])] = row["n"]
        return counts

    async def mark_items_running(self, item_ids: list[str]) -> None:
        """Mark a chunk of items as running."""
        now = datetime.now().isoformat()
        await self.db.executemany("""
            UPDATE batch_items SET status = ?, updated_at = ? WHERE id = ?
        """, [(ItemStatus.RUNNING.value, now, item_id) for item_id in item_ids])
        await self.db.commit()

    async def complete_item(self, item_id: str, result: dict[str, Any]) -> None:
        """Store a successful probe result."""
        await self.db.execute("""
            UPDATE batch_items
            SET status = ?, result = ?, error = NULL, updated_at = ?
            WHERE id = ?
        """, (ItemStatus.COMPLETED.value, json.dumps(result), datetime.now().isoformat(), item_id))
        await self.db.commit()

    async def fail_item(self, item_id: str, error: str) -> None:
        """Store a failure message verbatim."""
        await self.db.execute("""
            UPDATE batch_items
            SET status = ?, error = ?, updated_at = ?
            WHERE id = ?
        """, (ItemStatus.FAILED.value, error, datetime.now().isoformat(), item_id))
        await self.db.commit()

    async def reset_running_items(self) -> tuple[int, list[str]]:
        """
        Reset every running item to queued.

        Returns:
            (items reset, batch IDs touched) so counters can be recomputed
        """
        async with self.db.execute(
            "SELECT DISTINCT batch_id FROM batch_items WHERE status = ?",
            (ItemStatus.RUNNING.value,)
        ) as cursor:
            batch_ids = [row["batch_id"] async for row in cursor]

        cursor = await self.db.execute("""
            UPDATE batch_items SET status = ?, updated_at = ? WHERE status = ?
        """, (ItemStatus.QUEUED.value, datetime.now().isoformat(), ItemStatus.RUNNING.value))
        await self.db.commit()
        return cursor.rowcount, batch_ids

    async def reset_failed_items(self, batch_id: str) -> int:
        """Reset failed items of a batch to queued, clearing their errors."""
        cursor = await self.db.execute("""
            UPDATE batch_items
            SET status = ?, error = NULL, updated_at = ?
            WHERE batch_id = ? AND status = ?
        """, (ItemStatus.QUEUED.value, datetime.now().isoformat(), batch_id, ItemStatus.FAILED.value))
        await self.db.commit()
        return cursor.rowcount

    # =========================================================================
    # Audit Log
    # =========================================================================

    async def log_llm_call(self, entry: LLMLogEntry) -> None:
        """Append one oracle call to the audit log."""
        await self.db.execute("""
            INSERT INTO llm_logs
            (job_id, domain, phase, prompt, response, model, tokens_used,
             duration_ms, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            entry.job_id,
            entry.domain,
            entry.phase,
            entry.prompt,
            entry.response,
            entry.model,
            entry.tokens_used,
            entry.duration_ms,
            entry.created_at.isoformat(),
        ))
        await self.db.commit()

    async def get_llm_logs(self, job_id: str) -> list[LLMLogEntry]:
        """Audit entries of one probe, oldest first."""
        async with self.db.execute(
            "SELECT * FROM llm_logs WHERE job_id = ? ORDER BY id ASC", (job_id,)
        ) as cursor:
            return [
                LLMLogEntry(
                    job_id=row["job_id"],
                    domain=row["domain"],
                    phase=row["phase"],
                    prompt=row["prompt"],
                    response=row["response"],
                    model=row["model"] or "",
                    tokens_used=row["tokens_used"],
                    duration_ms=row["duration_ms"] or 0,
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
                async for row in cursor
            ]


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _row_to_job(row: aiosqlite.Row) -> BatchJob:
    return BatchJob(
        batch_id=row["batch_id"],
        status=BatchStatus(row["status"]),
        total_count=row["total_count"],
        completed_count=row["completed_count"],
        failed_count=row["failed_count"],
        created_at=_parse_ts(row["created_at"]) or datetime.now(),
        updated_at=_parse_ts(row["updated_at"]) or datetime.now(),
        completed_at=_parse_ts(row["completed_at"]),
    )


def _row_to_item(row: aiosqlite.Row) -> BatchItem:
    return BatchItem(
        id=row["id"],
        batch_id=row["batch_id"],
        domain=row["domain"],
        status=ItemStatus(row["status"]),
        result=json.loads(row["result"]) if row["result"] else None,
        error=row["error"],
        created_at=_parse_ts(row["created_at"]) or datetime.now(),
        updated_at=_parse_ts(row["updated_at"]) or datetime.now(),
    )
