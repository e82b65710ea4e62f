"""
Batches API - Enqueue domain batches and follow their progress.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from ...core.errors import BatchNotFound
from ...core.guardrails import GuardrailViolation
from ...core.models import BatchItem, BatchJob, ItemStatus


router = APIRouter()


class CreateBatchRequest(BaseModel):
    """Request to enqueue a batch of domains."""
    domains: list[str] = Field(..., min_length=1, description="Domains to probe")


@router.post("/", response_model=BatchJob, status_code=201)
async def create_batch(request: CreateBatchRequest, req: Request) -> BatchJob:
    """
    Enqueue a batch of domains.

    Invalid entries are dropped; duplicates collapse to one item.
    """
    scheduler = req.app.state.scheduler

    try:
        job = await scheduler.enqueue(request.domains)
    except GuardrailViolation as e:
        raise HTTPException(status_code=400, detail=str(e))

    if scheduler.running:
        scheduler.trigger()
    return job


@router.get("/", response_model=list[BatchJob])
async def list_batches(req: Request, limit: int = Query(default=50, ge=1, le=500)) -> list[BatchJob]:
    """List batches, most recent first."""
    return await req.app.state.store.list_batches(limit)


@router.get("/{batch_id}")
async def get_batch(batch_id: str, req: Request) -> dict[str, Any]:
    """Get a batch with live per-status item counts."""
    store = req.app.state.store
    batch = await store.get_batch(batch_id)
    if not batch:
        raise HTTPException(status_code=404, detail="Batch not found")

    counts = await store.count_items_by_status(batch_id)
    return {
        **batch.model_dump(mode="json"),
        "items_by_status": {status.value: counts.get(status, 0) for status in ItemStatus},
    }


@router.get("/{batch_id}/items", response_model=list[BatchItem])
async def get_batch_items(
    batch_id: str,
    req: Request,
    status: ItemStatus | None = None,
    limit: int | None = Query(default=None, ge=1),
) -> list[BatchItem]:
    """Items of a batch in submission order."""
    store = req.app.state.store
    if not await store.get_batch(batch_id):
        raise HTTPException(status_code=404, detail="Batch not found")
    return await store.get_items(batch_id, status=status, limit=limit)


@router.post("/{batch_id}/retry")
async def retry_batch(batch_id: str, req: Request) -> dict[str, Any]:
    """Requeue every failed item of a batch."""
    scheduler = req.app.state.scheduler
    try:
        count = await scheduler.retry_failed(batch_id)
    except BatchNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    if count and scheduler.running:
        scheduler.trigger()
    return {"batch_id": batch_id, "requeued": count}
