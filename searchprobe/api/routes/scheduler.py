"""
Scheduler API - Inspect and nudge the batch scheduler.
"""

from typing import Any

from fastapi import APIRouter, Request


router = APIRouter()


@router.get("/status")
async def scheduler_status(req: Request) -> dict[str, Any]:
    """Running/processing flags and limits."""
    return req.app.state.scheduler.status()


@router.post("/tick")
async def run_tick(req: Request) -> dict[str, Any]:
    """Run one scheduling pass now and wait for it."""
    dispatched = await req.app.state.scheduler.tick()
    return {"dispatched": dispatched}
