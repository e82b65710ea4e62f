"""
Probes API - Run a single probe and read its audit trail.
"""

import asyncio

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ...core.errors import ProbeError
from ...core.guardrails import GuardrailViolation
from ...core.models import LLMLogEntry, ProbeResult


router = APIRouter()


class ProbeRequest(BaseModel):
    """Request to probe one domain synchronously."""
    domain: str = Field(..., description="Domain or URL to probe")


@router.post("/", response_model=ProbeResult)
async def run_probe(request: ProbeRequest, req: Request) -> ProbeResult:
    """
    Probe one domain and wait for the verdict.

    Bypasses the batch queue; the item timeout still applies.
    """
    try:
        root = req.app.state.guardrails.validate_target(request.domain)
    except GuardrailViolation as e:
        raise HTTPException(status_code=400, detail=str(e))

    timeout = req.app.state.settings.item_timeout_s
    try:
        return await asyncio.wait_for(req.app.state.engine.run(root), timeout=timeout)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=504, detail=f"Probe timed out after {timeout:g}s")
    except ProbeError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/{job_id}/logs", response_model=list[LLMLogEntry])
async def get_probe_logs(job_id: str, req: Request) -> list[LLMLogEntry]:
    """Oracle calls made during one probe, oldest first."""
    logs = await req.app.state.store.get_llm_logs(job_id)
    if not logs:
        raise HTTPException(status_code=404, detail="No logs for this probe")
    return logs
