"""
Pydantic models for the SearchProbe system.
Defines probe sessions, attempts, judgments, verdicts, and batch bookkeeping.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from pydantic import BaseModel, ConfigDict, Field
from uuid import uuid4


# ==============================================================================
# Enumerations
# ==============================================================================

class Verdict(str, Enum):
    """Externally meaningful outcome of a probe."""
    OUTREACH = "OUTREACH"
    SKIP = "SKIP"
    REVIEW = "REVIEW"


class BatchStatus(str, Enum):
    """Lifecycle status of a batch job."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"


class ItemStatus(str, Enum):
    """Lifecycle status of a single batch item."""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_ITEM_STATUSES = (ItemStatus.COMPLETED, ItemStatus.FAILED)


# ==============================================================================
# Probe Models
# ==============================================================================

class BrandProfile(BaseModel):
    """What the homepage says the store sells."""
    company_name: str = "Unknown"
    category: str = "general"
    description: str = "a general online retailer"
    visible_categories: list[str] = Field(default_factory=list)


class SearchJudgment(BaseModel):
    """Structured judgment of one results screenshot."""
    significant_failure: bool = False
    result_count: int | None = None
    relevant_result_count: int | None = None
    first_relevant_rank: int | None = None
    reasoning: str = ""

    @property
    def passed(self) -> bool:
        return not self.significant_failure


class QueryAttempt(BaseModel):
    """One escalating-difficulty query tested within a probe session."""
    attempt: int = Field(ge=1)
    difficulty: str
    query: str
    query_source: Literal["generated", "fallback"] = "generated"
    navigation_ok: bool = True
    mechanical_failure: bool = False
    submit_method: str | None = None
    judgment: SearchJudgment = Field(default_factory=SearchJudgment)
    screenshot_path: str | None = None

    @property
    def passed(self) -> bool:
        return self.judgment.passed

    @property
    def significant_failure(self) -> bool:
        return self.judgment.significant_failure


class EmailSnippet(BaseModel):
    """Cold-email fragments, in reading order."""
    opener: str = ""
    result: str = ""
    observation: str = ""
    pain: str = ""
    pitch_hook: str = ""


class OutreachContext(BaseModel):
    """
    Sales material for a prospect whose search failed.
    Built around the failing query.
    """
    search_query_used: str
    what_search_returned: str = ""
    what_was_missing: str = ""
    pain_point_summary: str = ""
    talking_points: list[str] = Field(default_factory=list)
    email_snippet: EmailSnippet = Field(default_factory=EmailSnippet)


class ProbeSummary(BaseModel):
    """Narrative insight written after the probe."""
    narrative: str = ""
    queries_that_work: list[str] = Field(default_factory=list)
    journey_steps: list[str] = Field(default_factory=list)
    query_insight: str = ""
    outreach: OutreachContext | None = None


class ProbeResult(BaseModel):
    """
    Complete outcome of one probe session.
    Frozen once returned by the engine.
    """
    model_config = ConfigDict(frozen=True)

    job_id: str
    domain: str
    homepage_screenshot: str | None = None
    brand: BrandProfile = Field(default_factory=BrandProfile)
    queries_tested: tuple[QueryAttempt, ...] = ()
    proof_query: str | None = None
    failed_on_attempt: int | None = None
    verdict: Verdict
    verdict_reason: str
    summary: ProbeSummary = Field(default_factory=ProbeSummary)
    error: str | None = None
    duration_ms: int = 0

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the batch item result column."""
        return self.model_dump(mode="json")


# ==============================================================================
# Batch Models
# ==============================================================================

class BatchJob(BaseModel):
    """A set of domains submitted together."""
    batch_id: str = Field(default_factory=lambda: str(uuid4()))
    status: BatchStatus = BatchStatus.PENDING
    total_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    completed_at: datetime | None = None


class BatchItem(BaseModel):
    """One domain within a batch."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    batch_id: str
    domain: str
    status: ItemStatus = ItemStatus.QUEUED
    result: dict[str, Any] | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)


class LLMLogEntry(BaseModel):
    """Audit record of one oracle call."""
    job_id: str
    domain: str
    phase: str
    prompt: str
    response: str
    model: str = ""
    tokens_used: int | None = None
    duration_ms: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
