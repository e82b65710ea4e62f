"""Core module - configuration, state, models, errors, and guardrails."""

from .config import Settings, load_settings
from .state import ProbePhase
from .models import (
    Verdict,
    BatchStatus,
    ItemStatus,
    BrandProfile,
    SearchJudgment,
    QueryAttempt,
    EmailSnippet,
    OutreachContext,
    ProbeSummary,
    ProbeResult,
    BatchJob,
    BatchItem,
    LLMLogEntry,
)
from .errors import (
    ProbeError,
    BrowserSessionError,
    HomepageLoadError,
    TransientPageError,
    BatchNotFound,
)
from .guardrails import Guardrails, GuardrailViolation, normalize_domain, domain_name

__all__ = [
    "Settings",
    "load_settings",
    "ProbePhase",
    "Verdict",
    "BatchStatus",
    "ItemStatus",
    "BrandProfile",
    "SearchJudgment",
    "QueryAttempt",
    "EmailSnippet",
    "OutreachContext",
    "ProbeSummary",
    "ProbeResult",
    "BatchJob",
    "BatchItem",
    "LLMLogEntry",
    "ProbeError",
    "BrowserSessionError",
    "HomepageLoadError",
    "TransientPageError",
    "BatchNotFound",
    "Guardrails",
    "GuardrailViolation",
    "normalize_domain",
    "domain_name",
]
