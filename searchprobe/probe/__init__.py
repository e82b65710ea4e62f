"""Probe module - adversarial search probing of one domain."""

from .engine import ProbeEngine, SessionFactory
from .judgment import JudgmentClient, decode_or_default
from .interaction import InteractionStrategy, SubmitOutcome, canonical_url, detect_page_error
from .difficulty import DIFFICULTY_TIERS, MAX_ATTEMPTS, DifficultyTier, tier_for_attempt
from .verdict import VerdictDecision, synthesize_verdict

__all__ = [
    "ProbeEngine",
    "SessionFactory",
    "JudgmentClient",
    "decode_or_default",
    "InteractionStrategy",
    "SubmitOutcome",
    "canonical_url",
    "detect_page_error",
    "DIFFICULTY_TIERS",
    "MAX_ATTEMPTS",
    "DifficultyTier",
    "tier_for_attempt",
    "VerdictDecision",
    "synthesize_verdict",
]
