"""
Verdict synthesis.
Pure function of the attempt list; the only place a Verdict is produced.
"""

from typing import NamedTuple

from ..core.models import QueryAttempt, Verdict
from .difficulty import MAX_ATTEMPTS


class VerdictDecision(NamedTuple):
    verdict: Verdict
    reason: str
    proof_query: str | None
    failed_on_attempt: int | None


def synthesize_verdict(
    attempts: list[QueryAttempt],
    cap: int = MAX_ATTEMPTS,
    error: str | None = None,
) -> VerdictDecision:
    """
    Derive the verdict from recorded attempts.

    - Any significant failure: OUTREACH, citing the first failing query
    - Exactly `cap` attempts, all passing: SKIP
    - Anything else (early exit): REVIEW

    Args:
        attempts: Attempts in ascending difficulty
        cap: Attempt cap
        error: Session error that ended the loop early, cited in the reason
    """
    for attempt in attempts:
        if attempt.significant_failure:
            reasoning = attempt.judgment.reasoning or "no relevant results"
            return VerdictDecision(
                verdict=Verdict.OUTREACH,
                reason=f'Search failed on attempt {attempt.attempt} ("{attempt.query}"): {reasoning}',
                proof_query=attempt.query,
                failed_on_attempt=attempt.attempt,
            )

    if len(attempts) == cap:
        return VerdictDecision(
            verdict=Verdict.SKIP,
            reason=f"Search returned relevant results for all {cap} queries of increasing difficulty",
            proof_query=None,
            failed_on_attempt=None,
        )

    reason = f"Probe ended after {len(attempts)} of {cap} attempts without a decisive failure"
    if error:
        reason += f": {error}"
    return VerdictDecision(
        verdict=Verdict.REVIEW,
        reason=reason,
        proof_query=None,
        failed_on_attempt=None,
    )
