"""
Unit tests for verdict synthesis.
"""

import pytest

from searchprobe.core.models import QueryAttempt, SearchJudgment, Verdict
from searchprobe.probe.difficulty import MAX_ATTEMPTS
from searchprobe.probe.verdict import synthesize_verdict


def make_attempt(index: int, query: str, failed: bool = False, reasoning: str = "") -> QueryAttempt:
    return QueryAttempt(
        attempt=index,
        difficulty=f"tier_{index}",
        query=query,
        judgment=SearchJudgment(significant_failure=failed, reasoning=reasoning),
    )


def test_failure_on_third_attempt_is_outreach():
    attempts = [
        make_attempt(1, "boots"),
        make_attempt(2, "black boots"),
        make_attempt(3, "vegan leather boots", failed=True, reasoning="Zero results"),
    ]

    decision = synthesize_verdict(attempts)

    assert decision.verdict == Verdict.OUTREACH
    assert decision.proof_query == "vegan leather boots"
    assert decision.failed_on_attempt == 3
    assert "vegan leather boots" in decision.reason
    assert "Zero results" in decision.reason


def test_all_five_passing_is_skip():
    attempts = [make_attempt(i, f"query {i}") for i in range(1, 6)]

    decision = synthesize_verdict(attempts)

    assert decision.verdict == Verdict.SKIP
    assert decision.proof_query is None
    assert decision.failed_on_attempt is None


def test_early_exit_without_failure_is_review():
    attempts = [make_attempt(1, "boots"), make_attempt(2, "black boots")]

    decision = synthesize_verdict(attempts, error="BrowserSessionError: gone")

    assert decision.verdict == Verdict.REVIEW
    assert decision.proof_query is None
    assert "2 of 5" in decision.reason
    assert "BrowserSessionError" in decision.reason


def test_no_attempts_is_review():
    assert synthesize_verdict([]).verdict == Verdict.REVIEW


def test_first_failure_is_the_proof():
    attempts = [
        make_attempt(1, "boots", failed=True),
        make_attempt(2, "black boots", failed=True),
    ]

    assert synthesize_verdict(attempts).proof_query == "boots"


@pytest.mark.parametrize("count", range(0, MAX_ATTEMPTS + 1))
@pytest.mark.parametrize("fail_at", [None, 1, 3, 5])
def test_verdict_follows_attempt_list(count, fail_at):
    attempts = [
        make_attempt(i, f"q{i}", failed=(i == fail_at))
        for i in range(1, count + 1)
    ]
    any_failure = any(a.significant_failure for a in attempts)

    verdict = synthesize_verdict(attempts).verdict

    assert (verdict == Verdict.OUTREACH) == any_failure
    if not any_failure:
        expected = Verdict.SKIP if count == MAX_ATTEMPTS else Verdict.REVIEW
        assert verdict == expected
