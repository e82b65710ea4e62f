"""
Probe Engine - Adversarial Escalation State Machine.

INIT → BRAND_DISCOVERY → ATTEMPT (×N) → TERMINATED

Escalates query difficulty against one domain's site search until the
first significant failure or the attempt cap, then synthesizes a verdict.
"""

import time
from typing import Awaitable, Callable
from uuid import uuid4

from ..browser.manager import BrowserSession
from ..core.config import Settings
from ..core.errors import HomepageLoadError, ProbeError, TransientPageError
from ..core.guardrails import normalize_domain
from ..core.models import BrandProfile, ProbeResult, QueryAttempt, SearchJudgment
from ..core.state import ProbePhase, can_transition
from ..memory.artifacts import ArtifactStore
from .base import BaseComponent
from .difficulty import MAX_ATTEMPTS, DifficultyTier, tier_for_attempt
from .interaction import InteractionStrategy, detect_page_error
from .judgment import MECHANICAL_FAILURE_REASONING, JudgmentClient
from .verdict import synthesize_verdict


SessionFactory = Callable[[], Awaitable[BrowserSession]]


class ProbeEngine(BaseComponent):
    """
    Runs one full adversarial session per call.

    Infrastructure failures during INIT propagate to the caller. After INIT,
    any exception ends the attempt loop early and the verdict becomes REVIEW.
    The browser session is released in every case.
    """

    def __init__(
        self,
        settings: Settings,
        judgment: JudgmentClient,
        session_factory: SessionFactory,
        artifacts: ArtifactStore,
    ):
        """
        Initialize probe engine.

        Args:
            settings: Application settings
            judgment: Oracle wrapper for brand, query, and results judgments
            session_factory: Coroutine function returning a started BrowserSession
            artifacts: Screenshot namespace
        """
        super().__init__(name="probe")
        self.settings = settings
        self.judgment = judgment
        self.session_factory = session_factory
        self.artifacts = artifacts

    async def run(self, domain: str, job_id: str | None = None) -> ProbeResult:
        """
        Probe one domain.

        Args:
            domain: Domain or URL to probe
            job_id: Identifier for artifacts and audit entries (generated if omitted)

        Returns:
            Frozen ProbeResult

        Raises:
            BrowserSessionError: If no browser session could be created
            HomepageLoadError: If the domain root cannot be loaded
        """
        started = time.monotonic()
        job_id = job_id or str(uuid4())
        root = normalize_domain(domain)

        phase = ProbePhase.INIT
        session: BrowserSession | None = None
        brand = BrandProfile()
        attempts: list[QueryAttempt] = []
        homepage_ref: str | None = None
        error: str | None = None

        self.log(f"Starting probe {job_id} for {root}")

        try:
            session = await self.session_factory()
            interaction = InteractionStrategy(session, self.settings)
            homepage = await self._capture_homepage(session, interaction, job_id, root)
            homepage_ref = self.artifacts.url(job_id, root, "homepage")

            phase = self._advance(phase, ProbePhase.BRAND_DISCOVERY)
            brand = await self.judgment.classify_brand(job_id, root, homepage)
            self.log(f"Brand: {brand.company_name} ({brand.category})")

            phase = self._advance(phase, ProbePhase.ATTEMPT)
            try:
                await self._escalate(session, interaction, job_id, root, brand, homepage, attempts)
            except Exception as e:
                error = f"{type(e).__name__}: {e}"
                self.log(f"Attempt loop ended early: {error}")
        finally:
            phase = self._advance(phase, ProbePhase.TERMINATED)
            if session is not None:
                await session.close()

        decision = synthesize_verdict(attempts, MAX_ATTEMPTS, error)
        summary = await self.judgment.generate_insight(job_id, root, brand, attempts, decision.verdict)
        self.log(f"Verdict for {root}: {decision.verdict.value} ({decision.reason})")

        return ProbeResult(
            job_id=job_id,
            domain=root,
            homepage_screenshot=homepage_ref,
            brand=brand,
            queries_tested=tuple(attempts),
            proof_query=decision.proof_query,
            failed_on_attempt=decision.failed_on_attempt,
            verdict=decision.verdict,
            verdict_reason=decision.reason,
            summary=summary,
            error=error,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    def _advance(self, current: ProbePhase, target: ProbePhase) -> ProbePhase:
        if not can_transition(current, target):
            raise ProbeError(f"Invalid phase transition {current.value} -> {target.value}")
        return target

    async def _capture_homepage(
        self,
        session: BrowserSession,
        interaction: InteractionStrategy,
        job_id: str,
        root: str,
    ) -> bytes:
        """Load the root, clear overlays, and screenshot it."""
        try:
            await session.goto(root)
        except Exception as e:
            raise HomepageLoadError(f"Failed to load {root}: {e}") from e

        page_error = detect_page_error(await session.page_text())
        if page_error:
            raise HomepageLoadError(f"Failed to load {root}: {page_error}")

        await interaction.dismiss_transient_overlays()
        return await session.screenshot(str(self.artifacts.path(job_id, root, "homepage")))

    async def _escalate(
        self,
        session: BrowserSession,
        interaction: InteractionStrategy,
        job_id: str,
        root: str,
        brand: BrandProfile,
        homepage: bytes,
        attempts: list[QueryAttempt],
    ) -> None:
        """
        Run attempts 1..N in order, appending to `attempts` as each resolves.
        Stops at the first significant failure.
        """
        for level in range(1, MAX_ATTEMPTS + 1):
            tier = tier_for_attempt(level)
            query, source = await self.judgment.generate_query(
                job_id, root, brand, tier, [a.query for a in attempts], homepage
            )
            self.log(f"Attempt {level} [{tier.name}]: {query!r}")

            transient = 0
            while True:
                renavigate = level > 1 or transient > 0
                attempt = await self._attempt(
                    session, interaction, job_id, root, level, tier, query, source, renavigate
                )
                if attempt is not None:
                    break
                transient += 1
                if transient > self.settings.max_transient_retries:
                    raise TransientPageError(
                        f"Attempt {level} hit {transient} consecutive page errors"
                    )

            attempts.append(attempt)
            if attempt.significant_failure:
                self.log(f"Significant failure on attempt {level}, stopping escalation")
                break

    async def _attempt(
        self,
        session: BrowserSession,
        interaction: InteractionStrategy,
        job_id: str,
        root: str,
        level: int,
        tier: DifficultyTier,
        query: str,
        source: str,
        renavigate: bool,
    ) -> QueryAttempt | None:
        """
        One query against the live site.

        Returns:
            The recorded attempt, or None when a transient page error
            means the attempt must be excluded
        """
        if renavigate:
            await session.goto(root)
            await interaction.dismiss_transient_overlays()

        await interaction.open_search()
        outcome = await interaction.submit_query(root, query)

        page_error = await interaction.check_page_error()
        if page_error:
            self.log(f"Transient page error on attempt {level}: {page_error!r}")
            return None

        if not outcome.ok:
            return QueryAttempt(
                attempt=level,
                difficulty=tier.name,
                query=query,
                query_source=source,
                navigation_ok=False,
                mechanical_failure=True,
                judgment=SearchJudgment(
                    significant_failure=True,
                    reasoning=MECHANICAL_FAILURE_REASONING,
                ),
            )

        await session.wait(self.settings.results_settle_ms)
        stage = f"attempt_{level}"
        screenshot = await session.screenshot(str(self.artifacts.path(job_id, root, stage)))
        judgment = await self.judgment.evaluate_results(job_id, root, query, screenshot)

        return QueryAttempt(
            attempt=level,
            difficulty=tier.name,
            query=query,
            query_source=source,
            navigation_ok=True,
            submit_method=outcome.method,
            judgment=judgment,
            screenshot_path=self.artifacts.url(job_id, root, stage),
        )
