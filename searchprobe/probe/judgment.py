"""
Judgment Client - The Oracle Wrapper.
Brand classification, query generation, screenshot evaluation, and narrative
insight, each decoded best-effort with a fixed fallback on any failure.
"""

import json
import re
import time
from typing import Any

from ..core.models import (
    BrandProfile,
    EmailSnippet,
    LLMLogEntry,
    OutreachContext,
    ProbeSummary,
    QueryAttempt,
    SearchJudgment,
    Verdict,
)
from ..llm.provider import LLMProvider, LLMResponse
from ..memory.store import BatchStore
from .base import BaseComponent
from .difficulty import DifficultyTier, normalize_category


JUDGE_SYSTEM_PROMPT = """You are an e-commerce search analyst looking at screenshots of online stores.
Respond ONLY with a single JSON object. No markdown, no explanation."""


BRAND_PROMPT = """This is the homepage of {domain}.

Identify what the store primarily sells. Return JSON:
{{
  "company_name": "brand or company name",
  "category": "one of: fashion, beauty, electronics, home, pet, sports, food, health, automotive, general",
  "description": "one sentence describing the main products",
  "visible_categories": ["category names from the navigation"]
}}"""


QUERY_PROMPT = """You are testing whether the site search of {domain} understands natural language.

Store: {company_name}
Sells: {description}
Visible categories: {categories}

Write ONE search query at difficulty level {level} of 5 ("{tier_name}"):
{framing}
Example of this level for a running store: "{example}"

RULES:
- The query must be about products this store actually sells
- Write it the way a real shopper types: lowercase, no quotes, no commas
- Do not repeat any of these earlier queries: {previous}

Return JSON:
{{"query": "the search query", "rationale": "why this tests the search"}}"""


EVALUATE_PROMPT = """This screenshot shows the search results page of {domain} for the query:
"{query}"

Decide whether this is a SIGNIFICANT FAILURE of the search.

SIGNIFICANT FAILURE means ONLY one of:
- zero results / "no results found"
- results that have no relationship at all to the intent of the query

NOT a significant failure:
- some results are relevant even if others are not
- relevant results appear but ranked low
- results are imperfect, broad, or only partially match the qualifiers

Return JSON:
{{
  "significant_failure": true or false,
  "result_count": number of results shown or stated (null if unclear),
  "relevant_result_count": number of visible results that match the query intent,
  "first_relevant_rank": 1-based position of the first relevant result (null if none),
  "reasoning": "one or two sentences citing what you see"
}}"""


INSIGHT_PROMPT = """We probed the site search of {domain} ({description}) with queries of increasing difficulty.

Results:
{attempt_lines}

Verdict: {verdict}

Write a short insight for a sales rep. Return JSON:
{{
  "narrative": "two or three sentences describing how the search behaved",
  "queries_that_work": ["queries that returned relevant results"],
  "journey_steps": ["short steps a shopper took, in order"],
  "query_insight": "one sentence on which kind of phrasing breaks the search"{outreach_schema}
}}"""

OUTREACH_SCHEMA = """,
  "outreach": {{
    "what_search_returned": "what the results for \"{query}\" actually showed",
    "what_was_missing": "the intent or constraint the search did not understand",
    "pain_point_summary": "one sentence on the shopper pain this causes",
    "talking_points": ["three specific points, naming real products from the site"],
    "email_snippet": {{
      "opener": "I searched for '{query}' on your site",
      "result": "but the results showed ...",
      "observation": "I noticed you carry ... that would fit this search",
      "pain": "Shoppers who search in natural language have to ...",
      "pitch_hook": "What if shoppers could ...?"
    }}
  }}"""


GENERIC_BRAND = BrandProfile()

MECHANICAL_FAILURE_REASONING = (
    "Search could not be triggered or verified on the page; "
    "recorded as an automatic significant failure."
)

UNPARSEABLE_JUDGMENT_REASONING = "Judgment unavailable; treated as passing."


def decode_or_default(content: str | None, default: dict[str, Any]) -> dict[str, Any]:
    """
    Best-effort decode of a JSON object embedded in model output.

    Takes the text between the first "{" and the last "}", so surrounding
    prose and markdown fences are tolerated.

    Args:
        content: Raw model output
        default: Returned (as a copy) when no JSON object can be decoded

    Returns:
        Decoded object or a copy of default
    """
    if not content:
        return dict(default)

    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        return dict(default)

    try:
        decoded = json.loads(content[start:end + 1])
    except (json.JSONDecodeError, ValueError):
        return dict(default)

    if not isinstance(decoded, dict):
        return dict(default)
    return decoded


# "1-24 of 312 results" reports the total after "of"
_TOTAL_RE = re.compile(r"\bof\s+(\d[\d,]*)", re.IGNORECASE)
_NUMBER_RE = re.compile(r"(\d[\d,]*)")


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return int(value) if value >= 0 else None
    if isinstance(value, str):
        match = _TOTAL_RE.search(value) or _NUMBER_RE.search(value)
        return int(match.group(1).replace(",", "")) if match else None
    return None


def _as_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return default


def _as_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


def _as_text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def clean_query(raw: Any) -> str:
    """Strip quoting and whitespace from a generated query."""
    if not isinstance(raw, str):
        return ""
    query = " ".join(raw.split()).strip().strip("\"'").strip()
    return query if len(query) <= 120 else ""


class JudgmentClient(BaseComponent):
    """
    Wraps every oracle call the probe makes.
    No method raises on oracle failure; each resolves to a fixed default.
    """

    def __init__(self, llm: LLMProvider, store: BatchStore | None = None):
        """
        Initialize judgment client.

        Args:
            llm: Vision-capable LLM provider
            store: Optional store for the append-only audit log
        """
        super().__init__(name="judge")
        self.llm = llm
        self.store = store

    async def classify_brand(self, job_id: str, domain: str, homepage: bytes) -> BrandProfile:
        """Classify the store's primary product category from its homepage."""
        prompt = BRAND_PROMPT.format(domain=domain)
        content = await self._ask(job_id, domain, "brand_discovery", prompt, homepage, max_tokens=400)
        data = decode_or_default(content, {})
        if not data:
            self.log(f"Brand classification unavailable for {domain}, using generic profile")
            return GENERIC_BRAND.model_copy()

        description = str(data.get("description") or "").strip() or GENERIC_BRAND.description
        return BrandProfile(
            company_name=str(data.get("company_name") or "").strip() or GENERIC_BRAND.company_name,
            category=normalize_category(str(data.get("category") or "")),
            description=description,
            visible_categories=_as_str_list(data.get("visible_categories"))[:12],
        )

    async def generate_query(
        self,
        job_id: str,
        domain: str,
        brand: BrandProfile,
        tier: DifficultyTier,
        previous: list[str],
        homepage: bytes | None = None,
    ) -> tuple[str, str]:
        """
        Generate the query for one difficulty tier.

        Returns:
            (query, source) where source is "generated" or "fallback"
        """
        prompt = QUERY_PROMPT.format(
            domain=domain,
            company_name=brand.company_name,
            description=brand.description,
            categories=", ".join(brand.visible_categories) or "unknown",
            level=tier.level,
            tier_name=tier.name,
            framing=tier.framing,
            example=tier.example,
            previous="; ".join(previous) or "none",
        )
        content = await self._ask(
            job_id, domain, f"query_generation_{tier.level}", prompt, homepage, max_tokens=200
        )
        query = clean_query(decode_or_default(content, {}).get("query"))

        seen = {p.lower() for p in previous}
        if query and query.lower() not in seen:
            return query, "generated"

        fallback = tier.fallback_query(brand.category)
        self.log(f"Using fallback query for tier {tier.level}: {fallback!r}")
        return fallback, "fallback"

    async def evaluate_results(
        self,
        job_id: str,
        domain: str,
        query: str,
        screenshot: bytes,
    ) -> SearchJudgment:
        """
        Judge a results screenshot against the significant-failure rubric.
        Undecodable output counts as passing so noise never manufactures proof.
        """
        prompt = EVALUATE_PROMPT.format(domain=domain, query=query)
        content = await self._ask(job_id, domain, "evaluation", prompt, screenshot, max_tokens=400)
        data = decode_or_default(content, {})
        if "significant_failure" not in data:
            return SearchJudgment(reasoning=UNPARSEABLE_JUDGMENT_REASONING)

        return SearchJudgment(
            significant_failure=_as_bool(data.get("significant_failure")),
            result_count=_as_int(data.get("result_count")),
            relevant_result_count=_as_int(data.get("relevant_result_count")),
            first_relevant_rank=_as_int(data.get("first_relevant_rank")) or None,
            reasoning=str(data.get("reasoning") or "").strip(),
        )

    async def generate_insight(
        self,
        job_id: str,
        domain: str,
        brand: BrandProfile,
        attempts: list[QueryAttempt],
        verdict: Verdict,
    ) -> ProbeSummary:
        """
        Narrative summary for reporting; fallback built from the attempts.

        For an OUTREACH verdict the summary also carries outreach material
        around the failing query.
        """
        fallback = fallback_summary(domain, attempts, verdict, brand)
        if not attempts:
            return fallback

        attempt_lines = "\n".join(
            f"{a.attempt}. [{a.difficulty}] \"{a.query}\" -> "
            f"{'FAIL' if a.significant_failure else 'PASS'}: {a.judgment.reasoning}"
            for a in attempts
        )
        outreach_schema = ""
        if fallback.outreach is not None:
            outreach_schema = OUTREACH_SCHEMA.format(query=fallback.outreach.search_query_used)
        prompt = INSIGHT_PROMPT.format(
            domain=domain,
            description=brand.description,
            attempt_lines=attempt_lines,
            verdict=verdict.value,
            outreach_schema=outreach_schema,
        )
        max_tokens = 1200 if outreach_schema else 600
        content = await self._ask(job_id, domain, "insight", prompt, None, max_tokens=max_tokens)
        data = decode_or_default(content, {})
        narrative = str(data.get("narrative") or "").strip()
        if not narrative:
            return fallback

        return ProbeSummary(
            narrative=narrative,
            queries_that_work=_as_str_list(data.get("queries_that_work")) or fallback.queries_that_work,
            journey_steps=_as_str_list(data.get("journey_steps")) or fallback.journey_steps,
            query_insight=_as_text(data.get("query_insight")) or fallback.query_insight,
            outreach=merge_outreach(data.get("outreach"), fallback.outreach),
        )

    async def _ask(
        self,
        job_id: str,
        domain: str,
        phase: str,
        prompt: str,
        image: bytes | None,
        max_tokens: int,
    ) -> str | None:
        """
        One oracle call with audit logging.

        Returns:
            Raw text, or None if the call failed
        """
        started = time.monotonic()
        response: LLMResponse | None = None
        try:
            response = await self.llm.invoke(
                messages=prompt,
                system_prompt=JUDGE_SYSTEM_PROMPT,
                temperature=0.0,
                max_tokens=max_tokens,
                images=[image] if image else None,
            )
        except Exception as e:
            self.log(f"{phase} call failed for {domain}: {e}")

        duration_ms = int((time.monotonic() - started) * 1000)
        content = response.content if response else None
        await self._audit(
            LLMLogEntry(
                job_id=job_id,
                domain=domain,
                phase=phase,
                prompt=prompt,
                response=content or "",
                model=response.model if response else self.llm.model_name,
                tokens_used=response.total_tokens if response else None,
                duration_ms=duration_ms,
            )
        )
        return content

    async def _audit(self, entry: LLMLogEntry) -> None:
        if not self.store:
            return
        try:
            await self.store.log_llm_call(entry)
        except Exception as e:
            self.log(f"Failed to write audit log: {e}")


def fallback_summary(
    domain: str,
    attempts: list[QueryAttempt],
    verdict: Verdict,
    brand: BrandProfile = GENERIC_BRAND,
) -> ProbeSummary:
    """Deterministic summary used when the insight call is unavailable."""
    working = [a.query for a in attempts if a.passed]
    failing = next((a for a in attempts if a.significant_failure), None)

    if failing is not None:
        narrative = (
            f"Search on {domain} handled {len(working)} of {len(attempts)} queries, "
            f"then failed on \"{failing.query}\"."
        )
        insight = f"Breaks at {failing.difficulty.replace('_', ' ')} phrasing."
    elif attempts:
        narrative = f"Search on {domain} returned relevant results for all {len(attempts)} queries tested."
        insight = "No phrasing tested broke the search."
    else:
        narrative = f"No queries could be tested on {domain}."
        insight = ""

    outreach = None
    if verdict == Verdict.OUTREACH and failing is not None:
        outreach = fallback_outreach(brand, failing, len(working))

    return ProbeSummary(
        narrative=narrative,
        queries_that_work=working,
        journey_steps=["open homepage", "open search", "type query", "submit", "review results"],
        query_insight=insight if verdict != Verdict.REVIEW or attempts else "",
        outreach=outreach,
    )


def fallback_outreach(brand: BrandProfile, failing: QueryAttempt, passed_before: int) -> OutreachContext:
    """Outreach material assembled from the failing attempt alone."""
    judgment = failing.judgment
    if failing.mechanical_failure:
        returned = "no usable results page"
    elif judgment.result_count == 0:
        returned = "no results"
    elif judgment.result_count is not None:
        relevant = judgment.relevant_result_count or 0
        returned = f"{judgment.result_count} results, {relevant} of them relevant"
    else:
        returned = "results that did not match the request"

    phrasing = failing.difficulty.replace("_", " ")
    store = brand.company_name if brand.company_name != GENERIC_BRAND.company_name else "the store"
    talking_points = [
        f"\"{failing.query}\" broke the search at difficulty {failing.attempt} of 5 ({phrasing}).",
        f"The search returned {returned}.",
    ]
    if passed_before:
        talking_points.append(f"{passed_before} simpler queries worked, so the gap is understanding intent.")

    return OutreachContext(
        search_query_used=failing.query,
        what_search_returned=returned,
        what_was_missing=f"The {phrasing} request in \"{failing.query}\" was not understood.",
        pain_point_summary=(
            f"Shoppers asking {store} for \"{failing.query}\" do not find matching "
            f"{brand.category} products and may leave."
        ),
        talking_points=talking_points,
        email_snippet=EmailSnippet(
            opener=f"I searched for '{failing.query}' on your site",
            result=f"but the search showed {returned}",
            observation=f"You carry {brand.description}, so a shopper asking this should find something.",
            pain="Shoppers who search in natural language have to rephrase or browse by hand",
            pitch_hook="What if every search understood what the shopper meant the first time?",
        ),
    )


def merge_outreach(raw: Any, fallback: OutreachContext | None) -> OutreachContext | None:
    """Overlay model-written outreach fields on the fallback, field by field."""
    if fallback is None:
        return None
    if not isinstance(raw, dict):
        return fallback

    snippet = raw.get("email_snippet")
    snippet = snippet if isinstance(snippet, dict) else {}
    base = fallback.email_snippet
    return OutreachContext(
        search_query_used=fallback.search_query_used,
        what_search_returned=_as_text(raw.get("what_search_returned")) or fallback.what_search_returned,
        what_was_missing=_as_text(raw.get("what_was_missing")) or fallback.what_was_missing,
        pain_point_summary=_as_text(raw.get("pain_point_summary")) or fallback.pain_point_summary,
        talking_points=_as_str_list(raw.get("talking_points")) or fallback.talking_points,
        email_snippet=EmailSnippet(
            opener=_as_text(snippet.get("opener")) or base.opener,
            result=_as_text(snippet.get("result")) or base.result,
            observation=_as_text(snippet.get("observation")) or base.observation,
            pain=_as_text(snippet.get("pain")) or base.pain,
            pitch_hook=_as_text(snippet.get("pitch_hook")) or base.pitch_hook,
        ),
    )
