"""
Interaction Strategy Layer.
Drives one logical search action at a time: an instruction-driven primary
path followed by deterministic fallbacks, each step under a bounded wait.
"""

import asyncio
import re
from typing import Any, Awaitable
from urllib.parse import quote, urlparse

from pydantic import BaseModel

from ..browser.manager import BrowserSession
from ..core.config import Settings
from ..core.errors import BrowserSessionError
from .base import BaseComponent


OPEN_SEARCH_INSTRUCTION = (
    "Open the site search so that the search text input is visible. "
    "Click the search icon or search field in the header if there is one."
)

DISMISS_OVERLAYS_INSTRUCTION = (
    "If a cookie banner, newsletter popup, or promotional overlay is covering the page, "
    "close it or accept it. Do nothing if no overlay is visible."
)

TYPE_QUERY_INSTRUCTION = 'Type "{text}" into the search input'

# Rendered text that means the page itself is broken, not the search
PAGE_ERROR_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"this site can[’']t be reached",
        r"\berr_(connection|name_not_resolved|timed_out|address_unreachable|ssl_protocol_error)\w*",
        r"dns_probe_finished",
        r"connection (was )?(refused|reset|timed out)",
        r"server not found",
        r"\b502 bad gateway\b",
        r"\b503 service (temporarily )?unavailable\b",
        r"\b504 gateway time-?out\b",
        r"\baccess denied\b",
        r"you don[’']t have permission to access",
        r"attention required! \| cloudflare",
        r"checking your browser before accessing",
        r"verify you are (a )?human",
        r"request unsuccessful\. incapsula",
    )
]

NOT_FOUND_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\b404\b.{0,40}not found",
        r"page (you requested )?(could not|cannot|can't) be found",
        r"page not found",
    )
]


class SubmitOutcome(BaseModel):
    """Result of driving a query into the site search."""
    ok: bool
    method: str | None = None
    url: str = ""


def canonical_url(url: str) -> str:
    """
    Canonical form for navigation comparison.
    Scheme, host, path and query; fragment and trailing slash dropped.
    """
    parsed = urlparse(url or "")
    path = parsed.path.rstrip("/")
    canonical = f"{parsed.scheme}://{parsed.netloc.lower()}{path}"
    if parsed.query:
        canonical += f"?{parsed.query}"
    return canonical


def search_url(root_url: str, text: str) -> str:
    """Conventional search-results URL on the domain root."""
    return f"{root_url.rstrip('/')}/search?q={quote(text, safe='')}"


def detect_page_error(text: str) -> str | None:
    """
    Detect a broken page from its rendered text.

    Returns:
        The matched snippet, or None if the page looks healthy
    """
    for pattern in PAGE_ERROR_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return match.group(0)
    return None


def looks_not_found(text: str) -> bool:
    return any(p.search(text or "") for p in NOT_FOUND_PATTERNS)


class InteractionStrategy(BaseComponent):
    """
    Search interaction against one live browser session.

    Only mechanical navigation is decided here, never search quality.
    """

    def __init__(self, session: BrowserSession, settings: Settings):
        super().__init__(name="interact")
        self.session = session
        self.settings = settings

    async def _bounded(self, awaitable: Awaitable[Any], step: str) -> Any | None:
        """
        Run one sub-step under the action timeout.

        Returns:
            The step's result, or None if it timed out or failed
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.action_timeout_s)
        except asyncio.TimeoutError:
            self.log(f"{step} timed out after {self.settings.action_timeout_s}s")
        except BrowserSessionError:
            raise
        except Exception as e:
            self.log(f"{step} failed: {e}")
        return None

    async def _settle(self) -> None:
        await self.session.wait(self.settings.settle_delay_ms)

    async def open_search(self) -> None:
        """Ask the actor to reveal the search input, then settle."""
        await self._bounded(self.session.act(OPEN_SEARCH_INSTRUCTION), "open search")
        await self._settle()

    async def dismiss_transient_overlays(self) -> None:
        """Best-effort close of cookie and marketing overlays."""
        await self._bounded(self.session.act(DISMISS_OVERLAYS_INSTRUCTION), "dismiss overlays")
        await self._bounded(self.session.press("Escape"), "escape")

    async def type_query(self, text: str) -> bool:
        """
        Put the query into the search input.

        Returns:
            True if the typed text is present in an input afterwards
        """
        await self._bounded(
            self.session.act(TYPE_QUERY_INSTRUCTION.format(text=text)), "type query"
        )
        if await self._typed(text):
            return True

        self.log("Actor typing unverified, filling search input directly")
        filled = await self._bounded(self.session.fill_search(text), "fill search input")
        return bool(filled) and await self._typed(text)

    async def _typed(self, text: str) -> bool:
        value = await self._bounded(self.session.search_input_value(), "read search input")
        return bool(value) and text.lower() in str(value).lower()

    def verify_on_results_view(self, before_url: str) -> bool:
        """True if the canonical URL changed since before_url."""
        return canonical_url(self.session.current_url()) != canonical_url(before_url)

    async def submit_query(self, root_url: str, text: str) -> SubmitOutcome:
        """
        Type and submit a query, escalating through the fallbacks:
        Enter key, submit control, then the /search?q= URL template.

        Returns:
            SubmitOutcome with ok=False only when every fallback is exhausted
        """
        before = self.session.current_url()
        typed = await self.type_query(text)

        if typed:
            await self._bounded(self.session.press("Enter"), "press enter")
            await self._settle()
            if self.verify_on_results_view(before):
                self.log("Search submitted via Enter key")
                return SubmitOutcome(ok=True, method="enter", url=self.session.current_url())

            clicked = await self._bounded(self.session.click_submit(), "click submit")
            if clicked:
                await self._settle()
                if self.verify_on_results_view(before):
                    self.log("Search submitted via button")
                    return SubmitOutcome(ok=True, method="submit_button", url=self.session.current_url())

        target = search_url(root_url, text)
        await self._bounded(self.session.goto(target), "search url")
        if self.verify_on_results_view(before):
            text_now = await self._bounded(self.session.page_text(), "read page") or ""
            if not looks_not_found(text_now):
                self.log("Search submitted via URL")
                return SubmitOutcome(ok=True, method="url_template", url=self.session.current_url())
            self.log(f"Search URL {target} is not a results page")

        self.log("Search submission failed")
        return SubmitOutcome(ok=False, url=self.session.current_url())

    async def check_page_error(self) -> str | None:
        """Run the page-error heuristics against the current page."""
        text = await self._bounded(self.session.page_text(), "read page")
        return detect_page_error(text or "")
