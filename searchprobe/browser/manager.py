"""
Playwright Browser Session.
Manages one browser session per probe: local Chromium or a Browserbase
remote session connected over CDP.
"""

import asyncio
import re
from typing import Any

import httpx
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
)

from ..core.config import Settings
from ..core.errors import BrowserSessionError
from ..llm.provider import LLMProvider
from .actor import ActResult, NaturalLanguageActor


# Search inputs that are commonly already in the header
SEARCH_INPUT_SELECTORS = [
    'input[type="search"]',
    'input[name="q"]',
    'input[name*="search" i]',
    'input[placeholder*="search" i]',
    'input[aria-label*="search" i]',
    '[role="searchbox"]',
    'header input[class*="search" i]',
]

SUBMIT_BUTTON_SELECTORS = [
    'form[role="search"] button[type="submit"]',
    'form[action*="search" i] button[type="submit"]',
    'button[aria-label*="search" i]',
    'button[type="submit"]:has-text("Search")',
    'button:has-text("Search")',
    'input[type="submit"][value*="search" i]',
]

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--window-size=1440,900",
]

CONTEXT_CONFIG: dict[str, Any] = {
    "viewport": {"width": 1440, "height": 900},
    "user_agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "locale": "en-US",
    "timezone_id": "America/New_York",
}


class BrowserSession:
    """
    One live browser page driven by the probe.

    Implements the remote browser capability: goto, act, screenshot,
    current_url, close, plus the deterministic helpers used as fallbacks.
    """

    def __init__(self, settings: Settings, actor: NaturalLanguageActor):
        """
        Initialize browser session.

        Args:
            settings: Application settings
            actor: Natural-language actor bound to an LLM
        """
        self.settings = settings
        self.actor = actor

        self.playwright: Playwright | None = None
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self.remote_session_id: str | None = None

    async def start(self) -> Page:
        """
        Start browser and return page.

        Raises:
            BrowserSessionError: If the browser or remote session cannot start
        """
        try:
            self.playwright = await async_playwright().start()

            if self.settings.browser_mode == "browserbase":
                connect_url = await self._create_remote_session()
                self.browser = await self.playwright.chromium.connect_over_cdp(connect_url)
                self.context = (
                    self.browser.contexts[0]
                    if self.browser.contexts
                    else await self.browser.new_context(**CONTEXT_CONFIG)
                )
                self.page = self.context.pages[0] if self.context.pages else await self.context.new_page()
            else:
                self.browser = await self.playwright.chromium.launch(
                    headless=self.settings.headless,
                    args=LAUNCH_ARGS,
                    ignore_default_args=["--enable-automation"],
                )
                self.context = await self.browser.new_context(**CONTEXT_CONFIG)
                self.page = await self.context.new_page()
        except BrowserSessionError:
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise BrowserSessionError(f"Failed to start browser: {e}") from e

        self.page.set_default_timeout(self.settings.navigation_timeout)
        return self.page

    async def _create_remote_session(self) -> str:
        """
        Create a Browserbase session, retrying while the account is rate limited.

        Returns:
            CDP connect URL
        """
        if not self.settings.browserbase_api_key or not self.settings.browserbase_project_id:
            raise BrowserSessionError(
                "BROWSERBASE_API_KEY and BROWSERBASE_PROJECT_ID must be set"
            )

        headers = {
            "X-BB-API-Key": self.settings.browserbase_api_key,
            "Content-Type": "application/json",
        }
        body = {
            "projectId": self.settings.browserbase_project_id,
            "timeout": self.settings.browserbase_session_timeout,
            "keepAlive": False,
        }
        max_retries = self.settings.browserbase_max_retries

        async with httpx.AsyncClient(
            base_url=self.settings.browserbase_api_url, timeout=30.0
        ) as client:
            for attempt in range(1, max_retries + 1):
                print(f"[browser] Creating remote session (attempt {attempt}/{max_retries})")
                response = await client.post("/sessions", headers=headers, json=body)

                if response.status_code == 429 and attempt < max_retries:
                    wait = rate_limit_wait_seconds(response)
                    print(f"[browser] Rate limited, waiting {wait}s")
                    await asyncio.sleep(wait)
                    continue

                if response.status_code >= 400:
                    raise BrowserSessionError(
                        f"Browserbase session creation failed: {response.status_code} {response.text[:200]}"
                    )

                data = response.json()
                self.remote_session_id = data.get("id")
                print(f"[browser] Remote session ready: {self.remote_session_id}")
                return data["connectUrl"]

        raise BrowserSessionError("Browserbase session creation exhausted retries")

    async def close(self) -> None:
        """Stop browser and cleanup. Safe to call more than once."""
        for closer in (self._close_page, self._close_context, self._close_browser, self._stop_playwright):
            try:
                await closer()
            except Exception as e:
                print(f"[browser] Cleanup warning: {e}")

    async def _close_page(self) -> None:
        if self.page:
            page, self.page = self.page, None
            await page.close()

    async def _close_context(self) -> None:
        if self.context:
            context, self.context = self.context, None
            await context.close()

    async def _close_browser(self) -> None:
        if self.browser:
            browser, self.browser = self.browser, None
            await browser.close()

    async def _stop_playwright(self) -> None:
        if self.playwright:
            playwright, self.playwright = self.playwright, None
            await playwright.stop()

    def _require_page(self) -> Page:
        if not self.page:
            raise BrowserSessionError("Browser not started")
        return self.page

    # =========================================================================
    # Capability
    # =========================================================================

    async def goto(self, url: str) -> None:
        """
        Navigate to a URL, falling back to a full load wait once.

        Raises:
            Playwright errors when both attempts fail
        """
        page = self._require_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout)
        except Exception as e:
            print(f"[browser] Navigation retry for {url}: {e}")
            await page.goto(url, wait_until="load", timeout=self.settings.navigation_timeout)
        await page.wait_for_timeout(1000)

    async def act(self, instruction: str) -> ActResult:
        """Carry out a natural-language instruction."""
        return await self.actor.act(self._require_page(), instruction)

    async def screenshot(self, path: str | None = None) -> bytes:
        """
        Take a viewport screenshot as JPEG.

        Args:
            path: Optional file path to also write the image to
        """
        page = self._require_page()
        kwargs: dict[str, Any] = {"type": "jpeg", "quality": 80, "full_page": False}
        if path:
            kwargs["path"] = path
        return await page.screenshot(**kwargs)

    def current_url(self) -> str:
        return self.page.url if self.page else ""

    async def wait(self, ms: int) -> None:
        await self._require_page().wait_for_timeout(ms)

    async def press(self, key: str) -> None:
        await self._require_page().keyboard.press(key)

    async def page_text(self, limit: int = 4000) -> str:
        """Title plus visible body text, truncated."""
        page = self._require_page()
        title = await page.title()
        try:
            body = await page.inner_text("body", timeout=5000)
        except Exception:
            body = ""
        return f"{title}\n{body[:limit]}"

    async def fill_search(self, text: str) -> bool:
        """Type into the first visible search-like input."""
        page = self._require_page()
        for selector in SEARCH_INPUT_SELECTORS:
            try:
                element = page.locator(selector).first
                if await element.is_visible(timeout=500):
                    await element.fill(text, timeout=2000)
                    await element.focus()
                    return True
            except Exception:
                continue
        return False

    async def search_input_value(self) -> str | None:
        """Value of the focused input, or of the first search-like input."""
        page = self._require_page()
        try:
            value = await page.evaluate(
                "() => { const el = document.activeElement;"
                " return el && 'value' in el ? el.value : null; }"
            )
            if value:
                return value
        except Exception:
            pass
        for selector in SEARCH_INPUT_SELECTORS:
            try:
                element = page.locator(selector).first
                if await element.count():
                    return await element.input_value(timeout=500)
            except Exception:
                continue
        return None

    async def click_submit(self) -> bool:
        """Click the first visible search submit control."""
        page = self._require_page()
        for selector in SUBMIT_BUTTON_SELECTORS:
            try:
                button = page.locator(selector).first
                if await button.is_visible(timeout=500):
                    await button.click(timeout=1000)
                    return True
            except Exception:
                continue
        return False


def rate_limit_wait_seconds(response: httpx.Response, default: int = 30) -> int:
    """Seconds to wait after a 429, from the ratelimit-reset header or body."""
    candidates = [response.headers.get("ratelimit-reset", ""), response.text or ""]
    for candidate in candidates:
        match = re.search(r"(\d+)", candidate)
        if match:
            value = int(match.group(1))
            if value > 0:
                return min(value + 5, 120)
    return default


async def create_browser_session(settings: Settings, llm: LLMProvider) -> BrowserSession:
    """
    Session factory used by the probe engine.

    Returns:
        A started BrowserSession
    """
    session = BrowserSession(settings, NaturalLanguageActor(llm))
    await session.start()
    return session
