"""
Test doubles for the LLM provider and the browser session.
"""

import asyncio
import re
from typing import Any, Callable
from urllib.parse import quote

from searchprobe.llm.provider import LLMMessage, LLMProvider, LLMResponse


Handler = Callable[[str, list[bytes] | None], Any]


class FakeLLM(LLMProvider):
    """LLM provider whose replies come from a handler(prompt, images)."""

    def __init__(self, handler: Handler | None = None):
        self.handler = handler or (lambda prompt, images: "{}")
        self.prompts: list[str] = []

    async def invoke(
        self,
        messages: list[LLMMessage] | str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str | None = None,
        images: list[bytes] | None = None,
    ) -> LLMResponse:
        prompt = messages if isinstance(messages, str) else messages[-1].content
        self.prompts.append(prompt)
        reply = self.handler(prompt, images)
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model="fake-model", usage={"total_tokens": 42})

    @property
    def model_name(self) -> str:
        return "fake-model"

    def prompts_containing(self, marker: str) -> list[str]:
        return [p for p in self.prompts if marker in p]


def scripted_oracle(
    failures: list[bool] | None = None,
    queries: list[str] | None = None,
    category: str = "fashion",
    reasoning: str = "No products match the query",
) -> Handler:
    """
    Handler answering every judgment prompt.

    Args:
        failures: significant_failure per evaluation call, in order (pass when exhausted)
        queries: generated query per difficulty level (1-based by position)
        category: brand category returned by classification
    """
    evaluations = list(failures or [])

    def handler(prompt: str, images: list[bytes] | None) -> str:
        if "This is the homepage of" in prompt:
            return (
                '{"company_name": "Acme", "category": "%s", '
                '"description": "boots and shoes", "visible_categories": ["Boots"]}' % category
            )
        if "Write ONE search query" in prompt:
            level = int(re.search(r"difficulty level (\d)", prompt).group(1))
            text = queries[level - 1] if queries and level <= len(queries) else f"query level {level}"
            return '{"query": "%s", "rationale": "test"}' % text
        if "SIGNIFICANT FAILURE" in prompt:
            failed = evaluations.pop(0) if evaluations else False
            if failed:
                return (
                    '{"significant_failure": true, "result_count": 0, '
                    '"relevant_result_count": 0, "first_relevant_rank": null, '
                    '"reasoning": "%s"}' % reasoning
                )
            return (
                '{"significant_failure": false, "result_count": 24, '
                '"relevant_result_count": 6, "first_relevant_rank": 1, '
                '"reasoning": "Relevant boots shown first"}'
            )
        if "sales rep" in prompt:
            return (
                '{"narrative": "Search handles simple terms.", '
                '"queries_that_work": ["boots"], "journey_steps": ["searched"], '
                '"query_insight": "Breaks on constraints."}'
            )
        return "{}"

    return handler


class FakeSession:
    """
    In-memory stand-in for BrowserSession.

    By default the actor types into the search input and Enter navigates
    to /search?q=<query>.
    """

    def __init__(
        self,
        actor_types: bool = True,
        enter_navigates: bool = True,
        submit_navigates: bool = False,
        url_template_works: bool = True,
        page_texts: dict[str, str] | None = None,
        error_text_on_search: list[str] | None = None,
        goto_error: Exception | None = None,
        act_delay: float = 0.0,
        screenshot_fails_from: int | None = None,
    ):
        self.actor_types = actor_types
        self.enter_navigates = enter_navigates
        self.submit_navigates = submit_navigates
        self.url_template_works = url_template_works
        self.page_texts = page_texts or {}
        self.error_text_on_search = list(error_text_on_search or [])
        self.goto_error = goto_error
        self.act_delay = act_delay
        self.screenshot_fails_from = screenshot_fails_from

        self.url = "about:blank"
        self.root = ""
        self.input_value = ""
        self.current_text = ""
        self.instructions: list[str] = []
        self.visited: list[str] = []
        self.searches = 0
        self.screenshots: list[str | None] = []
        self.close_calls = 0

    async def goto(self, url: str) -> None:
        if self.goto_error is not None:
            raise self.goto_error
        if "/search?q=" in url and not self.url_template_works:
            self.url = url
            self.current_text = "404 Page not found"
            return
        if not self.root:
            self.root = url
        self.url = url
        self.input_value = ""
        self.visited.append(url)
        self.current_text = self.page_texts.get(url, "Acme Boots - New arrivals")
        if "/search?q=" in url:
            self._searched()

    async def act(self, instruction: str) -> None:
        if self.act_delay:
            await asyncio.sleep(self.act_delay)
        self.instructions.append(instruction)
        if instruction.startswith('Type "') and self.actor_types:
            self.input_value = instruction[len('Type "'):instruction.rindex('" into')]

    async def press(self, key: str) -> None:
        if key == "Enter" and self.enter_navigates and self.input_value:
            await self._navigate_to_results()

    async def click_submit(self) -> bool:
        if self.submit_navigates and self.input_value:
            await self._navigate_to_results()
            return True
        return False

    async def fill_search(self, text: str) -> bool:
        self.input_value = text
        return True

    async def search_input_value(self) -> str | None:
        return self.input_value or None

    async def page_text(self, limit: int = 4000) -> str:
        return self.current_text

    async def wait(self, ms: int) -> None:
        await asyncio.sleep(0)

    async def screenshot(self, path: str | None = None) -> bytes:
        self.screenshots.append(path)
        if self.screenshot_fails_from is not None and len(self.screenshots) >= self.screenshot_fails_from:
            raise RuntimeError("Target page, context or browser has been closed")
        return b"\xff\xd8\xff\xe0fake-jpeg"

    def current_url(self) -> str:
        return self.url

    async def close(self) -> None:
        self.close_calls += 1

    async def _navigate_to_results(self) -> None:
        self.url = f"{self.root.rstrip('/')}/search?q={quote(self.input_value, safe='')}"
        self.current_text = "Search results"
        self._searched()

    def _searched(self) -> None:
        self.searches += 1
        if self.error_text_on_search:
            self.current_text = self.error_text_on_search.pop(0) or self.current_text
