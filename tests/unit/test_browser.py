"""
Unit tests for the natural-language actor and browser session helpers.
"""

import json

import httpx
import pytest

from searchprobe.browser.actor import NaturalLanguageActor
from searchprobe.browser.manager import BrowserSession, rate_limit_wait_seconds
from searchprobe.browser.marks import MARK_REMOVAL_SCRIPT, format_elements, mark_selector
from searchprobe.core.errors import BrowserSessionError
from searchprobe.llm.provider import LLMProvider, LLMResponse


ELEMENTS = [
    {"id": 1, "tag": "input", "type": "search", "placeholder": "Search products"},
    {"id": 2, "tag": "button", "type": "submit", "text": "Add to cart"},
    {"id": 3, "tag": "a", "text": "Sale", "href": "https://shop.example.com/collections/sale"},
]


class FakeKeyboard:
    def __init__(self):
        self.pressed: list[str] = []

    async def press(self, key: str) -> None:
        self.pressed.append(key)


class FakePage:
    url = "https://shop.example.com/"

    def __init__(self):
        self.keyboard = FakeKeyboard()
        self.clicked: list[str] = []
        self.filled: list[tuple[str, str]] = []
        self.marks_removed = False

    async def evaluate(self, script: str):
        if script == MARK_REMOVAL_SCRIPT:
            self.marks_removed = True
            return None
        return ELEMENTS

    async def click(self, selector: str, timeout: int = 0) -> None:
        self.clicked.append(selector)

    async def fill(self, selector: str, text: str, timeout: int = 0) -> None:
        self.filled.append((selector, text))


class ToolCallingLLM(LLMProvider):
    def __init__(self, name: str, arguments: dict):
        self.tool_call = {
            "id": "call_1",
            "type": "function",
            "function": {"name": name, "arguments": json.dumps(arguments)},
        }
        self.prompts: list[str] = []

    async def invoke(self, messages, system_prompt=None, temperature=0.7, max_tokens=4096,
                     tools=None, tool_choice=None, images=None) -> LLMResponse:
        self.prompts.append(messages)
        return LLMResponse(content="", model="fake", tool_calls=[self.tool_call])

    @property
    def model_name(self) -> str:
        return "fake"


@pytest.mark.asyncio
async def test_actor_types_into_marked_input():
    page = FakePage()
    llm = ToolCallingLLM("type", {"element_id": 1, "text": "red boots"})

    result = await NaturalLanguageActor(llm).act(page, 'Type "red boots" into the search input')

    assert result.performed
    assert page.filled == [(mark_selector(1), "red boots")]
    assert '[1] INPUT(search) "Search products"' in llm.prompts[0]
    assert page.marks_removed


@pytest.mark.asyncio
async def test_actor_refuses_blocked_controls():
    page = FakePage()
    llm = ToolCallingLLM("click", {"element_id": 2})

    result = await NaturalLanguageActor(llm).act(page, "Click the search button")

    assert not result.performed
    assert page.clicked == []
    assert "blocked" in result.description


@pytest.mark.asyncio
async def test_actor_handles_missing_element_and_no_action():
    page = FakePage()

    missing = await NaturalLanguageActor(ToolCallingLLM("click", {"element_id": 99})).act(page, "Open search")
    nothing = await NaturalLanguageActor(ToolCallingLLM("no_action", {"reason": "no overlay"})).act(
        page, "Close any popup if present"
    )

    assert not missing.performed
    assert not nothing.performed
    assert nothing.description == "no overlay"


@pytest.mark.asyncio
async def test_actor_presses_keys():
    page = FakePage()

    result = await NaturalLanguageActor(ToolCallingLLM("press", {"key": "Escape"})).act(page, "Close the dialog")

    assert result.performed
    assert page.keyboard.pressed == ["Escape"]


def test_format_elements():
    text = format_elements(ELEMENTS)

    assert text.splitlines()[2] == '[3] A "Sale" -> /collections/sale'
    assert format_elements([]) == "No interactive elements found"


@pytest.mark.parametrize("headers,body,expected", [
    ({"ratelimit-reset": "30"}, "", 35),
    ({"ratelimit-reset": "600"}, "", 120),
    ({}, '{"message": "Retry in 12 seconds"}', 17),
    ({}, "", 30),
])
def test_rate_limit_wait_seconds(headers, body, expected):
    response = httpx.Response(429, headers=headers, text=body)
    assert rate_limit_wait_seconds(response) == expected


@pytest.mark.asyncio
async def test_remote_session_requires_credentials(settings):
    settings.browser_mode = "browserbase"
    session = BrowserSession(settings, actor=None)

    with pytest.raises(BrowserSessionError):
        await session._create_remote_session()


@pytest.mark.asyncio
async def test_close_is_idempotent_before_start(settings):
    session = BrowserSession(settings, actor=None)

    await session.close()
    await session.close()

    assert session.current_url() == ""
