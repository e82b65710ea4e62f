"""
Natural-Language Actor.
Turns one plain-English instruction into a single grounded page action
by letting the LLM pick a tool over the marked interactive elements.
"""

import json
from typing import Any

from pydantic import BaseModel

from ..core.guardrails import Guardrails, GuardrailViolation
from ..llm.provider import LLMProvider
from .marks import ElementMarks, element_label, mark_selector


ACTOR_SYSTEM_PROMPT = """You operate a web browser on behalf of a shopper.

You receive ONE instruction and a list of the interactive elements currently
visible on the page. Each element has a numeric ID in brackets like [12].

Pick exactly one tool call that best carries out the instruction:
- click: click an element (search icons, close buttons, accept buttons)
- type: type text into an input element
- press: press a keyboard key on the focused element
- no_action: nothing on the page matches the instruction

RULES:
- Never click checkout, add-to-cart, login/logout, or account controls
- Prefer inputs whose type, placeholder, or label mentions search
- If the instruction says "if present" and nothing matches, use no_action"""


ACTOR_TOOLS = [
    {
        "name": "click",
        "description": "Click on an interactive element by its ID",
        "parameters": {
            "type": "object",
            "properties": {
                "element_id": {
                    "type": "integer",
                    "description": "The numeric ID of the element to click"
                }
            },
            "required": ["element_id"]
        }
    },
    {
        "name": "type",
        "description": "Type text into an input field by its ID",
        "parameters": {
            "type": "object",
            "properties": {
                "element_id": {
                    "type": "integer",
                    "description": "The numeric ID of the input element"
                },
                "text": {
                    "type": "string",
                    "description": "The text to type"
                }
            },
            "required": ["element_id", "text"]
        }
    },
    {
        "name": "press",
        "description": "Press a keyboard key such as Enter or Escape",
        "parameters": {
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "Key name"}
            },
            "required": ["key"]
        }
    },
    {
        "name": "no_action",
        "description": "Nothing on the page matches the instruction",
        "parameters": {
            "type": "object",
            "properties": {
                "reason": {"type": "string", "description": "Why nothing was done"}
            },
            "required": ["reason"]
        }
    },
]


class ActResult(BaseModel):
    """Outcome of one natural-language action."""
    performed: bool
    action: str
    description: str


class NaturalLanguageActor:
    """
    Executes natural-language instructions against a Playwright page.
    """

    def __init__(self, llm: LLMProvider, guardrails: Guardrails | None = None):
        self.llm = llm
        self.guardrails = guardrails or Guardrails()

    async def act(self, page, instruction: str) -> ActResult:
        """
        Carry out one instruction.

        Args:
            page: Playwright page object
            instruction: Plain-English instruction

        Returns:
            What was done. Tool execution errors propagate to the caller.
        """
        marks = ElementMarks(page)
        await marks.inject()

        prompt = f"""INSTRUCTION:
{instruction}

PAGE: {page.url}

INTERACTIVE ELEMENTS:
{marks.describe()}

Choose one tool call."""

        try:
            response = await self.llm.invoke(
                messages=prompt,
                system_prompt=ACTOR_SYSTEM_PROMPT,
                tools=ACTOR_TOOLS,
                temperature=0.0,
                max_tokens=300,
            )

            if not response.tool_calls:
                return ActResult(performed=False, action="none", description=response.content[:200])

            return await self._execute_tool_call(page, marks, response.tool_calls[0])
        finally:
            await marks.remove()

    async def _execute_tool_call(
        self,
        page,
        marks: ElementMarks,
        tool_call: dict[str, Any]
    ) -> ActResult:
        name = tool_call["function"]["name"]
        args = json.loads(tool_call["function"]["arguments"] or "{}")

        if name == "no_action":
            return ActResult(performed=False, action=name, description=args.get("reason", ""))

        if name == "press":
            key = args.get("key", "Enter")
            await page.keyboard.press(key)
            return ActResult(performed=True, action=name, description=f"Pressed {key}")

        element_id = int(args["element_id"])
        element = marks.get_element_by_id(element_id)
        if element is None:
            return ActResult(
                performed=False,
                action=name,
                description=f"Element [{element_id}] not on page"
            )

        label = element_label(element)
        try:
            self.guardrails.validate_action(name, label)
        except GuardrailViolation as e:
            return ActResult(performed=False, action=name, description=str(e))

        selector = mark_selector(element_id)
        if name == "click":
            await page.click(selector, timeout=5000)
            return ActResult(performed=True, action=name, description=f"Clicked [{element_id}] {label}")

        if name == "type":
            text = args.get("text", "")
            await page.fill(selector, text, timeout=5000)
            return ActResult(performed=True, action=name, description=f"Typed '{text[:30]}' into [{element_id}]")

        return ActResult(performed=False, action=name, description=f"Unknown tool: {name}")
