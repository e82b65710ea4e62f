"""Browser module - Playwright sessions, element marks, and the natural-language actor."""

from .manager import BrowserSession, create_browser_session
from .marks import ElementMarks
from .actor import NaturalLanguageActor, ActResult

__all__ = [
    "BrowserSession",
    "create_browser_session",
    "ElementMarks",
    "NaturalLanguageActor",
    "ActResult",
]
