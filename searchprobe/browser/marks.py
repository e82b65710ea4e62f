"""
Element Marks.
Tags visible interactive elements with numeric IDs for LLM grounding.
No visual overlay is drawn, so screenshots stay clean for judgment.
"""

from typing import Any
from urllib.parse import urlparse


MARK_ATTRIBUTE = "data-probe-id"

# JavaScript to tag interactive elements and describe them
MARK_INJECTION_SCRIPT = """
(function() {
    document.querySelectorAll('[data-probe-id]').forEach(el => el.removeAttribute('data-probe-id'));

    const interactiveSelectors = [
        'button',
        'a[href]',
        'input:not([type="hidden"])',
        'textarea',
        'summary',
        '[role="button"]',
        '[role="link"]',
        '[role="searchbox"]',
        '[role="combobox"]',
        '[role="menuitem"]',
        '[aria-label*="search" i]',
        '[onclick]'
    ];

    const elements = document.querySelectorAll(interactiveSelectors.join(', '));
    const results = [];
    let idCounter = 0;

    elements.forEach(el => {
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') {
            return;
        }

        const rect = el.getBoundingClientRect();
        if (rect.width === 0 || rect.height === 0) {
            return;
        }
        if (rect.bottom < 0 || rect.top > window.innerHeight) {
            return;
        }
        if (rect.right < 0 || rect.left > window.innerWidth) {
            return;
        }

        const probeId = idCounter++;
        el.setAttribute('data-probe-id', probeId);

        results.push({
            id: probeId,
            tag: el.tagName.toLowerCase(),
            type: el.type || null,
            role: el.getAttribute('role'),
            text: (el.textContent || '').trim().substring(0, 80),
            placeholder: el.placeholder || null,
            ariaLabel: el.getAttribute('aria-label'),
            name: el.name || null,
            href: el.href || null
        });
    });

    return results;
})();
"""

MARK_REMOVAL_SCRIPT = """
(function() {
    document.querySelectorAll('[data-probe-id]').forEach(el => el.removeAttribute('data-probe-id'));
})();
"""


def mark_selector(mark_id: int) -> str:
    """CSS selector for a marked element."""
    return f'[{MARK_ATTRIBUTE}="{mark_id}"]'


def element_label(el: dict[str, Any]) -> str:
    """Best human-readable label for a marked element."""
    return (
        el.get("ariaLabel")
        or el.get("placeholder")
        or el.get("text")
        or el.get("name")
        or ""
    ).strip()


def format_elements(elements: list[dict[str, Any]], limit: int = 120) -> str:
    """
    Get text representation of marked elements for the LLM.

    Args:
        elements: Marked elements from the page
        limit: Maximum elements to list

    Returns:
        One line per element, e.g. `[3] INPUT(search) "Search products"`
    """
    if not elements:
        return "No interactive elements found"

    lines = []
    for el in elements[:limit]:
        parts = [f"[{el['id']}]"]

        tag = el.get("tag", "").upper()
        el_type = el.get("type")
        role = el.get("role")

        if role:
            parts.append(role.upper())
        elif el_type and tag in ("INPUT", "BUTTON"):
            parts.append(f"{tag}({el_type})")
        else:
            parts.append(tag)

        label = element_label(el)
        if label:
            if len(label) > 50:
                label = label[:50] + "..."
            parts.append(f'"{label}"')

        href = el.get("href")
        if href and not href.startswith("javascript:"):
            parts.append(f"-> {urlparse(href).path or '/'}")

        lines.append(" ".join(parts))

    return "\n".join(lines)


class ElementMarks:
    """
    Tags interactive elements on a Playwright page.
    """

    def __init__(self, page):
        """
        Args:
            page: Playwright page object
        """
        self.page = page
        self.elements: list[dict[str, Any]] = []

    async def inject(self) -> list[dict[str, Any]]:
        """
        Tag elements in the page.

        Returns:
            List of marked elements with their IDs
        """
        try:
            self.elements = await self.page.evaluate(MARK_INJECTION_SCRIPT) or []
        except Exception as e:
            print(f"[marks] Error marking elements: {e}")
            self.elements = []
        return self.elements

    async def remove(self) -> None:
        """Remove tags from the page."""
        try:
            await self.page.evaluate(MARK_REMOVAL_SCRIPT)
        except Exception:
            pass
        self.elements = []

    def get_element_by_id(self, mark_id: int) -> dict[str, Any] | None:
        for element in self.elements:
            if element.get("id") == mark_id:
                return element
        return None

    def describe(self) -> str:
        return format_elements(self.elements)
