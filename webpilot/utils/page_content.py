"""
Page Content Reduction

Shrinks raw page HTML into something a planner prompt can carry: readable
text plus a list of the form fields and interactive elements with the
selectors most likely to hit them.
"""

import re
from typing import Any, Dict, List

from bs4 import BeautifulSoup

from webpilot.utils.helpers import truncate_string


BLOAT_TAGS = ['script', 'style', 'noscript', 'iframe', 'svg']
INTERACTIVE_TAGS = ['a', 'button', 'input', 'select', 'textarea']


def extract_readable_text(html: str, max_chars: int = 8000) -> str:
    """Visible text of the page with whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, 'html.parser')
    for tag in soup(BLOAT_TAGS):
        tag.decompose()
    text = soup.get_text(separator=' ', strip=True)
    text = re.sub(r'\s+', ' ', text).strip()
    return truncate_string(text, max_chars, suffix="\n[Truncated]")


def _best_selector(element) -> str:
    if element.get('id'):
        return f"#{element['id']}"
    if element.get('name'):
        return f"{element.name}[name=\"{element['name']}\"]"
    if element.get('data-testid'):
        return f"[data-testid=\"{element['data-testid']}\"]"
    if element.get('aria-label'):
        return f"{element.name}[aria-label=\"{element['aria-label']}\"]"
    if element.name == 'input' and element.get('type'):
        return f"input[type=\"{element['type']}\"]"
    text = element.get_text(strip=True)
    if text and len(text) < 40:
        return f"{element.name}:has-text(\"{text}\")"
    return element.name


def extract_interactive_elements(html: str, limit: int = 60) -> List[Dict[str, Any]]:
    """Form fields, buttons and links with a suggested selector each."""
    if not html:
        return []
    soup = BeautifulSoup(html, 'html.parser')
    elements = []
    for element in soup.find_all(INTERACTIVE_TAGS):
        if element.name == 'input' and element.get('type') == 'hidden':
            continue
        entry = {
            "tag": element.name,
            "selector": _best_selector(element),
            "text": truncate_string(element.get_text(strip=True), 80),
        }
        for attribute in ('type', 'name', 'placeholder', 'href'):
            if element.get(attribute):
                entry[attribute] = truncate_string(str(element[attribute]), 120)
        elements.append(entry)
        if len(elements) >= limit:
            break
    return elements
