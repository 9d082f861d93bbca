"""
Navigation Classifier

Heuristic decision of whether an objective needs a separate navigation
phase (leaving the current page for another site). Any ``str -> bool``
callable can replace it; this module provides the default rule table.

Rules run in order and the first one that returns a verdict wins:

1. explicit URL                                  -> True
2. domain name next to a navigation word         -> True
3. strong navigation verb aimed at a web target  -> True (unless local UI)
4. known site name with a navigation verb/preposition -> True
5. UI-interaction vocabulary without any domain  -> False
6. default                                       -> False
"""

import re
from typing import Callable, List, Optional, Tuple

NavigationClassifier = Callable[[str], bool]
NavigationRule = Callable[[str], Optional[bool]]


URL_PATTERNS = [
    re.compile(r'https?://[^\s,;]+', re.I),
    re.compile(r'www\.[^\s,;]+\.[a-z]{2,}', re.I),
    re.compile(r'[a-z0-9-]+\.[a-z]{2,}/[^\s]*', re.I),
]

DOMAIN_PATTERN = re.compile(
    r'\b[a-zA-Z0-9-]+\.(com|org|net|io|co|edu|gov|app|dev|tech|ai|us|uk|ca|de|fr)\b', re.I
)
NAVIGATION_CONTEXT = re.compile(r'\b(navigate|go|visit|open|browse|head|access|load|check|find|search)\b')

STRONG_NAVIGATION_PATTERNS = [
    re.compile(
        r'\b(navigate to|go to|visit|browse to|head to|access|open)\s+(?:the\s+)?'
        r'(?:https?://|www\.|[a-zA-Z0-9\-]+\.[a-z]{2,}|'
        r'(?:company|main|external|remote)\s+(?:site|website|page|portal|platform|dashboard)|'
        r'(?:admin|management)\s+(?:dashboard|console|portal))',
        re.I
    ),
    re.compile(
        r'\b(check out|look at|load up|pull up)\s+(?:the\s+)?'
        r'(?:https?://|www\.|[a-zA-Z0-9\-]+\.[a-z]{2,}|(?:external|remote)\s+dashboard)',
        re.I
    ),
]
LOCAL_UI_ELEMENTS = re.compile(
    r'\b(current|this|local)\s+(section|tab|dialog|modal|panel|menu|dropdown|sidebar|toolbar)\b', re.I
)

KNOWN_SITES = [
    'google', 'youtube', 'facebook', 'twitter', 'linkedin', 'github',
    'stackoverflow', 'amazon', 'ebay', 'wikipedia', 'reddit',
    'orangehrm', 'salesforce', 'jira', 'confluence', 'slack',
    'gmail', 'outlook', 'zoom', 'teams', 'discord',
]
KNOWN_SITE_PATTERN = re.compile(r'\b(' + '|'.join(KNOWN_SITES) + r')\b', re.I)
NAVIGATION_VERBS = re.compile(r'\b(go|visit|open|check|access|navigate|browse|head)\b', re.I)
PREPOSITIONS = re.compile(r'\b(to|on|at|into)\b', re.I)

NON_NAVIGATION_PATTERNS = [
    re.compile(r'\b(click|type|fill|enter|select|choose|scroll|extract|copy|paste|submit)\b', re.I),
    re.compile(r'\b(current page|this page|on the page|from the page)\b', re.I),
    re.compile(r'\b(button|link|field|form|input|dropdown|checkbox|radio)\b', re.I),
    re.compile(r'\b(the\s+)?(next|previous|settings|admin|main|home)\s+(section|tab|panel|menu|area|page)\b', re.I),
    re.compile(r'\b(file|print|save|export|import)\s+(dialog|modal|window)\b', re.I),
    re.compile(r'\b(go to|visit|open)\s+(?:the\s+)?(next|previous|first|last|top|bottom)\b', re.I),
]


def _explicit_url(instruction: str) -> Optional[bool]:
    return True if any(pattern.search(instruction) for pattern in URL_PATTERNS) else None


def _domain_in_navigation_context(instruction: str) -> Optional[bool]:
    match = DOMAIN_PATTERN.search(instruction)
    if not match:
        return None
    before = instruction[max(0, match.start() - 20):match.start()].lower()
    after = instruction[match.end():match.end() + 20].lower()
    if NAVIGATION_CONTEXT.search(before) or NAVIGATION_CONTEXT.search(after):
        return True
    return None


def _strong_navigation_verb(instruction: str) -> Optional[bool]:
    for pattern in STRONG_NAVIGATION_PATTERNS:
        if pattern.search(instruction) and not LOCAL_UI_ELEMENTS.search(instruction):
            return True
    return None


def _known_site(instruction: str) -> Optional[bool]:
    if KNOWN_SITE_PATTERN.search(instruction) and (
        NAVIGATION_VERBS.search(instruction) or PREPOSITIONS.search(instruction)
    ):
        return True
    return None


def _ui_interaction_only(instruction: str) -> Optional[bool]:
    if DOMAIN_PATTERN.search(instruction) or _explicit_url(instruction):
        return None
    if any(pattern.search(instruction) for pattern in NON_NAVIGATION_PATTERNS):
        return False
    return None


NAVIGATION_RULES: List[Tuple[str, NavigationRule]] = [
    ("explicit_url", _explicit_url),
    ("domain_in_context", _domain_in_navigation_context),
    ("strong_navigation_verb", _strong_navigation_verb),
    ("known_site", _known_site),
    ("ui_interaction_only", _ui_interaction_only),
]


def classify_with_rule(instruction: str) -> Tuple[bool, str]:
    """Verdict plus the name of the rule that produced it."""
    text = (instruction or "").strip()
    for name, rule in NAVIGATION_RULES:
        verdict = rule(text)
        if verdict is not None:
            return verdict, name
    return False, "default"


def classify_navigation(instruction: str) -> bool:
    """Default NavigationClassifier."""
    verdict, rule = classify_with_rule(instruction)
    print(f"[NAVIGATION] 🔧 {'navigation' if verdict else 'no navigation'} ({rule})")
    return verdict
