"""
Contextual Step Refiner

Proposes a better target for a pending step using the immediately preceding
step. Refinement never edits the step in place and never touches anything but
the target: a refined step is a copy with a new selector, an unrefined step is
returned as is.

Also hosts the heuristic alternative-selector table used by the retry
controller on its second attempt.

Usage:
    refiner = ContextualStepRefiner()
    step = refiner.refine(step, store)
"""

from typing import Optional

from webpilot.agents.step_context import StepContextStore
from webpilot.models.execution import StepExecutionResult
from webpilot.models.plan import ActionStep, ActionType, StepTarget


REFINABLE_TYPES = {ActionType.CLICK, ActionType.TYPE, ActionType.FILL, ActionType.EXTRACT}
FORM_MARKERS = ("input", "textarea", "select", "form")
UI_KEYWORDS = ["menu", "button", "link", "form", "input", "select", "login", "submit", "save", "cancel"]
STOPWORDS = {"the", "and", "for", "with"}

FORM_FIELD_PATTERNS = [
    (("email",), 'input[type="email"], input[name*="email"], input[id*="email"]'),
    (("password",), 'input[type="password"], input[name*="password"], input[id*="password"]'),
    (("name",), 'input[name*="name"], input[id*="name"], input[placeholder*="name"]'),
    (("phone",), 'input[type="tel"], input[name*="phone"], input[name*="tel"], input[id*="phone"]'),
    (("text", "comment"), 'textarea, input[type="text"], input[name*="comment"], input[name*="message"]'),
]

BUTTON_PATTERNS = [
    (("submit", "save"), 'button[type="submit"], input[type="submit"], button:has-text("Submit"), button:has-text("Save")'),
    (("cancel",), 'button:has-text("Cancel"), a:has-text("Cancel"), [role="button"]:has-text("Cancel")'),
    (("login", "sign in"), 'button:has-text("Login"), button:has-text("Sign"), input[type="submit"]'),
]


def needs_refinement(step: ActionStep) -> bool:
    """Whether a step is worth refining before its first attempt."""
    return step.type in REFINABLE_TYPES


def _is_form_selector(selector: Optional[str]) -> bool:
    return bool(selector) and any(marker in selector for marker in FORM_MARKERS)


def extract_keyword(description: str) -> Optional[str]:
    """UI keyword from a step description, else its first meaningful word."""
    words = description.lower().split()
    for word in words:
        if word in UI_KEYWORDS:
            return word
    meaningful = [word for word in words if len(word) > 3 and word not in STOPWORDS]
    return meaningful[0] if meaningful else None


def flexible_selector(keyword: str) -> str:
    """Framework-agnostic selector list matching an element by keyword."""
    label = keyword[:1].upper() + keyword[1:]
    selectors = [
        f'text="{label}"',
        f'[aria-label*="{keyword}"]',
        f'[title*="{keyword}"]',
        f'[data-testid*="{keyword}"]',
        f'[class*="{keyword}"]',
        f'[id*="{keyword}"]',
        f'a[href*="{keyword}"]',
        f'button:has-text("{label}")',
        f'span:has-text("{label}")',
        f'div:has-text("{label}")',
    ]
    return ", ".join(selectors)


def _match_patterns(patterns, description: str) -> Optional[str]:
    for keywords, selector in patterns:
        if any(keyword in description for keyword in keywords):
            return selector
    return None


def generate_alternative_selector(selector: str) -> str:
    """
    Rewrite a failing selector into a broader one.

    Returns the input unchanged when no substitution rule applies.
    """
    if not selector:
        return selector
    if "li:first-child a" in selector:
        return selector.replace("li:first-child a", "li:first-of-type a, .article:first-child a, article:first-child a", 1)
    if ":first-child" in selector:
        return selector.replace(":first-child", ":first-of-type", 1)
    if "article" in selector:
        return 'article a, .article a, [class*="article"] a, .post a, .entry a'
    if selector.startswith(".") and " " not in selector:
        class_name = selector[1:]
        return f'{selector}, [class*="{class_name}"], [class^="{class_name}"], [class$="{class_name}"]'
    return selector


class ContextualStepRefiner:
    """Adapts a step's selector from the pattern that worked on the previous step."""

    def refine(self, step: ActionStep, store: StepContextStore, page_content: str = "") -> ActionStep:
        """
        Return an improved copy of ``step`` or ``step`` itself.

        Only the immediately preceding step is consulted, and only when it
        succeeded, was a form interaction, and used a different selector.
        """
        previous = store.get_last_result()
        if previous is None or not previous.success:
            print("[REFINER] 🔄 No successful previous step, using original")
            return step

        if not self.is_relevant(step, previous):
            print("[REFINER] 🔄 Previous step not relevant, using original")
            return step

        previous_selector = previous.selector_used or previous.step.selector
        improved = self.adapt_selector_pattern(previous_selector, step.description)
        if improved and improved != step.selector:
            print(f"[REFINER] 🧠 Context suggests: {improved} (from {previous_selector})")
            target = step.target or StepTarget(description=step.description)
            return step.with_target(target.model_copy(update={"selector": improved}))

        print("[REFINER] 🔄 No relevant selector pattern found, using original")
        return step

    @staticmethod
    def is_relevant(step: ActionStep, previous: StepExecutionResult) -> bool:
        if step.type not in REFINABLE_TYPES or step.target is None:
            return False

        previous_selector = previous.selector_used or previous.step.selector
        if not previous_selector or step.selector == previous_selector:
            return False

        return _is_form_selector(step.selector) and _is_form_selector(previous.step.selector or previous_selector)

    @staticmethod
    def adapt_selector_pattern(successful_selector: str, description: str) -> Optional[str]:
        lowered = description.lower()

        if "menu" in lowered or "navigate" in lowered:
            keyword = extract_keyword(description)
            if keyword:
                return flexible_selector(keyword)

        if "input[name=" in successful_selector:
            return _match_patterns(FORM_FIELD_PATTERNS, lowered)

        if "button" in successful_selector or "click" in successful_selector:
            return _match_patterns(BUTTON_PATTERNS, lowered)

        return None

