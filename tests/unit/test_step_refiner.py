"""
Unit Tests for the contextual step refiner and alternative selectors
"""

import pytest

from webpilot.agents.step_context import StepContextStore
from webpilot.agents.step_refiner import (
    ContextualStepRefiner,
    extract_keyword,
    flexible_selector,
    generate_alternative_selector,
    needs_refinement,
)
from webpilot.models.execution import StepExecutionResult
from webpilot.models.plan import ActionStep, ActionType, StepTarget


@pytest.fixture
def password_step():
    return ActionStep(
        type=ActionType.TYPE,
        description="Type the password",
        target=StepTarget(selector="input#pass", description="Password field"),
        value="secret",
    )


def _store_with(step: ActionStep, success: bool = True) -> StepContextStore:
    store = StepContextStore()
    store.add_step_result(StepExecutionResult(step=step, success=success, selector_used=step.selector))
    return store


class TestContextualRefinement:
    """Tests for ContextualStepRefiner.refine."""

    def test_refines_from_previous_form_field(self, type_step, password_step):
        refiner = ContextualStepRefiner()
        refined = refiner.refine(password_step, _store_with(type_step))

        assert refined is not password_step
        assert refined.selector.startswith('input[type="password"]')
        assert refined.id == password_step.id
        assert refined.value == password_step.value
        assert password_step.selector == "input#pass"

    def test_previous_failure_leaves_step_unchanged(self, type_step, password_step):
        refined = ContextualStepRefiner().refine(password_step, _store_with(type_step, success=False))
        assert refined is password_step

    def test_empty_store_leaves_step_unchanged(self, password_step):
        assert ContextualStepRefiner().refine(password_step, StepContextStore()) is password_step

    def test_non_form_previous_step_not_relevant(self, click_step, password_step):
        refined = ContextualStepRefiner().refine(password_step, _store_with(click_step))
        assert refined is password_step

    def test_same_selector_not_relevant(self, type_step):
        retype = type_step.model_copy(update={"id": "retype"})
        assert ContextualStepRefiner().refine(retype, _store_with(type_step)) is retype

    def test_button_pattern_after_button_click(self):
        previous = ActionStep(type=ActionType.CLICK, description="Click next",
                              target=StepTarget(selector="form button.next", description="Next"))
        step = ActionStep(type=ActionType.CLICK, description="Click submit",
                          target=StepTarget(selector="form .submit", description="Submit"))

        refined = ContextualStepRefiner().refine(step, _store_with(previous))
        assert refined.selector.startswith('button[type="submit"]')


class TestHeuristics:
    """Tests for the selector heuristics."""

    def test_needs_refinement_only_for_element_steps(self, click_step, navigate_step):
        assert needs_refinement(click_step)
        assert not needs_refinement(navigate_step)

    @pytest.mark.parametrize("selector,expected", [
        ("ul li:first-child a", "ul li:first-of-type a, .article:first-child a, article:first-child a"),
        ("div:first-child", "div:first-of-type"),
        ("article h2", 'article a, .article a, [class*="article"] a, .post a, .entry a'),
        (".result", '.result, [class*="result"], [class^="result"], [class$="result"]'),
        ("#submit", "#submit"),
        ("", ""),
    ])
    def test_alternative_selector(self, selector, expected):
        assert generate_alternative_selector(selector) == expected

    def test_extract_keyword_prefers_ui_words(self):
        assert extract_keyword("Open the settings menu") == "menu"
        assert extract_keyword("Open the reports page") == "open"

    def test_flexible_selector_mentions_keyword(self):
        selector = flexible_selector("menu")
        assert 'text="Menu"' in selector
        assert '[aria-label*="menu"]' in selector
