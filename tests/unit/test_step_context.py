"""
Unit Tests for StepContextStore

Tests for result recording, selector bookkeeping and form element tracking
"""

import json

from webpilot.agents.step_context import StepContextStore
from webpilot.models.execution import StepExecutionResult
from webpilot.models.page import PageState
from webpilot.models.plan import ActionStep, ActionType, StepTarget


def _result(step: ActionStep, success: bool = True, **kwargs) -> StepExecutionResult:
    return StepExecutionResult(step=step, success=success, selector_used=step.selector, **kwargs)


class TestRecording:
    """Tests for add_step_result."""

    def test_results_kept_in_order(self, click_step, type_step):
        store = StepContextStore()
        store.add_step_result(_result(type_step))
        store.add_step_result(_result(click_step))

        assert [r.step.id for r in store.results] == [type_step.id, click_step.id]
        assert store.get_last_result().step.id == click_step.id

    def test_adding_same_result_twice_is_noop(self, click_step):
        """Successful selectors never double count."""
        store = StepContextStore()
        result = _result(click_step)

        assert store.add_step_result(result) is True
        assert store.add_step_result(result) is False
        assert len(store.results) == 1
        assert store.get_successful_selectors() == ["#search-btn"]

    def test_successful_selectors_unique_and_ordered(self, click_step, type_step):
        store = StepContextStore()
        store.add_step_result(_result(type_step))
        store.add_step_result(_result(click_step))
        store.add_step_result(_result(click_step.model_copy(update={"id": "again"})))

        assert store.get_successful_selectors() == ['input[name="username"]', "#search-btn"]

    def test_failed_selectors_excluded(self, click_step):
        store = StepContextStore()
        store.add_step_result(_result(click_step, success=False, error="not found"))

        assert store.get_successful_selectors() == []
        assert store.success_rate() == 0.0

    def test_page_history_follows_after_states(self, click_step):
        store = StepContextStore()
        store.add_step_result(_result(click_step, page_state_after=PageState.minimal("https://a.test")))

        assert store.get_current_page().url == "https://a.test"

    def test_reset_clears_everything(self, click_step):
        store = StepContextStore()
        store.add_step_result(_result(click_step, page_state_after=PageState.minimal("https://a.test")))
        store.reset()

        assert store.results == []
        assert store.get_current_page() is None
        assert store.get_last_result() is None


class TestFormElements:
    """Tests for form element tracking."""

    def test_typed_input_recorded(self, type_step):
        store = StepContextStore()
        store.add_step_result(_result(type_step, value_entered="alice"))

        element = store.get_form_element('input[name="username"]')
        assert element.type == "input"
        assert element.name == "username"
        assert element.value == "alice"
        assert element.filled is True

    def test_later_step_updates_value(self, type_step):
        store = StepContextStore()
        store.add_step_result(_result(type_step, value_entered="alice"))
        retyped = type_step.model_copy(update={"id": "second", "value": "bob"})
        store.add_step_result(_result(retyped, value_entered="bob"))

        elements = store.get_form_elements()
        assert len(elements) == 1
        assert elements[0].value == "bob"
        assert elements[0].step_index == 1

    def test_button_click_recorded_as_button(self):
        step = ActionStep(
            type=ActionType.CLICK,
            description="Submit",
            target=StepTarget(selector="button#submit", description="Submit"),
        )
        store = StepContextStore()
        store.add_step_result(_result(step))

        element = store.get_form_element("button#submit")
        assert element.type == "button"
        assert element.name == "submit"
        assert element.filled is False

    def test_non_form_click_ignored(self, click_step):
        store = StepContextStore()
        store.add_step_result(_result(click_step))
        assert store.get_form_elements() == []


class TestSummary:
    """Tests for export_context_summary."""

    def test_summary_fields(self, click_step):
        extract = ActionStep(type=ActionType.EXTRACT, description="Read heading",
                             target=StepTarget(selector="h1", description="Heading"))
        store = StepContextStore()
        store.add_step_result(_result(click_step))
        store.add_step_result(_result(extract, extracted_data="Example Domain"))

        summary = json.loads(store.export_context_summary())
        assert summary["totalSteps"] == 2
        assert summary["successRate"] == 1.0
        assert summary["extractedData"] == {extract.id: "Example Domain"}
        assert summary["successfulSelectors"] == ["#search-btn", "h1"]
        assert [step["type"] for step in summary["recentSteps"]] == ["click", "extract"]
