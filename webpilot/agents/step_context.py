"""
Step Context Store

Accumulates what the current run has learned: executed step results in order,
selectors that worked, form fields touched, and the page history. Later steps
and lazily generated sub-plans read from it.

One store per run. It is written only by the plan execution flow, so it holds
no lock.

Usage:
    store = StepContextStore()
    store.add_step_result(result)
    store.get_successful_selectors()
"""

import json
import re
import time
from typing import Any, Dict, List, Optional

from webpilot.models.execution import FormElementContext, StepExecutionResult
from webpilot.models.page import PageState
from webpilot.models.plan import ActionType


FORM_STEP_TYPES = {ActionType.TYPE, ActionType.CLICK, ActionType.FILL}
FORM_SELECTOR_MARKERS = ("input", "textarea", "select", "button")


class StepContextStore:
    """History of executed steps for one run."""

    def __init__(self):
        self._session_started = time.monotonic()
        self.reset()

    def reset(self) -> None:
        """Forget everything, including the session clock."""
        self._results: List[StepExecutionResult] = []
        self._result_keys: set = set()
        self._form_elements: Dict[str, FormElementContext] = {}
        self._page_history: List[PageState] = []
        self._extracted_data: Dict[str, Any] = {}
        self._session_started = time.monotonic()

    # =========================================================================
    # WRITES
    # =========================================================================

    def add_step_result(self, result: StepExecutionResult) -> bool:
        """
        Record a step result.

        Adding the same result twice is a no-op, so the successful-selector list
        never double counts. Returns True when the result was new.
        """
        key = (result.step.id, result.timestamp)
        if key in self._result_keys:
            return False

        self._result_keys.add(key)
        self._results.append(result)
        step_index = len(self._results) - 1

        if result.success and self._is_form_interaction(result):
            self._update_form_element(result, step_index)

        if result.success and result.extracted_data:
            self._extracted_data[result.step.id] = result.extracted_data

        if result.page_state_after is not None:
            self._page_history.append(result.page_state_after)

        return True

    @staticmethod
    def _is_form_interaction(result: StepExecutionResult) -> bool:
        selector = result.selector_used or result.step.selector or ""
        if result.step.type not in FORM_STEP_TYPES or not selector:
            return False
        return any(marker in selector for marker in FORM_SELECTOR_MARKERS)

    def _update_form_element(self, result: StepExecutionResult, step_index: int) -> None:
        selector = result.selector_used or result.step.selector
        existing = self._form_elements.get(selector)

        if existing is not None:
            # First observation wins for type/name; value and fill state follow the latest step
            element = existing.model_copy(update={
                "value": result.value_entered if result.value_entered is not None else existing.value,
                "filled": existing.filled or bool(result.value_entered),
                "step_index": step_index,
            })
        else:
            element = FormElementContext(
                selector=selector,
                type=self.infer_element_type(result.step.type, selector),
                name=self.extract_name_from_selector(selector),
                value=result.value_entered,
                filled=bool(result.value_entered),
                step_index=step_index,
            )
        self._form_elements[selector] = element

    # =========================================================================
    # READS
    # =========================================================================

    @property
    def results(self) -> List[StepExecutionResult]:
        return list(self._results)

    def get_recent_steps(self, count: int = 3) -> List[StepExecutionResult]:
        return self._results[-count:] if count > 0 else []

    def get_last_result(self) -> Optional[StepExecutionResult]:
        return self._results[-1] if self._results else None

    def get_successful_selectors(self) -> List[str]:
        """Unique selectors of successful steps, in first-use order."""
        seen: Dict[str, None] = {}
        for result in self._results:
            if result.success and result.selector_used:
                seen.setdefault(result.selector_used, None)
        return list(seen)

    def get_form_elements(self) -> List[FormElementContext]:
        return list(self._form_elements.values())

    def get_form_element(self, selector: str) -> Optional[FormElementContext]:
        return self._form_elements.get(selector)

    def get_extracted_data(self) -> Dict[str, Any]:
        return dict(self._extracted_data)

    def get_current_page(self) -> Optional[PageState]:
        return self._page_history[-1] if self._page_history else None

    def success_rate(self) -> float:
        if not self._results:
            return 0.0
        return sum(1 for result in self._results if result.success) / len(self._results)

    def export_context_summary(self) -> str:
        """JSON summary handed to the planner when generating later sub-plans."""
        summary = {
            "recentSteps": [
                {
                    "type": result.step.type.value,
                    "description": result.step.description,
                    "success": result.success,
                    "selector": result.selector_used,
                    "error": result.error,
                }
                for result in self.get_recent_steps(5)
            ],
            "extractedData": self._extracted_data,
            "successfulSelectors": self.get_successful_selectors(),
            "formElements": [element.model_dump() for element in self._form_elements.values()],
            "sessionDuration": int((time.monotonic() - self._session_started) * 1000),
            "totalSteps": len(self._results),
            "successRate": round(self.success_rate(), 3),
        }
        return json.dumps(summary, default=str, indent=2)

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def infer_element_type(step_type: ActionType, selector: str) -> str:
        if step_type in (ActionType.TYPE, ActionType.FILL):
            return "input"
        if step_type == ActionType.CLICK:
            if "radio" in selector:
                return "radio"
            if "checkbox" in selector:
                return "checkbox"
            if "button" in selector:
                return "button"
        return "clickable"

    @staticmethod
    def extract_name_from_selector(selector: str) -> Optional[str]:
        match = re.search(r"name=[\"']?([^\"'\]]+)", selector)
        if match:
            return match.group(1)
        match = re.search(r"#([\w-]+)", selector) or re.search(r"id=[\"']?([^\"'\]]+)", selector)
        if match:
            return match.group(1)
        return None
