"""
Retry/Refinement Controller

Runs one ActionStep with a bounded number of attempts (3 by default),
escalating how the step's target is refined between attempts:

    attempt 1 fails -> contextual refinement from the previous step
    attempt 2 fails -> heuristic alternative selector (AI if no rule applies)
    attempt 3+ fails -> AI-proposed target built from the accumulated errors

Only the target ever changes; each refinement yields a new step value and
the caller's step is never modified. Every attempt has its own timeout and
a timeout counts as an ordinary failed attempt.

Retry accounting is tenacity's: ``stop_after_attempt`` bounds the attempts,
``wait_fixed`` spaces them, and only StepExecutionError is retried. A
BrowserClosedError ends the step at once with ``can_continue=False``: nothing
else in the sub-plan can run against a closed page.
"""

import asyncio
from typing import List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, retry_if_not_exception_type, stop_after_attempt, wait_fixed

from webpilot.agents.step_context import StepContextStore
from webpilot.agents.step_refiner import ContextualStepRefiner, generate_alternative_selector
from webpilot.browser.action_executor import ActionExecutor, ActionResult
from webpilot.core.config import Settings, settings as default_settings
from webpilot.core.exceptions import BrowserClosedError, StepExecutionError, StepTimeoutError
from webpilot.models.execution import StepOutcome
from webpilot.models.page import PageState
from webpilot.models.plan import ActionStep
from webpilot.planning.action_planner import ActionPlanner


class RetryController:
    """Bounded, escalating retries for a single step."""

    def __init__(self, executor: ActionExecutor, planner: ActionPlanner, store: StepContextStore,
                 refiner: Optional[ContextualStepRefiner] = None, settings: Optional[Settings] = None):
        self.executor = executor
        self.planner = planner
        self.store = store
        self.refiner = refiner or ContextualStepRefiner()
        self.settings = settings or default_settings

    @property
    def max_attempts(self) -> int:
        return max(1, self.settings.max_step_attempts)

    async def execute_step_with_retry(self, step: ActionStep, page_state: Optional[PageState] = None) -> StepOutcome:
        """
        Execute ``step`` until it succeeds or attempts run out.

        Never raises for step failures: exhaustion comes back as an
        unsuccessful StepOutcome with ``can_continue=True``, a closed browser
        as one with ``can_continue=False``.
        """
        current = step
        errors: List[str] = []
        attempt_number = 0
        result: Optional[ActionResult] = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.settings.retry_delay_seconds),
            retry=retry_if_exception_type(StepExecutionError) & retry_if_not_exception_type(BrowserClosedError),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    if attempt_number > 1:
                        current = await self.refine_for_retry(current, attempt_number - 1, errors, page_state)
                    result = await self._run_attempt(current, attempt_number, errors)
        except BrowserClosedError as e:
            print(f"[RETRY] 🛑 Browser closed on attempt {attempt_number}, not retrying")
            return StepOutcome(
                success=False,
                error=str(e),
                attempts=attempt_number,
                can_continue=False,
                final_step=current,
            )
        except StepExecutionError:
            last_error = errors[-1] if errors else "unknown error"
            print(f"[RETRY] 💥 All {attempt_number} attempts failed. Final error: {last_error}")
            return StepOutcome(
                success=False,
                error=f"Failed after {attempt_number} attempts. Last error: {last_error}",
                attempts=attempt_number,
                can_continue=True,
                final_step=current,
            )

        if attempt_number > 1:
            print(f"[RETRY] ✅ Step succeeded on attempt {attempt_number} after refinement")
        return StepOutcome(
            success=True,
            extracted_data=result.data if result else None,
            screenshot=result.screenshot if result else None,
            attempts=attempt_number,
            can_continue=True,
            final_step=current,
        )

    async def _run_attempt(self, step: ActionStep, attempt_number: int, errors: List[str]) -> ActionResult:
        print(f"[RETRY] 🔄 Attempt {attempt_number}/{self.max_attempts}: {step.description}")
        if step.selector:
            print(f"[RETRY]    🎯 Using selector: {step.selector}")

        try:
            return await asyncio.wait_for(
                self.executor.execute_step(step),
                timeout=self.settings.step_timeout_seconds
            )
        except asyncio.TimeoutError:
            error = StepTimeoutError(
                f"Step timed out after {self.settings.step_timeout_seconds}s", step_id=step.id
            )
            errors.append(str(error))
            print(f"[RETRY]    ⏱️ Attempt {attempt_number} timed out")
            raise error
        except StepExecutionError as e:
            errors.append(str(e))
            print(f"[RETRY]    ❌ Attempt {attempt_number} failed: {e}")
            raise

    async def refine_for_retry(self, step: ActionStep, failed_attempt: int, errors: List[str],
                               page_state: Optional[PageState]) -> ActionStep:
        """
        Choose the step for the next attempt after ``failed_attempt`` failed.

        Refinement problems are reported and the unrefined step is reused.
        """
        try:
            if failed_attempt == 1:
                refined = self.refiner.refine(step, self.store, page_state.content if page_state else "")
            elif failed_attempt == 2:
                refined = self._alternative_selector(step)
                if refined.selector == step.selector:
                    refined = await self._ai_refine(step, errors, page_state)
            else:
                refined = await self._ai_refine(step, errors, page_state)
        except Exception as e:
            print(f"[RETRY]    ⚠️ Refinement failed: {e}")
            return step

        if refined.selector != step.selector:
            print(f"[RETRY]    🎯 Refined selector: '{step.selector}' → '{refined.selector}'")
        else:
            print("[RETRY]    ⚠️ No refinement found, retrying with same selector")
        return refined

    @staticmethod
    def _alternative_selector(step: ActionStep) -> ActionStep:
        if not step.selector:
            return step
        alternative = generate_alternative_selector(step.selector)
        if alternative == step.selector:
            return step
        return step.with_target(step.target.model_copy(update={"selector": alternative}))

    async def _ai_refine(self, step: ActionStep, errors: List[str], page_state: Optional[PageState]) -> ActionStep:
        try:
            page_state = await self.executor.capture_state(include_screenshot=False)
        except Exception as e:
            print(f"[RETRY]    ⚠️ Could not capture fresh page state: {e}")

        target = await self.planner.propose_target(step, errors, page_state)
        if target is None or not target.selector:
            return step
        return step.with_target(target)
