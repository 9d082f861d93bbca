"""
Plan Execution Manager

Drives a HierarchicalPlan: sub-plans strictly in order, steps strictly in
order, one browser operation at a time.

Per sub-plan: pending -> running -> succeeded | failed. A failed sub-plan
is logged and the next one still runs; the run succeeds when at least one
sub-plan succeeded.

Per step:
    pause gate -> capture state -> contextual refinement -> step_start
    -> retry controller -> capture state -> record result -> step_complete | step_error
    -> plan adaptation (after a failure, or after an extract that produced data)
"""

import time
from typing import Any, Dict, List, Optional, Tuple

from webpilot.agents.pause_gate import PauseGate
from webpilot.agents.retry_controller import RetryController
from webpilot.agents.step_context import StepContextStore
from webpilot.agents.step_refiner import ContextualStepRefiner, needs_refinement
from webpilot.browser.action_executor import ActionExecutor
from webpilot.models.execution import StepExecutionResult, StepOutcome, SubPlanResult, TaskResult
from webpilot.models.page import PageState
from webpilot.models.plan import ActionStep, ActionType, HierarchicalPlan, SubPlan, SubPlanStatus, TaskContext
from webpilot.planning.plan_adapter import PlanAdapter
from webpilot.planning.plan_assembler import PlanAssembler
from webpilot.planning.sub_plan_generator import SubPlanGenerator
from webpilot.streaming.execution_stream import ExecutionStream


SCREENSHOT_STEP_TYPES = {ActionType.NAVIGATE, ActionType.CLICK}
VALUE_STEP_TYPES = {ActionType.TYPE, ActionType.FILL}


class _SubPlanRun:
    """Mutable bookkeeping for one sub-plan execution."""

    def __init__(self, sub_plan: SubPlan):
        self.pending: List[ActionStep] = list(sub_plan.steps)
        self.results: List[StepExecutionResult] = []
        self.adaptation_enabled = True


class PlanExecutionManager:
    """Sequential executor for hierarchical plans."""

    def __init__(self, executor: ActionExecutor, retry_controller: RetryController, store: StepContextStore,
                 stream: ExecutionStream, adapter: PlanAdapter, generator: SubPlanGenerator,
                 assembler: Optional[PlanAssembler] = None, refiner: Optional[ContextualStepRefiner] = None,
                 pause_gate: Optional[PauseGate] = None):
        self.executor = executor
        self.retry_controller = retry_controller
        self.store = store
        self.stream = stream
        self.adapter = adapter
        self.generator = generator
        self.assembler = assembler or PlanAssembler()
        self.refiner = refiner or ContextualStepRefiner()
        self.pause_gate = pause_gate or PauseGate()

        self._step_counter = 0
        self._screenshots: List[bytes] = []
        self._extracted: Dict[str, Any] = {}

    # =========================================================================
    # PLAN LEVEL
    # =========================================================================

    async def execute_plan(self, plan: HierarchicalPlan, context: TaskContext) -> TaskResult:
        """Execute every sub-plan in order and aggregate the outcome."""
        started = time.monotonic()
        self._step_counter = 0
        self._screenshots = []
        self._extracted = {}

        sub_plan_results: List[SubPlanResult] = []
        total = len(plan.sub_plans)
        print(f"[PLAN EXECUTION] 🚀 Executing plan {plan.id} with {total} sub-plan(s)")

        for index in range(total):
            sub_plan_result = await self._execute_sub_plan_at(plan, index, context)
            sub_plan_results.append(sub_plan_result)
            status = "✅ succeeded" if sub_plan_result.success else "❌ failed, continuing"
            print(f"[PLAN EXECUTION] Sub-plan {index + 1}/{total} {status}")

        succeeded = sum(1 for result in sub_plan_results if result.success)
        failed = total - succeeded
        all_steps = [step for result in sub_plan_results for step in result.steps]

        error = None
        if succeeded == 0:
            error = f"All {total} sub-plan(s) failed"
        elif failed:
            error = f"{failed} of {total} sub-plan(s) failed"

        return TaskResult(
            success=succeeded > 0,
            steps=all_steps,
            error=error,
            screenshots=list(self._screenshots),
            extracted_data=self._final_extracted_data(),
            plan=plan,
            duration_ms=int((time.monotonic() - started) * 1000),
            sub_plan_results=sub_plan_results,
        )

    def _final_extracted_data(self) -> Any:
        if not self._extracted:
            return None
        values = list(self._extracted.values())
        return values[0] if len(values) == 1 else values

    async def _execute_sub_plan_at(self, plan: HierarchicalPlan, index: int, context: TaskContext) -> SubPlanResult:
        total = len(plan.sub_plans)
        sub_plan = plan.sub_plans[index]

        if not sub_plan.is_populated:
            populated = await self._generate_just_in_time(sub_plan)
            if populated is None:
                sub_plan.status = SubPlanStatus.FAILED
                self.stream.notify_sub_plan_start(index, sub_plan.id, sub_plan.objective, total, 0)
                self.stream.notify_sub_plan_completed(index, sub_plan.id, False, 0, 0)
                return SubPlanResult(sub_plan_id=sub_plan.id, objective=sub_plan.objective, success=False)
            self.assembler.replace_sub_plan(plan, index, populated)
            sub_plan = populated

        sub_plan.status = SubPlanStatus.RUNNING
        self.stream.notify_sub_plan_start(index, sub_plan.id, sub_plan.objective, total, len(sub_plan.steps))
        print(f"[PLAN EXECUTION] 🎯 Sub-plan {index + 1}/{total}: {sub_plan.objective}")

        run = await self.execute_sub_plan(sub_plan, context)

        success = bool(run.results) and all(result.success for result in run.results)
        sub_plan.status = SubPlanStatus.SUCCEEDED if success else SubPlanStatus.FAILED
        sub_plan.steps = run.pending
        plan.metadata["total_steps"] = plan.total_steps

        completed = sum(1 for result in run.results if result.success)
        self.stream.notify_sub_plan_completed(index, sub_plan.id, success, completed, len(run.pending))
        return SubPlanResult(sub_plan_id=sub_plan.id, objective=sub_plan.objective, success=success, steps=run.results)

    async def _generate_just_in_time(self, sub_plan: SubPlan) -> Optional[SubPlan]:
        print(f"[PLAN EXECUTION] 🧩 Generating steps just in time for: {sub_plan.objective}")
        page_state = await self._capture_state()
        try:
            return await self.generator.populate(sub_plan, page_state, self.store.export_context_summary())
        except Exception as e:
            print(f"[PLAN EXECUTION] ❌ Could not generate steps for '{sub_plan.objective}': {e}")
            return None

    # =========================================================================
    # STEP LEVEL
    # =========================================================================

    async def execute_sub_plan(self, sub_plan: SubPlan, context: TaskContext) -> _SubPlanRun:
        """Execute the steps of one sub-plan, adapting the remainder as needed."""
        run = _SubPlanRun(sub_plan)
        position = 0

        while position < len(run.pending):
            step = run.pending[position]
            outcome, result = await self.execute_step(step)
            run.pending[position] = outcome.final_step
            run.results.append(result)

            remaining = run.pending[position + 1:]
            if result.success and result.step.type == ActionType.EXTRACT and result.extracted_data:
                context.extracted_data = result.extracted_data
                sub_plan.context.extracted_data = result.extracted_data
                if remaining and run.adaptation_enabled:
                    await self._adapt(run, position, result, extracted_data=result.extracted_data)

            if not result.success:
                if remaining and run.adaptation_enabled:
                    await self._adapt(run, position, result, failure=result.error,
                                      extracted_data=context.extracted_data)
                if not outcome.can_continue:
                    print("[PLAN EXECUTION] 🛑 Step cannot continue, abandoning rest of sub-plan")
                    run.pending = run.pending[:position + 1]
                    break

            position += 1

        return run

    async def _adapt(self, run: _SubPlanRun, position: int, result: StepExecutionResult,
                     failure: Optional[str] = None, extracted_data: Any = None) -> None:
        page_state = result.page_state_after or await self._capture_state()
        remaining = run.pending[position + 1:]
        steps, adapted = await self.adapter.adapt_remaining(
            remaining, page_state, failure=failure, extracted_data=extracted_data
        )
        if not adapted:
            run.adaptation_enabled = False
            return
        run.pending = run.pending[:position + 1] + steps

    async def execute_step(self, step: ActionStep) -> Tuple[StepOutcome, StepExecutionResult]:
        """Run one step end to end and record it."""
        await self.pause_gate.wait_if_paused()

        before = await self._capture_state()
        if needs_refinement(step):
            step = self.refiner.refine(step, self.store, before.content)

        step_index = self._step_counter
        self._step_counter += 1
        self.stream.notify_step_start(step_index, step)
        started = time.monotonic()

        outcome = await self.retry_controller.execute_step_with_retry(step, before)
        after = await self._capture_state(retry=True)
        final_step = outcome.final_step

        result = StepExecutionResult(
            step=final_step,
            success=outcome.success,
            error=outcome.error,
            page_state_before=before,
            page_state_after=after,
            selector_used=final_step.selector,
            value_entered=final_step.value if outcome.success and final_step.type in VALUE_STEP_TYPES else None,
            extracted_data=outcome.extracted_data if final_step.type == ActionType.EXTRACT else None,
        )
        self.store.add_step_result(result)

        has_screenshot = False
        if outcome.success and final_step.type in SCREENSHOT_STEP_TYPES and after.screenshot:
            self._screenshots.append(after.screenshot)
            has_screenshot = True
        if outcome.screenshot:
            self._screenshots.append(outcome.screenshot)
            has_screenshot = True
        if result.success and result.extracted_data:
            self._extracted[final_step.id] = result.extracted_data

        duration_ms = int((time.monotonic() - started) * 1000)
        if outcome.success:
            print(f"[PLAN EXECUTION] ✅ Step {step_index + 1} complete: {final_step.description}")
            self.stream.notify_step_complete(
                step_index, final_step, duration_ms=duration_ms, selector_used=result.selector_used,
                extracted_data=result.extracted_data, has_screenshot=has_screenshot
            )
        else:
            print(f"[PLAN EXECUTION] ❌ Step {step_index + 1} failed: {outcome.error}")
            self.stream.notify_step_error(step_index, final_step, outcome.error or "Unknown error", outcome.attempts)

        return outcome, result

    async def _capture_state(self, retry: bool = False) -> PageState:
        """
        Capture page state.

        When the page is unavailable, fall back to the last page seen by the
        context store, then to a minimal state.
        """
        attempts = 2 if retry else 1
        last_error: Optional[Exception] = None
        for _ in range(attempts):
            try:
                return await self.executor.capture_state()
            except Exception as e:
                last_error = e
        last_page = self.store.get_current_page()
        if last_page is not None:
            print(f"[PLAN EXECUTION] ⚠️ Could not capture page state, reusing last known page: {last_error}")
            return last_page
        print(f"[PLAN EXECUTION] ⚠️ Could not capture page state, using minimal state: {last_error}")
        return PageState.minimal()
