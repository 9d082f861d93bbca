"""
Task Engine

Entry point for running an objective end to end:

    objective -> global plan -> sub-plans (eager or lazy) -> hierarchical plan
              -> plan execution -> TaskResult

One engine per run. The browser driver, AI generator and execution stream
are passed in; every other component is built here and owned by the engine.

Usage:
    engine = TaskEngine(driver=driver, ai=LLMService(settings), stream=ExecutionStream())
    result = await engine.execute_task("Open example.com and read the heading")
"""

import time
import uuid
from typing import Literal, Optional

from webpilot.agents.pause_gate import PauseGate
from webpilot.agents.plan_execution_manager import PlanExecutionManager
from webpilot.agents.retry_controller import RetryController
from webpilot.agents.step_context import StepContextStore
from webpilot.agents.step_refiner import ContextualStepRefiner
from webpilot.browser.action_executor import ActionExecutor
from webpilot.browser.driver import BrowserDriver
from webpilot.core.config import Settings, settings as default_settings
from webpilot.core.exceptions import PlanningError
from webpilot.models.execution import TaskResult
from webpilot.models.page import PageState
from webpilot.models.plan import TaskContext
from webpilot.planning.action_planner import ActionPlanner
from webpilot.planning.global_planner import GlobalPlanner
from webpilot.planning.navigation_classifier import NavigationClassifier, classify_navigation
from webpilot.planning.plan_adapter import PlanAdapter
from webpilot.planning.plan_assembler import PlanAssembler
from webpilot.planning.sub_plan_generator import SubPlanGenerator
from webpilot.services.llm_service import AITextGenerator
from webpilot.streaming.execution_stream import ExecutionStream
from webpilot.utils.helpers import format_duration_ms


NAVIGATION_CONSTRAINT = "Begin with a navigate step that opens the site named in the objective."
BLANK_URLS = {"", "about:blank"}


class TaskEngine:
    """Hierarchical planning and execution for one browser session."""

    def __init__(
        self,
        driver: BrowserDriver,
        ai: AITextGenerator,
        stream: Optional[ExecutionStream] = None,
        settings: Optional[Settings] = None,
        planning_mode: Optional[Literal["lazy", "eager"]] = None,
        navigation_classifier: NavigationClassifier = classify_navigation,
        pause_gate: Optional[PauseGate] = None,
    ):
        self.settings = settings or default_settings
        self.planning_mode = planning_mode or self.settings.planning_mode
        self.stream = stream or ExecutionStream(self.settings)
        self.navigation_classifier = navigation_classifier
        self.pause_gate = pause_gate or PauseGate()

        self.executor = ActionExecutor(driver, self.stream, self.settings)
        self.planner = ActionPlanner(ai, self.settings)
        self.global_planner = GlobalPlanner(self.planner)
        self.sub_plan_generator = SubPlanGenerator(self.planner)
        self.assembler = PlanAssembler()
        self.adapter = PlanAdapter(self.planner)
        self.store = StepContextStore()
        self.refiner = ContextualStepRefiner()
        self.retry_controller = RetryController(
            self.executor, self.planner, self.store, self.refiner, self.settings
        )
        self.manager = PlanExecutionManager(
            executor=self.executor,
            retry_controller=self.retry_controller,
            store=self.store,
            stream=self.stream,
            adapter=self.adapter,
            generator=self.sub_plan_generator,
            assembler=self.assembler,
            refiner=self.refiner,
            pause_gate=self.pause_gate,
        )

    def pause(self) -> None:
        self.pause_gate.pause()

    def resume(self) -> bool:
        return self.pause_gate.resume()

    async def _initial_state(self) -> Optional[PageState]:
        try:
            return await self.executor.capture_state(include_screenshot=False)
        except Exception as e:
            print(f"[ENGINE] 🔍 No active page available for context ({e}), planning from scratch")
            return None

    async def execute_task(self, objective: str, context: Optional[TaskContext] = None,
                           session_id: Optional[str] = None) -> TaskResult:
        """
        Plan and execute ``objective``.

        Never raises for planning or step failures; the returned TaskResult
        carries ``success``, the per-step results and an error string.
        """
        started = time.monotonic()
        session_id = session_id or f"session-{uuid.uuid4().hex[:12]}"
        print(f"[ENGINE] 🤖 Processing objective: {objective}")

        self.stream.start_session(session_id)
        self.store.reset()

        context = context.model_copy(deep=True) if context else TaskContext(objective=objective)
        try:
            state = await self._initial_state()
            if state is not None:
                context.current_state = state

            if self.navigation_classifier(objective) and (state is None or state.url in BLANK_URLS):
                context.constraints.append(NAVIGATION_CONSTRAINT)

            global_plan = await self.global_planner.create_global_plan(objective, context)

            if self.planning_mode == "eager":
                sub_plans = await self.sub_plan_generator.generate_all(global_plan, objective, context, state)
            else:
                sub_plans = self.sub_plan_generator.create_lazy_sub_plans(global_plan, objective, context)

            plan = self.assembler.assemble(objective, global_plan, sub_plans)
            self.stream.notify_hierarchical_plan_created(plan)
            self.stream.notify_plan_created([step for sub_plan in plan.sub_plans for step in sub_plan.steps])

            result = await self.manager.execute_plan(plan, context)

        except PlanningError as e:
            print(f"[ENGINE] ❌ Planning failed: {e}")
            result = TaskResult(success=False, steps=[], error=str(e))
        except Exception as e:
            print(f"[ENGINE] ❌ Task execution failed: {type(e).__name__}: {e}")
            result = TaskResult(success=False, steps=self.store.results, error=str(e) or type(e).__name__)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        self.stream.notify_execution_complete(
            success=result.success,
            total_steps=len(result.steps),
            successful_steps=sum(1 for step in result.steps if step.success),
            duration_ms=result.duration_ms,
            error=result.error,
        )
        self.stream.end_session()
        status = "✅ succeeded" if result.success else "❌ failed"
        print(f"[ENGINE] {status} in {format_duration_ms(result.duration_ms)} ({len(result.steps)} step(s))")
        return result
