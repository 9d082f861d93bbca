"""
Action Planner

Turns one instruction into an ordered list of ActionSteps, regenerates the
remaining steps of a plan, and proposes a corrected target for a failing
step. All three go through the AI text generator and the response parser.

Transient generator errors are retried with tenacity; unparsable output is
not retried and surfaces as PlanningError.
"""

from typing import Any, List, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from webpilot.core.config import Settings, settings as default_settings
from webpilot.core.exceptions import PlanningError
from webpilot.models.page import PageState
from webpilot.models.plan import ActionStep, StepTarget, TaskContext
from webpilot.planning.response_parser import parse_action_steps
from webpilot.prompts.planner_prompts import (
    PLAN_ADAPTATION_SYSTEM_PROMPT,
    build_action_planning_prompt,
    build_action_planning_system_prompt,
    build_adaptation_prompt,
    build_step_refinement_prompt,
)
from webpilot.services.llm_service import AITextGenerator
from webpilot.utils.page_content import extract_interactive_elements, extract_readable_text


class ActionPlanner:
    """Step-level planning on top of an AI text generator."""

    def __init__(self, ai: AITextGenerator, settings: Optional[Settings] = None):
        """
        Args:
            ai: Text generator used for every planning call
            settings: Application settings (defaults to the global instance)
        """
        self.ai = ai
        self.settings = settings or default_settings

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Call the generator, retrying transient failures."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.settings.llm_max_attempts),
            wait=wait_exponential(multiplier=self.settings.llm_retry_wait_seconds, max=10),
            # Cancellation is a BaseException and must never be retried
            retry=retry_if_exception_type(Exception) & retry_if_not_exception_type(PlanningError),
            reraise=True,
        ):
            with attempt:
                return await self.ai.generate_text(prompt, system_prompt=system_prompt)

    def _system_prompt_for(self, page_state: Optional[PageState]) -> str:
        html = page_state.content if page_state else ""
        return build_action_planning_system_prompt(
            page_url=page_state.url if page_state else "",
            page_title=page_state.title if page_state else "",
            page_text=extract_readable_text(html, self.settings.page_content_limit),
            interactive_elements=extract_interactive_elements(html),
        )

    async def create_steps(self, instruction: str, context: TaskContext,
                           page_state: Optional[PageState] = None) -> Tuple[List[ActionStep], str]:
        """
        Plan the steps for one instruction.

        Raises:
            PlanningError: the generator failed or its output had the wrong shape
        """
        page_state = page_state or context.current_state
        prompt = build_action_planning_prompt(
            instruction,
            constraints=context.constraints,
            variables=context.variables,
            extracted_data=context.extracted_data,
            execution_summary=context.execution_summary,
        )
        try:
            response = await self.generate(prompt, system_prompt=self._system_prompt_for(page_state))
        except PlanningError:
            raise
        except Exception as e:
            raise PlanningError(f"Failed to plan steps for '{instruction}': {e}") from e

        steps, reasoning = parse_action_steps(response)
        print(f"[PLANNER] ✅ Planned {len(steps)} step(s) for: {instruction}")
        return steps, reasoning

    async def adapt_steps(self, remaining_steps: List[ActionStep], page_state: PageState,
                          failure: Optional[str] = None, extracted_data: Any = None) -> List[ActionStep]:
        """
        Regenerate not-yet-executed steps against the current page.

        Raises:
            PlanningError: the generator failed or its output had the wrong shape
        """
        prompt = build_adaptation_prompt(
            [step.model_dump(mode="json", exclude={"id"}) for step in remaining_steps],
            page_url=page_state.url,
            page_title=page_state.title,
            page_text=extract_readable_text(page_state.content, self.settings.page_content_limit),
            failure=failure,
            extracted_data=extracted_data,
        )
        try:
            response = await self.generate(prompt, system_prompt=PLAN_ADAPTATION_SYSTEM_PROMPT)
        except Exception as e:
            raise PlanningError(f"Plan adaptation failed: {e}") from e

        steps, _ = parse_action_steps(response, allow_empty=True)
        return steps

    async def propose_target(self, step: ActionStep, errors: List[str],
                             page_state: Optional[PageState]) -> Optional[StepTarget]:
        """
        Ask for a corrected target for a failing step.

        Only the target of the first returned step is used; the caller keeps
        every other field of the original step.
        """
        instruction = build_step_refinement_prompt(
            step_type=step.type.value,
            description=step.description,
            failed_selector=step.selector or "",
            errors=errors,
            page_url=page_state.url if page_state else "",
            page_title=page_state.title if page_state else "",
        )
        context = TaskContext(objective="Refine selector", current_state=page_state)
        steps, _ = await self.create_steps(instruction, context, page_state)
        return steps[0].target if steps and steps[0].target else None

