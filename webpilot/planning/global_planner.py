"""
Global Plan Decomposer

Splits an objective into ordered sub-objectives plus a strategy label.
There is no fallback decomposition: output that cannot be parsed raises
PlanningError and the run ends there.
"""

from typing import Optional

from webpilot.core.exceptions import PlanningError
from webpilot.models.plan import GlobalPlan, TaskContext
from webpilot.planning.action_planner import ActionPlanner
from webpilot.planning.response_parser import parse_global_plan
from webpilot.prompts.planner_prompts import GLOBAL_PLANNING_SYSTEM_PROMPT, build_global_plan_prompt


class GlobalPlanner:
    """Decomposes objectives through the action planner's generator."""

    def __init__(self, planner: ActionPlanner):
        self.planner = planner

    async def create_global_plan(self, objective: str, context: Optional[TaskContext] = None) -> GlobalPlan:
        """
        Decompose ``objective``.

        Raises:
            PlanningError: generation failed or the response had no usable sub-objectives
        """
        context = context or TaskContext(objective=objective)
        state = context.current_state
        prompt = build_global_plan_prompt(
            objective,
            context.constraints,
            page_url=state.url if state else "",
            page_title=state.title if state else "",
        )

        print(f"[GLOBAL PLANNER] 🎯 Decomposing objective: {objective}")
        try:
            response = await self.planner.generate(prompt, system_prompt=GLOBAL_PLANNING_SYSTEM_PROMPT)
        except Exception as e:
            raise PlanningError(f"Objective decomposition failed: {e}") from e

        plan = parse_global_plan(response)
        print(f"[GLOBAL PLANNER] ✅ {len(plan.sub_objectives)} sub-objective(s), "
              f"strategy={plan.planning_strategy.value}")
        return plan
