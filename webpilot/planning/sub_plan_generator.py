"""
Sub-Plan Generator

Turns each sub-objective into a SubPlan. Two strategies, one per run:

- eager: every sub-plan's steps are generated up front, concurrently, and
  collected positionally so sub-plan order is preserved.
- lazy: sub-plans start empty and ``populate`` generates their steps right
  before execution, with the step context summary as extra prompt context.
"""

import asyncio
from typing import List, Optional

from webpilot.core.exceptions import PlanningError
from webpilot.models.page import PageState
from webpilot.models.plan import GlobalPlan, SubObjective, SubPlan, TaskContext
from webpilot.planning.action_planner import ActionPlanner


ESTIMATED_STEP_DURATION_MS = 5000


class SubPlanGenerator:
    """Builds sub-plans for the sub-objectives of a global plan."""

    def __init__(self, planner: ActionPlanner):
        self.planner = planner

    @staticmethod
    def build_sub_plan(sub_objective: SubObjective, index: int, total: int, global_objective: str,
                       parent: Optional[TaskContext] = None) -> SubPlan:
        """Empty sub-plan with its scoped context."""
        parent_constraints = list(parent.constraints) if parent else []
        context = TaskContext(
            objective=sub_objective.text,
            constraints=parent_constraints + [
                f"This is sub-plan {index + 1} of {total} for: {global_objective}",
                f"Focus specifically on: {sub_objective.text}",
            ],
            variables=dict(parent.variables) if parent else {},
            current_state=parent.current_state if parent else None,
        )
        return SubPlan(
            objective=sub_objective.text,
            estimated_duration=sub_objective.estimated_duration,
            dependencies=[f"sub-plan-{index - 1}"] if index > 0 else [],
            priority=index + 1,
            context=context,
        )

    def create_lazy_sub_plans(self, global_plan: GlobalPlan, objective: str,
                              context: Optional[TaskContext] = None) -> List[SubPlan]:
        total = len(global_plan.sub_objectives)
        return [
            self.build_sub_plan(sub_objective, index, total, objective, context)
            for index, sub_objective in enumerate(global_plan.sub_objectives)
        ]

    async def generate_all(self, global_plan: GlobalPlan, objective: str,
                           context: Optional[TaskContext] = None,
                           page_state: Optional[PageState] = None) -> List[SubPlan]:
        """
        Generate every sub-plan concurrently.

        A sub-plan whose generation fails is returned with no steps; its
        siblings are unaffected.
        """
        sub_plans = self.create_lazy_sub_plans(global_plan, objective, context)
        print(f"[SUB-PLAN] ⚡ Generating {len(sub_plans)} sub-plan(s) concurrently")

        results = await asyncio.gather(
            *(self.populate(sub_plan, page_state) for sub_plan in sub_plans),
            return_exceptions=True
        )

        generated = []
        for sub_plan, result in zip(sub_plans, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                print(f"[SUB-PLAN] ⚠️ Generation failed for '{sub_plan.objective}': {result}")
                generated.append(sub_plan)
            else:
                generated.append(result)
        return generated

    async def populate(self, sub_plan: SubPlan, page_state: Optional[PageState] = None,
                       context_summary: Optional[str] = None) -> SubPlan:
        """
        Return a copy of ``sub_plan`` with generated steps.

        Raises:
            PlanningError: the planner could not produce steps
        """
        update = {}
        if context_summary:
            update["execution_summary"] = context_summary
        if page_state is not None:
            update["current_state"] = page_state
        context = sub_plan.context.model_copy(update=update)

        steps, _ = await self.planner.create_steps(sub_plan.objective, context, page_state)
        if not steps:
            raise PlanningError(f"No steps generated for '{sub_plan.objective}'")

        estimate = max(sub_plan.estimated_duration, len(steps) * ESTIMATED_STEP_DURATION_MS)
        return sub_plan.model_copy(update={"steps": steps, "context": context, "estimated_duration": estimate})
