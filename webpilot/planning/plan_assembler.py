"""
Plan Assembler

Pure aggregation of a GlobalPlan and its SubPlans into one HierarchicalPlan.
"""

from datetime import datetime
from typing import List

from webpilot.core.exceptions import PlanningError
from webpilot.models.plan import GlobalPlan, HierarchicalPlan, SubPlan


class PlanAssembler:
    """Builds the root plan aggregate."""

    @staticmethod
    def total_duration(sub_plans: List[SubPlan]) -> int:
        return sum(sub_plan.estimated_duration for sub_plan in sub_plans)

    def assemble(self, objective: str, global_plan: GlobalPlan, sub_plans: List[SubPlan]) -> HierarchicalPlan:
        """
        Raises:
            PlanningError: no sub-plans, or sub-plans that do not line up with the sub-objectives
        """
        if not sub_plans:
            raise PlanningError("Cannot assemble a plan without sub-plans")
        if len(sub_plans) != len(global_plan.sub_objectives):
            raise PlanningError(
                f"Sub-plan count ({len(sub_plans)}) does not match sub-objective count "
                f"({len(global_plan.sub_objectives)})"
            )

        plan = HierarchicalPlan(
            global_objective=objective,
            sub_plans=list(sub_plans),
            total_estimated_duration=self.total_duration(sub_plans),
            planning_strategy=global_plan.planning_strategy,
            metadata={
                "reasoning": global_plan.reasoning,
                "sub_objective_count": len(global_plan.sub_objectives),
                "strategy": global_plan.planning_strategy.value,
                "total_steps": sum(len(sub_plan.steps) for sub_plan in sub_plans),
                "created_at": datetime.now().isoformat(),
            },
        )
        print(f"[ASSEMBLER] 📋 Assembled plan {plan.id}: {len(sub_plans)} sub-plan(s), "
              f"{plan.metadata['total_steps']} step(s), ~{plan.total_estimated_duration}ms")
        return plan

    def replace_sub_plan(self, plan: HierarchicalPlan, index: int, sub_plan: SubPlan) -> None:
        """Swap in a regenerated sub-plan and keep totals consistent."""
        plan.sub_plans[index] = sub_plan
        plan.total_estimated_duration = self.total_duration(plan.sub_plans)
        plan.metadata["total_steps"] = plan.total_steps
