"""
Plan Adapter

Regenerates the not-yet-executed steps of a sub-plan after a failure or
after an extract step produced data. Adaptation is best effort: on any
error the original remaining steps come back unchanged and the caller is
told nothing was adapted.
"""

from typing import Any, List, Optional, Tuple

from webpilot.models.page import PageState
from webpilot.models.plan import ActionStep
from webpilot.planning.action_planner import ActionPlanner


class PlanAdapter:
    """Best-effort regeneration of remaining steps."""

    def __init__(self, planner: ActionPlanner):
        self.planner = planner

    async def adapt_remaining(self, remaining_steps: List[ActionStep], page_state: PageState,
                              failure: Optional[str] = None,
                              extracted_data: Any = None) -> Tuple[List[ActionStep], bool]:
        """
        Returns:
            (steps, adapted) where ``adapted`` is False when the original
            steps were kept because adaptation failed.
        """
        reason = "failure" if failure else "extracted data"
        print(f"[ADAPTER] 🔧 Adapting {len(remaining_steps)} remaining step(s) after {reason}")
        try:
            steps = await self.planner.adapt_steps(
                remaining_steps, page_state, failure=failure, extracted_data=extracted_data
            )
        except Exception as e:
            print(f"[ADAPTER] ⚠️ Adaptation failed, keeping original steps: {e}")
            return list(remaining_steps), False

        print(f"[ADAPTER] ✅ Regenerated {len(steps)} step(s)")
        return steps, True
