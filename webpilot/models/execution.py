"""
Execution Models

Records produced while executing a plan: per-step results, form metadata,
retry outcomes and the final task result.
"""

from datetime import datetime
from typing import Any, List, Optional
from pydantic import BaseModel, Field

from webpilot.models.page import PageState
from webpilot.models.plan import ActionStep, HierarchicalPlan


class StepExecutionResult(BaseModel):
    """
    Accepted outcome of one step.

    Created once per step (not per retry attempt) and appended to the step
    context store in execution order.
    """
    step: ActionStep
    success: bool
    error: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    page_state_before: Optional[PageState] = None
    page_state_after: Optional[PageState] = None
    selector_used: Optional[str] = None
    value_entered: Optional[str] = None
    extracted_data: Optional[Any] = None

    class Config:
        frozen = True


class FormElementContext(BaseModel):
    """Metadata about a form element the run has interacted with. Keyed by selector."""
    selector: str
    type: str = Field(..., description="input, button, checkbox, radio or clickable")
    name: Optional[str] = None
    value: Optional[str] = None
    filled: bool = False
    step_index: int = 0


class StepOutcome(BaseModel):
    """Result of running one step through the retry controller."""
    success: bool
    error: Optional[str] = None
    extracted_data: Optional[Any] = None
    attempts: int = 0
    can_continue: bool = True
    screenshot: Optional[bytes] = None
    final_step: ActionStep = Field(..., description="Step as it stood on the last attempt")


class SubPlanResult(BaseModel):
    """Outcome of one sub-plan."""
    sub_plan_id: str
    objective: str
    success: bool
    steps: List[StepExecutionResult] = Field(default_factory=list)


class TaskResult(BaseModel):
    """
    Final result of an objective.

    ``success`` is true when at least one sub-plan succeeded. Callers that need
    all-or-nothing semantics can inspect ``sub_plan_results``.
    """
    success: bool
    steps: List[StepExecutionResult] = Field(default_factory=list)
    error: Optional[str] = None
    screenshots: List[bytes] = Field(default_factory=list)
    extracted_data: Optional[Any] = None
    plan: Optional[HierarchicalPlan] = None
    duration_ms: int = 0
    sub_plan_results: List[SubPlanResult] = Field(default_factory=list)

    class Config:
        ser_json_bytes = "base64"
