"""
Plan Models

Two-level plan structure: a global objective is split into sub-objectives,
each sub-objective owns a flat list of action steps.

Steps are frozen. Refinement replaces a step with a copy built through
``model_copy(update=...)`` and never edits it in place.

Usage:
    from webpilot.models.plan import ActionStep, ActionType, StepTarget

    step = ActionStep(
        type=ActionType.CLICK,
        description="Click the login button",
        target=StepTarget(selector="button#login", description="Login button")
    )
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from webpilot.models.page import PageState


class ActionType(str, Enum):
    """Browser operations a step can perform."""
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE = "type"
    FILL = "fill"
    WAIT = "wait"
    EXTRACT = "extract"
    SCROLL = "scroll"
    SCREENSHOT = "screenshot"


class StepTarget(BaseModel):
    """Element a step acts upon."""
    selector: str = Field(default="", description="CSS or engine-specific selector")
    description: str = Field(default="", description="Human-readable element description")
    coordinates: Optional[Dict[str, float]] = Field(default=None, description="Optional x/y position")

    class Config:
        frozen = True


class StepCondition(BaseModel):
    """Wait condition attached to a step."""
    timeout: Optional[int] = Field(default=None, description="Timeout in milliseconds")

    class Config:
        frozen = True


class ActionStep(BaseModel):
    """One atomic browser operation."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique step identifier")
    type: ActionType = Field(..., description="Operation to perform")
    description: str = Field(..., description="What the step does")
    target: Optional[StepTarget] = Field(default=None, description="Element to act upon")
    value: Optional[str] = Field(default=None, description="Text, URL or JSON payload for the step")
    condition: Optional[StepCondition] = Field(default=None, description="Optional wait condition")

    @property
    def selector(self) -> Optional[str]:
        """Selector of the target, if any."""
        return self.target.selector if self.target and self.target.selector else None

    def with_target(self, target: StepTarget) -> "ActionStep":
        """Return a new step identical to this one except for its target."""
        return self.model_copy(update={"target": target})

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "id": "2f4c9d1e-6a1b-4d2e-9d7f-0c3b5a8e1f20",
                "type": "click",
                "description": "Click the submit button",
                "target": {"selector": "button[type='submit']", "description": "Submit button"},
                "value": None,
                "condition": None
            }
        }


class SubObjective(BaseModel):
    """One decomposed piece of the global objective."""
    text: str = Field(..., description="Sub-objective instruction")
    estimated_duration: int = Field(default=10000, description="Estimated duration in milliseconds")


class PlanningStrategy(str, Enum):
    """Strategy label returned by the decomposer."""
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


class GlobalPlan(BaseModel):
    """Decomposition of an objective into ordered sub-objectives."""
    sub_objectives: List[SubObjective] = Field(..., description="Ordered sub-objectives")
    planning_strategy: PlanningStrategy = Field(default=PlanningStrategy.SEQUENTIAL)
    reasoning: str = Field(default="", description="Why the objective was split this way")

    class Config:
        frozen = True


class SubPlanStatus(str, Enum):
    """Execution state of a sub-plan."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TaskContext(BaseModel):
    """
    Context handed to the planner for one objective or sub-objective.

    Carries constraints and variables plus whatever the run has learned so far
    (page state, extracted data, summary of executed steps).
    """
    id: str = Field(default_factory=lambda: f"task-{uuid.uuid4().hex[:12]}")
    objective: str = Field(..., description="Instruction this context belongs to")
    constraints: List[str] = Field(default_factory=list)
    variables: Dict[str, Any] = Field(default_factory=dict)
    current_state: Optional[PageState] = Field(default=None, description="Latest captured page state")
    extracted_data: Optional[Any] = Field(default=None, description="Data extracted by earlier steps")
    execution_summary: Optional[str] = Field(default=None, description="Step context summary for lazy planning")


class SubPlan(BaseModel):
    """Steps scoped to one sub-objective. Steps may be empty until generated."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    objective: str = Field(..., description="Sub-objective text")
    steps: List[ActionStep] = Field(default_factory=list)
    estimated_duration: int = Field(default=0, description="Estimated duration in milliseconds")
    dependencies: List[str] = Field(default_factory=list)
    priority: int = Field(default=1)
    context: TaskContext
    status: SubPlanStatus = Field(default=SubPlanStatus.PENDING)

    @property
    def is_populated(self) -> bool:
        return len(self.steps) > 0


class HierarchicalPlan(BaseModel):
    """Root aggregate: owns every sub-plan of a run."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    global_objective: str
    sub_plans: List[SubPlan]
    total_estimated_duration: int = Field(default=0, description="Sum of sub-plan estimates in milliseconds")
    planning_strategy: PlanningStrategy = Field(default=PlanningStrategy.SEQUENTIAL)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str = Field(default_factory=lambda: datetime.now().isoformat())

    @property
    def total_steps(self) -> int:
        return sum(len(sub_plan.steps) for sub_plan in self.sub_plans)
