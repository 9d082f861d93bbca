"""
Execution Event Models

Closed tagged union of every planning and execution transition broadcast by
the execution stream. Each variant carries ``session_id`` and ``timestamp``
plus only the fields valid for that kind.

Usage:
    from webpilot.models.events import StepStartEvent, parse_event

    event = StepStartEvent(session_id="s1", step_index=0, step=step)
    same = parse_event(event.model_dump(mode="json"))
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter

from webpilot.models.plan import ActionStep


class BaseEvent(BaseModel):
    session_id: str
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())

    class Config:
        frozen = True


class SessionStartedEvent(BaseEvent):
    """Broadcast when a new session resets the stream."""
    type: Literal["session_started"] = "session_started"


class PlanCreatedEvent(BaseEvent):
    type: Literal["plan_created"] = "plan_created"
    total_steps: int
    steps: List[ActionStep] = Field(default_factory=list)


class HierarchicalPlanCreatedEvent(BaseEvent):
    type: Literal["hierarchical_plan_created"] = "hierarchical_plan_created"
    plan_id: str
    global_objective: str
    planning_strategy: str
    sub_objectives: List[str]
    total_estimated_duration: int


class SubPlanStartEvent(BaseEvent):
    type: Literal["sub_plan_start"] = "sub_plan_start"
    sub_plan_index: int
    sub_plan_id: str
    objective: str
    total_sub_plans: int
    step_count: int


class SubPlanCompletedEvent(BaseEvent):
    type: Literal["sub_plan_completed"] = "sub_plan_completed"
    sub_plan_index: int
    sub_plan_id: str
    success: bool
    completed_steps: int
    total_steps: int


class StepStartEvent(BaseEvent):
    type: Literal["step_start"] = "step_start"
    step_index: int
    step: ActionStep
    sub_plan_index: Optional[int] = None


class StepCompleteEvent(BaseEvent):
    type: Literal["step_complete"] = "step_complete"
    step_index: int
    step: ActionStep
    duration_ms: int = 0
    selector_used: Optional[str] = None
    extracted_data: Optional[Any] = None
    has_screenshot: bool = False


class StepErrorEvent(BaseEvent):
    type: Literal["step_error"] = "step_error"
    step_index: int
    step: ActionStep
    error: str
    attempts: int = 0


class PageChangeEvent(BaseEvent):
    type: Literal["page_change"] = "page_change"
    url: str
    title: str = ""


class ExecutionCompleteEvent(BaseEvent):
    type: Literal["execution_complete"] = "execution_complete"
    success: bool
    total_steps: int = 0
    successful_steps: int = 0
    duration_ms: int = 0
    error: Optional[str] = None


ExecutionEvent = Annotated[
    Union[
        SessionStartedEvent,
        PlanCreatedEvent,
        HierarchicalPlanCreatedEvent,
        SubPlanStartEvent,
        SubPlanCompletedEvent,
        StepStartEvent,
        StepCompleteEvent,
        StepErrorEvent,
        PageChangeEvent,
        ExecutionCompleteEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(ExecutionEvent)


def parse_event(data: Dict[str, Any]) -> ExecutionEvent:
    """Rebuild an event from its JSON form."""
    return _event_adapter.validate_python(data)


class ExecutionSession(BaseModel):
    """The one current session of an execution stream."""
    session_id: str
    started_at: str = Field(default_factory=lambda: datetime.now().isoformat())
    current_sub_plan_index: int = 0
    ended_at: Optional[str] = None
    history: List[ExecutionEvent] = Field(default_factory=list)


class StreamMessage(BaseModel):
    """Envelope delivered to observers."""
    type: Literal["connection", "history", "execution_event"]
    session_id: Optional[str] = None
    data: Any = None
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
