"""
Models Package - Data models and schemas

Pydantic models for plans, execution records, stream events and API messages.
"""

from .page import PageState
from .plan import (
    ActionType,
    ActionStep,
    StepTarget,
    StepCondition,
    SubObjective,
    PlanningStrategy,
    GlobalPlan,
    SubPlan,
    SubPlanStatus,
    HierarchicalPlan,
    TaskContext,
)
from .execution import (
    StepExecutionResult,
    FormElementContext,
    StepOutcome,
    SubPlanResult,
    TaskResult,
)
from .message import TaskRequest, TaskResponse, ControlResponse

__all__ = [
    'PageState',
    'ActionType',
    'ActionStep',
    'StepTarget',
    'StepCondition',
    'SubObjective',
    'PlanningStrategy',
    'GlobalPlan',
    'SubPlan',
    'SubPlanStatus',
    'HierarchicalPlan',
    'TaskContext',
    'StepExecutionResult',
    'FormElementContext',
    'StepOutcome',
    'SubPlanResult',
    'TaskResult',
    'TaskRequest',
    'TaskResponse',
    'ControlResponse',
]
