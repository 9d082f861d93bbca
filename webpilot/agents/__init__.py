"""
Agents Package - step context, refinement, retries and plan execution

Classes:
    - StepContextStore: history of executed steps for one run
    - ContextualStepRefiner: selector adaptation from the previous step
    - RetryController: bounded, escalating step retries
    - PauseGate: single-waiter pause/resume signal
    - PlanExecutionManager: sequential sub-plan and step execution
    - TaskEngine: objective-to-result entry point
"""

from .step_context import StepContextStore
from .step_refiner import ContextualStepRefiner
from .retry_controller import RetryController
from .pause_gate import PauseGate
from .plan_execution_manager import PlanExecutionManager
from .task_engine import TaskEngine

__all__ = [
    'StepContextStore',
    'ContextualStepRefiner',
    'RetryController',
    'PauseGate',
    'PlanExecutionManager',
    'TaskEngine',
]
