"""
Planning Package - decomposition, step planning, assembly and adaptation
"""

from .action_planner import ActionPlanner
from .global_planner import GlobalPlanner
from .sub_plan_generator import SubPlanGenerator
from .plan_assembler import PlanAssembler
from .plan_adapter import PlanAdapter
from .navigation_classifier import classify_navigation, NavigationClassifier

__all__ = [
    'ActionPlanner',
    'GlobalPlanner',
    'SubPlanGenerator',
    'PlanAssembler',
    'PlanAdapter',
    'classify_navigation',
    'NavigationClassifier',
]
