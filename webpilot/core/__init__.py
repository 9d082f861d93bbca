"""
Core Package - configuration and error taxonomy
"""

from .config import settings, Settings
from .exceptions import (
    WebPilotError,
    PlanningError,
    StepExecutionError,
    StepTimeoutError,
    ExtractionError,
)

__all__ = [
    'settings',
    'Settings',
    'WebPilotError',
    'PlanningError',
    'StepExecutionError',
    'StepTimeoutError',
    'ExtractionError',
]
