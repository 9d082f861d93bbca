"""
Engine Exceptions

Error taxonomy shared by planning and execution.

- PlanningError: AI output could not be turned into a plan, sub-plan or
  adapted step list.
- StepExecutionError: a browser primitive failed. Retried, then reported.
- StepTimeoutError: an attempt exceeded its time budget. Handled exactly like
  any other StepExecutionError.
- BrowserClosedError: the page or browser is gone. Not retried, and the rest
  of the sub-plan is abandoned.
- ExtractionError: extraction found nothing usable. Soft, never aborts a run.
"""

from typing import Optional


class WebPilotError(Exception):
    """Base class for all engine errors."""


class PlanningError(WebPilotError):
    """Raised when an AI planning response cannot be parsed into the expected shape."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response


class StepExecutionError(WebPilotError):
    """Raised when a browser operation for a step fails."""

    def __init__(self, message: str, step_id: Optional[str] = None):
        super().__init__(message)
        self.step_id = step_id


class StepTimeoutError(StepExecutionError):
    """Raised when a single step attempt runs past its timeout."""


class BrowserClosedError(StepExecutionError):
    """Raised when the page or browser behind the driver has gone away. Never retried."""


class ExtractionError(WebPilotError):
    """Raised when no text could be extracted for an extract step."""
