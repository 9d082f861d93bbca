"""
API Message Models

Request/response models for the HTTP surface.

Usage:
    from webpilot.models.message import TaskRequest, TaskResponse

    request = TaskRequest(objective="Open example.com and read the heading")
"""

import re
from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Literal, Optional


class TaskRequest(BaseModel):
    """Request to execute an objective with input validation."""
    objective: str = Field(..., description="Natural-language objective", min_length=1, max_length=5000)
    sessionId: Optional[str] = Field(default=None, description="Session identifier", pattern=r'^[a-zA-Z0-9_-]+$')
    constraints: List[str] = Field(default_factory=list, description="Extra planning constraints")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Values the planner may use")

    @field_validator('objective')
    @classmethod
    def sanitize_objective(cls, v: str) -> str:
        """Strip null bytes and surrounding whitespace."""
        v = v.replace('\x00', '').strip()
        if not v:
            raise ValueError("Objective cannot be empty")
        return v

    @field_validator('sessionId')
    @classmethod
    def validate_session_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not re.match(r'^[a-zA-Z0-9_-]+$', v):
            raise ValueError("Invalid sessionId format. Only alphanumeric, underscore, and hyphen allowed")
        if len(v) > 100:
            raise ValueError("SessionId too long (max 100 characters)")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "objective": "Go to example.com and extract the main heading",
                "sessionId": "session_1729876543210",
                "constraints": [],
                "variables": {}
            }
        }


class TaskResponse(BaseModel):
    """Response returned when a run is accepted."""
    status: Literal["success", "error", "already_processing"]
    sessionId: Optional[str] = None
    error: Optional[str] = None
    message: str = "Task execution has been started in the background."


class ControlResponse(BaseModel):
    """Response to pause/resume requests."""
    status: Literal["paused", "resumed", "not_paused", "not_found"]
    sessionId: str
