"""
Page State Model

Snapshot of the browser page captured around each step.
"""

from datetime import datetime
from typing import Any, Dict, List
from pydantic import BaseModel, Field


class PageState(BaseModel):
    """Captured page snapshot. Lives only for the duration of a run."""
    url: str = Field(default="", description="Current page URL")
    title: str = Field(default="", description="Current page title")
    content: str = Field(default="", description="Page HTML")
    screenshot: bytes = Field(default=b"", description="PNG screenshot")
    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat())
    viewport: Dict[str, int] = Field(default_factory=lambda: {"width": 1280, "height": 720})
    elements: List[Dict[str, Any]] = Field(default_factory=list)

    class Config:
        ser_json_bytes = "base64"

    @classmethod
    def minimal(cls, url: str = "", title: str = "") -> "PageState":
        """State used when capturing the real page is impossible."""
        return cls(url=url, title=title)
