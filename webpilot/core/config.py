"""
Configuration Management

Centralized configuration using Pydantic Settings.
All environment variables are validated and type-checked.

Usage:
    from webpilot.core.config import settings

    attempts = settings.max_step_attempts
    model = settings.llm_model
"""

from pydantic_settings import BaseSettings
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys (optional so the engine can run against a stub generator)
    GEMINI_API_KEY: Optional[str] = None

    # LLM Settings
    llm_model: str = "gemini-2.5-flash"
    llm_temperature: float = 0.3
    llm_max_attempts: int = 2  # Generator calls per planning request
    llm_retry_wait_seconds: float = 1.0

    # Server Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    logging_url: Optional[str] = None  # Webhook that receives execution events
    max_finished_runs: int = 20  # Finished runs kept for status, history and export
    rate_limit: str = "100/minute"  # Per client address, all routes

    # Browser Settings
    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 720
    page_content_limit: int = 8000  # Characters of page text sent to the planner

    # Execution Settings
    planning_mode: Literal["lazy", "eager"] = "lazy"
    max_step_attempts: int = 3
    retry_delay_seconds: float = 1.0
    step_timeout_seconds: float = 30.0

    # Streaming Settings
    history_limit: int = 500
    replay_window: int = 10
    observer_timeout_seconds: float = 60.0
    cleanup_interval_seconds: float = 30.0

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra env vars


# Global settings instance
settings = Settings()
