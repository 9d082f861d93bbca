"""
Services Package - external integrations

This package contains service classes for the AI provider, event forwarding
and per-session run management.
"""

from .logging_service import LoggingService
from .llm_service import LLMService, AITextGenerator

__all__ = [
    'LoggingService',
    'LLMService',
    'AITextGenerator',
]
