"""
LLM Service

AI text-generation collaborator backed by Google Gemini through LangChain.
The engine only depends on the ``AITextGenerator`` protocol; this is the
default implementation.

Usage:
    from webpilot.services.llm_service import LLMService
    from webpilot.core.config import settings

    llm_service = LLMService(settings)
    text = await llm_service.generate_text("Plan this...", system_prompt="You are...")
"""

from typing import Optional, Protocol, runtime_checkable

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from webpilot.core.config import Settings


@runtime_checkable
class AITextGenerator(Protocol):
    """Anything that turns a prompt into text."""

    async def generate_text(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        ...


class LLMService:
    """Gemini text generation for planning prompts."""

    def __init__(self, settings: Settings):
        """
        Initialize LLM service with settings.

        Args:
            settings: Application settings with LLM configuration
        """
        self.settings = settings
        self._model = None

    def get_model(self) -> ChatGoogleGenerativeAI:
        """
        Get the LLM model instance, creating it on first use.

        Returns:
            Configured LLM model
        """
        if self._model is None:
            if not self.settings.GEMINI_API_KEY:
                raise ValueError("GEMINI_API_KEY is not configured")
            self._model = ChatGoogleGenerativeAI(
                model=self.settings.llm_model,
                temperature=self.settings.llm_temperature,
                google_api_key=self.settings.GEMINI_API_KEY,
                max_output_tokens=8192,
                top_p=0.95,
                top_k=40
            )
        return self._model

    async def generate_text(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: User prompt
            system_prompt: Optional system instructions

        Returns:
            Response content as plain text
        """
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        response = await self.get_model().ainvoke(messages)
        content = response.content if hasattr(response, 'content') else response

        # Gemini may return a list of content parts
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return str(content)

    def reset(self):
        """Reset the model instance (useful for changing settings)."""
        self._model = None
