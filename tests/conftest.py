"""
Pytest Configuration and Fixtures

Provides common fixtures for all tests: test settings, an in-memory browser
driver, a scripted AI generator, stream observers and sample steps.
"""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Set test environment variables before importing app modules
os.environ["GEMINI_API_KEY"] = "test_google_key"
os.environ.pop("LOGGING_URL", None)

from webpilot.agents.task_engine import TaskEngine
from webpilot.core.config import Settings
from webpilot.models.events import StreamMessage
from webpilot.models.plan import ActionStep, ActionType, StepTarget
from webpilot.prompts.planner_prompts import GLOBAL_PLANNING_SYSTEM_PROMPT, PLAN_ADAPTATION_SYSTEM_PROMPT
from webpilot.streaming.execution_stream import ExecutionStream


class FakeDriver:
    """
    In-memory BrowserDriver.

    Selectors registered with ``fail`` raise on click/type/wait, either a
    fixed number of times or forever. Setting ``closed`` makes every browser
    action fail the way a closed Playwright page does. ``texts`` maps
    selectors to the text extraction reads for them.
    """

    def __init__(self, url: str = "about:blank", title: str = "", html: str = "<html><body></body></html>"):
        self.url = url
        self.title = title
        self.html = html
        self.calls: List[Tuple[str, Any]] = []
        self.typed: Dict[str, str] = {}
        self.texts: Dict[str, str] = {}
        self.body_text = ""
        self.pages: Dict[str, Tuple[str, str]] = {}
        self.failing_selectors: Dict[str, Optional[int]] = {}
        self.click_delay = 0.0
        self.capture_fails = False
        self.closed = False

    def fail(self, selector: str, times: Optional[int] = None) -> None:
        self.failing_selectors[selector] = times

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("Target page, context or browser has been closed")

    def _maybe_fail(self, selector: str) -> None:
        self._check_open()
        if selector not in self.failing_selectors:
            return
        remaining = self.failing_selectors[selector]
        if remaining is None:
            raise RuntimeError(f"Element not found: {selector}")
        if remaining > 0:
            self.failing_selectors[selector] = remaining - 1
            raise RuntimeError(f"Element not found: {selector}")

    async def navigate(self, url: str) -> None:
        self.calls.append(("navigate", url))
        self._check_open()
        self.url = url
        self.title, self.html = self.pages.get(url, ("Loaded page", self.html))

    async def click(self, selector: str) -> None:
        self.calls.append(("click", selector))
        if self.click_delay:
            await asyncio.sleep(self.click_delay)
        self._maybe_fail(selector)

    async def type(self, selector: str, text: str) -> None:
        self.calls.append(("type", selector))
        self._maybe_fail(selector)
        self.typed[selector] = text

    async def wait_for_selector(self, selector: str, timeout_ms: Optional[int] = None) -> None:
        self._maybe_fail(selector)

    async def find_element(self, selector: str) -> Optional[Any]:
        return None if selector in self.failing_selectors else {"selector": selector}

    async def find_elements(self, selector: str) -> List[Any]:
        return []

    async def screenshot(self, full_page: bool = False) -> bytes:
        return b"\x89PNG fake"

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if "querySelectorAll" in expression:
            return []
        if "querySelector(selector)" in expression:
            return self.texts.get(arg, "")
        if "document.body" in expression:
            return self.body_text
        self.calls.append(("evaluate", arg))
        return None

    async def content(self) -> str:
        if self.capture_fails:
            raise RuntimeError("Page closed")
        return self.html

    async def get_title(self) -> str:
        return self.title

    async def get_url(self) -> str:
        if self.capture_fails:
            raise RuntimeError("Page closed")
        return self.url

    def clicked(self) -> List[str]:
        return [arg for name, arg in self.calls if name == "click"]


class ScriptedAI:
    """
    AITextGenerator returning queued responses.

    Decomposition, step planning and adaptation prompts each draw from their
    own queue. An exhausted queue raises, which the engine treats like a
    generator outage. Queued exceptions are raised instead of returned.
    """

    def __init__(self):
        self.global_responses: List[Any] = []
        self.step_responses: List[Any] = []
        self.adapt_responses: List[Any] = []
        self.calls: List[Tuple[str, Optional[str]]] = []

    def plan(self, *sub_objectives: str, strategy: str = "sequential") -> "ScriptedAI":
        self.global_responses.append(json.dumps({
            "subObjectives": list(sub_objectives),
            "planningStrategy": strategy,
            "reasoning": "test decomposition",
        }))
        return self

    def steps(self, *steps: Dict[str, Any]) -> "ScriptedAI":
        self.step_responses.append(json.dumps({"steps": list(steps), "reasoning": "test steps"}))
        return self

    def adapt(self, *steps: Dict[str, Any]) -> "ScriptedAI":
        self.adapt_responses.append(json.dumps({"steps": list(steps)}))
        return self

    def _queue_for(self, system_prompt: Optional[str]) -> List[Any]:
        if system_prompt == GLOBAL_PLANNING_SYSTEM_PROMPT:
            return self.global_responses
        if system_prompt == PLAN_ADAPTATION_SYSTEM_PROMPT:
            return self.adapt_responses
        return self.step_responses

    async def generate_text(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.calls.append((prompt, system_prompt))
        queue = self._queue_for(system_prompt)
        if not queue:
            raise RuntimeError("No scripted response left")
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def prompts_for(self, system_prompt: Optional[str]) -> List[str]:
        return [prompt for prompt, system in self.calls if system == system_prompt]


class RecordingObserver:
    """Stream observer that keeps every message."""

    def __init__(self):
        self.messages: List[StreamMessage] = []

    def send(self, message: StreamMessage) -> None:
        self.messages.append(message)

    def event_types(self) -> List[str]:
        return [message.data["type"] for message in self.messages if message.type == "execution_event"]


class FailingObserver:
    """Stream observer whose transport is gone."""

    def __init__(self):
        self.attempts = 0

    def send(self, message: StreamMessage) -> None:
        self.attempts += 1
        raise ConnectionError("client went away")


@pytest.fixture
def test_settings():
    """Settings with no delays so retry paths run instantly."""
    return Settings(
        GEMINI_API_KEY="test_google_key",
        logging_url=None,
        llm_max_attempts=1,
        llm_retry_wait_seconds=0,
        max_step_attempts=3,
        retry_delay_seconds=0,
        step_timeout_seconds=2.0,
        planning_mode="lazy",
        history_limit=500,
        replay_window=10,
        observer_timeout_seconds=60.0,
        cleanup_interval_seconds=30.0,
        max_finished_runs=20,
    )


@pytest.fixture
def fake_driver():
    return FakeDriver()


@pytest.fixture
def scripted_ai():
    return ScriptedAI()


@pytest.fixture
def stream(test_settings):
    return ExecutionStream(test_settings)


@pytest.fixture
def recording_observer():
    return RecordingObserver()


@pytest.fixture
def make_observer():
    """Factory for additional recording observers."""
    return RecordingObserver


@pytest.fixture
def failing_observer():
    return FailingObserver()


@pytest.fixture
def engine(fake_driver, scripted_ai, stream, test_settings):
    """Lazy-mode engine wired to the fake driver and scripted AI."""
    return TaskEngine(driver=fake_driver, ai=scripted_ai, stream=stream, settings=test_settings)


@pytest.fixture
def click_step():
    return ActionStep(
        type=ActionType.CLICK,
        description="Click the search button",
        target=StepTarget(selector="#search-btn", description="Search button"),
    )


@pytest.fixture
def type_step():
    return ActionStep(
        type=ActionType.TYPE,
        description="Type the username",
        target=StepTarget(selector='input[name="username"]', description="Username field"),
        value="alice",
    )


@pytest.fixture
def navigate_step():
    return ActionStep(
        type=ActionType.NAVIGATE,
        description="Open example.com",
        target=StepTarget(description="example.com"),
        value="https://example.com",
    )


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
