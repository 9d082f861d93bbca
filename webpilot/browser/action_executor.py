"""
Action Executor

Dispatches one ActionStep to the browser driver and captures page state.

Every driver failure surfaces as StepExecutionError so the retry controller
can count it as a failed attempt. Extraction is soft: when nothing can be
read the step still succeeds with empty data.

Usage:
    executor = ActionExecutor(driver, stream)
    result = await executor.execute_step(step)
    state = await executor.capture_state()
"""

import asyncio
import json
import re
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from webpilot.browser.driver import BrowserDriver
from webpilot.core.config import Settings, settings as default_settings
from webpilot.core.exceptions import BrowserClosedError, ExtractionError, StepExecutionError
from webpilot.models.page import PageState
from webpilot.models.plan import ActionStep, ActionType
from webpilot.streaming.execution_stream import ExecutionStream
from webpilot.utils.helpers import format_file_size, normalize_url, validate_url


class ActionResult(BaseModel):
    """Outcome of one browser action."""
    success: bool = Field(..., description="Whether the action succeeded")
    data: Any = Field(default=None, description="Extracted text, if any")
    screenshot: Optional[bytes] = Field(default=None, description="Screenshot bytes for screenshot steps")
    error: Optional[str] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)


URL_PATTERN = re.compile(r"https?://[^\s]+")
# Playwright reports a dead page/context/browser with one of these
BROWSER_CLOSED_PATTERN = re.compile(r"has been closed|target closed|browser closed|connection closed", re.I)
FALLBACK_TEXT_SELECTORS = ("p", "div", "span")
DEFAULT_WAIT_MS = 100


class ActionExecutor:
    """Runs action steps against a BrowserDriver."""

    def __init__(self, driver: BrowserDriver, stream: Optional[ExecutionStream] = None,
                 settings: Optional[Settings] = None):
        self.driver = driver
        self.stream = stream
        self.settings = settings or default_settings
        self._handlers = {
            ActionType.NAVIGATE: self._navigate,
            ActionType.CLICK: self._click,
            ActionType.TYPE: self._type,
            ActionType.FILL: self._fill,
            ActionType.WAIT: self._wait,
            ActionType.EXTRACT: self._extract,
            ActionType.SCROLL: self._scroll,
            ActionType.SCREENSHOT: self._screenshot,
        }

    async def execute_step(self, step: ActionStep) -> ActionResult:
        """Execute one step. Raises StepExecutionError on failure."""
        handler = self._handlers.get(step.type)
        if handler is None:
            raise StepExecutionError(f"Unsupported action type: {step.type}", step_id=step.id)

        try:
            return await handler(step)
        except StepExecutionError:
            raise
        except Exception as e:
            if BROWSER_CLOSED_PATTERN.search(str(e)):
                raise BrowserClosedError(f"{step.type.value} failed, browser closed: {e}", step_id=step.id) from e
            raise StepExecutionError(f"{step.type.value} failed: {e}", step_id=step.id) from e

    # =========================================================================
    # HANDLERS
    # =========================================================================

    @staticmethod
    def resolve_navigation_url(step: ActionStep) -> Optional[str]:
        """URL from the step value, else a URL or bare domain in the target description."""
        if step.value:
            return normalize_url(step.value)
        description = step.target.description if step.target else ""
        if description:
            match = URL_PATTERN.search(description)
            if match:
                return match.group(0)
            if "." in description:
                candidate = normalize_url(description.strip())
                return candidate if candidate and validate_url(candidate) else None
        return None

    async def _navigate(self, step: ActionStep) -> ActionResult:
        url = self.resolve_navigation_url(step)
        if not url:
            raise StepExecutionError("No URL specified for navigation", step_id=step.id)

        print(f"[EXECUTOR] 🌐 Navigating to: {url}")
        await self.driver.navigate(url)

        if self.stream is not None:
            try:
                self.stream.notify_page_change(await self.driver.get_url(), await self.driver.get_title())
            except Exception as e:
                print(f"[EXECUTOR] ⚠️ Failed to publish page change: {e}")

        return ActionResult(success=True, metadata={"url": url})

    async def _click(self, step: ActionStep) -> ActionResult:
        if not step.selector:
            raise StepExecutionError("No target specified for click action", step_id=step.id)
        await self.driver.click(step.selector)
        return ActionResult(success=True)

    async def _type(self, step: ActionStep) -> ActionResult:
        if not step.selector or not step.value:
            raise StepExecutionError("No target or value specified for type action", step_id=step.id)
        await self.driver.type(step.selector, step.value)
        return ActionResult(success=True)

    async def _fill(self, step: ActionStep) -> ActionResult:
        if not step.value:
            raise StepExecutionError("No form data specified for fill action", step_id=step.id)

        try:
            form_data = json.loads(step.value)
            if not isinstance(form_data, dict):
                raise ValueError("form data is not an object")
        except ValueError:
            if not step.selector:
                raise StepExecutionError("No target selector specified for single value fill", step_id=step.id)
            form_data = {step.selector: step.value}

        filled = []
        for selector, value in form_data.items():
            print(f"[EXECUTOR] 📝 Filling field '{selector}'")
            await self.driver.wait_for_selector(selector)
            await self.driver.type(selector, str(value))
            filled.append(selector)
        return ActionResult(success=True, metadata={"filled_fields": filled})

    async def _wait(self, step: ActionStep) -> ActionResult:
        if step.condition and step.condition.timeout:
            wait_ms = step.condition.timeout
        elif step.value and step.value.strip().isdigit():
            wait_ms = int(step.value.strip())
        else:
            wait_ms = DEFAULT_WAIT_MS
        await asyncio.sleep(wait_ms / 1000)
        return ActionResult(success=True, metadata={"waited_ms": wait_ms})

    async def _extract(self, step: ActionStep) -> ActionResult:
        try:
            text = await self._extract_text(step)
        except ExtractionError as e:
            print(f"[EXECUTOR] ⚠️ {e}")
            return ActionResult(success=True, data=None, metadata={"empty": True})
        return ActionResult(success=True, data=text)

    async def _extract_text(self, step: ActionStep) -> str:
        if step.selector:
            try:
                await self.driver.wait_for_selector(step.selector, timeout_ms=2000)
                text = await self.driver.evaluate(
                    "(selector) => { const el = document.querySelector(selector); return el ? el.innerText : ''; }",
                    step.selector
                )
                if text and text.strip():
                    print(f"[EXECUTOR] ✅ Extracted text using '{step.selector}'")
                    return text.strip()
            except Exception as e:
                print(f"[EXECUTOR] ⚠️ Primary selector failed, trying generic extraction: {e}")

        for selector in FALLBACK_TEXT_SELECTORS:
            try:
                texts = await self.driver.evaluate(
                    "(selector) => Array.from(document.querySelectorAll(selector)).map(el => el.innerText || '')",
                    selector
                )
            except Exception as e:
                print(f"[EXECUTOR] ⚠️ Failed to read '{selector}' elements: {e}")
                continue
            for text in texts or []:
                if text and len(text.strip()) > 5:
                    return text.strip()

        try:
            body_text = await self.driver.evaluate("() => document.body ? document.body.innerText : ''")
        except Exception as e:
            raise ExtractionError(f"Could not read page content: {e}") from e
        if body_text and body_text.strip():
            return body_text.strip()

        raise ExtractionError("Could not extract any text content")

    async def _scroll(self, step: ActionStep) -> ActionResult:
        x, y = 0, 500
        if step.value:
            try:
                offset = json.loads(step.value)
            except ValueError:
                offset = None
            if isinstance(offset, dict):
                x, y = int(offset.get("x", 0)), int(offset.get("y", 500))
            elif isinstance(offset, (int, float)):
                y = int(offset)
        await self.driver.evaluate("([x, y]) => window.scrollBy(x, y)", [x, y])
        return ActionResult(success=True, metadata={"x": x, "y": y})

    async def _screenshot(self, step: ActionStep) -> ActionResult:
        image = await self.driver.screenshot()
        print(f"[EXECUTOR] 📸 Screenshot captured ({format_file_size(len(image))})")
        return ActionResult(success=True, screenshot=image, metadata={"bytes": len(image)})

    # =========================================================================
    # STATE
    # =========================================================================

    async def capture_state(self, include_screenshot: bool = True) -> PageState:
        """Snapshot of the current page. Raises whatever the driver raises."""
        url = await self.driver.get_url()
        title = await self.driver.get_title()
        content = await self.driver.content()
        screenshot = await self.driver.screenshot() if include_screenshot else b""
        return PageState(
            url=url,
            title=title,
            content=content,
            screenshot=screenshot,
            viewport={"width": self.settings.viewport_width, "height": self.settings.viewport_height},
        )
