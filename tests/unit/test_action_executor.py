"""
Unit Tests for ActionExecutor
"""

import json

import pytest

from webpilot.browser.action_executor import ActionExecutor
from webpilot.core.exceptions import StepExecutionError
from webpilot.models.plan import ActionStep, ActionType, StepCondition, StepTarget


@pytest.fixture
def executor(fake_driver, stream, test_settings):
    return ActionExecutor(fake_driver, stream, test_settings)


class TestNavigation:
    """Tests for navigate steps."""

    def test_url_from_value(self, navigate_step):
        assert ActionExecutor.resolve_navigation_url(navigate_step) == "https://example.com"

    def test_url_from_target_description(self):
        step = ActionStep(type=ActionType.NAVIGATE, description="Open docs",
                          target=StepTarget(description="the docs at https://docs.example.com/start"))
        assert ActionExecutor.resolve_navigation_url(step) == "https://docs.example.com/start"

    def test_bare_domain_in_description(self):
        step = ActionStep(type=ActionType.NAVIGATE, description="Open site", target=StepTarget(description="example.org"))
        assert ActionExecutor.resolve_navigation_url(step) == "https://example.org"

    def test_prose_description_is_not_a_url(self):
        step = ActionStep(type=ActionType.NAVIGATE, description="Open site",
                          target=StepTarget(description="the store homepage. Then search"))
        assert ActionExecutor.resolve_navigation_url(step) is None

    @pytest.mark.asyncio
    async def test_navigate_publishes_page_change(self, executor, fake_driver, stream, recording_observer,
                                                  navigate_step):
        fake_driver.pages["https://example.com"] = ("Example Domain", "<html><h1>Example</h1></html>")
        stream.start_session("s1")
        stream.add_observer("client", recording_observer)

        result = await executor.execute_step(navigate_step)

        assert result.success is True
        assert recording_observer.event_types() == ["page_change"]
        assert recording_observer.messages[-1].data["title"] == "Example Domain"

    @pytest.mark.asyncio
    async def test_navigate_without_url_fails(self, executor):
        step = ActionStep(type=ActionType.NAVIGATE, description="Go somewhere")
        with pytest.raises(StepExecutionError, match="No URL"):
            await executor.execute_step(step)


class TestInteractions:
    """Tests for click/type/fill."""

    @pytest.mark.asyncio
    async def test_driver_errors_become_step_errors(self, executor, fake_driver, click_step):
        fake_driver.fail("#search-btn")
        with pytest.raises(StepExecutionError) as exc_info:
            await executor.execute_step(click_step)
        assert exc_info.value.step_id == click_step.id

    @pytest.mark.asyncio
    async def test_type_requires_value(self, executor):
        step = ActionStep(type=ActionType.TYPE, description="Type",
                          target=StepTarget(selector="input#q", description="Query"))
        with pytest.raises(StepExecutionError):
            await executor.execute_step(step)

    @pytest.mark.asyncio
    async def test_fill_with_field_mapping(self, executor, fake_driver):
        step = ActionStep(type=ActionType.FILL, description="Fill login form",
                          value=json.dumps({"#user": "alice", "#pass": 1234}))

        result = await executor.execute_step(step)

        assert fake_driver.typed == {"#user": "alice", "#pass": "1234"}
        assert result.metadata["filled_fields"] == ["#user", "#pass"]

    @pytest.mark.asyncio
    async def test_fill_single_value(self, executor, fake_driver, type_step):
        step = type_step.model_copy(update={"type": ActionType.FILL})
        await executor.execute_step(step)
        assert fake_driver.typed == {'input[name="username"]': "alice"}


class TestOtherActions:
    """Tests for wait/extract/scroll/screenshot."""

    @pytest.mark.asyncio
    async def test_wait_uses_condition_timeout(self, executor):
        step = ActionStep(type=ActionType.WAIT, description="Wait", condition=StepCondition(timeout=10))
        result = await executor.execute_step(step)
        assert result.metadata["waited_ms"] == 10

    @pytest.mark.asyncio
    async def test_extract_from_selector(self, executor, fake_driver):
        fake_driver.texts["h1"] = "  Example Domain  "
        step = ActionStep(type=ActionType.EXTRACT, description="Read heading",
                          target=StepTarget(selector="h1", description="Heading"))

        result = await executor.execute_step(step)
        assert result.data == "Example Domain"

    @pytest.mark.asyncio
    async def test_extract_falls_back_to_body(self, executor, fake_driver):
        fake_driver.body_text = "Whole page text"
        step = ActionStep(type=ActionType.EXTRACT, description="Read page")

        result = await executor.execute_step(step)
        assert result.data == "Whole page text"

    @pytest.mark.asyncio
    async def test_empty_extraction_still_succeeds(self, executor):
        step = ActionStep(type=ActionType.EXTRACT, description="Read page")

        result = await executor.execute_step(step)

        assert result.success is True
        assert result.data is None

    @pytest.mark.asyncio
    async def test_scroll_offset(self, executor, fake_driver):
        step = ActionStep(type=ActionType.SCROLL, description="Scroll", value='{"x": 0, "y": 300}')
        result = await executor.execute_step(step)
        assert result.metadata == {"x": 0, "y": 300}
        assert fake_driver.calls[-1] == ("evaluate", [0, 300])

    @pytest.mark.asyncio
    async def test_screenshot_step(self, executor):
        result = await executor.execute_step(ActionStep(type=ActionType.SCREENSHOT, description="Capture"))
        assert result.screenshot.startswith(b"\x89PNG")

    @pytest.mark.asyncio
    async def test_capture_state(self, executor, fake_driver, test_settings):
        fake_driver.url = "https://example.com"
        fake_driver.title = "Example"

        state = await executor.capture_state(include_screenshot=False)

        assert state.url == "https://example.com"
        assert state.screenshot == b""
        assert state.viewport == {"width": test_settings.viewport_width, "height": test_settings.viewport_height}
