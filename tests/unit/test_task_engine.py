"""
Unit Tests for TaskEngine

End-to-end runs against the fake driver and scripted AI: planning, lazy and
eager sub-plan generation, failure isolation between sub-plans, plan
adaptation after extraction, and pausing.
"""

import asyncio

import pytest

from webpilot.agents.task_engine import NAVIGATION_CONSTRAINT, TaskEngine
from webpilot.models.execution import StepExecutionResult
from webpilot.models.page import PageState
from webpilot.models.plan import ActionType, SubPlanStatus
from webpilot.prompts.planner_prompts import GLOBAL_PLANNING_SYSTEM_PROMPT, PLAN_ADAPTATION_SYSTEM_PROMPT


def click(selector: str, description: str = "") -> dict:
    description = description or f"Click {selector}"
    return {"type": "click", "description": description, "target": {"selector": selector, "description": description}}


def extract(selector: str) -> dict:
    return {"type": "extract", "description": f"Read {selector}", "target": {"selector": selector, "description": selector}}


class TestSuccessfulRun:
    """Navigation followed by a click in a single sub-plan."""

    @pytest.mark.asyncio
    async def test_navigate_then_click(self, engine, scripted_ai, fake_driver, stream, recording_observer):
        stream.add_observer("client", recording_observer)
        scripted_ai.plan("Navigate to example.com and click the more info link")
        scripted_ai.steps(
            {"type": "navigate", "description": "Open example.com", "value": "https://example.com"},
            click("a.more", "Click more info"),
        )

        result = await engine.execute_task("Navigate to example.com and click the more info link",
                                           session_id="s-a")

        assert result.success is True
        assert result.error is None
        assert len(result.plan.sub_plans) == 1
        assert [step.type for step in result.plan.sub_plans[0].steps] == [ActionType.NAVIGATE, ActionType.CLICK]
        assert result.plan.sub_plans[0].status == SubPlanStatus.SUCCEEDED
        assert [r.success for r in result.steps] == [True, True]
        assert fake_driver.calls[0] == ("navigate", "https://example.com")
        assert fake_driver.clicked() == ["a.more"]
        assert len(result.screenshots) == 2
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_event_sequence(self, engine, scripted_ai, stream, recording_observer):
        stream.add_observer("client", recording_observer)
        scripted_ai.plan("Open the site and click more")
        scripted_ai.steps(
            {"type": "navigate", "description": "Open example.com", "value": "https://example.com"},
            click("a.more"),
        )

        await engine.execute_task("Navigate to example.com and click more", session_id="s-a")

        assert recording_observer.event_types() == [
            "session_started",
            "hierarchical_plan_created",
            "plan_created",
            "sub_plan_start",
            "step_start",
            "page_change",
            "step_complete",
            "step_start",
            "step_complete",
            "sub_plan_completed",
            "execution_complete",
        ]
        complete = recording_observer.messages[-1].data
        assert complete["success"] is True
        assert complete["total_steps"] == 2
        assert complete["successful_steps"] == 2
        assert stream.is_active is False
        assert stream.get_execution_history()[-1].type == "execution_complete"

    @pytest.mark.asyncio
    async def test_navigation_constraint_added_on_blank_page(self, engine, scripted_ai):
        scripted_ai.plan("Open example.com")
        scripted_ai.steps({"type": "navigate", "description": "Open example.com", "value": "example.com"})

        await engine.execute_task("Visit example.com and read it")

        global_prompt = scripted_ai.prompts_for(GLOBAL_PLANNING_SYSTEM_PROMPT)[0]
        assert NAVIGATION_CONSTRAINT in global_prompt

    @pytest.mark.asyncio
    async def test_no_navigation_constraint_for_ui_objective(self, engine, scripted_ai):
        scripted_ai.plan("Click the login button")
        scripted_ai.steps(click("#login"))

        await engine.execute_task("Click the login button")

        assert NAVIGATION_CONSTRAINT not in scripted_ai.prompts_for(GLOBAL_PLANNING_SYSTEM_PROMPT)[0]


class TestFailureIsolation:
    """A failed sub-plan does not stop the next one."""

    @pytest.mark.asyncio
    async def test_closed_browser_abandons_rest_of_sub_plan(self, engine, scripted_ai, fake_driver):
        fake_driver.closed = True
        scripted_ai.plan("Click one then two")
        scripted_ai.steps(click("#one"), click("#two"))

        result = await engine.execute_task("Click one then two")

        assert fake_driver.clicked() == ["#one"]
        assert len(result.steps) == 1
        assert "browser closed" in result.steps[0].error
        assert [step.selector for step in result.plan.sub_plans[0].steps] == ["#one"]
        assert result.success is False

    @pytest.mark.asyncio
    async def test_failed_click_then_successful_sub_plan(self, engine, scripted_ai, fake_driver):
        fake_driver.fail("#broken")
        fake_driver.texts["h1"] = "Example Domain"
        scripted_ai.plan("Click the broken button", "Read the heading")
        scripted_ai.steps(click("#broken"))
        scripted_ai.step_responses.append(RuntimeError("model busy"))  # AI refinement on the last attempt
        scripted_ai.steps(extract("h1"))

        result = await engine.execute_task("Click the broken button and read the heading")

        assert fake_driver.clicked() == ["#broken"] * 3
        assert result.steps[0].success is False
        assert result.steps[0].error.startswith("Failed after 3 attempts")
        assert [s.success for s in result.sub_plan_results] == [False, True]
        assert [s.status for s in result.plan.sub_plans] == [SubPlanStatus.FAILED, SubPlanStatus.SUCCEEDED]
        assert result.success is True
        assert result.error == "1 of 2 sub-plan(s) failed"
        assert result.extracted_data == "Example Domain"

    @pytest.mark.asyncio
    async def test_all_sub_plans_failed(self, engine, scripted_ai, fake_driver):
        fake_driver.fail("#broken")
        scripted_ai.plan("Click the broken button")
        scripted_ai.steps(click("#broken"))

        result = await engine.execute_task("Click the broken button")

        assert result.success is False
        assert result.error == "All 1 sub-plan(s) failed"

    @pytest.mark.asyncio
    async def test_sub_plan_generation_failure_is_isolated(self, engine, scripted_ai, stream, recording_observer):
        stream.add_observer("client", recording_observer)
        scripted_ai.plan("First part", "Second part")
        scripted_ai.step_responses.append("this is not json")
        scripted_ai.steps(click("#second"))

        result = await engine.execute_task("Do two things")

        assert [s.success for s in result.sub_plan_results] == [False, True]
        assert result.success is True
        first_start = next(m.data for m in recording_observer.messages
                           if m.type == "execution_event" and m.data["type"] == "sub_plan_start")
        assert first_start["sub_plan_index"] == 0
        assert first_start["step_count"] == 0

    @pytest.mark.asyncio
    async def test_planning_failure_ends_run(self, engine, scripted_ai, stream, recording_observer):
        stream.add_observer("client", recording_observer)
        scripted_ai.global_responses.append("I cannot help with that")

        result = await engine.execute_task("Do something")

        assert result.success is False
        assert result.steps == []
        assert result.error
        assert recording_observer.event_types() == ["session_started", "execution_complete"]


class TestAdaptation:
    """Extracted data reaches the adapter before the next step runs."""

    @pytest.mark.asyncio
    async def test_extract_triggers_adaptation(self, engine, scripted_ai, fake_driver):
        fake_driver.texts["h1"] = "Example Domain"
        scripted_ai.plan("Read the heading and open the next page")
        scripted_ai.steps(extract("h1"), click("#next"))
        scripted_ai.adapt(click("a.next", "Click the next link"))

        result = await engine.execute_task("Read the heading and open the next page")

        adaptation_prompts = scripted_ai.prompts_for(PLAN_ADAPTATION_SYSTEM_PROMPT)
        assert len(adaptation_prompts) == 1
        assert "Example Domain" in adaptation_prompts[0]
        assert fake_driver.clicked() == ["a.next"]
        assert result.plan.sub_plans[0].context.extracted_data == "Example Domain"
        assert [s.selector for s in result.plan.sub_plans[0].steps] == ["h1", "a.next"]

    @pytest.mark.asyncio
    async def test_failed_adaptation_keeps_original_steps(self, engine, scripted_ai, fake_driver):
        fake_driver.texts["h1"] = "Example Domain"
        scripted_ai.plan("Read the heading and open the next page")
        scripted_ai.steps(extract("h1"), click("#next"))
        scripted_ai.adapt_responses.append("garbage")

        result = await engine.execute_task("Read the heading and open the next page")

        assert fake_driver.clicked() == ["#next"]
        assert result.success is True


class TestEagerPlanning:
    """Every sub-plan is generated before execution starts."""

    @pytest.mark.asyncio
    async def test_eager_mode(self, fake_driver, scripted_ai, stream, recording_observer, test_settings):
        engine = TaskEngine(driver=fake_driver, ai=scripted_ai, stream=stream, settings=test_settings,
                            planning_mode="eager")
        stream.add_observer("client", recording_observer)
        scripted_ai.plan("Click a", "Click b")
        scripted_ai.steps(click("#a"))
        scripted_ai.steps(click("#b"))

        result = await engine.execute_task("Click a then b")

        plan_created = next(m.data for m in recording_observer.messages
                            if m.type == "execution_event" and m.data["type"] == "plan_created")
        assert plan_created["total_steps"] == 2
        assert sorted(fake_driver.clicked()) == ["#a", "#b"]
        assert result.success is True


class TestPause:
    """Pausing suspends the next step until resumed."""

    @pytest.mark.asyncio
    async def test_pause_between_steps(self, engine, scripted_ai, fake_driver, stream, recording_observer):
        class PauseAfterFirstStep:
            def __init__(self):
                self.paused = False

            def send(self, message):
                if message.type == "execution_event" and message.data["type"] == "step_complete" and not self.paused:
                    self.paused = True
                    engine.pause()

        stream.add_observer("pauser", PauseAfterFirstStep())
        stream.add_observer("client", recording_observer)
        scripted_ai.plan("Click one then two")
        scripted_ai.steps(click("#one"), click("#two"))

        task = asyncio.create_task(engine.execute_task("Click one then two"))
        for _ in range(100):
            if engine.pause_gate.has_waiter:
                break
            await asyncio.sleep(0.01)

        assert engine.pause_gate.has_waiter
        assert fake_driver.clicked() == ["#one"]
        assert recording_observer.event_types().count("step_start") == 1

        assert engine.resume() is True
        result = await asyncio.wait_for(task, timeout=2)

        assert fake_driver.clicked() == ["#one", "#two"]
        step_starts = [m.data["step_index"] for m in recording_observer.messages
                       if m.type == "execution_event" and m.data["type"] == "step_start"]
        assert step_starts == [0, 1]
        assert result.success is True


class TestPageStateCapture:
    """Page state used when the browser cannot be read."""

    @pytest.mark.asyncio
    async def test_falls_back_to_last_known_page(self, engine, fake_driver, click_step):
        engine.store.add_step_result(StepExecutionResult(
            step=click_step, success=True, page_state_after=PageState.minimal("https://a.test", "A")
        ))
        fake_driver.capture_fails = True

        state = await engine.manager._capture_state(retry=True)

        assert state.url == "https://a.test"

    @pytest.mark.asyncio
    async def test_minimal_state_without_history(self, engine, fake_driver):
        fake_driver.capture_fails = True

        state = await engine.manager._capture_state()

        assert state.url == ""
