"""
Automation Service

Owns the runs started through the API. Each run gets its own execution
stream, engine and browser driver, keyed by session id. Only one run may be
active at a time since a single browser session is assumed.

Finished runs are kept for status, history and export queries until more than
`settings.max_finished_runs` have piled up; the oldest are then evicted along
with their streams.

Usage:
    service = AutomationService(settings)
    session_id = await service.start_task(TaskRequest(objective="..."))
    service.pause(session_id)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from webpilot.agents.task_engine import TaskEngine
from webpilot.browser.driver import BrowserDriver
from webpilot.browser.playwright_driver import PlaywrightDriver
from webpilot.core.config import Settings
from webpilot.models.execution import TaskResult
from webpilot.models.message import TaskRequest
from webpilot.models.plan import TaskContext
from webpilot.services.llm_service import AITextGenerator, LLMService
from webpilot.services.logging_service import LoggingService
from webpilot.streaming.execution_stream import ExecutionStream
from webpilot.utils.execution_exporter import ExecutionExporter

logger = logging.getLogger(__name__)

DriverFactory = Callable[[Settings], Awaitable[BrowserDriver]]


async def launch_playwright_driver(settings: Settings) -> BrowserDriver:
    """Default driver factory: a fresh Playwright page."""
    return await PlaywrightDriver(settings).start()


class SessionNotFoundError(KeyError):
    """Raised when a session id has no stream or run."""


class TaskAlreadyRunningError(RuntimeError):
    """Raised when a run is requested while another is still active."""


@dataclass
class AutomationRun:
    session_id: str
    objective: str
    engine: TaskEngine
    driver: BrowserDriver
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())
    task: Optional[asyncio.Task] = None
    result: Optional[TaskResult] = None
    error: Optional[str] = None
    webhook: Optional[LoggingService] = None

    @property
    def is_running(self) -> bool:
        return self.task is not None and not self.task.done()


class AutomationService:
    """Registry of streams and runs keyed by session id."""

    def __init__(self, settings: Settings, driver_factory: Optional[DriverFactory] = None,
                 ai: Optional[AITextGenerator] = None):
        self.settings = settings
        self.driver_factory = driver_factory or launch_playwright_driver
        self.ai = ai
        self.exporter = ExecutionExporter()
        self._streams: Dict[str, ExecutionStream] = {}
        self._runs: Dict[str, AutomationRun] = {}

    # =========================================================================
    # STREAMS
    # =========================================================================

    def get_stream(self, session_id: str) -> ExecutionStream:
        """Stream of a session started through ``start_task``."""
        stream = self._streams.get(session_id)
        if stream is None:
            raise SessionNotFoundError(session_id)
        return stream

    def _open_stream(self, session_id: str) -> ExecutionStream:
        stream = self._streams.get(session_id)
        if stream is None:
            stream = ExecutionStream(self.settings)
            self._streams[session_id] = stream
        stream.start_cleanup()
        return stream

    # =========================================================================
    # RUNS
    # =========================================================================

    def active_run(self) -> Optional[AutomationRun]:
        for run in self._runs.values():
            if run.is_running:
                return run
        return None

    async def _evict_finished_runs(self, keep: int) -> List[str]:
        """Drop all but the ``keep`` most recent finished runs and their streams."""
        finished = [session_id for session_id, run in self._runs.items() if not run.is_running]
        evicted = finished[:max(0, len(finished) - keep)]
        for session_id in evicted:
            del self._runs[session_id]
            stream = self._streams.pop(session_id, None)
            if stream is not None:
                await stream.stop_cleanup()
                stream.observers.clear()
        if evicted:
            logger.info(f"Evicted {len(evicted)} finished run(s)")
        return evicted

    async def start_task(self, request: TaskRequest) -> str:
        """
        Start a run in the background and return its session id.

        Raises:
            TaskAlreadyRunningError: another run is still active
        """
        active = self.active_run()
        if active is not None:
            raise TaskAlreadyRunningError(f"Session {active.session_id} is still running")

        session_id = request.sessionId or f"session_{uuid.uuid4().hex[:12]}"
        await self._evict_finished_runs(keep=max(0, self.settings.max_finished_runs - 1))
        driver = await self.driver_factory(self.settings)
        stream = self._open_stream(session_id)
        webhook = None
        if self.settings.logging_url:
            webhook = LoggingService(self.settings.logging_url)
            stream.add_observer("webhook", webhook, sweepable=False)
        engine = TaskEngine(driver=driver, ai=self.ai or LLMService(self.settings), stream=stream,
                            settings=self.settings)

        run = AutomationRun(session_id=session_id, objective=request.objective, engine=engine, driver=driver,
                            webhook=webhook)
        context = TaskContext(objective=request.objective, constraints=list(request.constraints),
                              variables=dict(request.variables))
        run.task = asyncio.create_task(self._execute(run, context))
        # Re-insert so a reused session id counts as the newest run
        self._runs.pop(session_id, None)
        self._runs[session_id] = run
        logger.info(f"Started run for session {session_id}: {request.objective}")
        return session_id

    async def _execute(self, run: AutomationRun, context: TaskContext) -> None:
        try:
            run.result = await run.engine.execute_task(run.objective, context, session_id=run.session_id)
        except Exception as e:
            logger.error(f"Run {run.session_id} crashed: {e}", exc_info=True)
            run.error = str(e)
        finally:
            close = getattr(run.driver, "close", None)
            if close is not None:
                try:
                    await close()
                except Exception as e:
                    logger.warning(f"Failed to close browser for {run.session_id}: {e}")
            if run.webhook is not None:
                await run.webhook.close()
                self._streams[run.session_id].remove_observer("webhook")

    def get_run(self, session_id: str) -> AutomationRun:
        run = self._runs.get(session_id)
        if run is None:
            raise SessionNotFoundError(session_id)
        return run

    def pause(self, session_id: str) -> bool:
        run = self.get_run(session_id)
        if not run.is_running:
            return False
        run.engine.pause()
        return True

    def resume(self, session_id: str) -> bool:
        return self.get_run(session_id).engine.resume()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_status(self, session_id: str) -> Dict[str, Any]:
        status = self.get_stream(session_id).get_execution_status()
        run = self._runs.get(session_id)
        status["isRunning"] = bool(run and run.is_running)
        status["isPaused"] = bool(run and run.engine.pause_gate.is_paused)
        return status

    def get_history(self, session_id: str) -> List[Dict[str, Any]]:
        stream = self.get_stream(session_id)
        return [event.model_dump(mode="json") for event in stream.get_execution_history()]

    def export(self, session_id: str) -> Optional[Dict[str, Any]]:
        """Export document of a finished run, or None while it is still running."""
        run = self.get_run(session_id)
        if run.is_running:
            return None
        result = run.result or TaskResult(success=False, steps=[], error=run.error)
        return self.exporter.export_task_result(run.objective, result)

    async def shutdown(self) -> None:
        """Cancel running tasks and stop stream sweeps."""
        for run in self._runs.values():
            if run.is_running:
                run.task.cancel()
                try:
                    await run.task
                except asyncio.CancelledError:
                    logger.info(f"Cancelled run {run.session_id}")
        for stream in self._streams.values():
            await stream.stop_cleanup()
        self._streams.clear()
        self._runs.clear()
