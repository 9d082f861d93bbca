"""
Execution Event Stream

Session-scoped publish/subscribe channel for planning and execution events.

- ``start_session`` resets history and broadcasts a reset event.
- Every ``notify`` appends to bounded history, then broadcasts.
- Observers added mid-session get a connection message, then a replay of the
  most recent history.
- A background sweep drops observers that have not been reachable recently.

One stream instance belongs to one run. Construct it explicitly and hand it to
the engine.

Usage:
    stream = ExecutionStream()
    stream.start_session("session-1")
    stream.add_observer("client-1", QueueObserver())
    stream.notify_page_change("https://example.com", "Example")
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from webpilot.core.config import Settings, settings as default_settings
from webpilot.models.events import (
    ExecutionCompleteEvent,
    ExecutionEvent,
    ExecutionSession,
    HierarchicalPlanCreatedEvent,
    PageChangeEvent,
    PlanCreatedEvent,
    SessionStartedEvent,
    StepCompleteEvent,
    StepErrorEvent,
    StepStartEvent,
    StreamMessage,
    SubPlanCompletedEvent,
    SubPlanStartEvent,
)
from webpilot.models.plan import ActionStep, HierarchicalPlan
from webpilot.streaming.observers import Observer, ObserverRegistry

logger = logging.getLogger(__name__)


class ExecutionStream:
    """Broadcasts execution events of the current session to all observers."""

    def __init__(self, settings: Optional[Settings] = None, registry: Optional[ObserverRegistry] = None):
        self.settings = settings or default_settings
        self.observers = registry or ObserverRegistry()
        self._session: Optional[ExecutionSession] = None
        self._cleanup_task: Optional[asyncio.Task] = None

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    @property
    def session(self) -> Optional[ExecutionSession]:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session is not None and self._session.ended_at is None

    def start_session(self, session_id: str) -> ExecutionSession:
        """Start a new session, discarding the previous one and its history."""
        self._session = ExecutionSession(session_id=session_id)
        logger.info(f"Execution session started: {session_id}")
        self.broadcast(StreamMessage(
            type="execution_event",
            session_id=session_id,
            data=SessionStartedEvent(session_id=session_id).model_dump(mode="json")
        ))
        return self._session

    def end_session(self) -> None:
        """Close the current session. Its history stays readable; later notify calls are no-ops."""
        if not self.is_active:
            return
        self._session.ended_at = datetime.now().isoformat()
        logger.info(f"Execution session ended: {self._session.session_id}")

    # =========================================================================
    # PUBLISHING
    # =========================================================================

    def broadcast(self, message: StreamMessage) -> int:
        """Deliver a message to every connected observer."""
        return self.observers.broadcast(message)

    def notify(self, event: ExecutionEvent) -> bool:
        """
        Append an event to history and broadcast it.

        Returns False (and does nothing else) when no session is active.
        """
        if not self.is_active:
            logger.debug(f"No active session, dropping {event.type} event")
            return False

        history = self._session.history
        history.append(event)
        overflow = len(history) - self.settings.history_limit
        if overflow > 0:
            del history[:overflow]

        self.broadcast(StreamMessage(
            type="execution_event",
            session_id=self._session.session_id,
            data=event.model_dump(mode="json")
        ))
        return True

    def _session_id(self) -> Optional[str]:
        return self._session.session_id if self._session else None

    def notify_plan_created(self, steps: List[ActionStep]) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(PlanCreatedEvent(session_id=session_id, total_steps=len(steps), steps=steps))

    def notify_hierarchical_plan_created(self, plan: HierarchicalPlan) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(HierarchicalPlanCreatedEvent(
            session_id=session_id,
            plan_id=plan.id,
            global_objective=plan.global_objective,
            planning_strategy=plan.planning_strategy.value,
            sub_objectives=[sub_plan.objective for sub_plan in plan.sub_plans],
            total_estimated_duration=plan.total_estimated_duration
        ))

    def notify_sub_plan_start(self, index: int, sub_plan_id: str, objective: str, total: int, step_count: int) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        self._session.current_sub_plan_index = index
        return self.notify(SubPlanStartEvent(
            session_id=session_id,
            sub_plan_index=index,
            sub_plan_id=sub_plan_id,
            objective=objective,
            total_sub_plans=total,
            step_count=step_count
        ))

    def notify_sub_plan_completed(self, index: int, sub_plan_id: str, success: bool,
                                  completed_steps: int, total_steps: int) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(SubPlanCompletedEvent(
            session_id=session_id,
            sub_plan_index=index,
            sub_plan_id=sub_plan_id,
            success=success,
            completed_steps=completed_steps,
            total_steps=total_steps
        ))

    def notify_step_start(self, step_index: int, step: ActionStep) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(StepStartEvent(
            session_id=session_id,
            step_index=step_index,
            step=step,
            sub_plan_index=self._session.current_sub_plan_index
        ))

    def notify_step_complete(self, step_index: int, step: ActionStep, duration_ms: int = 0,
                             selector_used: Optional[str] = None, extracted_data: Any = None,
                             has_screenshot: bool = False) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(StepCompleteEvent(
            session_id=session_id,
            step_index=step_index,
            step=step,
            duration_ms=duration_ms,
            selector_used=selector_used,
            extracted_data=extracted_data,
            has_screenshot=has_screenshot
        ))

    def notify_step_error(self, step_index: int, step: ActionStep, error: str, attempts: int = 0) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(StepErrorEvent(
            session_id=session_id, step_index=step_index, step=step, error=error, attempts=attempts
        ))

    def notify_page_change(self, url: str, title: str = "") -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(PageChangeEvent(session_id=session_id, url=url, title=title))

    def notify_execution_complete(self, success: bool, total_steps: int = 0, successful_steps: int = 0,
                                  duration_ms: int = 0, error: Optional[str] = None) -> bool:
        session_id = self._session_id()
        if session_id is None:
            return False
        return self.notify(ExecutionCompleteEvent(
            session_id=session_id,
            success=success,
            total_steps=total_steps,
            successful_steps=successful_steps,
            duration_ms=duration_ms,
            error=error
        ))

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def add_observer(self, observer_id: str, observer: Observer, sweepable: bool = True) -> None:
        """
        Register an observer and bring it up to date.

        The observer first receives a connection message, then one history
        message holding the most recent events. Events emitted before it
        connected reach it only through that replay. Observers registered with
        ``sweepable=False`` are exempt from the stale-observer sweep.
        """
        self.observers.add(observer_id, observer, sweepable=sweepable)

        session_id = self._session_id()
        connected = self.observers.send_to(observer_id, StreamMessage(
            type="connection",
            session_id=session_id,
            data={"observer_id": observer_id, "is_active": self.is_active}
        ))
        window = self.settings.replay_window
        if not connected or self._session is None or window <= 0:
            return

        recent = self._session.history[-window:]
        self.observers.send_to(observer_id, StreamMessage(
            type="history",
            session_id=session_id,
            data=[event.model_dump(mode="json") for event in recent]
        ))

    def remove_observer(self, observer_id: str) -> bool:
        return self.observers.remove(observer_id)

    def sweep_stale_observers(self) -> List[str]:
        return self.observers.remove_stale(self.settings.observer_timeout_seconds)

    def start_cleanup(self) -> None:
        """Start the periodic stale-observer sweep on the running loop."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        if self._cleanup_task is None:
            return
        self._cleanup_task.cancel()
        try:
            await self._cleanup_task
        except asyncio.CancelledError:
            pass
        self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.cleanup_interval_seconds)
            self.sweep_stale_observers()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_execution_status(self) -> Dict[str, Any]:
        history = self._session.history if self._session else []
        return {
            "sessionId": self._session_id(),
            "isActive": self.is_active,
            "totalEvents": len(history),
            "connectedClients": self.observers.count(),
            "lastEvent": history[-1].model_dump(mode="json") if history else None,
        }

    def get_execution_history(self) -> List[ExecutionEvent]:
        if self._session is None:
            return []
        return list(self._session.history)
