"""
API Routes

Route definitions kept out of main.py. Runs are started in the background
and followed over a server-sent event stream.

Usage:
    from fastapi import FastAPI
    from api.routes import router

    app = FastAPI()
    app.include_router(router)
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from webpilot import __version__
from webpilot.core.config import settings
from webpilot.models.message import ControlResponse, TaskRequest, TaskResponse
from webpilot.services.automation_service import (
    AutomationService,
    SessionNotFoundError,
    TaskAlreadyRunningError,
)
from webpilot.streaming.observers import QueueObserver

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0

router = APIRouter(
    prefix="",
    tags=["automation"]
)

_service: Optional[AutomationService] = None


def get_automation_service() -> AutomationService:
    """Process-wide service; overridden in tests through dependency_overrides."""
    global _service
    if _service is None:
        _service = AutomationService(settings)
    return _service


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Unknown session: {session_id}")


@router.get("/")
def read_root():
    return {"status": "WebPilot agent is running."}


@router.get("/health")
def health_check():
    """Health check endpoint for Docker and monitoring."""
    return {
        "status": "healthy",
        "service": "webpilot-agent",
        "version": __version__
    }


@router.post("/execute-task", response_model=TaskResponse)
async def execute_task(request: TaskRequest, service: AutomationService = Depends(get_automation_service)):
    """
    Start a browser automation run in the background.

    Responds immediately with the session id to follow on
    /execution/{session_id}/stream.
    """
    logger.info(f"Received task request: {request.objective} (session: {request.sessionId})")

    try:
        session_id = await service.start_task(request)
    except TaskAlreadyRunningError as e:
        return TaskResponse(status="already_processing", sessionId=request.sessionId, message=str(e))
    except Exception as e:
        logger.error(f"Failed to start run: {e}", exc_info=True)
        return TaskResponse(status="error", sessionId=request.sessionId, error=str(e))

    return TaskResponse(
        status="success",
        sessionId=session_id,
        message="Automation run has been started in the background."
    )


@router.get("/execution/{session_id}/stream")
async def stream_execution(session_id: str, request: Request,
                           service: AutomationService = Depends(get_automation_service)):
    """
    Server-sent event stream of a session's execution events.

    The first frames are the connection message and the replay of recent
    history. A comment frame is sent when the stream is idle so proxies keep
    the connection open.
    """
    try:
        stream = service.get_stream(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    observer_id = f"sse_{uuid.uuid4().hex[:8]}"
    observer = QueueObserver(loop=asyncio.get_running_loop())
    stream.add_observer(observer_id, observer)

    async def event_source():
        try:
            while not await request.is_disconnected():
                try:
                    message = await asyncio.wait_for(observer.queue.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    stream.observers.touch(observer_id)
                    yield ": keepalive\n\n"
                    continue
                stream.observers.touch(observer_id)
                yield f"data: {message.model_dump_json()}\n\n"
        finally:
            observer.close()
            stream.remove_observer(observer_id)

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}
    )


@router.get("/execution/{session_id}/status")
async def execution_status(session_id: str,
                           service: AutomationService = Depends(get_automation_service)) -> Dict[str, Any]:
    try:
        return service.get_status(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.get("/execution/{session_id}/history")
async def execution_history(session_id: str,
                            service: AutomationService = Depends(get_automation_service)) -> List[Dict[str, Any]]:
    try:
        return service.get_history(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)


@router.post("/execution/{session_id}/pause", response_model=ControlResponse)
async def pause_execution(session_id: str, service: AutomationService = Depends(get_automation_service)):
    """Pause before the next step; the step in flight finishes first."""
    try:
        paused = service.pause(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    return ControlResponse(status="paused" if paused else "not_paused", sessionId=session_id)


@router.post("/execution/{session_id}/resume", response_model=ControlResponse)
async def resume_execution(session_id: str, service: AutomationService = Depends(get_automation_service)):
    try:
        resumed = service.resume(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    return ControlResponse(status="resumed" if resumed else "not_paused", sessionId=session_id)


@router.get("/execution/{session_id}/export")
async def export_execution(session_id: str, service: AutomationService = Depends(get_automation_service)):
    """JSON export of a finished run."""
    try:
        document = service.export(session_id)
    except SessionNotFoundError:
        raise _not_found(session_id)
    if document is None:
        raise HTTPException(status_code=409, detail="Run has not finished yet")
    return document
