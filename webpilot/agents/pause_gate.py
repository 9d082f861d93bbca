"""
Pause Gate

Cooperative pause point checked before each step's first attempt. Scoped to
one run and supports exactly one waiter: the execution flow is sequential,
so a second concurrent waiter indicates a bug and raises.

Usage:
    gate = PauseGate()
    gate.pause()
    ...
    await gate.wait_if_paused()   # in the execution flow
    gate.resume()                 # from the API
"""

import asyncio
from typing import Optional


class PauseGate:
    """Single-waiter pause/resume signal."""

    def __init__(self):
        self._paused = False
        self._resume_event: Optional[asyncio.Event] = None

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def has_waiter(self) -> bool:
        return self._resume_event is not None

    def pause(self) -> None:
        """Request a pause. Repeated requests collapse into one."""
        if not self._paused:
            print("[PAUSE] ⏸️ Execution paused")
        self._paused = True

    def resume(self) -> bool:
        """Release the waiter, if any. Returns False when not paused."""
        if not self._paused:
            return False
        self._paused = False
        if self._resume_event is not None:
            self._resume_event.set()
        print("[PAUSE] ▶️ Execution resumed")
        return True

    async def wait_if_paused(self) -> None:
        """Suspend while paused."""
        if not self._paused:
            return
        if self._resume_event is not None:
            raise RuntimeError("A step is already waiting on this pause gate")

        self._resume_event = asyncio.Event()
        try:
            while self._paused:
                self._resume_event.clear()
                await self._resume_event.wait()
        finally:
            self._resume_event = None
