"""
Logging Service

Forwards execution stream messages to an external HTTP endpoint (for example
a frontend that relays them over a WebSocket). Registered as a stream
observer; delivery problems are reported and never interrupt a run.

Inside a running event loop, `send` only queues the message. A single worker
task posts queued messages in order through `asyncio.to_thread`, so a slow
endpoint never stalls the loop that runs the engine.

Usage:
    from webpilot.services.logging_service import LoggingService
    from webpilot.core.config import settings

    sink = LoggingService(settings.logging_url)
    stream.add_observer("webhook", sink)
"""

import asyncio
import re
from typing import Optional

import requests

from webpilot.models.events import StreamMessage


class LoggingService:
    """Posts sanitized stream messages to a webhook URL."""

    def __init__(self, url: str, timeout: float = 5):
        """
        Initialize logging service.

        Args:
            url: Endpoint that receives execution messages
            timeout: Request timeout in seconds
        """
        self.url = url
        self.timeout = timeout
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @staticmethod
    def sanitize_message(message: str, max_length: int = 10000) -> str:
        """
        Sanitize text before sending it out.

        Removes null bytes and control characters (except newlines and tabs),
        collapses whitespace runs and enforces a maximum length.
        """
        message = message.replace('\x00', '')
        message = ''.join(
            char for char in message
            if char in ('\n', '\t') or (ord(char) >= 32 and ord(char) != 127)
        )
        message = re.sub(r'\n{3,}', '\n\n', message)
        message = re.sub(r' {2,}', ' ', message)
        message = message.strip()

        if len(message) > max_length:
            message = message[:max_length] + "\n\n[Response truncated due to length]"

        return message

    def send(self, message: StreamMessage) -> None:
        """
        Stream observer entry point.

        Network errors are logged to the console and swallowed so a flaky
        endpoint is not deregistered from the stream. Without a running loop
        the message is posted synchronously.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.post(message)
            return

        if self._worker is None or self._worker.done():
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._deliver())
        self._queue.put_nowait(message)

    async def _deliver(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await asyncio.to_thread(self.post, message)
            except Exception as e:
                print(f"[LoggingService] Dropped event for {self.url}: {e}")
            finally:
                self._queue.task_done()

    async def flush(self) -> None:
        """Wait until every queued message has been posted."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            await self._queue.join()

    async def close(self) -> None:
        """Post what is still queued, then stop the worker."""
        await self.flush()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

    def post(self, message: StreamMessage) -> bool:
        payload = message.model_dump(mode="json")
        data = payload.get("data")
        if isinstance(data, dict) and isinstance(data.get("error"), str):
            data["error"] = self.sanitize_message(data["error"])

        try:
            response = requests.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return True
        except requests.exceptions.RequestException as e:
            print(f"[LoggingService] Could not send event to {self.url}: {e}")
            return False
