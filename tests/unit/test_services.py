"""
Unit Tests for services and utilities

Tests for LLMService, LoggingService, helpers and page content reduction
"""

import time
from unittest.mock import AsyncMock, Mock, patch

import pytest
import requests

from webpilot.models.events import StreamMessage
from webpilot.services.llm_service import AITextGenerator, LLMService
from webpilot.services.logging_service import LoggingService
from webpilot.utils.helpers import normalize_url, truncate_string, validate_url
from webpilot.utils.page_content import extract_interactive_elements, extract_readable_text


class TestLLMService:
    """Tests for LLMService."""

    def test_satisfies_generator_protocol(self, test_settings):
        assert isinstance(LLMService(test_settings), AITextGenerator)

    def test_missing_api_key(self, test_settings):
        service = LLMService(test_settings.model_copy(update={"GEMINI_API_KEY": None}))
        with pytest.raises(ValueError):
            service.get_model()

    @pytest.mark.asyncio
    async def test_generate_text_joins_content_parts(self, test_settings):
        service = LLMService(test_settings)
        model = Mock()
        model.ainvoke = AsyncMock(return_value=Mock(content=[{"text": '{"steps": '}, {"text": "[]}"}]))
        service._model = model

        text = await service.generate_text("Plan", system_prompt="You plan")

        assert text == '{"steps": []}'
        messages = model.ainvoke.call_args[0][0]
        assert [m.content for m in messages] == ["You plan", "Plan"]


class TestLoggingService:
    """Tests for the webhook observer."""

    def test_sanitize_message(self):
        assert LoggingService.sanitize_message("a\x00b\x07c   d\n\n\n\ne") == "abc d\n\ne"
        assert LoggingService.sanitize_message("x" * 20, max_length=5).startswith("xxxxx\n\n[Response truncated")

    def test_post_sends_json(self):
        sink = LoggingService("http://localhost:9999/log")
        message = StreamMessage(type="execution_event", session_id="s1",
                                data={"type": "step_error", "error": "bad\x00 error"})

        with patch("webpilot.services.logging_service.requests.post") as post:
            post.return_value = Mock(raise_for_status=Mock())
            assert sink.post(message) is True

        payload = post.call_args.kwargs["json"]
        assert payload["session_id"] == "s1"
        assert payload["data"]["error"] == "bad error"

    def test_network_errors_swallowed(self):
        sink = LoggingService("http://localhost:9999/log")
        with patch("webpilot.services.logging_service.requests.post",
                   side_effect=requests.exceptions.ConnectionError("down")):
            assert sink.post(StreamMessage(type="connection")) is False
            sink.send(StreamMessage(type="connection"))

    @pytest.mark.asyncio
    async def test_send_does_not_block_event_loop(self):
        sink = LoggingService("http://localhost:9999/log")

        def slow_post(*args, **kwargs):
            time.sleep(0.3)
            return Mock(raise_for_status=Mock())

        with patch("webpilot.services.logging_service.requests.post", side_effect=slow_post) as post:
            started = time.monotonic()
            sink.send(StreamMessage(type="connection", session_id="s1"))
            assert time.monotonic() - started < 0.1

            await sink.flush()
            assert post.call_count == 1
            await sink.close()

    @pytest.mark.asyncio
    async def test_messages_posted_in_order(self):
        sink = LoggingService("http://localhost:9999/log")
        with patch("webpilot.services.logging_service.requests.post") as post:
            post.return_value = Mock(raise_for_status=Mock())
            for index in range(5):
                sink.send(StreamMessage(type="execution_event", data={"index": index}))
            await sink.close()

        assert [call.kwargs["json"]["data"]["index"] for call in post.call_args_list] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_close_stops_worker(self):
        sink = LoggingService("http://localhost:9999/log")
        with patch("webpilot.services.logging_service.requests.post",
                   side_effect=requests.exceptions.ConnectionError("down")):
            sink.send(StreamMessage(type="connection"))
            worker = sink._worker
            await sink.close()

        assert worker.done()
        assert sink._worker is None


class TestHelpers:
    """Tests for helper utilities."""

    def test_validate_url(self):
        assert validate_url("https://example.com/path?q=1")
        assert not validate_url("not a url")
        assert not validate_url("https://the store homepage")

    @pytest.mark.parametrize("value,expected", [
        ("example.com/page", "https://example.com/page"),
        ("https://example.com", "https://example.com"),
        ("about:blank", "about:blank"),
        ("localhost:8080", "https://localhost:8080"),
        ("  'example.org' ", "https://example.org"),
        ("", None),
    ])
    def test_normalize_url(self, value, expected):
        assert normalize_url(value) == expected

    def test_truncate_string(self):
        assert truncate_string("hello world", 8) == "hello..."
        assert truncate_string("short", 8) == "short"


class TestPageContent:
    """Tests for page content reduction."""

    HTML = """
    <html><head><style>body {}</style><script>var x = 1;</script></head>
    <body>
      <h1>Sign in</h1>
      <form>
        <input type="hidden" name="csrf" value="t">
        <input id="email" type="email" placeholder="Email">
        <input name="password" type="password">
        <button type="submit">Log in</button>
      </form>
      <a href="/help">Help</a>
    </body></html>
    """

    def test_readable_text_drops_scripts(self):
        text = extract_readable_text(self.HTML)
        assert "Sign in" in text
        assert "var x" not in text

    def test_readable_text_truncated(self):
        assert extract_readable_text(self.HTML, max_chars=15).endswith("[Truncated]")

    def test_interactive_elements(self):
        elements = extract_interactive_elements(self.HTML)

        assert [e["selector"] for e in elements] == [
            "#email", 'input[name="password"]', 'button:has-text("Log in")', 'a:has-text("Help")'
        ]
        assert elements[-1]["href"] == "/help"
