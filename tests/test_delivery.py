"""Tests for EventSender: wire format, fire-and-forget semantics, failure handling."""

import asyncio
import json
import subprocess
import sys
import textwrap
import threading
import time
from concurrent.futures import Future

import httpx
import pytest

from agentops_lite.tracking import DeliveryStats, EventSender, EventType, Tracker
from agentops_lite.tracking.constants import DEFAULT_ENDPOINT
from agentops_lite.tracking.models import Event


def _event(**data) -> Event:
    return Event.create(EventType.LLM, {"event_type": "llm_call", **data}, session_id="s1")


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------


class TestWireFormat:
    @pytest.mark.asyncio
    async def test_post_with_bearer_and_json(self, collector):
        sender = EventSender("secret", transport=collector.transport)
        event = _event(model="gpt", prompt="p", response="r")

        result = await sender.send(event)

        assert result.ok
        assert result.status_code == 200
        (request,) = collector.requests
        assert request.method == "POST"
        assert str(request.url) == DEFAULT_ENDPOINT
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["Content-Type"] == "application/json"
        body = json.loads(request.content)
        assert body == {
            "id": event.id,
            "type": "llm",
            "timestamp": event.timestamp,
            "data": {"event_type": "llm_call", "model": "gpt", "prompt": "p", "response": "r"},
            "sessionId": "s1",
        }
        await sender.aclose()

    @pytest.mark.asyncio
    async def test_endpoint_override(self, collector):
        sender = EventSender("k", "http://collector.test/events", transport=collector.transport)
        await sender.send(_event())
        assert str(collector.requests[0].url) == "http://collector.test/events"
        await sender.aclose()

    @pytest.mark.asyncio
    async def test_non_json_payload_is_stringified(self, collector):
        class Opaque:
            def __repr__(self):
                return "<opaque>"

        sender = EventSender("k", transport=collector.transport)
        result = await sender.send(_event(output=Opaque()))
        assert result.ok
        assert collector.bodies[0]["data"]["output"] == "<opaque>"
        await sender.aclose()

    def test_optional_keys_omitted(self):
        event = Event.create(EventType.ACTION, {"event_type": "action"})
        assert set(event.to_dict()) == {"id", "type", "timestamp", "data"}

    def test_trace_and_tags_serialized(self):
        event = Event.create(
            EventType.CUSTOM, {"event_type": "trace_start"}, trace_id="t1", tags=["a"]
        )
        wire = event.to_dict()
        assert wire["traceId"] == "t1"
        assert wire["tags"] == ["a"]


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    @pytest.mark.asyncio
    async def test_non_success_status(self, collector):
        collector.status_code = 503
        sender = EventSender("k", transport=collector.transport)
        result = await sender.send(_event())
        assert not result.ok
        assert result.status_code == 503
        assert result.error == "HTTP 503"
        assert sender.stats.failed == 1
        await sender.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_is_swallowed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        sender = EventSender("k", transport=httpx.MockTransport(handler))
        result = await sender.send(_event())
        assert not result.ok
        assert "connection refused" in result.error
        assert sender.stats.to_dict()["failed"] == 1
        await sender.aclose()

    @pytest.mark.asyncio
    async def test_no_retry(self, collector):
        collector.status_code = 500
        sender = EventSender("k", transport=collector.transport)
        await sender.send(_event())
        assert len(collector.requests) == 1
        await sender.aclose()

    def test_missing_key_skips(self, collector):
        results = []
        sender = EventSender("", transport=collector.transport, on_result=results.append)
        assert sender.submit(_event()) is None
        assert sender.submit(_event()) is None
        assert collector.requests == []
        assert sender.stats.skipped == 2
        assert all(r.skipped for r in results)

    def test_callback_error_does_not_propagate(self, collector):
        def boom(result):
            raise RuntimeError("callback broke")

        sender = EventSender("", on_result=boom)
        assert sender.submit(_event()) is None

    def test_closed_sender_skips(self, collector):
        sender = EventSender("k", transport=collector.transport)
        sender.close()
        assert sender.submit(_event()) is None
        assert sender.stats.skipped == 1
        assert collector.requests == []


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


class TestScheduling:
    def test_submit_outside_loop_uses_delivery_thread(self, collector):
        sender = EventSender("k", transport=collector.transport)
        handle = sender.submit(_event())
        assert isinstance(handle, Future)
        result = handle.result(timeout=5)
        assert result.ok
        assert sender.wait(timeout=5)
        assert sender.stats.sent == 1
        sender.close()

    def test_delivery_threads_are_daemons(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(threading.current_thread().daemon)
            return httpx.Response(200)

        sender = EventSender("k", transport=httpx.MockTransport(handler))
        sender.submit(_event()).result(timeout=5)
        assert seen == [True]
        sender.close()

    def test_payload_snapshot_taken_at_submit(self):
        release = threading.Event()
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            release.wait(timeout=5)
            bodies.append(json.loads(request.content))
            return httpx.Response(200)

        sender = EventSender("k", transport=httpx.MockTransport(handler))
        data = {"event_type": "tool_call", "input": {"q": "original"}}
        handle = sender.submit(Event.create(EventType.TOOL, data))
        data["input"]["q"] = "changed"
        release.set()
        assert handle.result(timeout=5).ok
        assert bodies[0]["data"]["input"] == {"q": "original"}
        sender.close()

    def test_hung_collector_does_not_block_host_exit(self):
        host = textwrap.dedent(
            """
            import asyncio

            import httpx

            from agentops_lite.tracking import Tracker

            async def hang(request):
                await asyncio.sleep(30)
                return httpx.Response(200)

            tracker = Tracker(transport=httpx.MockTransport(hang))
            tracker.init("k")
            tracker.record_action(action="a", params=None, result=None)
            print("host done", flush=True)
            """
        )
        started = time.monotonic()
        proc = subprocess.run(
            [sys.executable, "-c", host], capture_output=True, text=True, timeout=25
        )
        elapsed = time.monotonic() - started

        assert "host done" in proc.stdout, proc.stderr
        assert proc.returncode == 0, proc.stderr
        assert elapsed < 10

    @pytest.mark.asyncio
    async def test_submit_inside_loop_creates_task(self, collector):
        sender = EventSender("k", transport=collector.transport)
        handle = sender.submit(_event())
        assert isinstance(handle, asyncio.Task)
        result = await handle
        assert result.ok
        await sender.aclose()

    @pytest.mark.asyncio
    async def test_submit_does_not_wait_for_slow_collector(self):
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(202)

        sender = EventSender("k", transport=httpx.MockTransport(handler))
        sender.submit(_event())
        sender.submit(_event())
        await asyncio.sleep(0)
        assert sender.pending == 2

        release.set()
        await sender.flush()
        assert sender.pending == 0
        assert sender.stats.sent == 2
        await sender.aclose()

    @pytest.mark.asyncio
    async def test_tracker_inside_loop(self, collector):
        tracker = Tracker(transport=collector.transport)
        tracker.init("k")
        trace_id = tracker.start_trace("async work")
        tracker.end_trace(trace_id)
        await tracker.aclose()

        kinds = [b["data"]["event_type"] for b in collector.bodies]
        assert sorted(kinds) == ["session_start", "trace_end", "trace_start"]


class TestStats:
    def test_drop_rate(self):
        stats = DeliveryStats(sent=6, failed=1, skipped=1)
        assert stats.attempted == 7
        assert stats.drop_rate == pytest.approx(0.25)

    def test_drop_rate_empty(self):
        assert DeliveryStats().drop_rate == 0.0
