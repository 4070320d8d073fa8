"""Shared test fixtures for the tracker.

Provides an httpx mock collector and trackers wired to it.
"""

import json
import threading

import httpx
import pytest

from agentops_lite.tracking import Tracker, TrackerConfig


class FakeCollector:
    """Records every POST received through an httpx.MockTransport."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def bodies(self) -> list[dict]:
        with self._lock:
            return [json.loads(r.content) for r in self.requests]

    def of_type(self, event_type: str) -> list[dict]:
        return [b for b in self.bodies if b["data"].get("event_type") == event_type]


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def make_tracker(collector):
    """Factory for trackers delivering to the fake collector."""
    created: list[Tracker] = []

    def _make(api_key: str = "test-key", **options) -> Tracker:
        tracker = Tracker(transport=collector.transport)
        tracker.init(api_key, TrackerConfig(**options))
        created.append(tracker)
        return tracker

    yield _make
    for tracker in created:
        tracker.close()


@pytest.fixture
def tracker(make_tracker) -> Tracker:
    """Initialized tracker with an auto-started session."""
    return make_tracker()


@pytest.fixture
def drain():
    """Block until a tracker's thread deliveries have finished."""

    def _drain(tracker: Tracker) -> None:
        assert tracker.sender.wait(timeout=5)

    return _drain
