"""Fire-and-forget event delivery to the AgentOps collector.

Every event is POSTed as JSON with a bearer token.  Delivery never raises
into the caller: failures are logged, counted in :class:`DeliveryStats` and
reported through an optional callback.  Nothing is retried or queued.
"""

from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import wait as wait_futures
from dataclasses import asdict, dataclass
from typing import Any, Union

import httpx
from loguru import logger

from agentops_lite.tracking.constants import DEFAULT_ENDPOINT
from agentops_lite.tracking.models import Event


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt."""

    event_id: str
    ok: bool
    status_code: int | None = None
    error: str | None = None
    skipped: bool = False  # no API key, or sender already closed


@dataclass
class DeliveryStats:
    """Running counters of delivery outcomes."""

    sent: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def attempted(self) -> int:
        return self.sent + self.failed

    @property
    def drop_rate(self) -> float:
        total = self.attempted + self.skipped
        if not total:
            return 0.0
        return (self.failed + self.skipped) / total

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "attempted": self.attempted, "drop_rate": round(self.drop_rate, 3)}


# asyncio.Task inside a running loop, concurrent Future from a delivery thread
DeliveryHandle = Union["asyncio.Task[DeliveryResult]", "Future[DeliveryResult]"]

ResultCallback = Callable[[DeliveryResult], None]


class EventSender:
    """Posts events to the collector without blocking the caller.

    Inside a running event loop a delivery is scheduled as a task on that
    loop.  Outside one it runs on a daemon thread with its own short-lived
    client, so an unfinished delivery never keeps the host process alive.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = DEFAULT_ENDPOINT,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        on_result: ResultCallback | None = None,
    ):
        self._api_key = api_key
        self._endpoint = endpoint or DEFAULT_ENDPOINT
        self._transport = transport
        self._on_result = on_result
        self._client: httpx.AsyncClient | None = None
        self._client_loop: asyncio.AbstractEventLoop | None = None
        self._pending: set[Any] = set()
        self._lock = threading.Lock()
        self._closed = False
        self._warned_no_key = False
        self.stats = DeliveryStats()

    # ── Properties ─────────────────────────────────────────────────────

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    @property
    def pending(self) -> int:
        """Number of deliveries still in flight."""
        with self._lock:
            return len(self._pending)

    # ── HTTP client ────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

    def _new_client(self) -> httpx.AsyncClient:
        # No timeout: a hanging request is never bounded or cancelled.
        return httpx.AsyncClient(transport=self._transport, timeout=None)

    async def _get_client(self) -> httpx.AsyncClient:
        loop = asyncio.get_running_loop()
        if self._client is None or self._client.is_closed or self._client_loop is not loop:
            self._client = self._new_client()
            self._client_loop = loop
        return self._client

    # ── Delivery ───────────────────────────────────────────────────────

    @staticmethod
    def _serialize(event: Event) -> str:
        return json.dumps(event.to_dict(), default=str)

    async def send(
        self,
        event: Event,
        client: httpx.AsyncClient | None = None,
        body: str | None = None,
    ) -> DeliveryResult:
        """POST one event and return its outcome.  Never raises.

        *body* is the event already serialized by :meth:`submit`; when it is
        omitted the event is serialized here.
        """
        try:
            if body is None:
                body = self._serialize(event)
            http = client or await self._get_client()
            response = await http.post(self._endpoint, content=body, headers=self._headers())
        except Exception as e:
            logger.error(f"AgentOps: failed to send event {event.id}: {e}")
            result = DeliveryResult(event_id=event.id, ok=False, error=str(e) or type(e).__name__)
        else:
            if response.is_success:
                result = DeliveryResult(
                    event_id=event.id, ok=True, status_code=response.status_code
                )
            else:
                logger.warning(
                    f"AgentOps: collector rejected event {event.id} "
                    f"(HTTP {response.status_code})"
                )
                result = DeliveryResult(
                    event_id=event.id,
                    ok=False,
                    status_code=response.status_code,
                    error=f"HTTP {response.status_code}",
                )
        self._finish(result)
        return result

    async def _send_isolated(self, event: Event, body: str) -> DeliveryResult:
        async with self._new_client() as client:
            return await self.send(event, client=client, body=body)

    def _spawn(self, event: Event, body: str) -> Future[DeliveryResult]:
        future: Future[DeliveryResult] = Future()
        future.set_running_or_notify_cancel()

        def run():
            try:
                future.set_result(asyncio.run(self._send_isolated(event, body)))
            except Exception as e:
                future.set_exception(e)

        # Daemon: deliveries still in flight at interpreter exit are dropped.
        thread = threading.Thread(target=run, name=f"agentops-delivery-{event.id[:8]}", daemon=True)
        thread.start()
        return future

    def submit(self, event: Event) -> DeliveryHandle | None:
        """Launch delivery of *event* and return immediately.

        Returns ``None`` when delivery is suppressed (no API key, or the
        sender is closed); the skip is still counted and reported.
        """
        if not self._api_key:
            if not self._warned_no_key:
                logger.warning("AgentOps: API key not configured, events are kept locally only")
                self._warned_no_key = True
            else:
                logger.debug(f"AgentOps: delivery skipped for event {event.id} (no API key)")
            self._finish(DeliveryResult(event_id=event.id, ok=False, skipped=True))
            return None
        if self._closed:
            logger.debug(f"AgentOps: delivery skipped for event {event.id} (sender closed)")
            self._finish(DeliveryResult(event_id=event.id, ok=False, skipped=True))
            return None

        # Snapshot the payload now; callers may mutate their objects afterwards.
        try:
            body = self._serialize(event)
        except Exception as e:
            logger.error(f"AgentOps: failed to serialize event {event.id}: {e}")
            self._finish(
                DeliveryResult(event_id=event.id, ok=False, error=str(e) or type(e).__name__)
            )
            return None

        handle: Any
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            handle = self._spawn(event, body)
        else:
            handle = loop.create_task(self.send(event, body=body))

        with self._lock:
            self._pending.add(handle)
        handle.add_done_callback(self._discard)
        return handle

    def _discard(self, handle: Any) -> None:
        with self._lock:
            self._pending.discard(handle)

    def _finish(self, result: DeliveryResult) -> None:
        with self._lock:
            if result.ok:
                self.stats.sent += 1
            elif result.skipped:
                self.stats.skipped += 1
            else:
                self.stats.failed += 1
        if self._on_result is None:
            return
        try:
            self._on_result(result)
        except Exception:
            logger.exception("AgentOps: delivery result callback failed")

    # ── Draining / shutdown ────────────────────────────────────────────

    def wait(self, timeout: float | None = None) -> bool:
        """Block until thread deliveries finish.  Returns False on timeout."""
        with self._lock:
            futures = [h for h in self._pending if isinstance(h, Future)]
        if not futures:
            return True
        _, not_done = wait_futures(futures, timeout=timeout)
        return not not_done

    async def flush(self) -> None:
        """Await every in-flight delivery reachable from the current loop."""
        loop = asyncio.get_running_loop()
        with self._lock:
            pending = list(self._pending)
        awaitables = []
        for handle in pending:
            if isinstance(handle, asyncio.Future):
                if handle.get_loop() is loop:
                    awaitables.append(handle)
            else:
                awaitables.append(asyncio.wrap_future(handle))
        if awaitables:
            await asyncio.gather(*awaitables, return_exceptions=True)

    def close(self, wait: bool = True) -> None:
        """Stop accepting deliveries, optionally waiting for thread deliveries."""
        self._closed = True
        if wait:
            self.wait()
        if self._client_loop is not None and self._client_loop.is_closed():
            self._client = None
            self._client_loop = None

    async def aclose(self) -> None:
        """Drain in-flight deliveries, then release the HTTP client."""
        await self.flush()
        self.close(wait=True)
        if self._client is not None and not self._client.is_closed:
            if self._client_loop is asyncio.get_running_loop():
                await self._client.aclose()
            self._client = None
            self._client_loop = None
