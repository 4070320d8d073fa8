"""In-memory session/trace/event tracker with best-effort delivery.

The tracker holds at most one active session and any number of active
traces.  Every event it builds is appended locally and handed to an
:class:`EventSender`, which delivers it without blocking the caller.
"""

from __future__ import annotations

import threading
import traceback
from typing import Any

import httpx
from loguru import logger

from agentops_lite.tracking import constants as c
from agentops_lite.tracking.config import TrackerConfig
from agentops_lite.tracking.delivery import EventSender, ResultCallback
from agentops_lite.tracking.models import (
    EndState,
    Event,
    EventType,
    Session,
    Trace,
    generate_id,
    now_ms,
)


class TrackingError(RuntimeError):
    """Base class for tracker errors."""


class NotInitializedError(TrackingError):
    """A mutating operation was called before :meth:`Tracker.init`."""

    def __init__(self, message: str = "AgentOps not initialized"):
        super().__init__(message)


def _coerce_state(state: EndState | str) -> EndState | None:
    try:
        return EndState(state)
    except ValueError:
        return None


class Tracker:
    """Session, trace and event tracking client.

    The host constructs and owns the tracker; nothing is created at import
    time.  *transport* and *on_delivery* are forwarded to the
    :class:`EventSender` built by :meth:`init`.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        on_delivery: ResultCallback | None = None,
    ):
        self._transport = transport
        self._on_delivery = on_delivery
        self._config: TrackerConfig | None = None
        self._sender: EventSender | None = None
        self._active_session: Session | None = None
        self._active_traces: dict[str, Trace] = {}
        self._lock = threading.RLock()

    # ── Properties ─────────────────────────────────────────────────────

    @property
    def is_initialized(self) -> bool:
        return self._config is not None

    @property
    def config(self) -> TrackerConfig | None:
        return self._config

    @property
    def sender(self) -> EventSender | None:
        return self._sender

    # ── Initialization ─────────────────────────────────────────────────

    def init(self, api_key: str = "", config: TrackerConfig | None = None) -> None:
        """Configure the tracker.  A second call is a no-op."""
        with self._lock:
            if self._config is not None:
                logger.debug("AgentOps: already initialized, ignoring init()")
                return

            cfg = TrackerConfig.from_dict((config or TrackerConfig()).to_dict())
            if api_key:
                cfg.api_key = api_key
            self._config = cfg
            self._sender = EventSender(
                cfg.api_key,
                cfg.endpoint,
                transport=self._transport,
                on_result=self._on_delivery,
            )
            logger.debug(f"AgentOps: initialized (endpoint={cfg.endpoint})")

            if cfg.auto_start_session:
                self.start_session()

    def _require_init(self) -> TrackerConfig:
        if self._config is None:
            raise NotInitializedError()
        return self._config

    def _emit(self, event: Event) -> None:
        if self._sender is not None:
            self._sender.submit(event)

    # ── Sessions ───────────────────────────────────────────────────────

    def start_session(
        self, tags: list[str] | None = None, trace_name: str | None = None
    ) -> str:
        """Start a new session, replacing any active one, and return its id."""
        cfg = self._require_init()
        with self._lock:
            if self._active_session is not None:
                # The previous session is dropped without a session_end.
                logger.debug(f"AgentOps: replacing active session {self._active_session.id}")

            session = Session(
                id=generate_id(),
                start_time=now_ms(),
                tags=list(tags if tags is not None else cfg.tags),
                trace_name=trace_name or cfg.trace_name,
            )
            self._active_session = session

            event = Event.create(
                EventType.CUSTOM,
                {
                    "event_type": c.SESSION_START,
                    "session_id": session.id,
                    "tags": list(session.tags),
                    "trace_name": session.trace_name,
                },
                session_id=session.id,
            )
            session.events.append(event)
            self._emit(event)

        logger.debug(f"AgentOps: session {session.id} started")
        return session.id

    def end_session(self, state: EndState | str = EndState.SUCCESS) -> None:
        """Finish the active session.  No-op when none is active."""
        self._require_init()
        end_state = _coerce_state(state)
        if end_state is None:
            logger.warning(f"AgentOps: invalid end state {state!r}, end_session ignored")
            return

        with self._lock:
            session = self._active_session
            if session is None:
                return

            session.end_time = now_ms()
            session.state = end_state
            event = Event.create(
                EventType.CUSTOM,
                {
                    "event_type": c.SESSION_END,
                    "session_id": session.id,
                    "end_state": end_state.value,
                    "duration": session.duration_ms,
                },
                session_id=session.id,
            )
            session.events.append(event)
            self._emit(event)
            self._active_session = None

        logger.debug(f"AgentOps: session {session.id} ended ({end_state.value})")

    # ── Traces ─────────────────────────────────────────────────────────

    def start_trace(self, name: str, tags: list[str] | None = None) -> str:
        """Open a trace under the active session (starting one if needed)."""
        self._require_init()
        with self._lock:
            if self._active_session is None:
                self.start_session()
            session = self._active_session

            trace = Trace(
                id=generate_id(),
                name=name,
                start_time=now_ms(),
                session_id=session.id,
                tags=list(tags or []),
            )
            self._active_traces[trace.id] = trace

            data: dict[str, Any] = {
                "event_type": c.TRACE_START,
                "trace_id": trace.id,
                "trace_name": name,
            }
            if tags is not None:
                data["tags"] = list(trace.tags)
            event = Event.create(
                EventType.CUSTOM,
                data,
                session_id=session.id,
                trace_id=trace.id,
            )
            trace.events.append(event)
            self._emit(event)

        logger.debug(f"AgentOps: trace {trace.id} ({name}) started")
        return trace.id

    def end_trace(self, trace_id: str, state: EndState | str = EndState.SUCCESS) -> None:
        """Close an active trace.  Unknown or already-ended ids are ignored."""
        self._require_init()
        end_state = _coerce_state(state)
        if end_state is None:
            logger.warning(f"AgentOps: invalid end state {state!r}, end_trace ignored")
            return

        with self._lock:
            trace = self._active_traces.get(trace_id)
            if trace is None:
                logger.debug(f"AgentOps: end_trace on unknown trace {trace_id}")
                return

            trace.end_time = now_ms()
            trace.state = end_state
            event = Event.create(
                EventType.CUSTOM,
                {
                    "event_type": c.TRACE_END,
                    "trace_id": trace.id,
                    "end_state": end_state.value,
                    "duration": trace.duration_ms,
                },
                session_id=trace.session_id,
                trace_id=trace.id,
            )
            trace.events.append(event)
            self._emit(event)
            del self._active_traces[trace_id]

        logger.debug(f"AgentOps: trace {trace_id} ended ({end_state.value})")

    # ── Event recording ────────────────────────────────────────────────

    def _record(self, type: EventType, data: dict[str, Any]) -> Event:
        # Recorded events belong to the session, never to a trace.
        with self._lock:
            session = self._active_session
            event = Event.create(type, data, session_id=session.id if session else None)
            if session is not None:
                session.events.append(event)
            self._emit(event)
        return event

    def record_llm(
        self,
        model: str,
        prompt: str,
        response: str,
        tokens: int | None = None,
        cost: float | None = None,
        latency: float | None = None,
    ) -> None:
        self._require_init()
        data: dict[str, Any] = {
            "event_type": c.LLM_CALL,
            "model": model,
            "prompt": prompt,
            "response": response,
        }
        for key, value in (("tokens", tokens), ("cost", cost), ("latency", latency)):
            if value is not None:
                data[key] = value
        self._record(EventType.LLM, data)

    def record_tool(
        self,
        name: str,
        input: Any,
        output: Any,
        cost: float | None = None,
        latency: float | None = None,
    ) -> None:
        self._require_init()
        data: dict[str, Any] = {
            "event_type": c.TOOL_CALL,
            "name": name,
            "input": input,
            "output": output,
        }
        for key, value in (("cost", cost), ("latency", latency)):
            if value is not None:
                data[key] = value
        self._record(EventType.TOOL, data)

    def record_action(self, action: str, params: Any, result: Any) -> None:
        self._require_init()
        self._record(
            EventType.ACTION,
            {"event_type": c.ACTION, "action": action, "params": params, "result": result},
        )

    def record_error(self, error: BaseException, context: Any = None) -> None:
        """Record a caller-supplied failure as data.  Never raises once initialized."""
        self._require_init()
        try:
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        except Exception:
            stack = repr(error)
        self._record(
            EventType.ERROR,
            {
                "event_type": c.ERROR,
                "error": str(error),
                "stack": stack,
                "context": context,
            },
        )

    # ── Read accessors ─────────────────────────────────────────────────

    def get_active_session(self) -> Session | None:
        return self._active_session

    def get_active_traces(self) -> list[Trace]:
        with self._lock:
            return list(self._active_traces.values())

    # ── Shutdown ───────────────────────────────────────────────────────

    def close(self, wait: bool = True) -> None:
        """Release delivery resources.  The active session is left as is."""
        if self._sender is not None:
            self._sender.close(wait=wait)

    async def aclose(self) -> None:
        if self._sender is not None:
            await self._sender.aclose()
