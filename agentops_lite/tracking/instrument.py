"""Instrumentation wrappers built on a :class:`Tracker`.

Each wrapper is a plain higher-order function: it takes the tracker and its
options and returns a decorator that turns a callable (sync or ``async``)
into an instrumented one::

    search = tool(tracker, "web_search", cost=0.05)(search)

    @operation(tracker, "generate_response")
    async def generate(prompt): ...

When the tracker has not been initialized the wrapped callable runs
untouched, so missing telemetry never breaks the business call.
"""

from __future__ import annotations

import functools
import inspect
import time
from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger

from agentops_lite.tracking.client import Tracker
from agentops_lite.tracking.constants import OPERATION_TAG
from agentops_lite.tracking.models import EndState

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)


class TraceScope:
    """Sync and async context manager that brackets a block with a trace.

    On a clean exit the trace ends ``Success``.  If the block raises, the
    exception is recorded with *context*, the trace ends ``Fail`` and the
    exception propagates.
    """

    def __init__(
        self,
        tracker: Tracker,
        name: str,
        tags: list[str] | None = None,
        *,
        context: dict[str, Any] | None = None,
    ):
        self._tracker = tracker
        self._name = name
        self._tags = tags
        self._context = context if context is not None else {"trace": name}
        self.trace_id: str | None = None

    def _start(self) -> None:
        if not self._tracker.is_initialized:
            logger.debug(f"AgentOps: tracker not initialized, running {self._name} untraced")
            return
        self.trace_id = self._tracker.start_trace(self._name, self._tags)

    def _finish(self, exc: BaseException | None) -> None:
        if self.trace_id is None:
            return
        if exc is None:
            self._tracker.end_trace(self.trace_id, EndState.SUCCESS)
        else:
            self._tracker.record_error(exc, self._context)
            self._tracker.end_trace(self.trace_id, EndState.FAIL)

    def __enter__(self) -> TraceScope:
        self._start()
        return self

    def __exit__(self, exc_type: Any, exc_val: BaseException | None, exc_tb: Any) -> None:
        self._finish(exc_val)

    async def __aenter__(self) -> TraceScope:
        self._start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: BaseException | None, exc_tb: Any) -> None:
        self._finish(exc_val)


def trace_scope(tracker: Tracker, name: str, tags: list[str] | None = None) -> TraceScope:
    """Open a trace for the duration of a ``with`` / ``async with`` block."""
    return TraceScope(tracker, name, tags)


def _takes_receiver(fn: Callable[..., Any]) -> bool:
    """True when the first parameter is ``self``/``cls`` (undecorated method)."""
    try:
        params = list(inspect.signature(fn).parameters)
    except (TypeError, ValueError):
        return False
    return bool(params) and params[0] in ("self", "cls")


def _call_args(args: tuple[Any, ...], skip_receiver: bool) -> list[Any]:
    return list(args[1:] if skip_receiver and args else args)


def _error_context(key: str, name: str, args: list[Any], kwargs: dict[str, Any]) -> dict[str, Any]:
    ctx: dict[str, Any] = {key: name, "args": args}
    if kwargs:
        ctx["kwargs"] = kwargs
    return ctx


def _traced(tracker: Tracker, fn: F, name: str, tags: list[str] | None, key: str) -> F:
    skip = _takes_receiver(fn)

    if inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            ctx = _error_context(key, name, _call_args(args, skip), kwargs)
            async with TraceScope(tracker, name, tags, context=ctx):
                return await fn(*args, **kwargs)

        return async_wrapper  # type: ignore[return-value]

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        ctx = _error_context(key, name, _call_args(args, skip), kwargs)
        with TraceScope(tracker, name, tags, context=ctx):
            return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def operation(tracker: Tracker, name: str | None = None) -> Callable[[F], F]:
    """Trace every call; the name defaults to the callable's qualified name."""

    def decorator(fn: F) -> F:
        return _traced(tracker, fn, name or fn.__qualname__, [OPERATION_TAG], "operation")

    return decorator


def trace(tracker: Tracker, name: str, tags: list[str] | None = None) -> Callable[[F], F]:
    """Trace every call under an explicit name and tag set."""

    def decorator(fn: F) -> F:
        return _traced(tracker, fn, name, tags, "trace")

    return decorator


def tool(tracker: Tracker, name: str, cost: float | None = None) -> Callable[[F], F]:
    """Time every call and record it as a tool event.

    Failures are recorded as errors and re-raised; no trace is touched.
    """

    def decorator(fn: F) -> F:
        skip = _takes_receiver(fn)

        def _record(args: tuple[Any, ...], result: Any, started: float) -> None:
            tracker.record_tool(
                name=name,
                input=_call_args(args, skip),
                output=result,
                cost=cost,
                latency=int((time.perf_counter() - started) * 1000),
            )

        def _fail(args: tuple[Any, ...], kwargs: dict[str, Any], exc: Exception) -> None:
            tracker.record_error(exc, _error_context("tool", name, _call_args(args, skip), kwargs))

        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                if not tracker.is_initialized:
                    return await fn(*args, **kwargs)
                started = time.perf_counter()
                try:
                    result = await fn(*args, **kwargs)
                except Exception as e:
                    _fail(args, kwargs, e)
                    raise
                _record(args, result, started)
                return result

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not tracker.is_initialized:
                return fn(*args, **kwargs)
            started = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                _fail(args, kwargs, e)
                raise
            _record(args, result, started)
            return result

        return wrapper  # type: ignore[return-value]

    return decorator


def agent(tracker: Tracker, name: str) -> Callable[[C], C]:
    """Class decorator: record an ``agent_created`` action per instantiation."""

    def decorator(cls: C) -> C:
        original_init = cls.__init__

        @functools.wraps(original_init)
        def __init__(self: Any, *args: Any, **kwargs: Any) -> None:
            original_init(self, *args, **kwargs)
            self.agent_name = name
            if tracker.is_initialized:
                tracker.record_action(
                    action="agent_created",
                    params={"name": name, "args": list(args)},
                    result={"agentId": name},
                )

        cls.__init__ = __init__  # type: ignore[misc]
        return cls

    return decorator
