"""Read-only summaries of tracker state for display.

All functions are pure reads over the tracker's in-memory session.
"""

from __future__ import annotations

from collections import Counter
from typing import Any

from agentops_lite.tracking.client import Tracker
from agentops_lite.tracking.models import EventType, Session


# ---------------------------------------------------------------------------
# Session info panel
# ---------------------------------------------------------------------------


def session_info(tracker: Tracker) -> dict[str, Any]:
    """Current session id, start time, event count and active trace count."""
    session = tracker.get_active_session()
    return {
        "session_id": session.id if session else None,
        "start_time": session.start_time if session else None,
        "active_traces": len(tracker.get_active_traces()),
        "total_events": len(session.events) if session else 0,
    }


# ---------------------------------------------------------------------------
# Per-session breakdown
# ---------------------------------------------------------------------------


def event_breakdown(session: Session) -> dict[str, Any]:
    """Aggregate a session's events by kind, with token, cost and tool totals."""
    by_kind = Counter(e.type.value for e in session.events)
    llm = [e.data for e in session.events if e.type is EventType.LLM]
    tools = [e.data for e in session.events if e.type is EventType.TOOL]

    total_cost = sum(d.get("cost") or 0 for d in llm) + sum(d.get("cost") or 0 for d in tools)
    tool_latency = [d["latency"] for d in tools if d.get("latency") is not None]

    return {
        "session_id": session.id,
        "state": session.state.value if session.state else None,
        "duration_ms": session.duration_ms,
        "total_events": len(session.events),
        "by_kind": {kind.value: by_kind.get(kind.value, 0) for kind in EventType},
        "llm_calls": len(llm),
        "total_tokens": sum(d.get("tokens") or 0 for d in llm),
        "models": sorted({d.get("model", "?") for d in llm}),
        "tool_calls": len(tools),
        "tools_used": sorted({d.get("name", "?") for d in tools}),
        "avg_tool_latency_ms": sum(tool_latency) // len(tool_latency) if tool_latency else 0,
        "total_cost": round(total_cost, 6),
        "errors": by_kind.get(EventType.ERROR.value, 0),
    }
