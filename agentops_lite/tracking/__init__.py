"""Session, trace and event tracking with best-effort delivery."""

from agentops_lite.tracking.client import NotInitializedError, Tracker, TrackingError
from agentops_lite.tracking.config import TrackerConfig
from agentops_lite.tracking.delivery import DeliveryResult, DeliveryStats, EventSender
from agentops_lite.tracking.instrument import agent, operation, tool, trace, trace_scope
from agentops_lite.tracking.models import EndState, Event, EventType, Session, Trace

__all__ = [
    "Tracker",
    "TrackerConfig",
    "TrackingError",
    "NotInitializedError",
    "EventSender",
    "DeliveryResult",
    "DeliveryStats",
    "EndState",
    "Event",
    "EventType",
    "Session",
    "Trace",
    "agent",
    "operation",
    "tool",
    "trace",
    "trace_scope",
]
