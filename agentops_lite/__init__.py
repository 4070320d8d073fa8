"""agentops-lite - lightweight AgentOps event tracking client."""

__version__ = "0.1.0"
__logo__ = "📡"
