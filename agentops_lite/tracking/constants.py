"""Constants for the AgentOps tracking client."""

# Collector endpoint
DEFAULT_ENDPOINT = "https://api.agentops.ai/v2/events"

# Event payload markers (``data.event_type``)
SESSION_START = "session_start"
SESSION_END = "session_end"
TRACE_START = "trace_start"
TRACE_END = "trace_end"
LLM_CALL = "llm_call"
TOOL_CALL = "tool_call"
ACTION = "action"
ERROR = "error"

# Tag applied to traces opened by the operation wrapper
OPERATION_TAG = "operation"

# Environment variables read by TrackerConfig.from_env
ENV_API_KEY = "AGENTOPS_API_KEY"
ENV_TAGS = "AGENTOPS_TAGS"
ENV_TRACE_NAME = "AGENTOPS_TRACE_NAME"
ENV_AUTO_START_SESSION = "AGENTOPS_AUTO_START_SESSION"
ENV_ENDPOINT = "AGENTOPS_ENDPOINT"

FALSE_VALUES = frozenset({"0", "false", "no", "off"})

# Defaults used by the CLI host
CLI_DEFAULT_TAGS = ("cli", "demo")
CLI_DEFAULT_TRACE_NAME = "CLI Session"
