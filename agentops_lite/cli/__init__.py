"""Command-line interface for agentops-lite."""
