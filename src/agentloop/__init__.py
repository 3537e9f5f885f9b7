"""agentloop — think/act agent execution engine with tool calling and planning."""

__version__ = "0.1.0"
