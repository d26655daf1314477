"""Agent capability boundary."""

from .base import Agent, AgentTurn
from .echo import EchoAgent
from .loader import AgentUnavailableError, load_agent

__all__ = ["Agent", "AgentTurn", "AgentUnavailableError", "EchoAgent", "load_agent"]
