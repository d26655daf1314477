"""Resolve the configured agent backend."""

from __future__ import annotations

import importlib

from .base import Agent
from .echo import EchoAgent


class AgentUnavailableError(RuntimeError):
    """Raised when the configured agent factory cannot be imported or called."""


def load_agent(factory_path: str | None) -> Agent:
    """Build the agent named by ``package.module:factory``, or the echo agent when unset."""
    if not factory_path:
        return EchoAgent()

    module_name, _, attr = factory_path.partition(":")
    if not module_name or not attr:
        raise AgentUnavailableError(f"Agent factory must look like 'package.module:factory', got {factory_path!r}")

    try:
        module = importlib.import_module(module_name)
    except Exception as exc:  # noqa: BLE001
        raise AgentUnavailableError(f"Unable to import agent module {module_name!r}: {exc}") from exc

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise AgentUnavailableError(f"{module_name!r} has no callable {attr!r}")

    agent = factory()
    for method in ("process_user_message", "process_command_results"):
        if not callable(getattr(agent, method, None)):
            raise AgentUnavailableError(f"Agent built by {factory_path!r} does not implement {method}()")
    return agent
