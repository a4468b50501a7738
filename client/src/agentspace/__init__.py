"""Async client core for agentspace: session bootstrap, agents, chat and project documents."""

from agentspace.api import ApiClient, RequestClass
from agentspace.workspace import Workspace

__all__ = ["ApiClient", "RequestClass", "Workspace"]
