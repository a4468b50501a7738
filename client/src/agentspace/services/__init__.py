"""Stateful registries and orchestration for the agentspace client."""

from agentspace.services.agents import AgentRegistry, sort_agents
from agentspace.services.conversation import ChatState, ConversationEngine
from agentspace.services.coordinator import (
    BootstrapNotice,
    BootstrapPhase,
    BootstrapSnapshot,
    FailureKind,
    ResourceCoordinator,
)
from agentspace.services.documents import DocumentCache, DocumentKey
from agentspace.services.projects import ProjectRegistry
from agentspace.services.session import SessionStore

__all__ = [
    "AgentRegistry",
    "sort_agents",
    "ChatState",
    "ConversationEngine",
    "BootstrapNotice",
    "BootstrapPhase",
    "BootstrapSnapshot",
    "FailureKind",
    "ResourceCoordinator",
    "DocumentCache",
    "DocumentKey",
    "ProjectRegistry",
    "SessionStore",
]
