"""Shared Pydantic models for agentspace."""

from agentspace_models.agent import Agent
from agentspace_models.conversation import Message, PlaceholderKind, Role
from agentspace_models.document import Document
from agentspace_models.project import Project, ProjectType
from agentspace_models.session import Session, User

__all__ = [
    # Session
    "Session",
    "User",
    # Projects and agents
    "Project",
    "ProjectType",
    "Agent",
    # Conversation
    "Message",
    "PlaceholderKind",
    "Role",
    # Documents
    "Document",
]
