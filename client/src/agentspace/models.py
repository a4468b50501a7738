"""API-specific response models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agentspace_models import Agent, Document, Message, Project, ProjectType, User


class AuthResponse(BaseModel):
    """Response model for login and registration."""

    token: str
    user: User


class UserResponse(BaseModel):
    """Response model for the current user."""

    user: User


class ProjectListResponse(BaseModel):
    """Response model for the user's projects."""

    projects: list[Project] = Field(default_factory=list)


class ProjectResponse(BaseModel):
    """Response model for a single project."""

    project: Project


class ProjectTypeListResponse(BaseModel):
    """Response model for project types."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    project_types: list[ProjectType] = Field(default_factory=list)


class AgentListResponse(BaseModel):
    """Response model for the agents of a project."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    agents: list[Agent] = Field(default_factory=list)
    project_type_agents: list[Agent] | None = None


class MessageListResponse(BaseModel):
    """Response model for conversation history and send results."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    messages: list[Message] = Field(default_factory=list)
    agent_id: str | None = None
    template_id: str | None = None


class FileListResponse(BaseModel):
    """Response model for project documents."""

    files: list[Document] = Field(default_factory=list)


class FileResponse(BaseModel):
    """Response model for a single created or updated document."""

    file: Document
