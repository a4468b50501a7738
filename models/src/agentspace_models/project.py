"""Project and project type models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProjectType(BaseModel):
    """A template that decides which agents a new project gets."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique project type ID")
    name: str = Field(..., description="Display name")
    created_at: datetime | None = Field(None, description="Creation timestamp")
    updated_at: datetime | None = Field(None, description="Last update timestamp")


class Project(BaseModel):
    """A user-owned project grouping agents and documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique project ID")
    name: str = Field(..., description="Project name")
    description: str | None = Field(None, description="Project description")
    project_type_id: str | None = Field(None, description="Project type ID")
    project_type: ProjectType | None = Field(None, description="Expanded project type")
    agent_count: int = Field(0, description="Number of agents in the project")
    created_at: datetime | None = Field(None, description="Creation timestamp")
    updated_at: datetime | None = Field(None, description="Last update timestamp")
