"""Project document models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Document(BaseModel):
    """A file shared by every agent of a project."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique file ID")
    name: str = Field(..., description="File name")
    mime_type: str = Field("application/octet-stream", description="MIME type")
    content: str = Field("", description="Base64 encoded content")
    agent_id: str | None = Field(None, description="Agent that produced the file")
    is_knowledge_base: bool = Field(False, description="Administrator-managed file")
    dsl_content: str | None = Field(None, description="Prototype DSL, when generated")
    verstka_content: str | None = Field(None, description="Prototype markup, when generated")
    created_at: datetime | None = Field(None, description="Creation timestamp")
