"""Agent models."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from agentspace_models.document import Document

DEFAULT_MODEL = "gpt-5-mini"


class Agent(BaseModel):
    """An AI agent available inside the active project."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique agent ID")
    name: str = Field(..., description="Display name")
    description: str = Field("", description="Short description")
    role: str | None = Field(None, description="Role label")
    model: str = Field(DEFAULT_MODEL, description="LLM model identifier")
    order: int = Field(0, description="Display position; ties broken by id")
    system_instruction: str = Field("", description="System prompt")
    summary_instruction: str = Field("", description="Prompt used for summary generation")
    files: list[Document] = Field(default_factory=list, description="Agent reference files")
    project_type_agent_id: str | None = Field(None, description="Template agent ID")
    is_hidden_from_sidebar: bool = Field(False, description="Hidden from agent lists")
    quick_messages: list[str] = Field(default_factory=list, description="Suggested prompts")

    @field_validator("model", mode="before")
    @classmethod
    def _default_model(cls, value):
        return value or DEFAULT_MODEL

    @field_validator("order", mode="before")
    @classmethod
    def _default_order(cls, value):
        return 0 if value is None else value

    @field_validator("quick_messages", mode="before")
    @classmethod
    def _default_quick_messages(cls, value):
        return value or []

    @field_validator("files", mode="after")
    @classmethod
    def _drop_summaries(cls, files: list[Document]) -> list[Document]:
        # Generated summaries live in the project document list
        return [f for f in files if not f.name.startswith("Summary")]
