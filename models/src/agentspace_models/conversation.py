"""Conversation message models."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    MODEL = "model"


class PlaceholderKind(str, Enum):
    """Kinds of client-only messages shown while a send is in flight."""

    PENDING_USER = "pending_user"  # Optimistic copy of the text being sent
    PENDING_REPLY = "pending_reply"  # Streaming slot for the model reply


class Message(BaseModel):
    """A single message in an agent conversation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique message ID")
    role: Role = Field(..., description="Message role")
    text: str = Field("", description="Message content")
    timestamp: datetime = Field(
        default_factory=datetime.now, alias="createdAt", description="Creation timestamp"
    )
    is_streaming: bool = Field(False, description="Reply is still being generated")
    is_error: bool = Field(False, description="Local message describing a failed send")
    placeholder: PlaceholderKind | None = Field(
        None, description="Set on client-only messages that are never persisted server-side"
    )

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value):
        # The API sends USER / MODEL
        if isinstance(value, str):
            return value.lower()
        return value

    @property
    def is_placeholder(self) -> bool:
        return self.placeholder is not None

    @classmethod
    def pending_user(cls, text: str) -> "Message":
        """Optimistic user message inserted before the server confirms it."""
        return cls(
            id=f"pending-{uuid.uuid4().hex}",
            role=Role.USER,
            text=text,
            placeholder=PlaceholderKind.PENDING_USER,
        )

    @classmethod
    def pending_reply(cls) -> "Message":
        """Empty streaming slot for the model reply."""
        return cls(
            id=f"pending-{uuid.uuid4().hex}",
            role=Role.MODEL,
            text="",
            is_streaming=True,
            placeholder=PlaceholderKind.PENDING_REPLY,
        )

    @classmethod
    def error(cls, text: str) -> "Message":
        """Permanent local message reporting a failed send."""
        return cls(id=f"error-{uuid.uuid4().hex}", role=Role.MODEL, text=text, is_error=True)
