"""User and session models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class User(BaseModel):
    """The authenticated user."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique user ID")
    username: str = Field(..., description="Login name")
    role: str | None = Field(None, description="USER or ADMIN")
    is_paid: bool | None = Field(None, description="Has an active subscription")
    subscription_expires_at: datetime | None = Field(None, description="Subscription end")
    has_free_access: bool | None = Field(None, description="Granted free access")


class Session(BaseModel):
    """Snapshot of the authentication state."""

    token: str | None = Field(None, description="Bearer token; sole authority for login state")
    user: User | None = Field(None, description="Current user, once loaded")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)
