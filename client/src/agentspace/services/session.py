"""Session store - auth token and current user."""

import logging

from agentspace.api import ApiClient
from agentspace.errors import AgentSpaceError
from agentspace.messages import user_facing_message
from agentspace_models import Session, User

logger = logging.getLogger(__name__)


def _normalize_username(username: str) -> str:
    return username.strip().lower()


class SessionStore:
    """Owns the auth token and the current user.

    The token lives in durable storage (through ``ApiClient``); this class only
    caches the user and the last authentication error.
    """

    def __init__(self, api: ApiClient):
        self._api = api
        self.user: User | None = None
        self.auth_error: str | None = None
        self.is_loading = False

    @property
    def token(self) -> str | None:
        return self._api.get_token()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def session(self) -> Session:
        return Session(token=self.token, user=self.user)

    async def login(self, username: str, password: str) -> None:
        """Sign in and persist the token.

        Raises:
            ApiError: On failure; ``auth_error`` holds the user-facing text

        """
        await self._authenticate(self._api.login, username, password)

    async def register(self, username: str, password: str) -> None:
        """Create an account and persist the token."""
        await self._authenticate(self._api.register, username, password)

    async def _authenticate(self, call, username: str, password: str) -> None:
        self.auth_error = None
        self.is_loading = True
        try:
            result = await call(_normalize_username(username), password.strip())
        except AgentSpaceError as e:
            self.auth_error = user_facing_message(e)
            logger.warning(f"Authentication failed for {_normalize_username(username)}: {e}")
            raise
        finally:
            self.is_loading = False

        self._api.set_token(result.token)
        self.user = result.user
        logger.info(f"Signed in as {result.user.username}")

    async def reset_password(self, username: str, new_password: str) -> None:
        self.auth_error = None
        self.is_loading = True
        try:
            await self._api.reset_password(_normalize_username(username), new_password.strip())
        except AgentSpaceError as e:
            self.auth_error = user_facing_message(e)
            raise
        finally:
            self.is_loading = False

    def logout(self) -> None:
        self._api.clear_token()
        self.user = None
        self.auth_error = None

    def clear_error(self) -> None:
        self.auth_error = None

    async def load_user(self) -> User:
        """Fetch the current user; clears the cached user on failure."""
        try:
            self.user = await self._api.get_current_user()
        except Exception:
            self.user = None
            raise
        return self.user
