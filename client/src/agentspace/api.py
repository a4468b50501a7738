"""REST client for the agentspace backend.

One ``httpx.AsyncClient`` is shared by every registry. The client owns the two
pieces of process-wide mutable state: the auth token (read back from durable
storage on every request) and the rate-limit block window.
"""

import base64
import logging
import math
import time
from enum import Enum
from typing import Any

import httpx

from agentspace.config import Settings, settings
from agentspace.errors import (
    NETWORK_ERROR_MESSAGE,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    error_from_response,
)
from agentspace.models import (
    AgentListResponse,
    AuthResponse,
    FileListResponse,
    FileResponse,
    MessageListResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectTypeListResponse,
    UserResponse,
)
from agentspace.storage import TOKEN_KEY, KeyValueStore
from agentspace_models import Agent, Document, Message, Project, ProjectType, User

logger = logging.getLogger(__name__)

# Login must stay possible while the client is rate limited
AUTH_ROUTES = frozenset({"/auth/login", "/auth/register", "/auth/reset"})


class RequestClass(str, Enum):
    """Timeout policy of a request."""

    SHORT = "short"  # Administrative call, aborted after request_timeout
    MODEL = "model"  # Runs an LLM on the server; never aborted
    PROTOTYPE = "prototype"  # Two chained LLM calls; never aborted


class ApiClient:
    """Async client for the agentspace REST API."""

    def __init__(
        self,
        store: KeyValueStore,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        config: Settings | None = None,
    ):
        """Initialize the client.

        Args:
            store: Durable storage holding the auth token
            base_url: API root; defaults to ``settings.api_url``
            transport: Custom httpx transport (used by tests)
            config: Settings override; defaults to the global settings

        """
        self._store = store
        self._settings = config or settings
        self._client = httpx.AsyncClient(
            base_url=(base_url or self._settings.api_url).rstrip("/"),
            transport=transport,
        )
        self._rate_limit_blocked_until: float | None = None

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ============= Token =============

    def get_token(self) -> str | None:
        """Current token, always read back from storage."""
        return self._store.get(TOKEN_KEY) or None

    def set_token(self, token: str | None) -> None:
        if token:
            self._store.set(TOKEN_KEY, token)
        else:
            self._store.remove(TOKEN_KEY)

    def clear_token(self) -> None:
        self.set_token(None)

    # ============= Rate limit window =============

    def is_rate_limit_blocked(self) -> bool:
        return (
            self._rate_limit_blocked_until is not None
            and time.monotonic() < self._rate_limit_blocked_until
        )

    def rate_limit_block_remaining(self) -> int:
        """Seconds left in the block window, rounded up."""
        if not self.is_rate_limit_blocked():
            return 0
        return math.ceil(self._rate_limit_blocked_until - time.monotonic())

    def clear_rate_limit_block(self) -> None:
        self._rate_limit_blocked_until = None
        logger.info("Rate limit block cleared")

    # ============= Transport =============

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _timeout(self, call_class: RequestClass) -> httpx.Timeout:
        if call_class is RequestClass.SHORT:
            return httpx.Timeout(self._settings.request_timeout)
        # Only bound the connect phase; the server finishes the work anyway
        return httpx.Timeout(None, connect=self._settings.request_timeout)

    def _budget(self, call_class: RequestClass) -> float:
        if call_class is RequestClass.PROTOTYPE:
            return self._settings.prototype_request_timeout
        if call_class is RequestClass.MODEL:
            return self._settings.model_request_timeout
        return self._settings.request_timeout

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        call_class: RequestClass = RequestClass.SHORT,
    ) -> Any:
        """Send a request and decode the JSON response.

        Args:
            method: HTTP method
            path: Path relative to the API root, starting with ``/``
            params: Query parameters; ``None`` values are dropped
            json: JSON body
            call_class: Timeout policy for the call

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            RateLimitError: While the block window is open, or on a 429
            RequestTimeoutError: A short request exceeded its timeout
            NetworkError: The server could not be reached
            ApiError: Any other non-2xx response

        """
        if path not in AUTH_ROUTES and self.is_rate_limit_blocked():
            remaining = self.rate_limit_block_remaining()
            raise RateLimitError(
                f"Rate limit exceeded. Please wait {remaining} seconds before trying again.",
                retry_after=remaining,
            )

        if params:
            params = {k: v for k, v in params.items() if v is not None}

        started = time.monotonic()
        try:
            response = await self._client.request(
                method,
                path,
                params=params or None,
                json=json,
                headers=self._headers(),
                timeout=self._timeout(call_class),
            )
        except httpx.TimeoutException as e:
            seconds = math.ceil(self._settings.request_timeout)
            logger.warning(f"{method} {path} timed out after {seconds}s")
            raise RequestTimeoutError(
                f"The request exceeded the timeout ({seconds} seconds). "
                "The server may be overloaded or unavailable."
            ) from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise NetworkError(NETWORK_ERROR_MESSAGE) from e

        elapsed = time.monotonic() - started
        if call_class is not RequestClass.SHORT and elapsed > self._budget(call_class):
            logger.warning(
                f"{method} {path} took {elapsed:.1f}s, over the {self._budget(call_class):.0f}s budget"
            )

        if response.status_code == 429:
            self._rate_limit_blocked_until = time.monotonic() + self._settings.rate_limit_block_seconds
            logger.warning(
                f"Rate limited on {method} {path}, blocking requests for "
                f"{self._settings.rate_limit_block_seconds:.0f}s"
            )

        if response.is_error:
            raise error_from_response(response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ============= Auth =============

    async def login(self, username: str, password: str) -> AuthResponse:
        data = await self.request(
            "POST", "/auth/login", json={"username": username, "password": password}
        )
        return AuthResponse.model_validate(data)

    async def register(self, username: str, password: str) -> AuthResponse:
        data = await self.request(
            "POST", "/auth/register", json={"username": username, "password": password}
        )
        return AuthResponse.model_validate(data)

    async def reset_password(self, username: str, new_password: str) -> None:
        await self.request(
            "POST", "/auth/reset", json={"username": username, "newPassword": new_password}
        )

    async def get_current_user(self) -> User:
        data = await self.request("GET", "/auth/me")
        return UserResponse.model_validate(data).user

    # ============= Projects =============

    async def get_projects(self) -> list[Project]:
        data = await self.request("GET", "/projects")
        return ProjectListResponse.model_validate(data or {}).projects

    async def create_project(
        self, name: str, project_type_id: str, description: str | None = None
    ) -> Project:
        body = {"name": name, "projectTypeId": project_type_id}
        if description is not None:
            body["description"] = description
        data = await self.request("POST", "/projects", json=body)
        return ProjectResponse.model_validate(data).project

    async def update_project(
        self, project_id: str, name: str | None = None, description: str | None = None
    ) -> Project:
        body = {k: v for k, v in {"name": name, "description": description}.items() if v is not None}
        data = await self.request("PUT", f"/projects/{project_id}", json=body)
        return ProjectResponse.model_validate(data).project

    async def delete_project(self, project_id: str) -> None:
        await self.request("DELETE", f"/projects/{project_id}")

    async def get_project_types(self) -> list[ProjectType]:
        data = await self.request("GET", "/project-types")
        return ProjectTypeListResponse.model_validate(data or {}).project_types

    # ============= Agents =============

    async def get_agents(self, project_id: str) -> list[Agent]:
        if not project_id or not project_id.strip():
            raise ValueError("project_id is required")
        data = await self.request("GET", "/agents", params={"projectId": project_id})
        return AgentListResponse.model_validate(data or {}).agents

    # ============= Messages =============

    async def get_messages(self, agent_id: str, project_id: str | None = None) -> list[Message]:
        data = await self.request(
            "GET", f"/agents/{agent_id}/messages", params={"projectId": project_id}
        )
        return MessageListResponse.model_validate(data or {}).messages

    async def send_message(self, agent_id: str, text: str, project_id: str) -> list[Message]:
        data = await self.request(
            "POST",
            f"/agents/{agent_id}/messages",
            params={"projectId": project_id},
            json={"text": text, "projectId": project_id},
            call_class=RequestClass.MODEL,
        )
        return MessageListResponse.model_validate(data or {}).messages

    async def clear_messages(self, agent_id: str, project_id: str | None = None) -> None:
        await self.request(
            "DELETE", f"/agents/{agent_id}/messages", params={"projectId": project_id}
        )

    # ============= Documents =============

    async def get_summary_files(self, agent_id: str, project_id: str) -> list[Document]:
        data = await self.request(
            "GET", f"/agents/{agent_id}/files/summary", params={"projectId": project_id}
        )
        return FileListResponse.model_validate(data or {}).files

    async def generate_summary(self, agent_id: str, project_id: str) -> Document:
        data = await self.request(
            "POST",
            f"/agents/{agent_id}/summary",
            params={"projectId": project_id},
            call_class=RequestClass.MODEL,
        )
        return FileResponse.model_validate(data).file

    async def generate_prototype(self, agent_id: str, file_id: str) -> Document:
        data = await self.request(
            "POST",
            f"/agents/{agent_id}/files/{file_id}/generate-prototype",
            call_class=RequestClass.PROTOTYPE,
        )
        return FileResponse.model_validate(data).file

    async def upload_project_file(
        self, project_id: str, name: str, mime_type: str, content: bytes
    ) -> Document:
        body = {
            "name": name,
            "mimeType": mime_type,
            "content": base64.b64encode(content).decode("ascii"),
        }
        data = await self.request("POST", f"/projects/{project_id}/files", json=body)
        return FileResponse.model_validate(data).file

    async def delete_project_file(self, project_id: str, file_id: str) -> None:
        await self.request("DELETE", f"/projects/{project_id}/files/{file_id}")

    async def delete_file(self, file_id: str) -> None:
        await self.request("DELETE", f"/files/{file_id}")
