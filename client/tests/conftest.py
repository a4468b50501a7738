"""Shared fixtures: a fake backend served through httpx.MockTransport."""

import inspect
from typing import Any

import httpx
import pytest

from agentspace.config import Settings
from agentspace.storage import LAST_PROJECT_KEY, TOKEN_KEY, MemoryStore
from agentspace.workspace import Workspace

BASE_URL = "http://testserver"


class FakeBackend:
    """Routes requests by (method, path) and records everything it receives.

    A route is a ``httpx.Response``, a JSON-serializable body (answered with
    200), or a callable taking the request and returning either; callables may
    be async, which lets a test hold a response until it releases an event.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def route(self, method: str, path: str, handler: Any) -> None:
        self.routes[(method, path)] = handler

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def count(self, method: str, path: str) -> int:
        return len(self.calls(method, path))

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": "Not Found"})

        result = handler(request) if callable(handler) else handler
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def user_payload(user_id: str = "user-1", username: str = "alice") -> dict:
    return {"id": user_id, "username": username, "role": "USER"}


def project_payload(project_id: str, name: str | None = None) -> dict:
    return {
        "id": project_id,
        "name": name or f"Project {project_id}",
        "projectTypeId": "type-1",
        "agentCount": 2,
        "createdAt": "2026-01-10T09:00:00Z",
        "updatedAt": "2026-01-10T09:00:00Z",
    }


def agent_payload(agent_id: str, order: int = 0, name: str | None = None) -> dict:
    return {
        "id": agent_id,
        "name": name or f"Agent {agent_id}",
        "description": "",
        "systemInstruction": "You are helpful.",
        "summaryInstruction": "Summarize.",
        "model": "gpt-4o-mini",
        "order": order,
        "files": [],
    }


def message_payload(message_id: str, role: str, text: str) -> dict:
    return {"id": message_id, "role": role, "text": text, "createdAt": "2026-01-10T09:00:00Z"}


def document_payload(file_id: str, name: str | None = None, is_knowledge_base: bool = False) -> dict:
    return {
        "id": file_id,
        "name": name or f"{file_id}.md",
        "mimeType": "text/markdown",
        "content": "IyBub3Rlcw==",
        "agentId": "agent-a",
        "isKnowledgeBase": is_knowledge_base,
    }


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def config() -> Settings:
    return Settings(api_url=BASE_URL, token_retry_delay=0, storage_path="")


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore({TOKEN_KEY: "token-1"})


@pytest.fixture
def notices() -> list:
    return []


@pytest.fixture
def workspace(store, backend, config, notices) -> Workspace:
    return Workspace(store=store, transport=backend.transport, on_error=notices.append, config=config)


@pytest.fixture
def seeded_backend(backend) -> FakeBackend:
    """Backend with one user, two projects and three agents in project p1."""
    backend.route("GET", "/auth/me", {"user": user_payload()})
    backend.route("GET", "/projects", {"projects": [project_payload("p1"), project_payload("p2")]})
    backend.route("GET", "/project-types", {"projectTypes": [{"id": "type-1", "name": "Startup"}]})
    backend.route(
        "GET",
        "/agents",
        {"agents": [agent_payload("b", 1), agent_payload("a", 1), agent_payload("c", 0)]},
    )
    return backend


@pytest.fixture
def active_workspace(workspace, store) -> Workspace:
    """Workspace with project p1 and agent a already selected, without any request."""
    from agentspace_models import Agent

    store.set(LAST_PROJECT_KEY, "p1")
    workspace.projects.select_project("p1")
    workspace.agents.set_agents(
        [Agent.model_validate(agent_payload("a")), Agent.model_validate(agent_payload("b", 1))]
    )
    workspace.agents.select_agent("a")
    return workspace
