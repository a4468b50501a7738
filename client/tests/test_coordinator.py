"""Unit tests for the resource coordinator."""

import asyncio

import httpx
import pytest
from conftest import message_payload

from agentspace.errors import ApiError, AuthError, RateLimitError, ServerError
from agentspace.services.conversation import MarkLoaded, SetMessages
from agentspace.services.coordinator import BootstrapPhase, FailureKind, classify_failure
from agentspace.storage import TOKEN_KEY, MemoryStore
from agentspace.workspace import Workspace
from agentspace_models import Message


class LateTokenStore(MemoryStore):
    """Store whose token only shows up on the second read."""

    def __init__(self):
        super().__init__()
        self.token_reads = 0

    def get(self, key, default=None):
        if key == TOKEN_KEY:
            self.token_reads += 1
            return "late-token" if self.token_reads > 1 else None
        return super().get(key, default)


class TestClassifyFailure:
    """Test failure classification order."""

    def test_kinds(self):
        assert classify_failure(AuthError("Unauthorized", status=401)) is FailureKind.AUTH
        assert classify_failure(ApiError("Forbidden", status=403)) is FailureKind.AUTH
        assert classify_failure(RateLimitError("slow down")) is FailureKind.RATE_LIMIT
        assert classify_failure(ServerError("down", status=502)) is FailureKind.TRANSIENT
        assert classify_failure(ApiError("oops", status=500)) is FailureKind.TRANSIENT
        assert classify_failure(ApiError("Can't reach database server", status=400)) is FailureKind.TRANSIENT
        assert classify_failure(ValueError("bad")) is FailureKind.OTHER


class TestBootstrap:
    """Test the bootstrap sequence."""

    @pytest.mark.asyncio
    async def test_loads_user_projects_and_agents(self, workspace, seeded_backend):
        await workspace.bootstrap()

        assert workspace.session.user.username == "alice"
        assert [p.id for p in workspace.projects.projects] == ["p1", "p2"]
        assert workspace.projects.active_project_id == "p1"
        assert [t.id for t in workspace.projects.project_types] == ["type-1"]
        assert [a.id for a in workspace.agents.agents] == ["c", "a", "b"]
        assert seeded_backend.calls("GET", "/agents")[0].url.params["projectId"] == "p1"
        assert workspace.coordinator.has_bootstrapped
        assert not workspace.coordinator.is_bootstrapping

    @pytest.mark.asyncio
    async def test_concurrent_calls_run_one_wave(self, workspace, seeded_backend):
        """Test that overlapping bootstraps send each request once."""
        await asyncio.gather(workspace.bootstrap(), workspace.bootstrap())

        assert seeded_backend.count("GET", "/auth/me") == 1
        assert seeded_backend.count("GET", "/projects") == 1
        assert seeded_backend.count("GET", "/agents") == 1

    @pytest.mark.asyncio
    async def test_same_token_is_not_bootstrapped_twice(self, workspace, seeded_backend):
        await workspace.bootstrap()
        await workspace.bootstrap()
        assert seeded_backend.count("GET", "/auth/me") == 1

        workspace.coordinator.reset()
        await workspace.bootstrap()
        assert seeded_backend.count("GET", "/auth/me") == 2

    @pytest.mark.asyncio
    async def test_missing_token_clears_without_requests(self, backend, config):
        """Test that an empty token resets everything and stays offline."""
        workspace = Workspace(store=MemoryStore(), transport=backend.transport, config=config)
        workspace.projects.select_project("p1")

        await workspace.bootstrap()

        assert backend.requests == []
        assert workspace.session.user is None
        assert workspace.projects.projects == []
        assert workspace.projects.active_project_id is None
        assert workspace.agents.agents == []
        assert not workspace.coordinator.has_bootstrapped

    @pytest.mark.asyncio
    async def test_token_written_late_is_picked_up(self, seeded_backend, config):
        store = LateTokenStore()
        workspace = Workspace(store=store, transport=seeded_backend.transport, config=config)

        await workspace.bootstrap()

        assert workspace.coordinator.has_bootstrapped
        assert seeded_backend.requests[0].headers["Authorization"] == "Bearer late-token"

    @pytest.mark.asyncio
    async def test_agent_failure_is_not_fatal(self, workspace, seeded_backend, notices):
        seeded_backend.route("GET", "/agents", httpx.Response(500, json={"error": "boom"}))

        await workspace.bootstrap()

        assert workspace.coordinator.has_bootstrapped
        assert workspace.agents.agents == []
        assert notices == []

    @pytest.mark.asyncio
    async def test_resets_chat_and_documents(self, workspace, seeded_backend):
        """Test that histories from an earlier context are dropped."""
        message = Message.model_validate(message_payload("m1", "USER", "hi"))
        workspace.conversation.dispatch(SetMessages("a", (message,)))
        workspace.conversation.dispatch(MarkLoaded("a"))

        await workspace.bootstrap()

        assert workspace.conversation.history("a") == []
        assert workspace.conversation.loaded_agents == frozenset()

    @pytest.mark.asyncio
    async def test_observers_see_phase_changes(self, workspace, seeded_backend):
        snapshots = []
        unsubscribe = workspace.coordinator.subscribe(snapshots.append)

        await workspace.bootstrap()
        unsubscribe()
        workspace.coordinator.reset()

        assert [(s.phase, s.has_bootstrapped) for s in snapshots] == [
            (BootstrapPhase.BOOTSTRAPPING, False),
            (BootstrapPhase.BOOTSTRAPPING, True),
            (BootstrapPhase.IDLE, True),
        ]


class TestBootstrapFailures:
    """Test failure handling by kind."""

    @pytest.mark.asyncio
    async def test_auth_failure_drops_session(self, workspace, seeded_backend, store, notices):
        seeded_backend.route("GET", "/auth/me", httpx.Response(401, json={"error": "Unauthorized"}))

        await workspace.bootstrap()

        assert store.get(TOKEN_KEY) is None
        assert seeded_backend.count("GET", "/projects") == 0
        assert not workspace.coordinator.has_bootstrapped
        assert [n.kind for n in notices] == [FailureKind.AUTH]
        assert notices[0].message == "You are not signed in"

    @pytest.mark.asyncio
    async def test_rate_limit_notifies_once(self, workspace, seeded_backend, store, notices):
        seeded_backend.route("GET", "/auth/me", httpx.Response(429, json={}))

        await workspace.bootstrap()

        assert [n.kind for n in notices] == [FailureKind.RATE_LIMIT]
        assert notices[0].message == "Request limit exceeded. Please wait a moment and try again."
        assert store.get(TOKEN_KEY) == "token-1"
        assert not workspace.coordinator.is_bootstrapping

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_loaded_state(self, workspace, seeded_backend, notices):
        """Test that a failed re-bootstrap does not blank an already loaded UI."""
        await workspace.bootstrap()
        seeded_backend.route("GET", "/projects", httpx.Response(503))
        workspace.coordinator.reset()

        await workspace.bootstrap()

        assert [p.id for p in workspace.projects.projects] == ["p1", "p2"]
        assert [a.id for a in workspace.agents.agents] == ["c", "a", "b"]
        assert [n.kind for n in notices] == [FailureKind.TRANSIENT]
        assert not workspace.coordinator.has_bootstrapped

    @pytest.mark.asyncio
    async def test_failure_before_anything_loaded_clears_dependents(
        self, workspace, seeded_backend, notices
    ):
        seeded_backend.route("GET", "/auth/me", httpx.Response(500, json={"error": "Database error"}))

        await workspace.bootstrap()

        assert workspace.projects.projects == []
        assert workspace.agents.agents == []
        assert [n.kind for n in notices] == [FailureKind.TRANSIENT]
        assert notices[0].message == "Database error"
