"""Workspace - wires the registries together and exposes the UI-level flows."""

import logging
from collections.abc import Callable

import httpx

from agentspace.api import ApiClient
from agentspace.config import Settings, settings
from agentspace.preferences import Preferences
from agentspace.services.agents import AgentRegistry
from agentspace.services.conversation import ConversationEngine
from agentspace.services.coordinator import BootstrapNotice, ResourceCoordinator
from agentspace.services.documents import DocumentCache
from agentspace.services.projects import ProjectRegistry
from agentspace.services.session import SessionStore
from agentspace.storage import KeyValueStore, create_store

logger = logging.getLogger(__name__)


class Workspace:
    """One signed-in client: session, projects, agents, chat and documents."""

    def __init__(
        self,
        store: KeyValueStore | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_error: Callable[[BootstrapNotice], None] | None = None,
        config: Settings | None = None,
    ):
        config = config or settings
        self.store = store if store is not None else create_store(config.storage_path)
        self.api = ApiClient(self.store, base_url=base_url, transport=transport, config=config)
        self.preferences = Preferences(self.store)
        self.session = SessionStore(self.api)
        self.projects = ProjectRegistry(self.api, self.store)
        self.agents = AgentRegistry(self.api)
        self.conversation = ConversationEngine(self.api, self.agents, self.projects)
        self.documents = DocumentCache(self.api, self.agents, self.projects, config=config)
        self.coordinator = ResourceCoordinator(
            self.session,
            self.projects,
            self.agents,
            self.conversation,
            self.documents,
            on_error=on_error,
            token_retry_delay=config.token_retry_delay,
        )

    async def __aenter__(self) -> "Workspace":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.api.aclose()

    # ============= Session =============

    async def bootstrap(self) -> None:
        await self.coordinator.bootstrap()

    async def login(self, username: str, password: str) -> None:
        """Sign in, then bootstrap for the new token."""
        await self.session.login(username, password)
        self.coordinator.reset()
        await self.coordinator.bootstrap()

    async def register(self, username: str, password: str) -> None:
        await self.session.register(username, password)
        self.coordinator.reset()
        await self.coordinator.bootstrap()

    def logout(self) -> None:
        """Drop the session and every cache derived from it."""
        self.session.logout()
        self.projects.clear()
        self.agents.clear()
        self.conversation.clear_all_chat_histories()
        self.conversation.clear_loaded_agents()
        self.documents.reset()
        self.coordinator.reset()
        logger.info("Signed out")

    # ============= Navigation =============

    async def switch_project(self, project_id: str) -> None:
        """Make ``project_id`` active and load its agents.

        Conversations and documents belong to the previous project context and
        are dropped.

        Raises:
            ApiError: When the agents cannot be loaded
        """
        self.projects.select_project(project_id)
        self.conversation.clear_all_chat_histories()
        self.conversation.clear_loaded_agents()
        self.documents.reset()
        logger.info(f"Switched to project {project_id}")
        await self.agents.load_agents(project_id)

    async def select_agent(self, agent_id: str) -> None:
        """Make ``agent_id`` active and load its history; other histories are kept."""
        self.agents.select_agent(agent_id)
        if self.agents.active_agent_id == agent_id:
            await self.conversation.ensure_messages_loaded(agent_id)
