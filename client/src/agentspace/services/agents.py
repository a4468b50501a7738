"""Agent registry - agents of the active project and the active agent."""

import asyncio
import logging

from agentspace.api import ApiClient
from agentspace_models import Agent

logger = logging.getLogger(__name__)


def sort_agents(agents: list[Agent]) -> list[Agent]:
    """Order agents by ``order``, breaking ties by ``id``."""
    return sorted(agents, key=lambda a: (a.order, a.id))


class AgentRegistry:
    """Owns the sorted agent list of one project and the active agent."""

    def __init__(self, api: ApiClient):
        self._api = api
        self.agents: list[Agent] = []
        self.active_agent_id: str | None = None
        self.project_id: str | None = None
        self.is_loading = False
        # project_id -> in-flight fetch
        self._inflight: dict[str, asyncio.Task] = {}

    @property
    def active_agent(self) -> Agent | None:
        """Active agent, falling back to the first agent when unset or stale."""
        if not self.agents:
            return None
        if not self.active_agent_id:
            return self.agents[0]
        return self.get_agent(self.active_agent_id) or self.agents[0]

    def get_agent(self, agent_id: str) -> Agent | None:
        return next((a for a in self.agents if a.id == agent_id), None)

    def select_agent(self, agent_id: str) -> None:
        """Make ``agent_id`` active; ignored unless it is in the current list."""
        if self.get_agent(agent_id) is not None:
            self.active_agent_id = agent_id
        else:
            logger.debug(f"Ignoring selection of unknown agent {agent_id}")

    def set_agents(self, agents: list[Agent]) -> None:
        self.agents = sort_agents(agents)

    def clear(self) -> None:
        self.agents = []
        self.active_agent_id = None

    async def load_agents(self, project_id: str) -> None:
        """Fetch the agents of a project.

        A blank ``project_id`` clears the registry without a request.
        Concurrent calls for the same project share one fetch. A fetch that
        completes after a load of another project started is discarded.

        Raises:
            ApiError: After clearing the registry, when the fetch fails

        """
        if not project_id or not project_id.strip():
            self.project_id = None
            self.clear()
            return

        self.project_id = project_id
        task = self._inflight.get(project_id)
        if task is None or task.done():
            task = asyncio.ensure_future(self._fetch(project_id))
            self._inflight[project_id] = task
        try:
            # A cancelled caller must not cancel the fetch other callers share
            await asyncio.shield(task)
        finally:
            if task.done() and self._inflight.get(project_id) is task:
                del self._inflight[project_id]

    async def _fetch(self, project_id: str) -> None:
        self.is_loading = True
        try:
            agents = await self._api.get_agents(project_id)
        except Exception as e:
            logger.error(f"Failed to load agents for project {project_id}: {e}")
            if self.project_id == project_id:
                self.clear()
            raise
        finally:
            self.is_loading = False

        if self.project_id != project_id:
            logger.debug(f"Discarding agents of project {project_id}, now loading {self.project_id}")
            return
        self.agents = sort_agents(agents)
        if self.active_agent_id is None or self.get_agent(self.active_agent_id) is None:
            self.active_agent_id = self.agents[0].id if self.agents else None
        logger.info(f"Loaded {len(self.agents)} agents for project {project_id}")

    async def reload_agents(self) -> None:
        """Reload the project passed to the last ``load_agents`` call."""
        if not self.project_id:
            self.clear()
            return
        await self.load_agents(self.project_id)
