"""Conversation engine - per-agent chat histories with optimistic sends.

State changes go through :func:`reduce_chat`, a pure function over a closed set
of action types. The engine keeps one immutable ``ChatState`` snapshot and
replaces it on every dispatch.

Sending is guarded by a single ``is_loading`` flag shared by all agents: while
a reply for one agent is pending, sends to every other agent are ignored too.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Union, assert_never

from agentspace.api import ApiClient
from agentspace.errors import NoActiveProjectError
from agentspace.messages import GENERATION_FAILED, user_facing_message
from agentspace.services.agents import AgentRegistry
from agentspace.services.projects import ProjectRegistry
from agentspace_models import Message, Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatState:
    """Snapshot of every agent's conversation."""

    histories: dict[str, tuple[Message, ...]] = field(default_factory=dict)
    loaded_agents: frozenset[str] = frozenset()
    is_loading: bool = False


# ============= Actions =============


@dataclass(frozen=True)
class SetMessages:
    agent_id: str
    messages: tuple[Message, ...]


@dataclass(frozen=True)
class AppendMessages:
    agent_id: str
    messages: tuple[Message, ...]


@dataclass(frozen=True)
class ClearMessages:
    agent_id: str


@dataclass(frozen=True)
class SetLoading:
    value: bool


@dataclass(frozen=True)
class MarkLoaded:
    agent_id: str


@dataclass(frozen=True)
class ClearLoaded:
    agent_id: str


@dataclass(frozen=True)
class ClearAllHistories:
    pass


@dataclass(frozen=True)
class ClearAllLoaded:
    pass


ChatAction = Union[
    SetMessages,
    AppendMessages,
    ClearMessages,
    SetLoading,
    MarkLoaded,
    ClearLoaded,
    ClearAllHistories,
    ClearAllLoaded,
]


def reduce_chat(state: ChatState, action: ChatAction) -> ChatState:
    """Return the state that results from applying ``action``."""
    match action:
        case SetMessages(agent_id=agent_id, messages=messages):
            return replace(state, histories={**state.histories, agent_id: tuple(messages)})
        case AppendMessages(agent_id=agent_id, messages=messages):
            current = state.histories.get(agent_id, ())
            return replace(state, histories={**state.histories, agent_id: (*current, *messages)})
        case ClearMessages(agent_id=agent_id):
            return replace(state, histories={**state.histories, agent_id: ()})
        case SetLoading(value=value):
            return replace(state, is_loading=value)
        case MarkLoaded(agent_id=agent_id):
            return replace(state, loaded_agents=state.loaded_agents | {agent_id})
        case ClearLoaded(agent_id=agent_id):
            return replace(state, loaded_agents=state.loaded_agents - {agent_id})
        case ClearAllHistories():
            return replace(state, histories={}, loaded_agents=frozenset())
        case ClearAllLoaded():
            return replace(state, loaded_agents=frozenset())
        case _:
            assert_never(action)


class ConversationEngine:
    """Owns chat histories, the loaded-agent set and the send-in-flight flag."""

    def __init__(self, api: ApiClient, agents: AgentRegistry, projects: ProjectRegistry):
        self._api = api
        self._agents = agents
        self._projects = projects
        self._state = ChatState()
        # Bumped by global resets; results of requests started before a reset are dropped
        self._generation = 0

    # ============= State =============

    def dispatch(self, action: ChatAction) -> None:
        self._state = reduce_chat(self._state, action)

    @property
    def state(self) -> ChatState:
        return self._state

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def loaded_agents(self) -> frozenset[str]:
        return self._state.loaded_agents

    def history(self, agent_id: str) -> list[Message]:
        return list(self._state.histories.get(agent_id, ()))

    @property
    def messages(self) -> list[Message]:
        """History of the active agent."""
        agent_id = self._agents.active_agent_id
        if not agent_id:
            return []
        return self.history(agent_id)

    # ============= Global resets =============

    def clear_all_chat_histories(self) -> None:
        """Drop every agent's history (logout, project switch)."""
        self._generation += 1
        self.dispatch(ClearAllHistories())

    def clear_loaded_agents(self) -> None:
        self._generation += 1
        self.dispatch(ClearAllLoaded())

    # ============= Operations =============

    async def ensure_messages_loaded(self, agent_id: str) -> None:
        """Fetch an agent's history once.

        The agent is marked loaded before the request so concurrent calls
        collapse into one fetch. A failed fetch un-marks it for a later retry.
        """
        if not agent_id or agent_id in self._state.loaded_agents:
            return

        generation = self._generation
        self.dispatch(MarkLoaded(agent_id))
        try:
            messages = await self._api.get_messages(agent_id, self._projects.active_project_id)
        except Exception as e:
            logger.error(f"Failed to load messages for agent {agent_id}: {e}")
            if generation == self._generation:
                self.dispatch(ClearLoaded(agent_id))
                self.dispatch(SetMessages(agent_id, ()))
            return

        if generation != self._generation:
            logger.debug(f"Discarding history of agent {agent_id} fetched before a reset")
            return
        self.dispatch(SetMessages(agent_id, tuple(messages)))

    async def send_message(self, text: str) -> None:
        """Send ``text`` to the active agent.

        Two placeholders are appended immediately and reconciled once the
        server answers. Failures never propagate: they become an error message
        in the conversation.

        Raises:
            NoActiveProjectError: An agent is active but no project is

        """
        agent_id = self._agents.active_agent_id
        if not agent_id or not text.strip() or self._state.is_loading:
            return
        project_id = self._projects.active_project_id
        if not project_id:
            raise NoActiveProjectError()

        trimmed = text.strip()
        pending_user = Message.pending_user(trimmed)
        pending_reply = Message.pending_reply()
        generation = self._generation

        self.dispatch(SetLoading(True))
        self.dispatch(AppendMessages(agent_id, (pending_user, pending_reply)))
        try:
            replies = await self._api.send_message(agent_id, trimmed, project_id)
        except Exception as e:
            logger.error(f"Failed to send message to agent {agent_id}: {e}")
            if generation == self._generation:
                error_text = user_facing_message(e, GENERATION_FAILED)
                self._roll_back(agent_id, pending_user, pending_reply, error_text)
        else:
            if generation == self._generation:
                kept = [
                    m for m in self.history(agent_id) if m.id not in (pending_user.id, pending_reply.id)
                ]
                self.dispatch(SetMessages(agent_id, (*kept, *replies)))
                self.dispatch(MarkLoaded(agent_id))
            else:
                logger.debug(f"Discarding reply for agent {agent_id} received after a reset")
        finally:
            self.dispatch(SetLoading(False))

    def _roll_back(
        self, agent_id: str, pending_user: Message, pending_reply: Message, error_text: str
    ) -> None:
        remaining = [m for m in self.history(agent_id) if m.id != pending_reply.id]
        has_user_message = any(m.role is Role.USER and m.text == pending_user.text for m in remaining)

        # The optimistic copy stays as a plain local message
        sent = pending_user.model_copy(update={"placeholder": None})
        remaining = [sent if m.id == pending_user.id else m for m in remaining]
        if not has_user_message:
            remaining.append(sent)
        remaining.append(Message.error(error_text))
        self.dispatch(SetMessages(agent_id, tuple(remaining)))

    async def clear_chat(self) -> None:
        """Delete the active agent's history on the server, then locally.

        The agent is un-marked so the next open re-fetches and confirms the deletion.
        """
        agent_id = self._agents.active_agent_id
        if not agent_id:
            return

        try:
            await self._api.clear_messages(agent_id, self._projects.active_project_id)
        except Exception as e:
            logger.error(f"Failed to clear chat for agent {agent_id}: {e}")
            raise

        self.dispatch(ClearMessages(agent_id))
        self.dispatch(ClearLoaded(agent_id))
