"""Unit tests for the conversation engine."""

import asyncio

import httpx
import pytest
from conftest import message_payload

from agentspace.errors import ApiError, NoActiveProjectError
from agentspace.messages import GENERATION_FAILED
from agentspace.services.conversation import (
    AppendMessages,
    ChatState,
    ClearAllHistories,
    ClearLoaded,
    ClearMessages,
    MarkLoaded,
    SetLoading,
    SetMessages,
    reduce_chat,
)
from agentspace_models import Message, Role

REPLY = {
    "messages": [message_payload("m1", "USER", "hi"), message_payload("m2", "MODEL", "hello")]
}


class TestReduceChat:
    """Test the pure state reducer."""

    def test_set_append_clear(self):
        first = Message(id="m1", role=Role.USER, text="hi")
        second = Message(id="m2", role=Role.MODEL, text="hello")

        state = reduce_chat(ChatState(), SetMessages("a", (first,)))
        state = reduce_chat(state, AppendMessages("a", (second,)))
        assert [m.id for m in state.histories["a"]] == ["m1", "m2"]

        state = reduce_chat(state, ClearMessages("a"))
        assert state.histories["a"] == ()

    def test_loaded_set(self):
        state = reduce_chat(ChatState(), MarkLoaded("a"))
        state = reduce_chat(state, MarkLoaded("b"))
        state = reduce_chat(state, ClearLoaded("a"))
        assert state.loaded_agents == frozenset({"b"})

    def test_clear_all_histories_also_clears_loaded(self):
        state = reduce_chat(ChatState(), SetMessages("a", ()))
        state = reduce_chat(state, MarkLoaded("a"))
        state = reduce_chat(state, ClearAllHistories())
        assert state.histories == {}
        assert state.loaded_agents == frozenset()

    def test_states_are_not_mutated(self):
        before = ChatState()
        after = reduce_chat(before, SetLoading(True))
        assert not before.is_loading
        assert after.is_loading


class TestSendMessage:
    """Test optimistic sends and rollback."""

    @pytest.mark.asyncio
    async def test_success_replaces_placeholders(self, active_workspace, backend):
        backend.route("POST", "/agents/a/messages", REPLY)
        conversation = active_workspace.conversation

        await conversation.send_message("  hi  ")

        assert [m.id for m in conversation.history("a")] == ["m1", "m2"]
        assert not any(m.is_placeholder for m in conversation.history("a"))
        assert "a" in conversation.loaded_agents
        assert not conversation.is_loading

    @pytest.mark.asyncio
    async def test_placeholders_shown_while_pending(self, active_workspace, backend):
        """Test that both placeholders appear before the server answers."""
        release = asyncio.Event()

        async def handler(request):
            await release.wait()
            return REPLY

        backend.route("POST", "/agents/a/messages", handler)
        conversation = active_workspace.conversation

        send = asyncio.create_task(conversation.send_message("hi"))
        await asyncio.sleep(0)

        pending = conversation.history("a")
        assert [(m.role, m.text, m.is_placeholder) for m in pending] == [
            (Role.USER, "hi", True),
            (Role.MODEL, "", True),
        ]
        assert conversation.is_loading

        release.set()
        await send
        assert not conversation.is_loading

    @pytest.mark.asyncio
    async def test_pending_send_blocks_every_agent(self, active_workspace, backend):
        """Test that the send-in-flight flag is shared across agents."""
        release = asyncio.Event()

        async def handler(request):
            await release.wait()
            return REPLY

        backend.route("POST", "/agents/a/messages", handler)
        conversation = active_workspace.conversation

        send = asyncio.create_task(conversation.send_message("hi"))
        await asyncio.sleep(0)
        active_workspace.agents.select_agent("b")
        await conversation.send_message("also hi")
        release.set()
        await send

        assert conversation.history("b") == []
        assert backend.count("POST", "/agents/b/messages") == 0

    @pytest.mark.asyncio
    async def test_failure_rolls_back_to_one_user_message(self, active_workspace, backend):
        """Test that a failed send keeps the text once and adds one error."""
        backend.route("POST", "/agents/a/messages", httpx.Response(500, json={"error": "Database error"}))
        conversation = active_workspace.conversation

        await conversation.send_message("hi")

        history = conversation.history("a")
        users = [m for m in history if m.role is Role.USER and m.text == "hi"]
        errors = [m for m in history if m.role is Role.MODEL and m.is_error]
        assert len(users) == 1
        assert len(errors) == 1
        assert len(history) == 2
        assert not users[0].is_placeholder
        assert errors[0].text == "Database error"
        assert not conversation.is_loading

    @pytest.mark.asyncio
    async def test_failure_without_message_uses_default(self, active_workspace, backend):
        def handler(request):
            raise RuntimeError()

        backend.route("POST", "/agents/a/messages", handler)

        await active_workspace.conversation.send_message("hi")

        assert active_workspace.conversation.history("a")[-1].text == GENERATION_FAILED

    @pytest.mark.asyncio
    async def test_ignored_sends(self, active_workspace, backend):
        """Test that blank text and a missing agent send nothing."""
        await active_workspace.conversation.send_message("   ")
        active_workspace.agents.clear()
        await active_workspace.conversation.send_message("hi")

        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_no_active_project_raises(self, active_workspace, backend):
        active_workspace.projects.select_project(None)

        with pytest.raises(NoActiveProjectError):
            await active_workspace.conversation.send_message("hi")

        assert active_workspace.conversation.history("a") == []
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_reply_after_reset_is_discarded(self, active_workspace, backend):
        """Test that a project switch during a send drops the late reply."""
        release = asyncio.Event()

        async def handler(request):
            await release.wait()
            return REPLY

        backend.route("POST", "/agents/a/messages", handler)
        conversation = active_workspace.conversation

        send = asyncio.create_task(conversation.send_message("hi"))
        await asyncio.sleep(0)
        conversation.clear_all_chat_histories()
        release.set()
        await send

        assert conversation.history("a") == []
        assert "a" not in conversation.loaded_agents
        assert not conversation.is_loading


class TestEnsureMessagesLoaded:
    """Test history loading."""

    @pytest.mark.asyncio
    async def test_concurrent_loads_send_one_request(self, active_workspace, backend):
        release = asyncio.Event()

        async def handler(request):
            await release.wait()
            return {"messages": [message_payload("m1", "USER", "hi")]}

        backend.route("GET", "/agents/agent-1/messages", handler)
        conversation = active_workspace.conversation

        first = asyncio.create_task(conversation.ensure_messages_loaded("agent-1"))
        second = asyncio.create_task(conversation.ensure_messages_loaded("agent-1"))
        await asyncio.sleep(0)
        release.set()
        await asyncio.gather(first, second)

        assert backend.count("GET", "/agents/agent-1/messages") == 1
        assert [m.id for m in conversation.history("agent-1")] == ["m1"]

    @pytest.mark.asyncio
    async def test_loaded_agent_is_not_refetched(self, active_workspace, backend):
        backend.route("GET", "/agents/a/messages", {"messages": []})

        await active_workspace.conversation.ensure_messages_loaded("a")
        await active_workspace.conversation.ensure_messages_loaded("a")

        assert backend.count("GET", "/agents/a/messages") == 1
        assert backend.requests[0].url.params["projectId"] == "p1"

    @pytest.mark.asyncio
    async def test_failure_allows_retry(self, active_workspace, backend):
        """Test that a failed load is swallowed and un-marked."""
        backend.route("GET", "/agents/a/messages", httpx.Response(503))
        conversation = active_workspace.conversation

        await conversation.ensure_messages_loaded("a")
        assert "a" not in conversation.loaded_agents
        assert conversation.history("a") == []

        backend.route("GET", "/agents/a/messages", {"messages": [message_payload("m1", "MODEL", "hey")]})
        await conversation.ensure_messages_loaded("a")
        assert [m.text for m in conversation.history("a")] == ["hey"]


class TestClearChat:
    """Test remote history deletion."""

    @pytest.mark.asyncio
    async def test_clear_chat_forces_refetch(self, active_workspace, backend):
        backend.route("GET", "/agents/a/messages", {"messages": [message_payload("m1", "USER", "hi")]})
        backend.route("DELETE", "/agents/a/messages", httpx.Response(204))
        conversation = active_workspace.conversation
        await conversation.ensure_messages_loaded("a")

        await conversation.clear_chat()

        assert conversation.messages == []
        assert "a" not in conversation.loaded_agents

        backend.route("GET", "/agents/a/messages", {"messages": []})
        await conversation.ensure_messages_loaded("a")
        assert backend.count("GET", "/agents/a/messages") == 2

    @pytest.mark.asyncio
    async def test_clear_chat_failure_keeps_history(self, active_workspace, backend):
        backend.route("GET", "/agents/a/messages", {"messages": [message_payload("m1", "USER", "hi")]})
        backend.route("DELETE", "/agents/a/messages", httpx.Response(500, json={"error": "boom"}))
        conversation = active_workspace.conversation
        await conversation.ensure_messages_loaded("a")

        with pytest.raises(ApiError, match="boom"):
            await conversation.clear_chat()

        assert [m.id for m in conversation.messages] == ["m1"]
        assert "a" in conversation.loaded_agents
