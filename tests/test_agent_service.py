import asyncio
from unittest.mock import AsyncMock

import pytest

from whatsapp_kit.services.agent_service import (
    AgentConfig,
    WhatsAppAgent,
    build_messages,
    extract_inbound_messages,
)
from whatsapp_kit.services.context_store import Role, Turn
from whatsapp_kit.services.llm.base import LLMError, LLMResponse


@pytest.fixture
def llm():
    provider = AsyncMock()
    provider.generate.return_value = LLMResponse(
        content="Hello there!",
        model="openai/gpt-oss-120b",
        usage={"total_tokens": 42},
        id="chatcmpl-1",
    )
    return provider


@pytest.fixture
def agent(llm, whatsapp_client, clock):
    return WhatsAppAgent(
        llm,
        whatsapp_client,
        AgentConfig(context_window=4, system_prompt="Be brief.", session_timeout_seconds=300),
        clock=clock,
    )


class TestBuildMessages:
    def test_system_prompt_first_then_context(self):
        context = [Turn(Role.USER, "hi"), Turn(Role.ASSISTANT, "hello")]
        assert build_messages("  Be brief.  ", context) == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
        ]

    def test_blank_system_prompt_is_skipped(self):
        assert build_messages("   ", [Turn(Role.USER, "hi")]) == [{"role": "user", "content": "hi"}]


class TestChat:
    def test_records_both_turns_and_returns_usage(self, agent, llm):
        result = asyncio.run(agent.chat(" +15550102030 ", "  What's up?  "))

        assert result.ok is True
        assert result.value.message == "Hello there!"
        assert result.value.tokens_used == 42
        assert result.value.cost == 0.0
        assert result.value.conversation_id == "chatcmpl-1"

        messages = llm.generate.call_args[0][0]
        assert messages == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "What's up?"},
        ]
        turns = agent.get_context("+15550102030")
        assert [(t.role, t.content) for t in turns] == [(Role.USER, "What's up?"), (Role.ASSISTANT, "Hello there!")]

    def test_rejects_blank_sender(self, agent, llm):
        result = asyncio.run(agent.chat("   ", "hi"))
        assert result.ok is False
        assert result.error_code == "invalid_sender"
        llm.generate.assert_not_called()

    def test_rejects_blank_message(self, agent, llm):
        result = asyncio.run(agent.chat("+15550102030", " \n "))
        assert result.ok is False
        assert result.error == "Message is required"
        assert agent.get_context("+15550102030") == []

    def test_model_and_max_tokens_forwarded(self, agent, llm):
        asyncio.run(agent.chat("user", "hi", model="llama-3.1-8b-instant", max_tokens=64))
        kwargs = llm.generate.call_args[1]
        assert kwargs == {"model": "llama-3.1-8b-instant", "max_tokens": 64}

    def test_window_evicts_oldest_turns(self, agent, llm):
        for n in range(3):
            asyncio.run(agent.chat("user", f"question {n}"))

        turns = agent.get_context("user")
        assert len(turns) == 4
        assert turns[0].content == "question 1"
        # the prompt for the last call saw the window before the reply was added
        assert len(llm.generate.call_args[0][0]) == 1 + 4

    def test_provider_failure_keeps_user_turn_only(self, agent, llm):
        llm.generate.side_effect = LLMError("Groq request failed: 500 oops")

        with pytest.raises(LLMError):
            asyncio.run(agent.chat("user", "hi"))

        turns = agent.get_context("user")
        assert [(t.role, t.content) for t in turns] == [(Role.USER, "hi")]


class TestSessionTimeout:
    def test_stale_session_is_cleared_before_new_turn(self, agent, clock):
        asyncio.run(agent.chat("user", "first"))
        clock.advance(301)
        asyncio.run(agent.chat("user", "second"))

        contents = [t.content for t in agent.get_context("user")]
        assert contents == ["second", "Hello there!"]

    def test_active_session_is_kept(self, agent, clock):
        asyncio.run(agent.chat("user", "first"))
        clock.advance(300)
        asyncio.run(agent.chat("user", "second"))

        assert len(agent.get_context("user")) == 4

    def test_zero_timeout_disables_expiry(self, llm, whatsapp_client, clock):
        agent = WhatsAppAgent(llm, whatsapp_client, AgentConfig(session_timeout_seconds=0), clock=clock)
        asyncio.run(agent.chat("user", "first"))
        clock.advance(86400)
        asyncio.run(agent.chat("user", "second"))

        assert len(agent.get_context("user")) == 4


class TestContextAccessors:
    def test_add_and_clear_context(self, agent):
        agent.add_context("user", Turn(Role.SYSTEM, "note"))
        assert agent.get_context("user")[0].content == "note"

        agent.clear_context("user")
        assert agent.get_context("user") == []

    def test_set_system_prompt(self, agent, llm):
        agent.set_system_prompt("Answer in Spanish.")
        asyncio.run(agent.chat("user", "hi"))
        assert llm.generate.call_args[0][0][0] == {"role": "system", "content": "Answer in Spanish."}


class TestSendMessage:
    def test_normalizes_recipient(self, agent, whatsapp_client):
        asyncio.run(agent.send_message("+1 (555) 010-2030", "hi"))
        whatsapp_client.send_text.assert_awaited_once_with("+15550102030", "hi")

    def test_invalid_recipient_raises(self, agent):
        with pytest.raises(ValueError):
            asyncio.run(agent.send_message("abc", "hi"))


class TestExtractInboundMessages:
    def test_cloud_api_payload(self):
        payload = {
            "entry": [
                {
                    "changes": [
                        {
                            "value": {
                                "messages": [
                                    {"from": "15550102030", "type": "text", "text": {"body": "hola"}},
                                    {"from": "15550102030", "type": "image", "image": {"id": "x"}},
                                    {
                                        "from": "15550109999",
                                        "type": "text",
                                        "text": {"body": "echo"},
                                        "kapso": {"source": "smb_message_echo"},
                                    },
                                ]
                            }
                        }
                    ]
                }
            ]
        }
        assert extract_inbound_messages(payload) == [("15550102030", "hola")]

    def test_kapso_message_fallback(self):
        payload = {"message": {"from": "+15550102030", "type": "text", "kapso": {"content": "from kapso"}}}
        assert extract_inbound_messages(payload) == [("+15550102030", "from kapso")]

    def test_outbound_kapso_message_ignored(self):
        payload = {
            "message": {"from": "+15550102030", "type": "text", "text": {"body": "hi"}, "kapso": {"direction": "outbound"}}
        }
        assert extract_inbound_messages(payload) == []

    def test_non_text_or_garbage(self):
        assert extract_inbound_messages({"message": {"from": "+1", "type": "image"}}) == []
        assert extract_inbound_messages(["not", "a", "dict"]) == []
        assert extract_inbound_messages({"entry": "broken"}) == []


class TestHandleWebhook:
    def test_replies_to_each_inbound_text(self, agent, whatsapp_client):
        payload = {"message": {"from": "+15550102030", "type": "text", "text": {"body": "hi"}}}

        sent = asyncio.run(agent.handle_webhook(payload))

        assert sent == 1
        whatsapp_client.send_text.assert_awaited_once_with("+15550102030", "Hello there!")

    def test_blank_body_is_skipped(self, agent, whatsapp_client, llm):
        payload = {"message": {"from": "+15550102030", "type": "text", "text": {"body": "   "}}}

        assert asyncio.run(agent.handle_webhook(payload)) == 0
        llm.generate.assert_not_called()
        whatsapp_client.send_text.assert_not_called()
