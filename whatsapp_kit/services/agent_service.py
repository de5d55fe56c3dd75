"""LLM-backed WhatsApp agent with a per-sender sliding context window."""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from whatsapp_kit.logging_config import bind, get_logger
from whatsapp_kit.services.context_store import ContextStore, Role, Turn
from whatsapp_kit.services.llm.base import LLMProvider
from whatsapp_kit.services.phone import normalize_recipient
from whatsapp_kit.services.result import Result
from whatsapp_kit.services.store import Clock, utcnow
from whatsapp_kit.services.whatsapp_client import WhatsAppClient

logger = get_logger("agent_service")

ECHO_SOURCE = "smb_message_echo"


@dataclass
class AgentConfig:
    context_window: int = 10
    system_prompt: str = ""
    session_timeout_seconds: float = 300
    model: Optional[str] = None


@dataclass
class AgentResponse:
    message: str
    model: str
    tokens_used: int
    # provider does not report pricing
    cost: float = 0.0
    conversation_id: Optional[str] = None


def normalize_user_id(value: Optional[str]) -> Optional[str]:
    trimmed = (value or "").strip()
    return trimmed or None


def build_messages(system_prompt: str, context: List[Turn]) -> List[dict]:
    messages = []
    if system_prompt and system_prompt.strip():
        messages.append({"role": Role.SYSTEM.value, "content": system_prompt.strip()})
    messages.extend(turn.as_prompt_message() for turn in context)
    return messages


def _is_outbound(message: dict) -> bool:
    kapso = message.get("kapso")
    if not isinstance(kapso, dict):
        return False
    return kapso.get("direction") == "outbound" or kapso.get("source") == ECHO_SOURCE


def _text_body(message: dict) -> str:
    text = message.get("text")
    if isinstance(text, dict) and isinstance(text.get("body"), str):
        return text["body"]
    kapso = message.get("kapso")
    if isinstance(kapso, dict) and isinstance(kapso.get("content"), str):
        return kapso["content"]
    return ""


def _cloud_api_messages(payload: dict) -> List[dict]:
    found = []
    entries = payload.get("entry")
    if not isinstance(entries, list):
        return found
    for entry in entries:
        changes = entry.get("changes") if isinstance(entry, dict) else None
        for change in changes if isinstance(changes, list) else []:
            value = change.get("value") if isinstance(change, dict) else None
            messages = value.get("messages") if isinstance(value, dict) else None
            if isinstance(messages, list):
                found.extend(m for m in messages if isinstance(m, dict))
    return found


def extract_inbound_messages(payload: Any) -> List[Tuple[str, str]]:
    """Pull (sender, text) pairs for inbound text messages out of a webhook.

    Cloud API ``entry[].changes[].value.messages[]`` is checked first; a
    Kapso-style top-level ``message`` is the fallback.
    """
    if not isinstance(payload, dict):
        return []

    inbound = []
    for message in _cloud_api_messages(payload):
        if _is_outbound(message) or message.get("type") != "text":
            continue
        body = _text_body(message)
        sender = message.get("from")
        if body and isinstance(sender, str) and sender:
            inbound.append((sender, body))

    if inbound:
        return inbound

    message = payload.get("message")
    if not isinstance(message, dict):
        return inbound
    kapso = message.get("kapso")
    if isinstance(kapso, dict) and kapso.get("direction") == "outbound":
        return inbound

    sender = message.get("from") if isinstance(message.get("from"), str) else ""
    body = _text_body(message)
    if sender and body and message.get("type") == "text":
        inbound.append((sender, body))
    return inbound


class WhatsAppAgent:
    def __init__(
        self,
        llm: LLMProvider,
        client: WhatsAppClient,
        config: Optional[AgentConfig] = None,
        store: Optional[ContextStore] = None,
        clock: Clock = utcnow,
    ):
        self.llm = llm
        self.client = client
        self.config = config or AgentConfig()
        self.clock = clock
        self.store = store or ContextStore(clock=clock)

    def set_system_prompt(self, prompt: str) -> None:
        self.config.system_prompt = prompt

    def _expire_stale_session(self, user_id: str) -> None:
        timeout = self.config.session_timeout_seconds
        last_updated = self.store.get_last_updated(user_id)
        if not last_updated or not timeout:
            return
        idle = (self.clock() - last_updated).total_seconds()
        if idle > timeout:
            logger.info("Session expired, context reset", extra={"context": {"user_id": user_id, "idle": idle}})
            self.store.clear(user_id)

    async def chat(
        self,
        from_: str,
        message: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Result[AgentResponse]:
        """Run one conversational turn.

        Validation problems come back as a failed Result. Provider errors
        propagate; the user turn stays recorded and no assistant turn is added.
        """
        user_id = normalize_user_id(from_)
        if not user_id:
            return Result.failure("Invalid sender identifier", "invalid_sender")

        text = (message or "").strip()
        if not text:
            return Result.failure("Message is required", "empty_message")

        self._expire_stale_session(user_id)
        window = self.config.context_window
        self.store.add(user_id, Turn(Role.USER, text, self.clock()), window)

        prompt = build_messages(self.config.system_prompt, self.store.get(user_id))
        requested_model = model or self.config.model
        reply = await self.llm.generate(prompt, model=requested_model, max_tokens=max_tokens)

        self.store.add(user_id, Turn(Role.ASSISTANT, reply.content, self.clock()), window)

        bind(logger, user_id=user_id).info(
            "Agent replied",
            context={"model": reply.model, "tokens": reply.total_tokens, "window": len(self.store.get(user_id))},
        )
        return Result.success(
            AgentResponse(
                message=reply.content,
                model=reply.model or requested_model or "",
                tokens_used=reply.total_tokens,
                conversation_id=reply.id,
            )
        )

    async def handle_webhook(self, payload: Any) -> int:
        """Answer every inbound text message in ``payload``; returns replies sent."""
        sent = 0
        for sender, body in extract_inbound_messages(payload):
            result = await self.chat(sender, body)
            if not result.ok:
                logger.warning(f"Skipping inbound message: {result.error}", extra={"context": {"from": sender}})
                continue
            await self.send_message(sender, result.value.message)
            sent += 1
        return sent

    async def send_message(self, to: str, message: str) -> dict:
        recipient = normalize_recipient(to)
        if not recipient:
            raise ValueError("Invalid phone number format")
        return await self.client.send_text(recipient, message)

    def get_context(self, user_id: str) -> List[Turn]:
        return self.store.get(user_id)

    def clear_context(self, user_id: str) -> None:
        self.store.clear(user_id)

    def add_context(self, user_id: str, turn: Turn) -> None:
        self.store.add(user_id, turn, self.config.context_window)
