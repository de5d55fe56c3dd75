import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from whatsapp_kit.config import settings
from whatsapp_kit.dependencies import get_optional_agent, get_workflow_service
from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.schemas.agent import WebhookResponse
from whatsapp_kit.services.agent_service import WhatsAppAgent
from whatsapp_kit.services.signature import verify_signature
from whatsapp_kit.services.workflow_service import WorkflowService

logger = get_logger("webhook")

router = APIRouter()


def parse_payload(raw: bytes) -> Optional[Any]:
    """Decode a webhook body, tolerating non-utf-8 bytes."""
    try:
        return json.loads(raw.decode("utf-8", errors="replace"))
    except ValueError:
        return None


@router.post("/webhook/whatsapp", response_model=WebhookResponse)
async def handle_whatsapp_webhook(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(default=None, alias="X-Hub-Signature-256"),
    workflows: WorkflowService = Depends(get_workflow_service),
    agent: Optional[WhatsAppAgent] = Depends(get_optional_agent),
):
    """Dispatch workflow events and let the agent answer inbound text.

    A handler failure stops the remaining handlers for that event and is
    answered with 500 so the provider redelivers the webhook.
    """
    raw = await request.body()

    if settings.whatsapp_app_secret and not verify_signature(settings.whatsapp_app_secret, raw, x_hub_signature_256):
        logger.warning("Rejected webhook with invalid signature")
        raise HTTPException(status_code=403, detail="Invalid signature")

    payload = parse_payload(raw)
    if payload is None:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    try:
        event = await workflows.handle_webhook(payload)
        replies = await agent.handle_webhook(payload) if agent else 0
    except Exception as e:
        logger.error(f"Webhook handling failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Webhook handling failed")

    if event is None and not replies:
        return WebhookResponse(success=True, message="No actionable content")

    return WebhookResponse(
        success=True,
        message="Processed",
        event_type=event.type.value if event else None,
        replies_sent=replies,
    )
