from fastapi import APIRouter, Depends, HTTPException

from whatsapp_kit.dependencies import get_agent
from whatsapp_kit.logging_config import get_logger
from whatsapp_kit.schemas.agent import ChatRequest, ChatResponse
from whatsapp_kit.services.agent_service import WhatsAppAgent
from whatsapp_kit.services.llm import LLMError

logger = get_logger("agent_router")

router = APIRouter(prefix="/agent", tags=["agent"])


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, agent: WhatsAppAgent = Depends(get_agent)):
    try:
        result = await agent.chat(request.from_, request.message, model=request.model, max_tokens=request.max_tokens)
    except LLMError as e:
        logger.error(f"Completion failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    if not result.ok:
        raise HTTPException(status_code=400, detail=result.error)

    reply = result.value
    return ChatResponse(
        message=reply.message,
        model=reply.model,
        tokens_used=reply.tokens_used,
        cost=reply.cost,
        conversation_id=reply.conversation_id,
    )
