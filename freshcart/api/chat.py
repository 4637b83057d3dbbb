"""
API endpoint for the shopping assistant

Endpoints:
- POST /api/v1/assistant/chat        - Process a shopper message
- GET  /api/v1/assistant/chat/health - Assistant configuration status

Author: TM3
"""
import logging
from datetime import datetime, timezone
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from freshcart.core.auth import TokenUser, get_current_user_optional
from freshcart.core.config import settings
from freshcart.services.assistant_chat_service import AssistantChatService, get_chat_service

logger = logging.getLogger(__name__)

# ============================================================================
# ROUTER
# ============================================================================

router = APIRouter(prefix="/api/v1/assistant", tags=["assistant"])


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class ChatMessage(BaseModel):
    """A single message in the conversation history"""
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request body for chat endpoint"""
    message: str = Field(..., min_length=1, max_length=1000, description="Shopper's message")
    history: List[ChatMessage] = Field(default=[], description="Conversation history")


class ChatResponse(BaseModel):
    """Response from chat endpoint"""
    success: bool
    response: str
    tools_used: List[str]
    cart_summary: Optional[dict] = None
    model: str
    usage: dict
    timestamp: str


def get_assistant() -> AssistantChatService:
    """Resolved inside the handler so a missing API key maps to a 500"""
    return get_chat_service()


# ============================================================================
# ENDPOINT: POST /api/v1/assistant/chat
# ============================================================================

@router.post("/chat", response_model=ChatResponse)
def chat(
    request: ChatRequest,
    user: Optional[TokenUser] = Depends(get_current_user_optional)
):
    """
    Process a natural language shopping request.

    Examples:
    - "Add two apples to my cart"
    - "What's in my cart?"
    - "Change the milk to 3"
    - "Place my order"
    """
    try:
        logger.info(f"Chat request received: {request.message[:50]}...")

        assistant = get_assistant()
        history = [{"role": msg.role, "content": msg.content} for msg in request.history]

        result = assistant.process_message(
            message=request.message,
            user=user,
            history=history
        )

        return ChatResponse(
            success=True,
            response=result.response,
            tools_used=result.tools_used,
            cart_summary=result.cart_summary,
            model=result.model,
            usage={
                "input_tokens": result.input_tokens,
                "output_tokens": result.output_tokens,
                "total_tokens": result.input_tokens + result.output_tokens,
                "estimated_cost_usd": result.estimated_cost_usd,
                "context_messages": result.context_messages
            },
            timestamp=_utc_timestamp()
        )

    except ValueError as e:
        # API key not configured
        logger.error(f"Configuration error: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail="Assistant not configured. Please contact administrator."
        )

    except Exception as e:
        logger.error(f"Chat error: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail="Error processing your message. Please try again."
        )


# ============================================================================
# ENDPOINT: GET /api/v1/assistant/chat/health
# ============================================================================

@router.get("/chat/health")
async def chat_health():
    """Assistant configuration status"""
    api_key_configured = bool(settings.ANTHROPIC_API_KEY)
    return {
        "status": "healthy" if api_key_configured else "not_configured",
        "api_key_configured": api_key_configured,
        "model": settings.CLAUDE_MODEL,
        "timestamp": _utc_timestamp()
    }
