"""
Tutor chat API.

POST /api/chat - metered by the chat_request daily quota.

The quota is checked and consumed exactly once per request before the
upstream provider is called; a denied request never reaches the provider.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from tutor_backend.core.auth import get_current_user_id
from tutor_backend.core.errors import QuotaExceededError
from tutor_backend.features.chat.provider import ChatMessage, ChatOptions, ChatProvider, get_chat_provider
from tutor_backend.features.quota.ledger import QuotaLedger
from tutor_backend.features.quota.limits import CHAT_REQUEST, limit_for
from tutor_backend.features.quota.service import get_ledger


router = APIRouter(prefix="/api", tags=["chat"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[ChatMessage] = Field(min_length=1, max_length=50)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(None, gt=0.0, le=1.0, alias="topP")
    presence_penalty: Optional[float] = Field(None, ge=-2.0, le=2.0, alias="presencePenalty")
    frequency_penalty: Optional[float] = Field(None, ge=-2.0, le=2.0, alias="frequencyPenalty")


@router.post("/chat")
def chat(
    body: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    ledger: QuotaLedger = Depends(get_ledger),
    provider: ChatProvider = Depends(get_chat_provider),
) -> dict:
    """
    Send the conversation to the tutor model.

    Returns:
        {
            "reply": "...",
            "quota": {"allowed": true, "remaining": 49, "limit": 50, "resetAt": "..."}
        }

    Raises:
        QuotaExceededError (429) when today's chat quota is used up
    """
    quota = ledger.check_and_consume(user_id, CHAT_REQUEST, limit_for(CHAT_REQUEST))
    if not quota.allowed:
        reset_at = quota.to_dict()["resetAt"]
        raise QuotaExceededError(
            "Daily chat limit reached. Please come back tomorrow.",
            details={"limit": quota.limit, "remaining": 0, "resetAt": reset_at},
            headers={
                "X-RateLimit-Limit": str(quota.limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": reset_at,
            },
        )

    options = ChatOptions.from_settings(
        temperature=body.temperature,
        top_p=body.top_p,
        presence_penalty=body.presence_penalty,
        frequency_penalty=body.frequency_penalty,
    )
    reply = provider.complete(body.messages, options)
    return {"reply": reply, "quota": quota.to_dict()}
