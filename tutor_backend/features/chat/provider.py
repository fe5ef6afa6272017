"""
Upstream chat completion provider.

The tutor chat endpoint forwards to this collaborator only after the daily
quota has allowed the request.
"""

import logging
from typing import List, Literal, Optional, Protocol

import groq
from pydantic import BaseModel, ConfigDict, Field

from tutor_backend.core.config import settings
from tutor_backend.core.errors import UpstreamError

logger = logging.getLogger("tutor")

TUTOR_SYSTEM_PROMPT = (
    "You are a patient, encouraging tutor for young learners. "
    "Use short sentences and simple words. Ask one follow-up question at the end."
)


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(min_length=1, max_length=4000)


class ChatOptions(BaseModel):
    """Sampling options. Every field is always present; defaults come from settings."""
    model_config = ConfigDict(frozen=True)

    model: str
    temperature: float = Field(ge=0.0, le=2.0)
    top_p: float = Field(gt=0.0, le=1.0)
    presence_penalty: float = Field(ge=-2.0, le=2.0)
    frequency_penalty: float = Field(ge=-2.0, le=2.0)
    max_tokens: int = Field(gt=0, le=4096)

    @classmethod
    def from_settings(cls, **overrides) -> "ChatOptions":
        values = {
            "model": settings.CHAT_MODEL,
            "temperature": settings.CHAT_TEMPERATURE,
            "top_p": settings.CHAT_TOP_P,
            "presence_penalty": settings.CHAT_PRESENCE_PENALTY,
            "frequency_penalty": settings.CHAT_FREQUENCY_PENALTY,
            "max_tokens": settings.CHAT_MAX_TOKENS,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


class ChatProvider(Protocol):
    def complete(self, messages: List[ChatMessage], options: ChatOptions) -> str:
        ...


class GroqChatProvider:
    """Chat completions through the Groq API."""

    def __init__(self, api_key: Optional[str] = None):
        try:
            self._client = groq.Groq(api_key=api_key or settings.GROQ_API_KEY)
        except groq.GroqError as e:
            raise UpstreamError("Chat provider is not configured") from e

    def complete(self, messages: List[ChatMessage], options: ChatOptions) -> str:
        payload = [{"role": "system", "content": TUTOR_SYSTEM_PROMPT}]
        payload.extend({"role": m.role, "content": m.content} for m in messages)
        try:
            response = self._client.chat.completions.create(
                messages=payload,
                model=options.model,
                temperature=options.temperature,
                top_p=options.top_p,
                presence_penalty=options.presence_penalty,
                frequency_penalty=options.frequency_penalty,
                max_tokens=options.max_tokens,
            )
        except groq.GroqError as e:
            logger.error(f"[chat] upstream completion failed: {e.__class__.__name__}")
            raise UpstreamError("Chat provider request failed") from e
        return response.choices[0].message.content or ""


_provider: Optional[ChatProvider] = None


def get_chat_provider() -> ChatProvider:
    """FastAPI dependency returning the shared chat provider."""
    global _provider
    if _provider is None:
        _provider = GroqChatProvider()
    return _provider
