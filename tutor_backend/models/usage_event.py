"""
UsageEvent model for the daily quota ledger.

One event is recorded per consumed quota unit.
"""

from datetime import datetime
from pydantic import BaseModel, ConfigDict


class UsageEvent(BaseModel):
    """
    UsageEvent records one consumed unit of a gated action.

    Actions:
    - chat_request: Tutor chat message
    - tts / stt: Text-to-speech, speech-to-text
    - tell_more / ask_question: AI lesson expansions
    - image: Image generation

    Events are append-only: never updated or deleted by the ledger.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    action: str
    occurred_at: datetime
