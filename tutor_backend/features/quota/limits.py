"""
Daily limits per metered action.

Each action has its own counter; an action-specific setting of 0 falls back
to DAILY_QUOTA_LIMIT.

Only chat_request is consumed by an endpoint in this service (POST /api/chat).
The tts, stt, tell_more, ask_question and image counters belong to the voice
and explore features, which call QuotaLedger.check_and_consume with
limit_for(action) themselves. /api/limits reports all of them so the client
can show every remaining allowance.
"""

from typing import Dict, Optional

from tutor_backend.core.config import Settings, settings
from tutor_backend.core.errors import InvalidArgumentError

CHAT_REQUEST = "chat_request"
TTS = "tts"
STT = "stt"
TELL_MORE = "tell_more"
ASK_QUESTION = "ask_question"
IMAGE = "image"

# Action tag -> Settings field holding its override
ACTION_LIMIT_SETTINGS = {
    CHAT_REQUEST: "QUOTA_LIMIT_CHAT_REQUEST",
    TTS: "QUOTA_LIMIT_TTS",
    STT: "QUOTA_LIMIT_STT",
    TELL_MORE: "QUOTA_LIMIT_TELL_MORE",
    ASK_QUESTION: "QUOTA_LIMIT_ASK_QUESTION",
    IMAGE: "QUOTA_LIMIT_IMAGE",
}


def action_limits(settings_obj: Optional[Settings] = None) -> Dict[str, int]:
    """Resolve the daily limit for every known action."""
    cfg = settings_obj or settings
    default = max(0, cfg.DAILY_QUOTA_LIMIT)
    limits = {}
    for action, field in ACTION_LIMIT_SETTINGS.items():
        override = getattr(cfg, field, 0) or 0
        limits[action] = override if override > 0 else default
    return limits


def limit_for(action: str, settings_obj: Optional[Settings] = None) -> int:
    """Daily limit for `action`; unknown actions are rejected."""
    limits = action_limits(settings_obj)
    if action not in limits:
        raise InvalidArgumentError(
            f"Unknown action '{action}'",
            details={"allowed_actions": sorted(limits)},
        )
    return limits[action]
