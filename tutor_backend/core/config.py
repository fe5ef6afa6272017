import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Storage
    DATABASE_URL: Optional[str] = None
    QUOTA_STORE: str = "memory"  # memory | sql

    # Daily quota (0 = fall back to DAILY_QUOTA_LIMIT)
    DAILY_QUOTA_LIMIT: int = 50
    QUOTA_LIMIT_CHAT_REQUEST: int = 0
    QUOTA_LIMIT_TTS: int = 0
    QUOTA_LIMIT_STT: int = 0
    QUOTA_LIMIT_TELL_MORE: int = 0
    QUOTA_LIMIT_ASK_QUESTION: int = 0
    QUOTA_LIMIT_IMAGE: int = 0

    # Chat provider
    GROQ_API_KEY: Optional[str] = None
    CHAT_MODEL: str = "llama-3.1-8b-instant"
    CHAT_TEMPERATURE: float = 0.7
    CHAT_TOP_P: float = 1.0
    CHAT_PRESENCE_PENALTY: float = 0.0
    CHAT_FREQUENCY_PENALTY: float = 0.0
    CHAT_MAX_TOKENS: int = 512

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Secrets are not logged, only missing keys.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("tutor")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    store = (cfg.QUOTA_STORE or "").lower()
    if store not in {"memory", "sql"}:
        problems.append(f"QUOTA_STORE must be 'memory' or 'sql' (got {cfg.QUOTA_STORE!r})")
    if store == "sql" and not cfg.DATABASE_URL:
        problems.append("Missing required configuration: DATABASE_URL")
    if cfg.DAILY_QUOTA_LIMIT < 0:
        problems.append("DAILY_QUOTA_LIMIT must not be negative")
    if not cfg.GROQ_API_KEY:
        problems.append("Missing required configuration: GROQ_API_KEY")

    for message in problems:
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return not problems
