from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Leads Service"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None  # defaults to ./logs

    # ── Database ────────────────────────────────
    DATABASE_URL: str

    # ── Meta (Facebook / Instagram) ─────────────
    META_VERIFY_TOKEN: Optional[str] = None
    META_APP_SECRET: Optional[str] = None
    META_ACCESS_TOKEN: Optional[str] = None
    META_GRAPH_BASE_URL: str = "https://graph.facebook.com"
    META_GRAPH_API_VERSION: str = "v18.0"
    META_API_TIMEOUT_SECONDS: float = 10.0
    META_API_MAX_ATTEMPTS: int = 3
    META_API_RETRY_BASE_DELAY_MS: int = 1000

    # ── Snapchat ────────────────────────────────
    SNAPCHAT_CLIENT_SECRET: Optional[str] = None
    SNAPCHAT_SIGNATURE_TOLERANCE_SECONDS: int = 300  # ±5 minutes

    # ── TikTok ──────────────────────────────────
    TIKTOK_APP_SECRET: Optional[str] = None

    # ── Leads / webhook logs ────────────────────
    WEBHOOK_LOG_RETENTION_DAYS: int = 30
    LEAD_FIELD_MAX_LENGTH: int = 1000

    @property
    def verify_signatures(self) -> bool:
        """Signatures are only enforced in production; local and staging skip them."""
        return self.ENVIRONMENT == "production"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
