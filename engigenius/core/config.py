"""
core/config.py
All environment variables and settings in one place.
Relay:  AI gateway (OpenAI-compatible chat completions)
Store:  in-memory (dev) or Supabase / PostgREST (production)
"""

from functools import lru_cache
from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ─── App ───────────────────────────────────────────────
    APP_NAME: str = "EngiGenius AI Relay"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: list[str] = ["*"]   # browser callers hit the relay directly
    CORS_ALLOW_HEADERS: str = "authorization, x-client-info, apikey, content-type"

    # ─── AI Gateway ────────────────────────────────────────
    # Server-held credential, never sent to the client
    AI_GATEWAY_API_KEY: str = ""
    AI_GATEWAY_BASE_URL: str = "https://ai.gateway.lovable.dev/v1"
    AI_MODEL: str = "google/gemini-2.5-flash"
    LLM_TIMEOUT: float = 120.0        # transport timeout; streams can run long

    # ─── Record Store ──────────────────────────────────────
    # Options: "memory" | "rest"
    RECORD_STORE: Literal["memory", "rest"] = "memory"
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_ANON_KEY: str = ""
    STORE_TIMEOUT: float = 10.0

    # ─── Client ────────────────────────────────────────────
    RELAY_URL: str = "http://127.0.0.1:8000/ask-ai"
    RELAY_TIMEOUT: float = 120.0
    RELAY_ACCESS_TOKEN: str = ""       # sent as Bearer to the relay, optional

    # ─── Decoder ───────────────────────────────────────────
    # How many chunks a malformed line may wait for completion before it is dropped
    DECODER_MAX_LINE_RETRIES: int = 3

    # ─── Insights ──────────────────────────────────────────
    DEFAULT_SUBJECT: str = "General"
    TOPIC_PROBABILITY_MIN: int = 70
    TOPIC_PROBABILITY_MAX: int = 99

    @property
    def store_rest_url(self) -> str:
        return f"{self.SUPABASE_URL.rstrip('/')}/rest/v1"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
