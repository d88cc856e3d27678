"""
Central feature flags. One file controls every external dependency.

Set via environment variables (prefix FF_) or .env file.
When a flag is OFF, the system uses a local fallback. Nothing crashes.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Cache / Realtime / Locks ─────────────────────────────────────
    use_redis: bool = Field(default=False, alias="FF_USE_REDIS")
    # ON  → Redis pub/sub notifications + Redis session locks. Needs REDIS_URL.
    # OFF → Notifications skipped, session locks are in-process only.

    # ── LLM Provider ─────────────────────────────────────────────────
    llm_provider: str = Field(default="openai", alias="FF_LLM_PROVIDER")
    # "openai" → OpenAI or any compatible endpoint. Needs OPENAI_API_KEY.
    # "gemini" → Gemini's OpenAI-compatible endpoint. Needs GEMINI_API_KEY.

    # ── Tools ────────────────────────────────────────────────────────
    enable_order_status: bool = Field(default=True, alias="FF_ENABLE_ORDER_STATUS")
    # OFF → Only create_order is offered to the model.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
