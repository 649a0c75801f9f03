"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    admin_token: str
    storage_backend: str = "supabase"
    payment_session_ttl_seconds: int = 15 * 60
    free_unlock_enabled: bool = False
    expiry_sweep_interval_seconds: int = 60
    simulated_processing_delay_seconds: float = 3.0
    simulated_payment_outcome: bool = True
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_storage_backend(raw: str) -> str:
    """Normalize the configured storage backend name."""
    cleaned = raw.strip().lower()
    if cleaned in {"memory", "in-memory", "inmemory"}:
        return "memory"
    if cleaned in {"", "supabase"}:
        return "supabase"
    raise ValueError(f"Unknown storage backend: {raw}")
