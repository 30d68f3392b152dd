"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CareWatch server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; the server has no auth layer of its own.
    carewatch_host: str = "127.0.0.1"
    carewatch_port: int = 8001
    carewatch_log_level: str = "info"
    carewatch_allow_insecure_bind: bool = False

    # Guidance LLM
    llm_provider: Literal["anthropic", "openai", "mock"] = "anthropic"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    guidance_timeout_seconds: float = 15.0

    # Storage
    db_path: str = "~/.carewatch/carewatch.db"
    encryption_key: str = ""

    # Caregiver email
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = "alerts@carewatch.local"

    system_name: str = "CareWatch Health Monitoring System"


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
