from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    api_title: str = "Agent Relay API"
    api_version: str = "0.1.0"
    log_level: str = "INFO"

    sf_token_url: str | None = None
    sf_client_id: str | None = None
    sf_client_secret: str | None = None
    sf_api_host: str | None = None
    sf_instance: str | None = None
    agent_id: str | None = None
    agent_timezone: str = "America/Los_Angeles"
    agent_locale: str = "en_US"

    http_timeout_sec: float = 10.0
    credential_cache_enabled: bool = False
    credential_cache_ttl_sec: float = 900.0
    session_recovery_enabled: bool = False
    session_expired_status_codes: List[int] = Field(default_factory=lambda: [404, 410])

    eleven_api_key: str | None = None
    eleven_voice_id: str | None = None
    eleven_model_id: str = "eleven_monolingual_v1"
    eleven_api_base: str = "https://api.elevenlabs.io"

    cors_origins: List[str] = Field(default_factory=list)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def resolved_cors_origins(self) -> List[str]:
        """
        Returns the configured CORS origins without trailing slashes, deduped.
        """
        normalized: list[str] = []
        for origin in self.cors_origins:
            cleaned = origin.rstrip("/")
            if cleaned and cleaned not in normalized:
                normalized.append(cleaned)
        return normalized


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
