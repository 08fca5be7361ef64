"""Settings for the personal-best tracking backend."""

from __future__ import annotations

from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_field(default, *env_names: str):
    if env_names:
        alias = AliasChoices(*env_names) if len(env_names) > 1 else env_names[0]
        return Field(default=default, validation_alias=alias)
    return Field(default=default)


class Settings(BaseSettings):
    redis_url: str = _env_field("redis://localhost:6379/0", "REDIS_URL")
    # Keys are laid out as "<prefix>:<uid>" and "<prefix>:<uid>:tag:<tag_id>"
    profile_key_prefix: str = _env_field("user", "PROFILE_KEY_PREFIX")
    # Optimistic transactions re-read and retry on WATCH conflicts up to this many times
    record_update_max_attempts: int = _env_field(8, "RECORD_UPDATE_MAX_ATTEMPTS")

    environment: str = _env_field("production", "ENV", "APP_ENV", "ENVIRONMENT")
    obs_enabled: bool = _env_field(True, "OBS_ENABLED")
    obs_log_level: str = _env_field("INFO", "LOG_LEVEL")
    obs_log_sampling_rate_info: float = _env_field(1.0, "LOG_SAMPLING_RATE_INFO")
    service_name: str = _env_field("pbtrack-api", "SERVICE_NAME")
    git_commit: str = _env_field("unknown", "GIT_COMMIT", "COMMIT_SHA", "SOURCE_VERSION")
    obs_metrics_public: bool = _env_field(True, "OBS_METRICS_PUBLIC")
    health_redis_timeout_seconds: Optional[float] = _env_field(0.2, "HEALTH_REDIS_TIMEOUT_SECONDS")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("record_update_max_attempts", mode="before")
    def _at_least_one_attempt(cls, value):  # type: ignore[override]
        if value in (None, ""):
            return 8
        return max(1, int(value))

    @field_validator("obs_log_level", mode="before")
    def _normalise_level(cls, value):  # type: ignore[override]
        return str(value or "INFO").upper()

    # Environment helpers
    def is_prod(self) -> bool:
        return self.environment.lower() in ("prod", "production", "live")

    def is_dev(self) -> bool:
        return self.environment.lower() in ("dev", "development", "test")


settings = Settings()
