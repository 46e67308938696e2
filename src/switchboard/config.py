"""Runtime configuration for switchboard."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from switchboard.bus import DEFAULT_DRAIN_TIMEOUT_SECONDS, DEFAULT_QUEUE_CAPACITY
from switchboard.models import BackpressurePolicy, Severity


class BackendSettings(BaseModel):
    """Per-backend delivery configuration.

    There is no default severity routing: an enabled backend must say which
    severities it cares about.
    """

    enabled: bool = False
    min_severity: Severity | None = None
    queue_capacity: int = Field(default=DEFAULT_QUEUE_CAPACITY, ge=1)
    backpressure: BackpressurePolicy = BackpressurePolicy.DROP_OLDEST

    @field_validator("min_severity", mode="before")
    @classmethod
    def _parse_severity(cls, value: object) -> Severity | None:
        if value is None or value == "":
            return None
        return Severity.parse(value)

    @field_validator("backpressure", mode="before")
    @classmethod
    def _parse_policy(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value

    @model_validator(mode="after")
    def _require_severity_when_enabled(self) -> BackendSettings:
        if self.enabled and self.min_severity is None:
            raise ValueError("min_severity must be configured for an enabled backend")
        return self


class ChatBackendSettings(BackendSettings):
    token: str | None = None
    chat_id: str | None = None
    webhook_url: str | None = None
    max_attempts: int = Field(default=3, ge=1, le=10)
    base_delay_seconds: float = Field(default=0.5, ge=0)
    max_delay_seconds: float = Field(default=4.0, ge=0)

    @model_validator(mode="after")
    def _require_destination(self) -> ChatBackendSettings:
        if self.enabled and not self.webhook_url and not (self.token and self.chat_id):
            raise ValueError("chat backend needs either webhook_url or token + chat_id")
        return self


class SpeechBackendSettings(BackendSettings):
    queue_capacity: int = Field(default=16, ge=1)
    voice_id: str | None = None
    rate: int | None = None
    volume: float | None = Field(default=None, ge=0.0, le=1.0)
    template: str = "{message}"
    max_chars: int = Field(default=500, ge=1)


class TracingBackendSettings(BackendSettings):
    sink: Literal["log", "memory"] = "log"


class Settings(BaseSettings):
    """Environment-driven runtime settings."""

    model_config = SettingsConfigDict(
        env_prefix="SWITCHBOARD_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_name: str = "switchboard"
    log_level: str = "INFO"
    log_file: str | None = Field(default=None, description="Optional plain-text log file.")
    drain_timeout_seconds: float = Field(
        default=DEFAULT_DRAIN_TIMEOUT_SECONDS,
        gt=0,
        description="Per-backend limit for draining queued events at shutdown.",
    )
    chat: ChatBackendSettings = Field(default_factory=ChatBackendSettings)
    speech: SpeechBackendSettings = Field(default_factory=SpeechBackendSettings)
    tracing: TracingBackendSettings = Field(default_factory=TracingBackendSettings)

    def enabled_backends(self) -> list[str]:
        return [name for name in ("chat", "speech", "tracing") if getattr(self, name).enabled]


settings = Settings()
