"""Buzzer server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from buzzer.messaging.router import DEFAULT_EVENT_QUEUE_SIZE
from buzzer.session.lifecycle import DEFAULT_HOST_HEARTBEAT_SECONDS, DEFAULT_PARTICIPANT_ID_ATTEMPTS
from buzzer.session.sink import DEFAULT_SINK_BUFFER_SIZE
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class BuzzerServerSettings(BaseSettings):
    model_config = {"env_prefix": "BUZZER_"}

    max_sessions: int = Field(default=1000, ge=1)
    log_dir: str = Field(default="backend/logs/buzzer", min_length=1)
    cors_origins: list[str] = ["*"]
    event_queue_size: int = Field(default=DEFAULT_EVENT_QUEUE_SIZE, ge=1)
    sink_buffer_size: int = Field(default=DEFAULT_SINK_BUFFER_SIZE, ge=1)
    host_heartbeat_seconds: float = Field(default=DEFAULT_HOST_HEARTBEAT_SECONDS, gt=0)
    stream_keepalive_seconds: float = Field(default=15.0, gt=0)
    participant_id_attempts: int = Field(default=DEFAULT_PARTICIPANT_ID_ATTEMPTS, ge=1)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            StringListEnvSettingsSource(settings_cls, string_list_fields={"cors_origins"}),
            dotenv_settings,
            file_secret_settings,
        )
