"""Game server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import CorsEnvSettingsSource, parse_cors_origins

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class GameServerSettings(BaseSettings):
    model_config = {"env_prefix": "GAME_"}

    database_path: str = Field(default="backend/storage.db", min_length=1)
    log_dir: str = Field(default="backend/logs/game", min_length=1)
    cors_origins: list[str] = ["http://localhost:8712"]

    # Delay of every ChangeThrottle the server creates (per WebSocket and for the directory).
    refresh_throttle_seconds: float = Field(default=0.25, ge=0, le=10)
    directory_min_interval_seconds: float = Field(default=2.0, ge=0)
    directory_poll_seconds: float = Field(default=10.0, gt=0)
    directory_list_limit: int = Field(default=20, ge=0, le=200)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_cors_origins(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, CorsEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
