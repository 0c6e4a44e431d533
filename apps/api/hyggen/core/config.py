"""Application configuration for the room server."""
from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ..data.layout import DEFAULT_ROOM_MAP, RoomLayout, parse_room_map


class Settings(BaseSettings):
    """Runtime configuration."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field(default="development")
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)

    room_map: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_ROOM_MAP))
    tile_width: float = Field(default=100, gt=0)
    tile_height: float = Field(default=75, gt=0)

    spawn_x: float = Field(default=400)
    spawn_y: float = Field(default=300)
    stand_offset_x: float = Field(default=0)
    stand_offset_y: float = Field(default=40)

    outbound_queue_size: int = Field(default=256, ge=1)
    verify_invariants: bool = Field(default=True)
    static_dir: str | None = Field(default=None)

    @field_validator("cors_allow_origins", "room_map", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        """Allow comma-separated env values for list settings."""

        if isinstance(value, str):
            if value.lstrip().startswith("["):
                return json.loads(value)
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def room_layout(self) -> RoomLayout:
        return parse_room_map(self.room_map, self.tile_width, self.tile_height)


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
