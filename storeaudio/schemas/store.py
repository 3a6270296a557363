from typing import Any

from pydantic import Field

from storeaudio.schemas.common import CamelModel


class StoreCreateIn(CamelModel):
    name: str = Field(..., min_length=1)
    city: str | None = None
    timezone: str | None = None
    current_volume: int = Field(70, ge=0, le=100)
    settings: dict[str, Any] | None = None


class ActivePlaylistIn(CamelModel):
    playlist_id: str | None = None


class VolumeIn(CamelModel):
    volume: int = Field(..., ge=0, le=100)
