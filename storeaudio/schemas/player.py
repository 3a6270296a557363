from typing import Any

from pydantic import Field

from storeaudio.schemas.common import CamelModel


class HeartbeatIn(CamelModel):
    store_id: str
    device_id: str
    volume: int | None = Field(None, ge=0, le=100)
    current_track_id: str | None = None
    track_position: int | None = None
    is_playing: bool | None = None
    device_info: dict[str, Any] | None = None


class TrackEventIn(CamelModel):
    track_id: str
    skipped: bool = False


class AnnouncementEventIn(CamelModel):
    announcement_id: str


class SyncStateIn(CamelModel):
    state: dict[str, Any]


class ActivateIn(CamelModel):
    activation_code: str = Field(..., min_length=6, max_length=6)
