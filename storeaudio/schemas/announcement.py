from pydantic import Field

from storeaudio.schemas.common import CamelModel

CARTWALL_POSITIONS = 4


class AnnouncementCreateIn(CamelModel):
    name: str = Field(..., min_length=1)
    type: str = "info"
    text: str | None = None
    audio_url: str | None = None
    duration_sec: int | None = Field(None, ge=0)


class CartwallIn(CamelModel):
    announcement_id: str
    store_id: str
    position: int = Field(..., ge=0, le=CARTWALL_POSITIONS - 1)
