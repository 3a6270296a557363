from pydantic import Field

from storeaudio.schemas.common import CamelModel


class PlaylistCreateIn(CamelModel):
    name: str = Field(..., min_length=1)
    mood: str | None = None
    description: str | None = None


class TrackIn(CamelModel):
    title: str = Field(..., min_length=1)
    artist: str | None = None
    file_url: str = Field(..., min_length=1)
    duration_sec: int | None = Field(None, ge=0)
    order: int | None = None
