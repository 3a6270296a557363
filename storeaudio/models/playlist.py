import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from storeaudio.db import Base, utc_now


class Playlist(Base):
    __tablename__ = "playlist"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organization.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    mood = Column(String, nullable=True)
    description = Column(String, nullable=True)
    created_at = Column(DateTime, default=utc_now)


class Track(Base):
    __tablename__ = "track"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    playlist_id = Column(String(36), ForeignKey("playlist.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    artist = Column(String, nullable=True)
    file_url = Column(String, nullable=False)
    duration_sec = Column(Integer, nullable=True)
    order = Column(Integer, nullable=False, default=0)
