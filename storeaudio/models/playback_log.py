import uuid
from sqlalchemy import Column, DateTime, ForeignKey, JSON, String
from storeaudio.db import Base, utc_now


class PlaybackLog(Base):
    __tablename__ = "playback_log"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id = Column(String(36), ForeignKey("store.id"), nullable=False, index=True)
    track_id = Column(String(36), nullable=True)
    announcement_id = Column(String(36), nullable=True)
    event_type = Column(String(32), nullable=False, index=True)
    timestamp = Column(DateTime, nullable=False, default=utc_now, index=True)
    meta = Column("metadata", JSON, nullable=True)
