import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Time
from storeaudio.db import Base, utc_now


class ScheduleRule(Base):
    __tablename__ = "schedule_rule"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id = Column(String(36), ForeignKey("store.id"), nullable=False, index=True)
    playlist_id = Column(String(36), ForeignKey("playlist.id"), nullable=False)
    day_of_week = Column(String(9), nullable=False)  # MONDAY .. SUNDAY
    start_time = Column(Time, nullable=False)  # inclusive
    end_time = Column(Time, nullable=False)  # exclusive
    volume = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
