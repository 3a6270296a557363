import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from storeaudio.db import Base, utc_now


class Announcement(Base):
    __tablename__ = "announcement"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organization.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String(16), nullable=False, default="info")
    text = Column(Text, nullable=True)
    audio_url = Column(String, nullable=True)
    duration_sec = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    play_count = Column(Integer, nullable=False, default=0)
    last_played_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utc_now)


class CartwallItem(Base):
    __tablename__ = "cartwall_item"
    __table_args__ = (UniqueConstraint("store_id", "position", name="uq_cartwall_store_position"),)
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    store_id = Column(String(36), ForeignKey("store.id"), nullable=False, index=True)
    announcement_id = Column(String(36), ForeignKey("announcement.id"), nullable=False)
    position = Column(Integer, nullable=False)  # 0..3
    is_active = Column(Boolean, nullable=False, default=True)
