import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String
from storeaudio.db import Base, utc_now


class Store(Base):
    __tablename__ = "store"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organization.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    city = Column(String, nullable=True)
    timezone = Column(String(64), nullable=True)  # IANA name, e.g. Europe/Rome
    is_active = Column(Boolean, nullable=False, default=True)
    is_online = Column(Boolean, nullable=False, default=False)
    last_seen = Column(DateTime, nullable=True)
    current_volume = Column(Integer, nullable=False, default=70)
    # Set once the store completes activation; doubles as the player credential.
    device_id = Column(String(64), nullable=True, unique=True)
    device_info = Column(JSON, nullable=True)
    activation_code = Column(String(6), nullable=True, unique=True)
    active_playlist_id = Column(String(36), ForeignKey("playlist.id"), nullable=True)
    settings = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utc_now)
