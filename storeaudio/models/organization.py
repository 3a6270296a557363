import uuid
from sqlalchemy import Column, String, DateTime, JSON
from storeaudio.db import Base, utc_now


class Organization(Base):
    __tablename__ = "organization"
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    plan = Column(String(16), nullable=False, default="solo")  # solo | chain | enterprise
    settings = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=utc_now)
