# tests/conftest.py
import json
import os
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

os.environ["STOREAUDIO_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("STOREAUDIO_STATUS_SWEEP_SEC", "3600")
os.environ.setdefault("STOREAUDIO_SECRET_KEY", "test-secret")

from storeaudio.db import Base, SessionLocal, engine, get_db
from storeaudio.main import app
from storeaudio.models import Organization, Playlist, Store, Track
from storeaudio.services.auth import create_access_token
from storeaudio.services.presence import PresenceRegistry
from storeaudio.services.realtime import RealtimeHub
from storeaudio.services.relay import Relay

PAIRED_DEVICE = "device_paired0001"


class FakeSocket:
    """Collects every envelope sent to it."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict] = []
        self.fail = fail
        self.closed_with: int | None = None

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(json.loads(data))

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def events(self) -> list[str]:
        return [message["event"] for message in self.sent]


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def override_session_dependency(db_session: Session) -> Iterator[None]:
    def _get_session_override():
        yield db_session

    app.dependency_overrides[get_db] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def client() -> Iterator[TestClient]:
    with TestClient(app) as test_client:
        yield test_client


def _organization(db: Session, name: str) -> Organization:
    organization = Organization(name=name, plan="chain", settings={"defaultVolume": 50, "language": "it"})
    db.add(organization)
    db.commit()
    db.refresh(organization)
    return organization


@pytest.fixture()
def organization(db_session: Session) -> Organization:
    return _organization(db_session, "Org One")


@pytest.fixture()
def other_organization(db_session: Session) -> Organization:
    return _organization(db_session, "Org Two")


def make_playlist(db: Session, organization: Organization, name: str, track_urls: list[str]) -> Playlist:
    playlist = Playlist(organization_id=organization.id, name=name)
    db.add(playlist)
    db.flush()
    for order, url in enumerate(track_urls):
        db.add(Track(playlist_id=playlist.id, title=f"{name} {order}", file_url=url, order=order))
    db.commit()
    db.refresh(playlist)
    return playlist


@pytest.fixture()
def playlist_a(db_session: Session, organization: Organization) -> Playlist:
    return make_playlist(db_session, organization, "A", ["https://cdn/a0.mp3", "https://cdn/a1.mp3"])


@pytest.fixture()
def playlist_b(db_session: Session, organization: Organization) -> Playlist:
    return make_playlist(db_session, organization, "B", ["https://cdn/b0.mp3"])


def make_store(db: Session, organization: Organization, **kwargs) -> Store:
    values = {"name": "Store", "timezone": "UTC", "current_volume": 70}
    values.update(kwargs)
    store = Store(organization_id=organization.id, **values)
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


@pytest.fixture()
def store(db_session: Session, organization: Organization) -> Store:
    return make_store(db_session, organization, name="Main", device_id=PAIRED_DEVICE, activation_code="123456")


@pytest.fixture()
def foreign_store(db_session: Session, other_organization: Organization) -> Store:
    return make_store(db_session, other_organization, name="Elsewhere", device_id="device_foreign0001")


def auth_headers(organization: Organization, role: str = "admin") -> dict[str, str]:
    token = create_access_token("user-1", organization.id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers(organization: Organization) -> dict[str, str]:
    return auth_headers(organization, "admin")


@pytest.fixture()
def device_headers() -> dict[str, str]:
    return {"X-Device-ID": PAIRED_DEVICE}


@pytest.fixture()
def realtime() -> Relay:
    return Relay(RealtimeHub(PresenceRegistry()))
