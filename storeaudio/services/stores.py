import secrets

from sqlalchemy.orm import Session

from storeaudio.errors import NotFound, ValidationError
from storeaudio.models import Playlist, Store
from storeaudio.schemas.settings import normalize_settings
from storeaudio.schemas.store import StoreCreateIn

ACTIVATION_CODE_ATTEMPTS = 20


def get_store_for_org(db: Session, store_id: str, organization_id: str) -> Store:
    store = (
        db.query(Store)
        .filter(Store.id == store_id, Store.organization_id == organization_id)
        .first()
    )
    if store is None:
        raise NotFound("Store not found")
    return store


def get_playlist_for_org(db: Session, playlist_id: str, organization_id: str) -> Playlist:
    playlist = (
        db.query(Playlist)
        .filter(Playlist.id == playlist_id, Playlist.organization_id == organization_id)
        .first()
    )
    if playlist is None:
        raise NotFound("Playlist not found")
    return playlist


def lock_store(db: Session, store_id: str) -> Store | None:
    """Take a row lock on the store so per-store rule writes serialize.

    Backends without row locks (SQLite) ignore FOR UPDATE; there the
    database-level write lock serializes writers instead.
    """
    return db.query(Store).filter(Store.id == store_id).with_for_update().first()


def generate_activation_code(db: Session) -> str:
    for _ in range(ACTIVATION_CODE_ATTEMPTS):
        candidate = str(100000 + secrets.randbelow(900000))
        if db.query(Store.id).filter(Store.activation_code == candidate).first() is None:
            return candidate
    raise RuntimeError("Could not allocate a unique activation code")


def generate_device_id() -> str:
    return f"device_{secrets.token_hex(16)}"


def create_store(db: Session, organization_id: str, payload: StoreCreateIn) -> Store:
    try:
        settings = normalize_settings(payload.settings)
    except ValueError as exc:
        raise ValidationError(f"Invalid settings: {exc}") from exc
    store = Store(
        organization_id=organization_id,
        name=payload.name.strip(),
        city=(payload.city or "").strip() or None,
        timezone=(payload.timezone or "").strip() or None,
        current_volume=payload.current_volume,
        settings=settings,
        activation_code=generate_activation_code(db),
    )
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


def list_stores(db: Session, organization_id: str) -> list[Store]:
    return (
        db.query(Store)
        .filter(Store.organization_id == organization_id)
        .order_by(Store.name.asc())
        .all()
    )


def regenerate_activation_code(db: Session, organization_id: str, store_id: str) -> Store:
    store = get_store_for_org(db, store_id, organization_id)
    store.activation_code = generate_activation_code(db)
    db.commit()
    db.refresh(store)
    return store


def set_active_playlist(db: Session, organization_id: str, store_id: str, playlist_id: str | None) -> Store:
    store = get_store_for_org(db, store_id, organization_id)
    if playlist_id:
        get_playlist_for_org(db, playlist_id, organization_id)
    store.active_playlist_id = playlist_id or None
    db.commit()
    db.refresh(store)
    return store


def set_volume(db: Session, organization_id: str, store_id: str, volume: int) -> Store:
    if volume < 0 or volume > 100:
        raise ValidationError("Volume must be between 0 and 100.")
    store = get_store_for_org(db, store_id, organization_id)
    store.current_volume = volume
    db.commit()
    db.refresh(store)
    return store


def online_stores(db: Session, organization_id: str) -> list[Store]:
    return (
        db.query(Store)
        .filter(
            Store.organization_id == organization_id,
            Store.is_online.is_(True),
            Store.is_active.is_(True),
        )
        .order_by(Store.name.asc())
        .all()
    )
