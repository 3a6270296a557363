"""Playlist, announcement and cartwall management for an organization."""

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storeaudio.errors import Conflict, NotFound, ValidationError
from storeaudio.models import Announcement, CartwallItem, Playlist, ScheduleRule, Store, Track
from storeaudio.schemas.announcement import AnnouncementCreateIn, CartwallIn
from storeaudio.schemas.playlist import PlaylistCreateIn, TrackIn
from storeaudio.services.payloads import announcement_payload
from storeaudio.services.stores import get_playlist_for_org, get_store_for_org


def create_playlist(db: Session, organization_id: str, payload: PlaylistCreateIn) -> Playlist:
    playlist = Playlist(
        organization_id=organization_id,
        name=payload.name.strip(),
        mood=(payload.mood or "").strip() or None,
        description=(payload.description or "").strip() or None,
    )
    db.add(playlist)
    db.commit()
    db.refresh(playlist)
    return playlist


def list_playlists(db: Session, organization_id: str) -> list[Playlist]:
    return (
        db.query(Playlist)
        .filter(Playlist.organization_id == organization_id)
        .order_by(Playlist.name.asc())
        .all()
    )


def add_track(db: Session, organization_id: str, playlist_id: str, payload: TrackIn) -> Track:
    playlist = get_playlist_for_org(db, playlist_id, organization_id)
    order = payload.order
    if order is None:
        current_max = db.query(func.max(Track.order)).filter(Track.playlist_id == playlist.id).scalar()
        order = 0 if current_max is None else current_max + 1
    track = Track(
        playlist_id=playlist.id,
        title=payload.title.strip(),
        artist=(payload.artist or "").strip() or None,
        file_url=payload.file_url.strip(),
        duration_sec=payload.duration_sec,
        order=order,
    )
    db.add(track)
    db.commit()
    db.refresh(track)
    return track


def delete_playlist(db: Session, organization_id: str, playlist_id: str) -> None:
    playlist = get_playlist_for_org(db, playlist_id, organization_id)
    in_use = db.query(ScheduleRule.id).filter(ScheduleRule.playlist_id == playlist.id).first()
    if in_use is not None:
        raise ValidationError("Playlist is referenced by schedule rules; delete those first.")
    db.query(Store).filter(Store.active_playlist_id == playlist.id).update(
        {Store.active_playlist_id: None}, synchronize_session=False
    )
    db.query(Track).filter(Track.playlist_id == playlist.id).delete(synchronize_session=False)
    db.delete(playlist)
    db.commit()


def get_announcement_for_org(db: Session, announcement_id: str, organization_id: str) -> Announcement:
    announcement = (
        db.query(Announcement)
        .filter(Announcement.id == announcement_id, Announcement.organization_id == organization_id)
        .first()
    )
    if announcement is None:
        raise NotFound("Announcement not found")
    return announcement


def create_announcement(db: Session, organization_id: str, payload: AnnouncementCreateIn) -> Announcement:
    announcement = Announcement(
        organization_id=organization_id,
        name=payload.name.strip(),
        type=(payload.type or "info").strip() or "info",
        text=payload.text,
        audio_url=(payload.audio_url or "").strip() or None,
        duration_sec=payload.duration_sec,
    )
    db.add(announcement)
    db.commit()
    db.refresh(announcement)
    return announcement


def list_announcements(db: Session, organization_id: str) -> list[Announcement]:
    return (
        db.query(Announcement)
        .filter(Announcement.organization_id == organization_id)
        .order_by(Announcement.created_at.desc())
        .all()
    )


def cartwall_slot(db: Session, store_id: str, position: int) -> CartwallItem | None:
    return (
        db.query(CartwallItem)
        .filter(CartwallItem.store_id == store_id, CartwallItem.position == position)
        .with_for_update()
        .first()
    )


def set_cartwall_item(db: Session, organization_id: str, payload: CartwallIn) -> CartwallItem:
    """Put an announcement on a cartwall button, replacing whatever was there."""
    store = get_store_for_org(db, payload.store_id, organization_id)
    announcement = get_announcement_for_org(db, payload.announcement_id, organization_id)
    item = cartwall_slot(db, store.id, payload.position)
    if item is None:
        item = CartwallItem(store_id=store.id, position=payload.position)
        db.add(item)
    item.announcement_id = announcement.id
    item.is_active = True
    try:
        db.commit()
    except IntegrityError as exc:
        # Another writer filled the empty position first.
        db.rollback()
        raise Conflict(f"Cartwall position {payload.position} was assigned concurrently; retry.") from exc
    db.refresh(item)
    return item


def remove_cartwall_item(db: Session, organization_id: str, store_id: str, position: int) -> None:
    store = get_store_for_org(db, store_id, organization_id)
    item = (
        db.query(CartwallItem)
        .filter(CartwallItem.store_id == store.id, CartwallItem.position == position)
        .first()
    )
    if item is None:
        raise NotFound("Cartwall position is empty")
    db.delete(item)
    db.commit()


def cartwall(db: Session, organization_id: str, store_id: str) -> list[dict]:
    store = get_store_for_org(db, store_id, organization_id)
    rows = (
        db.query(CartwallItem, Announcement)
        .join(Announcement, Announcement.id == CartwallItem.announcement_id)
        .filter(CartwallItem.store_id == store.id)
        .order_by(CartwallItem.position.asc())
        .all()
    )
    return [
        {
            "id": str(item.id),
            "position": item.position,
            "isActive": bool(item.is_active),
            "announcement": announcement_payload(announcement),
        }
        for item, announcement in rows
    ]
