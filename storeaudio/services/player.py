"""What a physical player needs to know, and what it reports back.

A player authenticates by presenting the device id it received at
activation together with its store id; there are no tokens on this path.
Event endpoints return a small acknowledgement only. Full state is pulled
by the player when it wants it, never pushed after each event.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from storeaudio.db import utc_now
from storeaudio.errors import NotFound, Unauthorized
from storeaudio.models import Announcement, CartwallItem, Organization, Store
from storeaudio.schemas.player import HeartbeatIn
from storeaudio.schemas.settings import dump_settings, merge_settings
from storeaudio.services import presence, scheduler
from storeaudio.services.analytics import PlaybackEventType, log_playback
from storeaudio.services.payloads import announcement_payload, iso, playlist_payload, rule_payload
from storeaudio.services.stores import generate_activation_code, generate_device_id

logger = logging.getLogger(__name__)


def get_paired_store(db: Session, store_id: str, device_id: str | None) -> Store:
    if not store_id or not device_id:
        raise Unauthorized("Device not authorized")
    store = db.query(Store).filter(Store.id == store_id, Store.device_id == device_id).first()
    if store is None:
        raise Unauthorized("Device not authorized")
    return store


def _ack(status: str = "ok") -> dict:
    return {"status": status, "serverTime": iso(utc_now())}


def active_cartwall(db: Session, store_id: str) -> list[tuple[CartwallItem, Announcement]]:
    return (
        db.query(CartwallItem, Announcement)
        .join(Announcement, Announcement.id == CartwallItem.announcement_id)
        .filter(CartwallItem.store_id == store_id, CartwallItem.is_active.is_(True))
        .order_by(CartwallItem.position.asc())
        .all()
    )


def compose_state(db: Session, store: Store, at_time: datetime | None = None) -> dict:
    organization = db.get(Organization, store.organization_id)
    rule, playlist = scheduler.resolve(db, store, at_time)
    settings = merge_settings(
        organization.settings if organization else None,
        store.settings,
    )
    return {
        "store": {
            "id": str(store.id),
            "name": store.name,
            "city": store.city,
            "timezone": store.timezone or scheduler.DEFAULT_TIMEZONE,
            "currentVolume": store.current_volume,
        },
        "organization": {
            "id": str(organization.id),
            "name": organization.name,
            "plan": organization.plan,
            "settings": organization.settings or {},
        }
        if organization
        else None,
        "currentPlaylist": playlist_payload(db, playlist),
        "activeRule": rule_payload(rule) if rule else None,
        "cartwall": [
            {"position": item.position, "announcement": announcement_payload(announcement)}
            for item, announcement in active_cartwall(db, store.id)
        ],
        "schedule": [rule_payload(r) for r in scheduler.active_rules(db, store.id)],
        "settings": dump_settings(settings),
        "serverTime": iso(utc_now()),
    }


def get_player_state(db: Session, store_id: str, device_id: str | None, at_time: datetime | None = None) -> dict:
    store = get_paired_store(db, store_id, device_id)
    return compose_state(db, store, at_time)


def activate(db: Session, activation_code: str) -> dict:
    """Exchange a one-time activation code for a long-lived device id."""
    code = (activation_code or "").strip()
    store = (
        db.query(Store)
        .filter(Store.activation_code == code, Store.is_active.is_(True))
        .with_for_update()
        .first()
    )
    if not code or store is None:
        raise NotFound("Invalid activation code")

    previous_device = store.device_id
    device_id = generate_device_id()
    store.device_id = device_id
    store.activation_code = generate_activation_code(db)
    presence.mark_online(db, store)
    db.commit()
    db.refresh(store)
    if previous_device:
        logger.info("Store %s re-activated; previous device credential revoked", store.id)
    else:
        logger.info("Store %s activated", store.id)
    return {
        "deviceId": device_id,
        "state": compose_state(db, store),
        "message": "Player activated",
    }


def heartbeat(db: Session, payload: HeartbeatIn) -> tuple[Store, dict]:
    store = get_paired_store(db, payload.store_id, payload.device_id)
    presence.mark_online(db, store)
    if payload.volume is not None:
        store.current_volume = payload.volume
    if payload.device_info is not None:
        info = dict(store.device_info or {})
        info.update(payload.device_info)
        store.device_info = info
    if payload.current_track_id and payload.is_playing is not False:
        log_playback(
            db,
            store.id,
            PlaybackEventType.TRACK_PLAYING,
            track_id=payload.current_track_id,
            metadata={"position": payload.track_position, "volume": payload.volume},
        )
    db.commit()
    return store, _ack()


def status_event(store: Store, report: dict[str, Any]) -> dict:
    """Payload for ``store:status`` fanned out to the organization's dashboards."""
    return {
        **report,
        "storeId": str(store.id),
        "isOnline": bool(store.is_online),
        "currentVolume": store.current_volume,
        "timestamp": iso(utc_now()),
    }


def go_offline(db: Session, store_id: str, device_id: str | None) -> tuple[Store, dict]:
    store = get_paired_store(db, store_id, device_id)
    presence.mark_offline(db, store, reason="player_shutdown")
    db.commit()
    return store, _ack("offline")


def track_started(db: Session, store_id: str, device_id: str | None, track_id: str) -> dict:
    store = get_paired_store(db, store_id, device_id)
    log_playback(db, store.id, PlaybackEventType.TRACK_PLAYED, track_id=track_id)
    db.commit()
    return _ack()


def track_ended(db: Session, store_id: str, device_id: str | None, track_id: str, skipped: bool = False) -> dict:
    store = get_paired_store(db, store_id, device_id)
    event = PlaybackEventType.TRACK_SKIPPED if skipped else PlaybackEventType.TRACK_ENDED
    log_playback(db, store.id, event, track_id=track_id)
    db.commit()
    return _ack()


def announcement_played(db: Session, store_id: str, device_id: str | None, announcement_id: str) -> dict:
    store = get_paired_store(db, store_id, device_id)
    updated = (
        db.query(Announcement)
        .filter(
            Announcement.id == announcement_id,
            Announcement.organization_id == store.organization_id,
        )
        .update(
            {
                Announcement.play_count: Announcement.play_count + 1,
                Announcement.last_played_at: utc_now(),
            },
            synchronize_session=False,
        )
    )
    if not updated:
        db.rollback()
        raise NotFound("Announcement not found")
    log_playback(db, store.id, PlaybackEventType.ANNOUNCEMENT_PLAYED, announcement_id=announcement_id)
    db.commit()
    return _ack()


def sync_state(db: Session, store_id: str, device_id: str | None, state: dict[str, Any]) -> dict:
    store = get_paired_store(db, store_id, device_id)
    info = dict(store.device_info or {})
    info["lastState"] = state
    store.device_info = info
    volume = state.get("volume")
    if isinstance(volume, int) and not isinstance(volume, bool) and 0 <= volume <= 100:
        store.current_volume = volume
    presence.mark_online(db, store)
    db.commit()
    return _ack("synced")
