from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from storeaudio.db import utc_now
from storeaudio.models import Announcement, PlaybackLog, Playlist, Store
from storeaudio.services.payloads import iso


class PlaybackEventType(str, Enum):
    TRACK_PLAYED = "TRACK_PLAYED"
    TRACK_PLAYING = "TRACK_PLAYING"  # heartbeat progress ping, not a completed play
    TRACK_ENDED = "TRACK_ENDED"
    TRACK_SKIPPED = "TRACK_SKIPPED"
    ANNOUNCEMENT_PLAYED = "ANNOUNCEMENT_PLAYED"
    DEVICE_ONLINE = "DEVICE_ONLINE"
    DEVICE_OFFLINE = "DEVICE_OFFLINE"


def log_playback(
    db: Session,
    store_id: str,
    event_type: PlaybackEventType,
    track_id: str | None = None,
    announcement_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> PlaybackLog:
    """Append a log entry. The caller owns the commit."""
    entry = PlaybackLog(
        store_id=store_id,
        track_id=track_id,
        announcement_id=announcement_id,
        event_type=event_type.value,
        timestamp=utc_now(),
        meta=metadata,
    )
    db.add(entry)
    return entry


def _count_plays(db: Session, organization_id: str, since: datetime) -> int:
    return (
        db.query(func.count(PlaybackLog.id))
        .join(Store, Store.id == PlaybackLog.store_id)
        .filter(
            Store.organization_id == organization_id,
            PlaybackLog.event_type == PlaybackEventType.TRACK_PLAYED.value,
            PlaybackLog.timestamp >= since,
        )
        .scalar()
        or 0
    )


def overview(db: Session, organization_id: str, now: datetime | None = None) -> dict:
    current = now or utc_now()
    start_of_day = current.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_week = start_of_day - timedelta(days=start_of_day.weekday())
    start_of_month = start_of_day.replace(day=1)

    total_stores = (
        db.query(func.count(Store.id))
        .filter(Store.organization_id == organization_id, Store.is_active.is_(True))
        .scalar()
        or 0
    )
    online = (
        db.query(func.count(Store.id))
        .filter(
            Store.organization_id == organization_id,
            Store.is_active.is_(True),
            Store.is_online.is_(True),
        )
        .scalar()
        or 0
    )
    playlists = db.query(func.count(Playlist.id)).filter(Playlist.organization_id == organization_id).scalar() or 0
    announcements = (
        db.query(func.count(Announcement.id)).filter(Announcement.organization_id == organization_id).scalar() or 0
    )
    return {
        "stores": {"total": total_stores, "online": online, "offline": total_stores - online},
        "content": {"playlists": playlists, "announcements": announcements},
        "plays": {
            "today": _count_plays(db, organization_id, start_of_day),
            "thisWeek": _count_plays(db, organization_id, start_of_week),
            "thisMonth": _count_plays(db, organization_id, start_of_month),
        },
    }


def recent_events(db: Session, store_id: str, limit: int = 50) -> list[dict]:
    rows = (
        db.query(PlaybackLog)
        .filter(PlaybackLog.store_id == store_id)
        .order_by(PlaybackLog.timestamp.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
    return [
        {
            "id": str(row.id),
            "eventType": row.event_type,
            "trackId": row.track_id,
            "announcementId": row.announcement_id,
            "timestamp": iso(row.timestamp),
            "metadata": row.meta,
        }
        for row in rows
    ]
