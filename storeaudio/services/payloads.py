from datetime import datetime, time

from sqlalchemy.orm import Session

from storeaudio.models import Announcement, Playlist, ScheduleRule, Store, Track


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def hhmm(value: time | None) -> str | None:
    return value.strftime("%H:%M") if value else None


def playlist_tracks(db: Session, playlist_id: str) -> list[Track]:
    return (
        db.query(Track)
        .filter(Track.playlist_id == playlist_id)
        .order_by(Track.order.asc(), Track.id.asc())
        .all()
    )


def track_payload(track: Track) -> dict:
    return {
        "id": str(track.id),
        "title": track.title,
        "artist": track.artist,
        "fileUrl": track.file_url,
        "durationSec": track.duration_sec,
        "order": track.order,
    }


def playlist_payload(db: Session, playlist: Playlist | None) -> dict | None:
    if playlist is None:
        return None
    return {
        "id": str(playlist.id),
        "name": playlist.name,
        "mood": playlist.mood,
        "description": playlist.description,
        "tracks": [track_payload(track) for track in playlist_tracks(db, playlist.id)],
    }


def announcement_payload(announcement: Announcement) -> dict:
    return {
        "id": str(announcement.id),
        "name": announcement.name,
        "type": announcement.type,
        "text": announcement.text,
        "audioUrl": announcement.audio_url,
        "durationSec": announcement.duration_sec,
        "isActive": bool(announcement.is_active),
        "playCount": announcement.play_count or 0,
        "lastPlayedAt": iso(announcement.last_played_at),
    }


def rule_payload(rule: ScheduleRule) -> dict:
    return {
        "id": str(rule.id),
        "storeId": str(rule.store_id),
        "playlistId": str(rule.playlist_id),
        "dayOfWeek": rule.day_of_week,
        "startTime": hhmm(rule.start_time),
        "endTime": hhmm(rule.end_time),
        "volume": rule.volume,
        "isActive": bool(rule.is_active),
    }


def store_payload(store: Store) -> dict:
    return {
        "id": str(store.id),
        "organizationId": str(store.organization_id),
        "name": store.name,
        "city": store.city,
        "timezone": store.timezone,
        "isActive": bool(store.is_active),
        "isOnline": bool(store.is_online),
        "lastSeen": iso(store.last_seen),
        "currentVolume": store.current_volume,
        "activePlaylistId": str(store.active_playlist_id) if store.active_playlist_id else None,
        "isActivated": store.device_id is not None,
    }
