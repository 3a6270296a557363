import hashlib
import json

from sqlalchemy.orm import Session

from storeaudio.db import utc_now
from storeaudio.models import Playlist
from storeaudio.services import scheduler
from storeaudio.services.payloads import announcement_payload, iso, playlist_payload, rule_payload
from storeaudio.services.player import active_cartwall, get_paired_store

VOLATILE_ANNOUNCEMENT_KEYS = frozenset({"playCount", "lastPlayedAt"})


def asset_checksum(asset_id: str, url: str) -> str:
    return hashlib.sha256(f"{asset_id}_{url}".encode("utf-8")).hexdigest()[:16]


def manifest_version(content: dict) -> str:
    """Digest of everything but the timestamp; unchanged content keeps its version."""
    encoded = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:16]


def build_offline_content(db: Session, store_id: str, device_id: str | None) -> dict:
    """Self-contained bundle a player caches to keep playing while offline.

    Always a full replacement, never a delta. Each track and announcement
    appears once in ``audioFiles`` however many playlists or positions
    reference it. Every file carries a checksum of its id and url, and
    ``version`` changes only when the content does, so a player can keep
    cached files whose checksum it already holds.
    """
    store = get_paired_store(db, store_id, device_id)
    rules = scheduler.active_rules(db, store.id)

    playlist_ids: list[str] = []
    if store.active_playlist_id:
        playlist_ids.append(str(store.active_playlist_id))
    for rule in rules:
        if str(rule.playlist_id) not in playlist_ids:
            playlist_ids.append(str(rule.playlist_id))

    playlists: list[dict] = []
    audio_files: list[dict] = []
    seen: set[tuple[str, str]] = set()

    for playlist_id in playlist_ids:
        payload = playlist_payload(db, db.get(Playlist, playlist_id))
        if payload is None:
            continue
        playlists.append(payload)
        for track in payload["tracks"]:
            key = ("track", track["id"])
            if key in seen:
                continue
            seen.add(key)
            audio_files.append(
                {
                    "type": "track",
                    "id": track["id"],
                    "url": track["fileUrl"],
                    "checksum": asset_checksum(track["id"], track["fileUrl"]),
                }
            )

    announcements: list[dict] = []
    for _, announcement in active_cartwall(db, store.id):
        key = ("announcement", str(announcement.id))
        if key in seen:
            continue
        seen.add(key)
        announcements.append(announcement_payload(announcement))
        if (announcement.audio_url or "").strip():
            audio_files.append(
                {
                    "type": "announcement",
                    "id": str(announcement.id),
                    "url": announcement.audio_url,
                    "checksum": asset_checksum(str(announcement.id), announcement.audio_url),
                }
            )

    content = {
        "store": {"id": str(store.id), "name": store.name},
        "audioFiles": audio_files,
        "playlists": playlists,
        "announcements": announcements,
        "schedule": [rule_payload(rule) for rule in rules],
    }
    # Play counters move on every play; they are not content.
    versioned = {
        **content,
        "announcements": [
            {key: value for key, value in item.items() if key not in VOLATILE_ANNOUNCEMENT_KEYS}
            for item in announcements
        ],
    }
    return {**content, "version": manifest_version(versioned), "generatedAt": iso(utc_now())}
