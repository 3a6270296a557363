# tests/test_snapshot.py
from datetime import time

import pytest

from storeaudio.errors import Unauthorized
from storeaudio.models import Announcement, CartwallItem, ScheduleRule, Track
from storeaudio.services.snapshot import asset_checksum, build_offline_content
from tests.conftest import PAIRED_DEVICE, make_playlist


def _rule(store, playlist, day, start, end, is_active=True):
    return ScheduleRule(
        store_id=store.id,
        playlist_id=playlist.id,
        day_of_week=day,
        start_time=time(start),
        end_time=time(end),
        is_active=is_active,
    )


def test_every_referenced_track_appears_once(db_session, organization, store, playlist_a, playlist_b):
    shared = db_session.query(Track).filter(Track.playlist_id == playlist_a.id).first()
    db_session.add(Track(playlist_id=playlist_b.id, title="extra", file_url="https://cdn/b1.mp3", order=5))
    store.active_playlist_id = playlist_a.id
    db_session.add_all(
        [
            _rule(store, playlist_a, "MONDAY", 9, 12),
            _rule(store, playlist_b, "MONDAY", 12, 18),
            _rule(store, playlist_a, "FRIDAY", 9, 12),
        ]
    )
    db_session.commit()

    snapshot = build_offline_content(db_session, store.id, PAIRED_DEVICE)

    track_ids = [entry["id"] for entry in snapshot["audioFiles"] if entry["type"] == "track"]
    expected = {t.id for t in db_session.query(Track).filter(Track.playlist_id.in_([playlist_a.id, playlist_b.id]))}
    assert sorted(track_ids) == sorted(expected)
    assert len(track_ids) == len(set(track_ids))
    assert shared.id in track_ids
    assert [p["id"] for p in snapshot["playlists"]] == [playlist_a.id, playlist_b.id]
    assert len(snapshot["schedule"]) == 3
    assert snapshot["store"] == {"id": store.id, "name": "Main"}
    assert snapshot["generatedAt"]


def test_inactive_rule_playlists_are_not_cached(db_session, organization, store, playlist_a):
    dormant = make_playlist(db_session, organization, "Dormant", ["https://cdn/d.mp3"])
    db_session.add(_rule(store, dormant, "MONDAY", 9, 10, is_active=False))
    db_session.add(_rule(store, playlist_a, "MONDAY", 10, 11))
    db_session.commit()

    snapshot = build_offline_content(db_session, store.id, PAIRED_DEVICE)

    urls = {entry["url"] for entry in snapshot["audioFiles"]}
    assert "https://cdn/d.mp3" not in urls
    assert [p["id"] for p in snapshot["playlists"]] == [playlist_a.id]


def test_announcements_without_audio_are_listed_but_not_downloaded(db_session, organization, store):
    voiced = Announcement(organization_id=organization.id, name="Voiced", audio_url="https://cdn/v.mp3")
    text_only = Announcement(organization_id=organization.id, name="Text", audio_url="")
    db_session.add_all([voiced, text_only])
    db_session.flush()
    db_session.add_all(
        [
            CartwallItem(store_id=store.id, announcement_id=voiced.id, position=0),
            CartwallItem(store_id=store.id, announcement_id=text_only.id, position=1),
            CartwallItem(store_id=store.id, announcement_id=voiced.id, position=3),
        ]
    )
    db_session.commit()

    snapshot = build_offline_content(db_session, store.id, PAIRED_DEVICE)

    assert snapshot["audioFiles"] == [
        {
            "type": "announcement",
            "id": voiced.id,
            "url": "https://cdn/v.mp3",
            "checksum": asset_checksum(voiced.id, "https://cdn/v.mp3"),
        }
    ]
    assert {a["name"] for a in snapshot["announcements"]} == {"Voiced", "Text"}


def test_snapshot_requires_pairing(db_session, store):
    with pytest.raises(Unauthorized):
        build_offline_content(db_session, store.id, "device_wrong")


def test_offline_content_endpoint(client, store, device_headers):
    response = client.get(f"/player/{store.id}/offline-content", headers=device_headers)
    assert response.status_code == 200
    assert response.json()["audioFiles"] == []


def test_version_follows_content_not_time(db_session, organization, store, playlist_a):
    store.active_playlist_id = playlist_a.id
    announcement = Announcement(organization_id=organization.id, name="Promo", audio_url="https://cdn/p.mp3")
    db_session.add(announcement)
    db_session.flush()
    db_session.add(CartwallItem(store_id=store.id, announcement_id=announcement.id, position=0))
    db_session.commit()

    first = build_offline_content(db_session, store.id, PAIRED_DEVICE)
    announcement.play_count = 7
    db_session.commit()
    second = build_offline_content(db_session, store.id, PAIRED_DEVICE)
    assert first["version"] == second["version"]

    track = db_session.query(Track).filter(Track.playlist_id == playlist_a.id, Track.order == 0).one()
    old_checksum = asset_checksum(track.id, track.file_url)
    track.file_url = "https://cdn/a0-remastered.mp3"
    db_session.commit()
    third = build_offline_content(db_session, store.id, PAIRED_DEVICE)

    assert third["version"] != first["version"]
    checksums = {entry["id"]: entry["checksum"] for entry in third["audioFiles"]}
    assert checksums[track.id] != old_checksum
    assert checksums[track.id] == asset_checksum(track.id, "https://cdn/a0-remastered.mp3")
