# tests/test_player.py
from datetime import datetime, time

import pytest

from storeaudio.errors import NotFound, Unauthorized
from storeaudio.models import Announcement, CartwallItem, PlaybackLog, ScheduleRule, Store
from storeaudio.schemas.player import HeartbeatIn
from storeaudio.services import player
from storeaudio.services.analytics import PlaybackEventType
from tests.conftest import PAIRED_DEVICE


def event_types(db, store_id: str) -> list[str]:
    rows = db.query(PlaybackLog).filter(PlaybackLog.store_id == store_id).order_by(PlaybackLog.timestamp.asc()).all()
    return [row.event_type for row in rows]


def test_state_requires_the_paired_device(client, store, device_headers):
    response = client.post(
        "/player/heartbeat",
        json={"storeId": store.id, "deviceId": PAIRED_DEVICE, "volume": 40, "isPlaying": True},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ok"

    denied = client.get(f"/player/{store.id}/state", headers={"X-Device-ID": "device_someoneelse"})
    assert denied.status_code == 401

    allowed = client.get(f"/player/{store.id}/state", headers=device_headers)
    assert allowed.status_code == 200
    body = allowed.json()
    assert body["store"]["id"] == store.id
    assert body["store"]["currentVolume"] == 40


def test_missing_device_header_is_unauthorized(client, store):
    assert client.get(f"/player/{store.id}/state").status_code == 401


def test_state_composes_playlist_cartwall_and_settings(db_session, organization, store, playlist_a):
    store.active_playlist_id = playlist_a.id
    store.settings = {"defaultVolume": 80, "isKioskMode": True}
    announcement = Announcement(organization_id=organization.id, name="Promo", audio_url="https://cdn/promo.mp3")
    hidden = Announcement(organization_id=organization.id, name="Hidden")
    db_session.add_all([announcement, hidden])
    db_session.flush()
    db_session.add(CartwallItem(store_id=store.id, announcement_id=announcement.id, position=2))
    db_session.add(CartwallItem(store_id=store.id, announcement_id=hidden.id, position=0, is_active=False))
    db_session.commit()

    state = player.get_player_state(db_session, store.id, PAIRED_DEVICE)

    assert state["currentPlaylist"]["id"] == playlist_a.id
    assert [t["fileUrl"] for t in state["currentPlaylist"]["tracks"]] == ["https://cdn/a0.mp3", "https://cdn/a1.mp3"]
    assert state["activeRule"] is None
    assert [item["position"] for item in state["cartwall"]] == [2]
    assert state["cartwall"][0]["announcement"]["name"] == "Promo"
    # Store overrides win, organization keys survive.
    assert state["settings"] == {"defaultVolume": 80, "language": "it", "isKioskMode": True}
    assert state["organization"]["plan"] == "chain"


def test_activation_code_is_single_use(db_session, store):
    result = player.activate(db_session, "123456")

    assert result["deviceId"].startswith("device_")
    assert result["state"]["store"]["id"] == store.id
    db_session.refresh(store)
    assert store.device_id == result["deviceId"]
    assert store.activation_code != "123456"
    assert len(store.activation_code) == 6
    assert store.is_online is True

    with pytest.raises(NotFound):
        player.activate(db_session, "123456")

    # The previous pairing no longer authenticates.
    with pytest.raises(Unauthorized):
        player.get_player_state(db_session, store.id, PAIRED_DEVICE)


def test_activation_ignores_inactive_stores(db_session, store):
    store.is_active = False
    db_session.commit()
    with pytest.raises(NotFound):
        player.activate(db_session, "123456")


def test_activate_endpoint(client, store):
    response = client.post("/stores/activate", json={"activationCode": "123456"})
    assert response.status_code == 200
    assert response.json()["message"] == "Player activated"
    assert client.post("/stores/activate", json={"activationCode": "123456"}).status_code == 404


def test_heartbeat_marks_online_and_logs_progress(db_session, store):
    report = HeartbeatIn(
        store_id=store.id,
        device_id=PAIRED_DEVICE,
        volume=55,
        current_track_id="track-1",
        track_position=42,
        device_info={"os": "linux"},
    )
    updated, ack = player.heartbeat(db_session, report)

    assert ack["status"] == "ok"
    assert updated.is_online is True
    assert updated.current_volume == 55
    assert updated.device_info == {"os": "linux"}
    assert sorted(event_types(db_session, store.id)) == [
        PlaybackEventType.DEVICE_ONLINE.value,
        PlaybackEventType.TRACK_PLAYING.value,
    ]

    # Already online: no second DEVICE_ONLINE, and a paused player logs nothing.
    player.heartbeat(db_session, HeartbeatIn(store_id=store.id, device_id=PAIRED_DEVICE, current_track_id="t", is_playing=False))
    assert event_types(db_session, store.id).count(PlaybackEventType.DEVICE_ONLINE.value) == 1
    assert event_types(db_session, store.id).count(PlaybackEventType.TRACK_PLAYING.value) == 1


def test_heartbeat_from_unpaired_device_is_rejected(db_session, store):
    with pytest.raises(Unauthorized):
        player.heartbeat(db_session, HeartbeatIn(store_id=store.id, device_id="device_nope"))


def test_track_events_are_logged(client, db_session, store, device_headers):
    assert client.post(f"/player/{store.id}/track/start", json={"trackId": "t1"}, headers=device_headers).status_code == 200
    assert client.post(f"/player/{store.id}/track/end", json={"trackId": "t1"}, headers=device_headers).status_code == 200
    assert (
        client.post(
            f"/player/{store.id}/track/end", json={"trackId": "t2", "skipped": True}, headers=device_headers
        ).status_code
        == 200
    )
    assert event_types(db_session, store.id) == ["TRACK_PLAYED", "TRACK_ENDED", "TRACK_SKIPPED"]


def test_announcement_played_bumps_counter(client, db_session, organization, other_organization, store, device_headers):
    announcement = Announcement(organization_id=organization.id, name="Promo")
    foreign = Announcement(organization_id=other_organization.id, name="Theirs")
    db_session.add_all([announcement, foreign])
    db_session.commit()

    response = client.post(
        f"/player/{store.id}/announcement/played",
        json={"announcementId": announcement.id},
        headers=device_headers,
    )
    assert response.status_code == 200
    db_session.refresh(announcement)
    assert announcement.play_count == 1
    assert announcement.last_played_at is not None

    response = client.post(
        f"/player/{store.id}/announcement/played",
        json={"announcementId": foreign.id},
        headers=device_headers,
    )
    assert response.status_code == 404
    db_session.refresh(foreign)
    assert foreign.play_count == 0


def test_sync_stores_last_state(client, db_session, store, device_headers):
    response = client.post(
        f"/player/{store.id}/sync",
        json={"state": {"volume": 33, "queue": ["a", "b"]}},
        headers=device_headers,
    )
    assert response.json()["status"] == "synced"
    db_session.refresh(store)
    assert store.device_info["lastState"] == {"volume": 33, "queue": ["a", "b"]}
    assert store.current_volume == 33


def test_offline_call_flips_flag(client, db_session, store, device_headers):
    store.is_online = True
    db_session.commit()

    response = client.post(f"/player/{store.id}/offline", headers=device_headers)

    assert response.json()["status"] == "offline"
    db_session.refresh(store)
    assert store.is_online is False
    assert event_types(db_session, store.id) == ["DEVICE_OFFLINE"]


def test_state_reports_matching_rule(db_session, store, playlist_a):
    db_session.add(
        ScheduleRule(
            store_id=store.id,
            playlist_id=playlist_a.id,
            day_of_week="MONDAY",
            start_time=time(0, 0),
            end_time=time(23, 59),
            volume=25,
        )
    )
    db_session.commit()

    state = player.compose_state(db_session, db_session.get(Store, store.id), datetime(2024, 1, 1, 10, 0))
    assert state["activeRule"]["volume"] == 25
    assert state["currentPlaylist"]["id"] == playlist_a.id
    assert len(state["schedule"]) == 1
