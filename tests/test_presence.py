# tests/test_presence.py
from datetime import timedelta

from storeaudio.db import SessionLocal, utc_now
from storeaudio.models import PlaybackLog, Store
from storeaudio.services import presence
from storeaudio.services.presence import STALE_AFTER_SEC, ConnectedClient, PresenceRegistry
from tests.conftest import make_store


def test_stale_threshold_is_three_heartbeats():
    assert STALE_AFTER_SEC == presence.HEARTBEAT_INTERVAL_SEC * presence.STALE_AFTER_HEARTBEATS
    assert STALE_AFTER_SEC == 90


def test_sweep_flips_only_stores_past_the_threshold(db_session, organization):
    now = utc_now()
    silent = make_store(db_session, organization, name="Silent", is_online=True, last_seen=now - timedelta(seconds=300))
    late = make_store(db_session, organization, name="Late", is_online=True, last_seen=now - timedelta(seconds=45))
    offline = make_store(db_session, organization, name="Off", is_online=False, last_seen=now - timedelta(days=2))

    swept = presence.sweep_stale_stores(db_session, set(), now)

    assert [store.id for store in swept] == [silent.id]
    for store in (silent, late, offline):
        db_session.refresh(store)
    assert silent.is_online is False
    # One missed heartbeat is not enough to flip a store.
    assert late.is_online is True
    assert offline.is_online is False
    log = db_session.query(PlaybackLog).filter(PlaybackLog.store_id == silent.id).one()
    assert log.event_type == "DEVICE_OFFLINE"
    assert log.meta["reason"] == "stale"


def test_sweep_skips_stores_with_a_live_socket(db_session, organization):
    now = utc_now()
    store = make_store(db_session, organization, is_online=True, last_seen=now - timedelta(hours=1))

    assert presence.sweep_stale_stores(db_session, {store.id}, now) == []
    db_session.refresh(store)
    assert store.is_online is True


def test_mark_online_logs_only_transitions(db_session, organization):
    store = make_store(db_session, organization)
    assert presence.mark_online(db_session, store) is True
    assert presence.mark_online(db_session, store) is False
    assert presence.mark_offline(db_session, store, reason="test") is True
    assert presence.mark_offline(db_session, store, reason="test") is False
    db_session.commit()
    events = [row.event_type for row in db_session.query(PlaybackLog).all()]
    assert sorted(events) == ["DEVICE_OFFLINE", "DEVICE_ONLINE"]


def test_registry_rooms_and_stats():
    registry = PresenceRegistry()
    registry.register(ConnectedClient(socket_id="p1", type="player", store_id="s1", organization_id="o1"))
    registry.register(ConnectedClient(socket_id="p2", type="player", store_id="s2", organization_id="o1"))
    registry.register(ConnectedClient(socket_id="d1", type="dashboard", organization_id="o1", user_id="u1"))

    assert [c.socket_id for c in registry.in_room("store:s1")] == ["p1"]
    assert [c.socket_id for c in registry.in_room("org:o1")] == ["d1"]
    assert registry.connected_store_ids() == {"s1", "s2"}
    assert registry.stats() == {"total": 3, "players": 2, "dashboards": 1}

    registry.remove("p1")
    assert registry.is_store_connected("s1") is False


def test_heartbeat_during_sweep_keeps_store_online(db_session, organization, monkeypatch):
    now = utc_now()
    store = make_store(db_session, organization, is_online=True, last_seen=now - timedelta(minutes=10))
    original_is_stale = presence.is_stale

    def heartbeat_lands_after_read(candidate, current):
        stale = original_is_stale(candidate, current)
        other = SessionLocal()
        try:
            other.query(Store).filter(Store.id == candidate.id).update(
                {Store.last_seen: now, Store.is_online: True}, synchronize_session=False
            )
            other.commit()
        finally:
            other.close()
        return stale

    monkeypatch.setattr(presence, "is_stale", heartbeat_lands_after_read)

    swept = presence.sweep_stale_stores(db_session, set(), now)

    assert swept == []
    db_session.refresh(store)
    assert store.is_online is True
    assert store.last_seen == now
    assert db_session.query(PlaybackLog).count() == 0
