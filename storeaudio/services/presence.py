"""Who is connected right now, and the durable online flag per store.

Two signals describe a store's player. Transport presence is the set of
live player sockets tagged with the store id; it lives only in this
process and is rebuilt as players reconnect. The durable flag is
``Store.is_online`` / ``Store.last_seen``, written by heartbeats, socket
connect/disconnect and the explicit offline call.

Nothing but the staleness sweep flips the durable flag on elapsed time
alone. It fails open: a store is only swept after several missed
heartbeats and never while a player socket for it is still attached.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from storeaudio.db import utc_now
from storeaudio.models import Store
from storeaudio.services.analytics import PlaybackEventType, log_playback

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SEC = int(os.getenv("STOREAUDIO_HEARTBEAT_INTERVAL_SEC", "30"))
STALE_AFTER_HEARTBEATS = int(os.getenv("STOREAUDIO_STALE_AFTER_HEARTBEATS", "3"))
STALE_AFTER_SEC = HEARTBEAT_INTERVAL_SEC * STALE_AFTER_HEARTBEATS

PLAYER = "player"
DASHBOARD = "dashboard"


@dataclass
class ConnectedClient:
    socket_id: str
    type: str
    store_id: str | None = None
    organization_id: str | None = None
    user_id: str | None = None
    device_id: str | None = None
    connected_at: datetime = field(default_factory=utc_now)

    @property
    def room(self) -> str:
        if self.type == PLAYER:
            return f"store:{self.store_id}"
        return f"org:{self.organization_id}"


class PresenceRegistry:
    def __init__(self) -> None:
        self._clients: dict[str, ConnectedClient] = {}

    def register(self, client: ConnectedClient) -> None:
        self._clients[client.socket_id] = client

    def remove(self, socket_id: str) -> ConnectedClient | None:
        return self._clients.pop(socket_id, None)

    def get(self, socket_id: str) -> ConnectedClient | None:
        return self._clients.get(socket_id)

    def clients(self) -> list[ConnectedClient]:
        return list(self._clients.values())

    def in_room(self, room: str) -> list[ConnectedClient]:
        return [client for client in self._clients.values() if client.room == room]

    def clients_by_store(self, store_id: str) -> list[ConnectedClient]:
        return [client for client in self._clients.values() if client.store_id == store_id]

    def clients_by_organization(self, organization_id: str) -> list[ConnectedClient]:
        return [client for client in self._clients.values() if client.organization_id == organization_id]

    def connected_players(self, organization_id: str) -> list[ConnectedClient]:
        return [c for c in self.clients_by_organization(organization_id) if c.type == PLAYER]

    def connected_dashboards(self, organization_id: str) -> list[ConnectedClient]:
        return [c for c in self.clients_by_organization(organization_id) if c.type == DASHBOARD]

    def is_store_connected(self, store_id: str) -> bool:
        return any(c.type == PLAYER for c in self.clients_by_store(store_id))

    def connected_store_ids(self) -> set[str]:
        return {c.store_id for c in self._clients.values() if c.type == PLAYER and c.store_id}

    def stats(self) -> dict[str, int]:
        clients = list(self._clients.values())
        return {
            "total": len(clients),
            "players": sum(1 for c in clients if c.type == PLAYER),
            "dashboards": sum(1 for c in clients if c.type == DASHBOARD),
        }


def mark_online(db: Session, store: Store, log_transition: bool = True) -> bool:
    """Set the durable flag; returns True when the store was offline before."""
    was_offline = not store.is_online
    store.is_online = True
    store.last_seen = utc_now()
    if was_offline and log_transition:
        log_playback(db, store.id, PlaybackEventType.DEVICE_ONLINE)
    return was_offline


def mark_offline(db: Session, store: Store, reason: str) -> bool:
    was_online = bool(store.is_online)
    store.is_online = False
    store.last_seen = utc_now()
    if was_online:
        log_playback(db, store.id, PlaybackEventType.DEVICE_OFFLINE, metadata={"reason": reason})
    return was_online


def is_stale(store: Store, now: datetime) -> bool:
    if store.last_seen is None:
        return True
    return (now - store.last_seen) > timedelta(seconds=STALE_AFTER_SEC)


def sweep_stale_stores(
    db: Session,
    connected_store_ids: set[str],
    now: datetime | None = None,
) -> list[Store]:
    """Flip online stores that stopped heartbeating to offline and commit."""
    current = now or utc_now()
    cutoff = current - timedelta(seconds=STALE_AFTER_SEC)
    swept: list[Store] = []
    candidates = db.query(Store).filter(Store.is_online.is_(True)).all()
    for store in candidates:
        if store.id in connected_store_ids:
            continue
        if not is_stale(store, current):
            continue
        # Re-check in the UPDATE itself; a heartbeat may have landed since the read.
        flipped = (
            db.query(Store)
            .filter(
                Store.id == store.id,
                Store.is_online.is_(True),
                or_(Store.last_seen.is_(None), Store.last_seen < cutoff),
            )
            .update({Store.is_online: False}, synchronize_session=False)
        )
        if not flipped:
            continue
        log_playback(
            db,
            store.id,
            PlaybackEventType.DEVICE_OFFLINE,
            metadata={"reason": "stale", "lastSeen": store.last_seen.isoformat() if store.last_seen else None},
        )
        swept.append(store)
    if swept:
        db.commit()
        for store in swept:
            logger.info("Store %s marked offline after %ss without heartbeat", store.id, STALE_AFTER_SEC)
    return swept
