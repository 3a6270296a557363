"""Routes live traffic between dashboards and players.

Dashboard commands go to ``store:{storeId}`` and player telemetry goes to
``org:{organizationId}``. Commands are declarative (play, volume=50, ...)
and delivered fire-and-forget; a dashboard learns the outcome from the
player's next heartbeat, not from an acknowledgement.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from storeaudio.errors import Forbidden, StoreAudioError, Unauthorized, ValidationError
from storeaudio.models import Store
from storeaudio.schemas.player import HeartbeatIn
from storeaudio.services import player, presence
from storeaudio.services.auth import decode_access_token
from storeaudio.services.presence import DASHBOARD, PLAYER, ConnectedClient
from storeaudio.services.realtime import RealtimeHub, Socket, hub

logger = logging.getLogger(__name__)

PLAYER_EVENTS = {
    "player:heartbeat": "store:status",
    "player:track-started": "store:track-playing",
    "player:announcement-played": "store:announcement-played",
}
COMMANDS = frozenset(
    {
        "command:play",
        "command:stop",
        "command:volume",
        "command:next",
        "command:playlist",
        "command:announcement",
        "command:reload",
    }
)


class Relay:
    def __init__(self, hub: RealtimeHub) -> None:
        self.hub = hub

    def classify(self, db: Session, socket_id: str, params: Mapping[str, str]) -> ConnectedClient | None:
        """Decide once, at handshake, what kind of client this socket is."""
        device_id = (params.get("deviceId") or "").strip()
        store_id = (params.get("storeId") or "").strip()
        token = (params.get("token") or "").strip()

        if device_id and store_id:
            try:
                store = player.get_paired_store(db, store_id, device_id)
            except Unauthorized:
                logger.warning("Rejected player socket for store=%s: device not paired", store_id)
                return None
            if not store.is_active:
                logger.warning("Rejected player socket for inactive store=%s", store_id)
                return None
            return ConnectedClient(
                socket_id=socket_id,
                type=PLAYER,
                store_id=str(store.id),
                organization_id=str(store.organization_id),
                device_id=device_id,
            )
        if token:
            try:
                principal = decode_access_token(token)
            except Unauthorized:
                logger.warning("Rejected dashboard socket: invalid token")
                return None
            return ConnectedClient(
                socket_id=socket_id,
                type=DASHBOARD,
                organization_id=principal.organization_id,
                user_id=principal.user_id,
            )
        logger.warning("Rejected socket without credentials")
        return None

    async def connect(self, db: Session, socket: Socket, client: ConnectedClient) -> None:
        await self.hub.attach(socket, client)
        if client.type == PLAYER:
            store = db.get(Store, client.store_id)
            if store is not None:
                presence.mark_online(db, store)
                db.commit()
            logger.info("Player connected: store=%s", client.store_id)
        else:
            logger.info("Dashboard connected: user=%s org=%s", client.user_id, client.organization_id)

    async def disconnect(self, db: Session, socket_id: str) -> ConnectedClient | None:
        client = await self.hub.detach(socket_id)
        if client is None:
            return None
        logger.info("Client disconnected: %s %s", client.type, socket_id)
        if client.type != PLAYER or not client.store_id:
            return client
        # Another live socket for the same store keeps it online.
        if self.hub.registry.is_store_connected(client.store_id):
            return client
        store = db.get(Store, client.store_id)
        if store is not None:
            presence.mark_offline(db, store, reason="socket_closed")
            db.commit()
        await self.hub.emit_to_organization(client.organization_id, "store:offline", {"storeId": client.store_id})
        return client

    async def revoke_devices(self, store_id: str, device_id: str) -> int:
        """Close player sockets for the store that still hold a replaced device id."""
        revoked = [
            client
            for client in self.hub.registry.clients_by_store(store_id)
            if client.type == PLAYER and client.device_id != device_id
        ]
        for client in revoked:
            await self.hub.send(client.socket_id, "device:revoked", {"storeId": store_id})
            await self.hub.close(client.socket_id, code=4401)
            logger.info("Closed player socket %s for store=%s: device re-activated", client.socket_id, store_id)
        return len(revoked)

    async def dispatch(self, db: Session, client: ConnectedClient, event: str, data: Any) -> None:
        payload = data if isinstance(data, dict) else {}
        try:
            if event in PLAYER_EVENTS:
                await self._player_event(db, client, event, payload)
            elif event in COMMANDS:
                await self._command(db, client, event, payload)
            else:
                raise ValidationError(f"Unknown event {event!r}")
        except StoreAudioError as exc:
            await self.hub.send(client.socket_id, "error", {"event": event, "message": exc.message})

    async def _player_event(self, db: Session, client: ConnectedClient, event: str, data: dict) -> None:
        if client.type != PLAYER:
            raise Forbidden("Only players may send player events")
        outgoing = PLAYER_EVENTS[event]

        if event == "player:heartbeat":
            try:
                report = HeartbeatIn.model_validate({**data, "storeId": client.store_id, "deviceId": client.device_id})
            except PydanticValidationError as exc:
                raise ValidationError(f"Invalid heartbeat: {exc.errors()[0].get('msg')}") from exc
            store, _ = player.heartbeat(db, report)
            await self.hub.emit_to_organization(client.organization_id, outgoing, player.status_event(store, data))
            return

        await self.hub.emit_to_organization(client.organization_id, outgoing, {**data, "storeId": client.store_id})

    async def _command(self, db: Session, client: ConnectedClient, event: str, data: dict) -> None:
        if client.type != DASHBOARD:
            raise Forbidden("Only dashboards may issue commands")
        store_id = str(data.get("storeId") or "").strip()
        if not store_id:
            raise ValidationError("storeId is required")

        owned = (
            db.query(Store.id)
            .filter(Store.id == store_id, Store.organization_id == client.organization_id)
            .first()
        )
        if owned is None:
            logger.warning(
                "Rejected %s from org=%s for store=%s outside the organization",
                event,
                client.organization_id,
                store_id,
            )
            await self.hub.send(
                client.socket_id,
                "command:rejected",
                {"storeId": store_id, "command": event, "reason": "Store not found"},
            )
            return

        if event == "command:volume":
            volume = data.get("volume")
            if not isinstance(volume, int) or isinstance(volume, bool) or not 0 <= volume <= 100:
                raise ValidationError("volume must be an integer between 0 and 100")

        delivered = await self.hub.emit_to_store(store_id, event, data)
        logger.info("Sent %s to store %s (%d sockets)", event, store_id, delivered)


relay = Relay(hub)
