import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Protocol

from storeaudio.services.presence import ConnectedClient, PresenceRegistry

logger = logging.getLogger(__name__)


class Socket(Protocol):
    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


def envelope(event: str, data: dict[str, Any] | None = None) -> str:
    return json.dumps(
        {
            "event": event,
            "data": data or {},
            "ts": datetime.now(timezone.utc).isoformat(),
        }
    )


class RealtimeHub:
    """Room fan-out over live sockets.

    Players sit in ``store:{storeId}``, dashboards in ``org:{organizationId}``.
    Room membership is derived from the registry, so a socket can only ever
    hear its own store's commands or its own organization's telemetry.
    """

    def __init__(self, registry: PresenceRegistry | None = None) -> None:
        self.registry = registry or PresenceRegistry()
        self._sockets: dict[str, Socket] = {}
        self._lock = asyncio.Lock()

    async def attach(self, socket: Socket, client: ConnectedClient) -> None:
        async with self._lock:
            self._sockets[client.socket_id] = socket
            self.registry.register(client)

    async def detach(self, socket_id: str) -> ConnectedClient | None:
        async with self._lock:
            self._sockets.pop(socket_id, None)
            return self.registry.remove(socket_id)

    async def close(self, socket_id: str, code: int = 1000) -> ConnectedClient | None:
        """Forget the socket and close it from the server side."""
        async with self._lock:
            socket = self._sockets.pop(socket_id, None)
            client = self.registry.remove(socket_id)
        if socket is not None:
            try:
                await socket.close(code=code)
            except Exception:
                logger.warning("Socket %s was already gone when closing", socket_id)
        return client

    async def send(self, socket_id: str, event: str, data: dict[str, Any] | None = None) -> bool:
        async with self._lock:
            socket = self._sockets.get(socket_id)
        if socket is None:
            return False
        try:
            await socket.send_text(envelope(event, data))
        except Exception:
            logger.warning("Dropping socket %s after failed send", socket_id)
            async with self._lock:
                self._sockets.pop(socket_id, None)
            return False
        return True

    async def emit(self, room: str, event: str, data: dict[str, Any] | None = None) -> int:
        message = envelope(event, data)
        async with self._lock:
            targets = [
                (client.socket_id, self._sockets[client.socket_id])
                for client in self.registry.in_room(room)
                if client.socket_id in self._sockets
            ]

        stale: list[str] = []
        delivered = 0
        for socket_id, socket in targets:
            try:
                await socket.send_text(message)
                delivered += 1
            except Exception:
                stale.append(socket_id)

        if stale:
            async with self._lock:
                for socket_id in stale:
                    # The connection handler still owns detach and the offline transition.
                    self._sockets.pop(socket_id, None)
        return delivered

    async def emit_to_store(self, store_id: str, event: str, data: dict[str, Any] | None = None) -> int:
        return await self.emit(f"store:{store_id}", event, data)

    async def emit_to_organization(self, organization_id: str, event: str, data: dict[str, Any] | None = None) -> int:
        return await self.emit(f"org:{organization_id}", event, data)

    async def notify_content_update(self, organization_id: str, content_type: str) -> int:
        return await self.emit_to_organization(organization_id, "content:updated", {"type": content_type})


hub = RealtimeHub()
