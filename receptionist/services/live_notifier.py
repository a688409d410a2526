import asyncio
from typing import Any, Optional, Protocol

from receptionist.logging_config import get_logger
from receptionist.schemas.webhook import LiveEvent

logger = get_logger("live_notifier")


class LiveConnection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class LiveNotifier:
    """In-memory per-tenant fanout to dashboard sessions.

    Broadcasts iterate a snapshot of the tenant's set, so subscribe/unsubscribe
    during a publish never disturbs it. Connections that fail to receive are dropped.
    """

    def __init__(self):
        self._connections: dict[str, set] = {}
        self._tenant_of: dict[int, str] = {}

    def subscribe(self, connection: LiveConnection, tenant_id: str) -> None:
        previous = self._tenant_of.get(id(connection))
        if previous is not None and previous != tenant_id:
            self.unsubscribe(connection, previous)
        self._connections.setdefault(tenant_id, set()).add(connection)
        self._tenant_of[id(connection)] = tenant_id

    def unsubscribe(self, connection: LiveConnection, tenant_id: Optional[str] = None) -> None:
        tenant_id = tenant_id or self._tenant_of.get(id(connection))
        self._tenant_of.pop(id(connection), None)
        if tenant_id is None:
            return
        connections = self._connections.get(tenant_id)
        if not connections:
            return
        connections.discard(connection)
        if not connections:
            self._connections.pop(tenant_id, None)

    def connection_count(self, tenant_id: str) -> int:
        return len(self._connections.get(tenant_id, ()))

    async def publish(self, tenant_id: str, event: LiveEvent) -> int:
        """Send event to every session of the tenant. Returns how many received it."""
        snapshot = list(self._connections.get(tenant_id, ()))
        if not snapshot:
            return 0

        wire = event.to_wire()
        results = await asyncio.gather(*(connection.send_json(wire) for connection in snapshot), return_exceptions=True)

        delivered = 0
        for connection, result in zip(snapshot, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Dropping live connection after failed send",
                    extra={"context": {"tenant_id": tenant_id, "error": str(result)}},
                )
                self.unsubscribe(connection, tenant_id)
            else:
                delivered += 1
        return delivered


def conversation_update(conversation_id, customer_id, channel: str) -> LiveEvent:
    return LiveEvent(
        type="conversation:update",
        payload={"conversationId": str(conversation_id), "customerId": str(customer_id), "channel": channel},
    )


def booking_new(booking_id, conversation_id) -> LiveEvent:
    return LiveEvent(
        type="booking:new",
        payload={"id": str(booking_id), "conversationId": str(conversation_id) if conversation_id else None},
    )


def booking_update(booking_id, status: str) -> LiveEvent:
    return LiveEvent(type="booking:update", payload={"id": str(booking_id), "status": status})
