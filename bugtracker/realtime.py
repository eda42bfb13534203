# bugtracker/realtime.py
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Protocol

from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class TicketEvent(str, Enum):
    CREATED = "ticket-created"
    UPDATED = "ticket-updated"
    DELETED = "ticket-deleted"


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None: ...


class EventBus:
    """
    Per-project fan-out of ticket change notifications.

    Channel membership is in-memory and process-local. Delivery is best-effort
    and at-most-once: a subscriber that fails to receive a message is dropped
    from every channel, and nothing is kept for clients that reconnect later.
    """

    def __init__(self):
        self._channels: dict[str, set[Subscriber]] = defaultdict(set)

    def join(self, project_id: str, subscriber: Subscriber):
        self._channels[str(project_id)].add(subscriber)

    def leave(self, project_id: str, subscriber: Subscriber):
        channel = self._channels.get(str(project_id))
        if channel is None:
            return
        channel.discard(subscriber)
        if not channel:
            del self._channels[str(project_id)]

    def disconnect(self, subscriber: Subscriber):
        for project_id in list(self._channels):
            self.leave(project_id, subscriber)

    def subscribers(self, project_id: str) -> set[Subscriber]:
        return set(self._channels.get(str(project_id), ()))

    async def publish(self, project_id: str, event: TicketEvent, payload: Any) -> int:
        """Push ``event`` to every subscriber of the project. Returns deliveries made."""
        message = {"event": TicketEvent(event).value, "data": jsonable_encoder(payload)}
        delivered = 0
        for subscriber in self.subscribers(project_id):
            try:
                await subscriber.send_json(message)
            except Exception:
                logger.warning(
                    "Dropping subscriber after failed %s delivery on project %s",
                    message["event"], project_id, exc_info=True,
                )
                self.disconnect(subscriber)
            else:
                delivered += 1
        logger.debug("Published %s to %d subscriber(s) on project %s", message["event"], delivered, project_id)
        return delivered


# Process-wide bus handed to request handlers through dependencies.get_event_bus
event_bus = EventBus()
