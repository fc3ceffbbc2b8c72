"""In-process publish/subscribe broadcaster for domain events"""
import logging
from collections import deque
from typing import Callable, Deque, Dict, List, Optional

from domain.events import DomainEvent, EventPublisher

logger = logging.getLogger(__name__)

Subscriber = Callable[[DomainEvent], None]


def hotel_channel(hotel_id: int) -> str:
    return f"hotel:{hotel_id}"


class InMemoryEventBroadcaster(EventPublisher):
    """
    Broadcasts every event to global subscribers and to the subscribers of
    the event's hotel channel.

    A subscriber that raises is logged and skipped; the publisher never
    propagates its failure and never redelivers.
    """

    def __init__(self, history_size: int = 500):
        self._global: List[Subscriber] = []
        self._channels: Dict[str, List[Subscriber]] = {}
        self.history: Deque[DomainEvent] = deque(maxlen=history_size)

    def subscribe(self, subscriber: Subscriber, channel: Optional[str] = None) -> Callable[[], None]:
        """Register a subscriber; returns a callable that removes it"""
        bucket = self._global if channel is None else self._channels.setdefault(channel, [])
        bucket.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in bucket:
                bucket.remove(subscriber)

        return unsubscribe

    def publish(self, event: DomainEvent) -> None:
        self.history.append(event)
        targets = list(self._global)
        if event.hotel_id is not None:
            targets.extend(self._channels.get(hotel_channel(event.hotel_id), []))

        for subscriber in targets:
            try:
                subscriber(event)
            except Exception:
                logger.exception("Subscriber failed for event %s", event.name)

        logger.debug("Published %s to %d subscriber(s)", event.name, len(targets))

    def events_named(self, name: str) -> List[DomainEvent]:
        return [e for e in self.history if e.name == name]
