"""Domain Events and the publisher port"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class DomainEvent(BaseModel):
    """A committed change, e.g. `hotel:room:deleted`"""
    name: str
    entity_id: Optional[str] = None
    hotel_id: Optional[int] = None
    payload: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        frozen = True


class EventPublisher(ABC):
    """Outbound notification port.

    Delivery is fire-and-forget and at-most-once: `publish` must never raise
    into the caller, and callers never retry.
    """

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        pass
