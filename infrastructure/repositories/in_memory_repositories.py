"""In-Memory Repository Implementations

Stored aggregates are deep-copied on the way in and out, so callers only ever
mutate their own copy and must write it back, as with a document store.
"""
import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional
from uuid import UUID

from domain.entities import Hotel, Booking, Order
from domain.enums import BookingStatus
from domain.exceptions import ConcurrentModificationError, ConflictError, NotFoundError
from domain.overlap import OverlapQuery
from domain.repositories import (
    HotelRepository, BookingRepository, OrderRepository, SequenceCounterRepository
)

logger = logging.getLogger(__name__)


class InMemoryHotelRepository(HotelRepository):
    """In-memory implementation of HotelRepository with version check on save"""

    def __init__(self):
        self._storage: Dict[UUID, Hotel] = {}

    async def insert(self, hotel: Hotel) -> Hotel:
        if any(h.hotel_id == hotel.hotel_id for h in self._storage.values()):
            raise ConflictError("Hotel with this identifier already exists", {"hotel_id": hotel.hotel_id})
        self._storage[hotel.id] = hotel.model_copy(deep=True)
        return hotel

    async def save(self, hotel: Hotel, expected_version: int) -> Hotel:
        stored = self._storage.get(hotel.id)
        if stored is None:
            raise NotFoundError("Hotel not found")
        if stored.version != expected_version:
            raise ConcurrentModificationError(
                f"Hotel {hotel.hotel_id} changed (version {stored.version}, expected {expected_version})"
            )
        hotel.version = expected_version + 1
        self._storage[hotel.id] = hotel.model_copy(deep=True)
        return hotel

    async def find_by_id(self, id: UUID) -> Optional[Hotel]:
        hotel = self._storage.get(id)
        return hotel.model_copy(deep=True) if hotel else None

    async def find_by_hotel_id(self, hotel_id: int) -> Optional[Hotel]:
        for hotel in self._storage.values():
            if hotel.hotel_id == hotel_id:
                return hotel.model_copy(deep=True)
        return None

    async def find_by_hotel_ids(self, hotel_ids: List[int]) -> List[Hotel]:
        wanted = set(hotel_ids)
        return [h.model_copy(deep=True) for h in self._storage.values() if h.hotel_id in wanted]

    async def find_all(self) -> List[Hotel]:
        return [h.model_copy(deep=True) for h in self._storage.values()]

    async def max_hotel_id(self) -> int:
        return max((h.hotel_id for h in self._storage.values()), default=0)

    async def delete(self, id: UUID) -> bool:
        if id in self._storage:
            del self._storage[id]
            return True
        return False


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository; dict order is insertion order"""

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}

    async def insert(self, booking: Booking) -> Booking:
        if booking.serial_no is not None and any(
            b.serial_no == booking.serial_no for b in self._storage.values()
        ):
            raise ConflictError("Booking with this serial number already exists", {"serial_no": booking.serial_no})
        self._storage[booking.booking_id] = booking.model_copy(deep=True)
        return booking

    async def update(self, booking: Booking) -> Booking:
        if booking.booking_id not in self._storage:
            raise NotFoundError("Booking not found")
        self._storage[booking.booking_id] = booking.model_copy(deep=True)
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        booking = self._storage.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def find_overlapping(self, query: OverlapQuery) -> Optional[Booking]:
        for booking in self._storage.values():
            if query.matches(booking):
                return booking.model_copy(deep=True)
        return None

    async def find_active_for_room(self, hotel_id: int, room_number_id: str, room_category_id: str) -> List[Booking]:
        key = (hotel_id, room_number_id, room_category_id)
        return [
            b.model_copy(deep=True) for b in self._storage.values()
            if b.room_key == key and not b.is_cancelled()
        ]

    async def find_by_booking_no(self, booking_no: str) -> List[Booking]:
        return [b.model_copy(deep=True) for b in self._storage.values() if b.booking_no == booking_no]

    async def find_booking_numbers_with_prefix(self, prefix: str) -> List[str]:
        return [b.booking_no for b in self._storage.values() if b.booking_no and b.booking_no.startswith(prefix)]

    async def find_last_inserted(self) -> Optional[Booking]:
        if not self._storage:
            return None
        last = next(reversed(self._storage.values()))
        return last.model_copy(deep=True)

    async def find_matching(
        self,
        hotel_id: Optional[int] = None,
        status_id: Optional[BookingStatus] = None,
        include_cancelled: bool = False,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[Booking]:
        results = []
        for booking in self._storage.values():
            if hotel_id is not None and booking.hotel_id != hotel_id:
                continue
            if status_id is not None:
                if booking.status_id != status_id:
                    continue
            elif not include_cancelled and booking.is_cancelled():
                continue
            if created_from is not None and booking.created_at < created_from:
                continue
            if created_to is not None and booking.created_at > created_to:
                continue
            results.append(booking.model_copy(deep=True))
        results.reverse()
        results.sort(key=lambda b: b.created_at, reverse=True)
        return results

    async def delete(self, booking_id: UUID) -> bool:
        if booking_id in self._storage:
            del self._storage[booking_id]
            return True
        return False


class InMemoryOrderRepository(OrderRepository):
    """In-memory implementation of OrderRepository"""

    def __init__(self):
        self._storage: Dict[str, Order] = {}

    async def insert(self, order: Order) -> Order:
        if order.order_number in self._storage:
            raise ConflictError("Order with this number already exists", {"order_number": order.order_number})
        self._storage[order.order_number] = order.model_copy(deep=True)
        return order

    async def find_by_number(self, order_number: str) -> Optional[Order]:
        order = self._storage.get(order_number)
        return order.model_copy(deep=True) if order else None

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        return sum(1 for o in self._storage.values() if start <= o.created_at < end)

    async def find_all(self) -> List[Order]:
        return sorted(
            (o.model_copy(deep=True) for o in self._storage.values()),
            key=lambda o: o.created_at,
            reverse=True,
        )


class InMemorySequenceCounterRepository(SequenceCounterRepository):
    """Named counters incremented under a single lock"""

    def __init__(self):
        self._values: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def next_value(self, key: str, seed: Callable[[], Awaitable[int]]) -> int:
        async with self._lock:
            if key not in self._values:
                self._values[key] = await seed()
                logger.debug("Seeded counter %s at %s", key, self._values[key])
            self._values[key] += 1
            return self._values[key]
