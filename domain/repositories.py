"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, List
from uuid import UUID
from datetime import datetime

from domain.entities import Hotel, Booking, Order
from domain.enums import BookingStatus
from domain.overlap import OverlapQuery


class HotelRepository(ABC):
    """Repository interface for Hotel Aggregate"""

    @abstractmethod
    async def insert(self, hotel: Hotel) -> Hotel:
        """Insert a new hotel; hotel_id must be unused"""
        pass

    @abstractmethod
    async def save(self, hotel: Hotel, expected_version: int) -> Hotel:
        """Replace the whole aggregate if its stored version is still expected_version"""
        pass

    @abstractmethod
    async def find_by_id(self, id: UUID) -> Optional[Hotel]:
        """Find hotel by storage id"""
        pass

    @abstractmethod
    async def find_by_hotel_id(self, hotel_id: int) -> Optional[Hotel]:
        """Find hotel by numeric business id"""
        pass

    @abstractmethod
    async def find_by_hotel_ids(self, hotel_ids: List[int]) -> List[Hotel]:
        """Find hotels for a set of business ids"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Hotel]:
        """Find all hotels"""
        pass

    @abstractmethod
    async def max_hotel_id(self) -> int:
        """Largest hotel_id in use, 0 when empty"""
        pass

    @abstractmethod
    async def delete(self, id: UUID) -> bool:
        """Delete hotel"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def insert(self, booking: Booking) -> Booking:
        """Insert booking; serial_no must be unused"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_overlapping(self, query: OverlapQuery) -> Optional[Booking]:
        """First active booking on the same room whose stay intersects the query"""
        pass

    @abstractmethod
    async def find_active_for_room(self, hotel_id: int, room_number_id: str, room_category_id: str) -> List[Booking]:
        """Active bookings on one room"""
        pass

    @abstractmethod
    async def find_by_booking_no(self, booking_no: str) -> List[Booking]:
        """All bookings sharing a booking number"""
        pass

    @abstractmethod
    async def find_booking_numbers_with_prefix(self, prefix: str) -> List[str]:
        """Booking numbers starting with prefix"""
        pass

    @abstractmethod
    async def find_last_inserted(self) -> Optional[Booking]:
        """Most recently inserted booking"""
        pass

    @abstractmethod
    async def find_matching(
        self,
        hotel_id: Optional[int] = None,
        status_id: Optional[BookingStatus] = None,
        include_cancelled: bool = False,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[Booking]:
        """Bookings matching the filters, newest first"""
        pass

    @abstractmethod
    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        pass


class OrderRepository(ABC):
    """Repository interface for restaurant orders"""

    @abstractmethod
    async def insert(self, order: Order) -> Order:
        """Insert order; order_number must be unused"""
        pass

    @abstractmethod
    async def find_by_number(self, order_number: str) -> Optional[Order]:
        """Find order by order number"""
        pass

    @abstractmethod
    async def count_created_between(self, start: datetime, end: datetime) -> int:
        """Orders with start <= created_at < end"""
        pass

    @abstractmethod
    async def find_all(self) -> List[Order]:
        """Find all orders, newest first"""
        pass


class SequenceCounterRepository(ABC):
    """Atomic named counters"""

    @abstractmethod
    async def next_value(self, key: str, seed: Callable[[], Awaitable[int]]) -> int:
        """Atomically increment and return the counter.

        A key seen for the first time starts from `await seed()`, so the first
        value handed out is seed + 1.
        """
        pass
