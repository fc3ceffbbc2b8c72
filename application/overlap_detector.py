"""Overlap detection against the reservation ledger"""
import logging
from datetime import date
from typing import Optional, Tuple
from uuid import UUID

from domain.entities import Booking, build
from domain.exceptions import ConflictError
from domain.overlap import ConflictSummary, OverlapQuery
from domain.repositories import BookingRepository

logger = logging.getLogger(__name__)


class OverlapDetector:
    """Decides whether a stay collides with an active booking on the same room.

    Advisory only: callers must run it before writing and hold the room's
    lock across check and write.
    """

    def __init__(self, repository: BookingRepository):
        self.repository = repository

    async def has_conflict(
        self,
        hotel_id: int,
        room_number_id: str,
        room_category_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[UUID] = None
    ) -> Tuple[bool, Optional[Booking]]:
        """Return (True, colliding booking) or (False, None)"""
        query = self._query(hotel_id, room_number_id, room_category_id, check_in, check_out, exclude_booking_id)
        existing = await self.repository.find_overlapping(query)
        return existing is not None, existing

    async def find_conflict(
        self,
        hotel_id: int,
        room_number_id: str,
        room_category_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[UUID] = None
    ) -> Optional[ConflictSummary]:
        query = self._query(hotel_id, room_number_id, room_category_id, check_in, check_out, exclude_booking_id)
        existing = await self.repository.find_overlapping(query)
        return ConflictSummary.between(existing, query) if existing else None

    async def ensure_available(self, booking: Booking, exclude_booking_id: Optional[UUID] = None) -> None:
        """Raise ConflictError naming the colliding booking"""
        summary = await self.find_conflict(
            booking.hotel_id,
            booking.room_number_id,
            booking.room_category_id,
            booking.check_in_date,
            booking.check_out_date,
            exclude_booking_id,
        )
        if summary is not None:
            logger.warning(
                "Room %s/%s of hotel %s already booked %s..%s (booking %s)",
                booking.room_category_name, booking.room_number_name, booking.hotel_id,
                summary.check_in_date, summary.check_out_date, summary.booking_no,
            )
            raise ConflictError("Room is already booked for the selected dates", summary.to_details())

    @staticmethod
    def _query(hotel_id, room_number_id, room_category_id, check_in, check_out, exclude_booking_id) -> OverlapQuery:
        return build(OverlapQuery, {
            "hotel_id": hotel_id,
            "room_number_id": room_number_id,
            "room_category_id": room_category_id,
            "check_in": check_in,
            "check_out": check_out,
            "exclude_booking_id": exclude_booking_id,
        })
