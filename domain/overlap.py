"""Reservation overlap predicate and its query translation"""
from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, validator


def intervals_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Half-open intervals [a_start, a_end) and [b_start, b_end) overlap"""
    return a_start < b_end and b_start < a_end


class OverlapQuery(BaseModel):
    """Active bookings on one (hotel, room, category) intersecting a stay"""
    hotel_id: int
    room_number_id: str
    room_category_id: str
    check_in: date
    check_out: date
    exclude_booking_id: Optional[UUID] = None

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out date must be after check-in date')
        return v

    class Config:
        frozen = True

    def matches(self, booking) -> bool:
        """Evaluate the query against one stored booking"""
        if booking.is_cancelled():
            return False
        if self.exclude_booking_id is not None and booking.booking_id == self.exclude_booking_id:
            return False
        if (booking.hotel_id, booking.room_number_id, booking.room_category_id) != (
            self.hotel_id, self.room_number_id, self.room_category_id
        ):
            return False
        return intervals_overlap(
            booking.check_in_date, booking.check_out_date, self.check_in, self.check_out
        )


class ConflictSummary(BaseModel):
    """What a caller needs to explain a rejected stay to a human"""
    booking_no: Optional[str] = None
    check_in_date: date
    check_out_date: date
    guest_name: str
    requested_check_in: date
    requested_check_out: date

    @classmethod
    def between(cls, existing, query: OverlapQuery) -> "ConflictSummary":
        return cls(
            booking_no=existing.booking_no,
            check_in_date=existing.check_in_date,
            check_out_date=existing.check_out_date,
            guest_name=existing.full_name,
            requested_check_in=query.check_in,
            requested_check_out=query.check_out,
        )

    def to_details(self) -> dict:
        return {
            "existing_booking": {
                "booking_no": self.booking_no,
                "check_in_date": self.check_in_date.isoformat(),
                "check_out_date": self.check_out_date.isoformat(),
                "guest_name": self.guest_name,
            },
            "requested_dates": {
                "check_in_date": self.requested_check_in.isoformat(),
                "check_out_date": self.requested_check_out.isoformat(),
            },
        }
