"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional


class DateRange(BaseModel):
    """Value Object for a half-open stay [check_in, check_out)"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out date must be after check-in date')
        return v

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, other: "DateRange") -> bool:
        """Back-to-back ranges (one ends the day the other starts) do not overlap"""
        return self.check_in < other.check_out and other.check_in < self.check_out

    def days(self) -> List[date]:
        """Each occupied night, check-out day excluded"""
        return [self.check_in + timedelta(days=i) for i in range(self.nights())]

    class Config:
        frozen = True


class Occupancy(BaseModel):
    """Value Object for guest capacity"""
    adults: int = Field(default=2, ge=1)
    children: int = Field(default=0, ge=0)

    class Config:
        frozen = True


class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class Contact(BaseModel):
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None


class Location(BaseModel):
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class PaymentDetails(BaseModel):
    total_bill: Optional[Decimal] = None
    advance_payment: Optional[Decimal] = None
    due_payment: Optional[Decimal] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None


class LegacyRoomBooking(BaseModel):
    """Booking record embedded in a room.

    Mirror of the reservation ledger kept for older clients. Nothing reads it
    to decide availability; occupancy is derived from Booking documents.
    """
    guest_name: Optional[str] = None
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    booked_by: Optional[str] = None
    payment_details: PaymentDetails = Field(default_factory=PaymentDetails)
