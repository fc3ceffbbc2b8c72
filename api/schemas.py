"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Any, Dict, List, Optional

from domain.enums import (
    HotelStatus, RoomStatus, BookingStatus, PaymentMethod,
    OrderType, OrderStatus, OrderPaymentStatus
)
from domain.value_objects import Address, Contact, Location, Occupancy, LegacyRoomBooking


# ============================================================================
# HOTEL SCHEMAS
# ============================================================================

class CreateHotelRequest(BaseModel):
    """Create hotel request DTO"""
    hotel_name: str
    hotel_description: str
    address: Address = Field(default_factory=Address)
    contact: Contact = Field(default_factory=Contact)
    location: Location = Field(default_factory=Location)
    amenities: List[str] = []
    images: List[str] = []
    rating: float = Field(default=0, ge=0, le=5)
    status: HotelStatus = HotelStatus.ACTIVE


class UpdateHotelRequest(BaseModel):
    """Update hotel request DTO; only the fields sent are changed"""
    hotel_name: Optional[str] = None
    hotel_description: Optional[str] = None
    address: Optional[Address] = None
    contact: Optional[Contact] = None
    location: Optional[Location] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    status: Optional[HotelStatus] = None


class CreateCategoryRequest(BaseModel):
    """Create room category request DTO"""
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    max_occupancy: Occupancy = Field(default_factory=Occupancy)
    amenities: List[str] = []
    images: List[str] = []
    is_active: bool = True


class UpdateCategoryRequest(BaseModel):
    """Update room category request DTO"""
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    max_occupancy: Optional[Occupancy] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    is_active: Optional[bool] = None


class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    name: str
    code: Optional[str] = None
    status: RoomStatus = RoomStatus.AVAILABLE
    price: Optional[Decimal] = Field(default=None, ge=0)
    capacity: Occupancy = Field(default_factory=Occupancy)
    amenities: List[str] = []
    description: Optional[str] = None
    images: List[str] = []


class UpdateRoomRequest(BaseModel):
    """Update room request DTO"""
    name: Optional[str] = None
    code: Optional[str] = None
    status: Optional[RoomStatus] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    capacity: Optional[Occupancy] = None
    amenities: Optional[List[str]] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None


class RoomStatusItem(BaseModel):
    name: str
    status: RoomStatus


class UpdateRoomStatusesRequest(BaseModel):
    """Bulk room status change within one category"""
    room_statuses: List[RoomStatusItem]


class RecordRoomBookingRequest(BaseModel):
    """Legacy: append to a room's embedded booking list"""
    category_name: str
    room_name: str
    booking: Optional[LegacyRoomBooking] = None
    booked_dates: List[str] = []


class RemoveRoomBookingDatesRequest(BaseModel):
    """Legacy: drop days from a room's embedded booking list"""
    category_name: str
    room_name: str
    dates_to_delete: List[str]


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    name: str
    code: Optional[str] = None
    status: RoomStatus
    price: Optional[Decimal] = None
    capacity: Occupancy
    amenities: List[str]
    booked_dates: List[str]
    bookings: List[LegacyRoomBooking]
    description: Optional[str] = None
    images: List[str]
    created_at: datetime
    updated_at: datetime


class CategoryResponse(BaseModel):
    """Room category response DTO"""
    category_id: UUID
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[Decimal] = None
    max_occupancy: Occupancy
    amenities: List[str]
    images: List[str]
    room_numbers: List[RoomResponse]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class HotelResponse(BaseModel):
    """Hotel response DTO"""
    id: UUID
    hotel_id: int
    hotel_name: str
    hotel_description: str
    address: Address
    contact: Contact
    location: Location
    amenities: List[str]
    images: List[str]
    rating: float
    status: HotelStatus
    room_categories: List[CategoryResponse]
    total_rooms: int
    available_rooms: int
    created_at: datetime
    updated_at: datetime
    version: int


class PaginationResponse(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


class HotelListResponse(BaseModel):
    """Paginated hotel list response DTO"""
    hotels: List[HotelResponse]
    pagination: PaginationResponse


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO

    Fields are only type-checked here; required fields and business rules are
    enforced by the Booking aggregate so every failure is reported at once.
    """
    full_name: Optional[str] = None
    nid_passport: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    hotel_name: Optional[str] = None
    hotel_id: Optional[int] = None
    room_category_id: Optional[str] = None
    room_category_name: Optional[str] = None
    room_number_id: Optional[str] = None
    room_number_name: Optional[str] = None
    room_price: Optional[Decimal] = None

    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    nights: Optional[int] = None
    adults: Optional[int] = None
    children: Optional[int] = None

    total_bill: Optional[Decimal] = None
    advance_payment: Optional[Decimal] = None
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    note: Optional[str] = None
    is_kitchen: Optional[bool] = None
    extra_bed: Optional[bool] = None
    kitchen_total_bill: Optional[Decimal] = None
    extra_bed_total_bill: Optional[Decimal] = None

    reference: Optional[str] = None
    invoice_no: Optional[str] = None
    status_id: Optional[BookingStatus] = None
    booked_by: Optional[str] = None
    booked_by_id: Optional[str] = None


class UpdateBookingRequest(CreateBookingRequest):
    """Update booking request DTO; only the fields sent are changed"""
    canceled_by: Optional[str] = None
    reason: Optional[str] = None


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    canceled_by: Optional[str] = None
    reason: Optional[str] = None


class CheckAvailabilityRequest(BaseModel):
    """Check whether a room is free for a stay"""
    hotel_id: int
    room_number_id: str
    room_category_id: str
    check_in_date: date
    check_out_date: date
    exclude_booking_id: Optional[UUID] = None


class AvailabilityResponse(BaseModel):
    available: bool
    conflict: Optional[Dict[str, Any]] = None


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    booking_no: Optional[str] = None
    serial_no: Optional[int] = None
    full_name: str
    nid_passport: Optional[str] = None
    address: Optional[str] = None
    phone: str
    email: Optional[str] = None
    hotel_name: str
    hotel_id: int
    room_category_id: str
    room_category_name: str
    room_number_id: str
    room_number_name: str
    room_price: Decimal
    check_in_date: date
    check_out_date: date
    nights: int
    adults: int
    children: int
    total_bill: Decimal
    advance_payment: Decimal
    due_payment: Decimal
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    note: Optional[str] = None
    is_kitchen: bool
    extra_bed: bool
    kitchen_total_bill: Decimal
    extra_bed_total_bill: Decimal
    reference: Optional[str] = None
    invoice_no: Optional[str] = None
    status_id: BookingStatus
    booked_by: str
    booked_by_id: str
    updated_by_id: Optional[str] = None
    canceled_by: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BookingWithHotelResponse(BookingResponse):
    """Booking of a multi-room stay, with hotel imagery"""
    hotel_logo: Optional[str] = None
    hotel_images: List[str] = []


class BookingStatsResponse(BaseModel):
    total_bookings: int
    total_revenue: Decimal
    total_advance_payment: Decimal
    total_due_payment: Decimal
    average_bill: Decimal
    today_bookings: int
    today_revenue: Decimal
    status_breakdown: Dict[int, int]


class RoomOccupancyResponse(BaseModel):
    """Nights a room is taken, derived from active bookings"""
    hotel_id: int
    room_number_id: str
    room_category_id: str
    booked_dates: List[date]


# ============================================================================
# ORDER SCHEMAS
# ============================================================================

class CreateOrderRequest(BaseModel):
    """Create restaurant order request DTO"""
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    table_number: Optional[str] = None
    order_type: OrderType = OrderType.DINE_IN
    items: List[str] = []
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    invoice_no: Optional[str] = None
    notes: Optional[str] = None


class OrderResponse(BaseModel):
    """Order response DTO"""
    order_id: UUID
    order_number: str
    invoice_no: Optional[str] = None
    customer_name: str
    customer_phone: Optional[str] = None
    table_number: Optional[str] = None
    order_type: OrderType
    items: List[str]
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    payment_status: OrderPaymentStatus
    order_status: OrderStatus
    notes: Optional[str] = None
    ordered_by: Optional[str] = None
    created_at: datetime


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    disabled: bool
