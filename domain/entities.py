"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field, ValidationError, validator
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar
from decimal import Decimal, InvalidOperation

from domain.enums import (
    HotelStatus, RoomStatus, BookingStatus, PaymentMethod,
    OrderType, OrderStatus, OrderPaymentStatus
)
from domain.exceptions import ConflictError, NotFoundError, ValidationFailure
from domain.value_objects import (
    Address, Contact, Location, Occupancy, DateRange, LegacyRoomBooking
)

MAX_IMAGES = 3

ModelT = TypeVar("ModelT", bound=BaseModel)


def build(model_cls: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    """Construct a model, reporting every failing field as a ValidationFailure"""
    try:
        return model_cls(**data)
    except ValidationError as e:
        raise ValidationFailure.from_pydantic(e)


def rebuild(model: ModelT, changes: Dict[str, Any]) -> ModelT:
    """Apply changes to a copy of the model and re-run its validation"""
    merged = model.model_dump()
    merged.update(changes)
    return build(type(model), merged)


def merge_images(existing: Iterable[str], incoming: Iterable[str], limit: int = MAX_IMAGES) -> List[str]:
    """Append new image URLs after the existing ones, keeping the oldest `limit`"""
    merged: List[str] = []
    for url in list(existing) + list(incoming):
        if url and url not in merged:
            merged.append(url)
    return merged[:limit]


def compute_room_counts(categories: Iterable["RoomCategory"]) -> Tuple[int, int]:
    """(total rooms, rooms with status available) across every category"""
    total = 0
    available = 0
    for category in categories:
        total += len(category.room_numbers)
        available += sum(1 for room in category.room_numbers if room.status == RoomStatus.AVAILABLE)
    return total, available


def parse_uuid(value: Any) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Name must not be blank")
    return v


class Room(BaseModel):
    """Room Entity, owned by exactly one RoomCategory"""

    room_id: UUID = Field(default_factory=uuid4)
    name: str
    code: Optional[str] = None
    status: RoomStatus = RoomStatus.AVAILABLE
    price: Optional[Decimal] = Field(default=None, ge=0)
    capacity: Occupancy = Field(default_factory=Occupancy)
    amenities: List[str] = []
    booked_dates: List[str] = []
    bookings: List[LegacyRoomBooking] = []
    description: Optional[str] = None
    images: List[str] = Field(default=[], max_length=MAX_IMAGES)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    @validator('name')
    def strip_name(cls, v):
        return _clean_name(v)

    def record_legacy_booking(self, booking: Optional[LegacyRoomBooking], booked_dates: List[str]) -> None:
        """Append to the embedded mirror (older clients only)"""
        if booking is not None:
            self.bookings.append(booking)
        self.booked_dates.extend(booked_dates)
        self.updated_at = datetime.now()

    def remove_legacy_booking_dates(self, dates_to_delete: List[str]) -> None:
        """Drop mirror records checking in on one of the given days, and those days"""
        doomed = set(dates_to_delete)
        self.bookings = [
            b for b in self.bookings
            if b.check_in is None or b.check_in.date().isoformat() not in doomed
        ]
        self.booked_dates = [d for d in self.booked_dates if d not in doomed]
        self.updated_at = datetime.now()


class RoomCategory(BaseModel):
    """Room category Entity, owned by exactly one Hotel"""

    category_id: UUID = Field(default_factory=uuid4)
    name: str
    code: Optional[str] = None
    description: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    max_occupancy: Occupancy = Field(default_factory=Occupancy)
    amenities: List[str] = []
    images: List[str] = Field(default=[], max_length=MAX_IMAGES)
    room_numbers: List[Room] = []
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    @validator('name')
    def strip_name(cls, v):
        return _clean_name(v)

    def find_room(self, identifier: Any) -> Optional[Room]:
        """Locate a room by its id, falling back to its name"""
        room_id = parse_uuid(identifier)
        if room_id is not None:
            for room in self.room_numbers:
                if room.room_id == room_id:
                    return room
        for room in self.room_numbers:
            if room.name == str(identifier):
                return room
        return None

    def require_room(self, identifier: Any) -> Room:
        room = self.find_room(identifier)
        if room is None:
            raise NotFoundError("Room not found")
        return room

    def ensure_room_name_available(self, name: str, exclude_id: Optional[UUID] = None) -> None:
        name = name.strip()
        for room in self.room_numbers:
            if room.name == name and room.room_id != exclude_id:
                raise ConflictError(
                    "Room with this name already exists in this category",
                    {"category_id": str(self.category_id), "room_id": str(room.room_id), "name": name},
                )

    def add_room(self, room: Room) -> Room:
        self.ensure_room_name_available(room.name)
        self.room_numbers.append(room)
        self.updated_at = datetime.now()
        return room

    def replace_room(self, room: Room) -> None:
        self.room_numbers = [room if r.room_id == room.room_id else r for r in self.room_numbers]
        self.updated_at = datetime.now()

    def remove_room(self, room_id: UUID) -> None:
        self.room_numbers = [r for r in self.room_numbers if r.room_id != room_id]
        self.updated_at = datetime.now()


class Hotel(BaseModel):
    """Hotel Aggregate Root Entity

    Categories and rooms are embedded and only mutated through the root. The
    room counts are derived; `refresh_room_counts` must run before every save.
    """

    # Identity
    id: UUID = Field(default_factory=uuid4)
    hotel_id: int = Field(ge=1)

    # Details
    hotel_name: str
    hotel_description: str
    address: Address = Field(default_factory=Address)
    contact: Contact = Field(default_factory=Contact)
    location: Location = Field(default_factory=Location)
    amenities: List[str] = []
    images: List[str] = Field(default=[], max_length=MAX_IMAGES)
    rating: float = Field(default=0, ge=0, le=5)
    status: HotelStatus = HotelStatus.ACTIVE

    # Children
    room_categories: List[RoomCategory] = []

    # Denormalized counts
    total_rooms: int = 0
    available_rooms: int = 0

    # Metadata
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    version: int = 1

    class Config:
        from_attributes = True

    @validator('hotel_name')
    def strip_hotel_name(cls, v):
        return _clean_name(v)

    # ==================== COUNTS ====================
    def refresh_room_counts(self) -> None:
        """Recompute total/available rooms from the tree"""
        self.total_rooms, self.available_rooms = compute_room_counts(self.room_categories)

    # ==================== CATEGORY LOOKUP ====================
    def find_category(self, identifier: Any) -> Optional[RoomCategory]:
        """Locate a category by its id, falling back to its name"""
        category_id = parse_uuid(identifier)
        if category_id is not None:
            for category in self.room_categories:
                if category.category_id == category_id:
                    return category
        for category in self.room_categories:
            if category.name == str(identifier):
                return category
        return None

    def require_category(self, identifier: Any) -> RoomCategory:
        category = self.find_category(identifier)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def find_room_in_category(self, category_identifier: Any, room_identifier: Any) -> Optional[Room]:
        category = self.find_category(category_identifier)
        if category is None:
            return None
        return category.find_room(room_identifier)

    # ==================== CATEGORY MUTATION ====================
    def ensure_category_name_available(self, name: str, exclude_id: Optional[UUID] = None) -> None:
        name = name.strip()
        for category in self.room_categories:
            if category.name == name and category.category_id != exclude_id:
                raise ConflictError(
                    "Category with this name already exists in this hotel",
                    {"hotel_id": self.hotel_id, "category_id": str(category.category_id), "name": name},
                )

    def add_category(self, category: RoomCategory) -> RoomCategory:
        self.ensure_category_name_available(category.name)
        self.room_categories.append(category)
        return category

    def replace_category(self, category: RoomCategory) -> None:
        self.room_categories = [
            category if c.category_id == category.category_id else c for c in self.room_categories
        ]

    def remove_category(self, category_id: UUID) -> None:
        self.room_categories = [c for c in self.room_categories if c.category_id != category_id]

    def touch(self) -> None:
        self.updated_at = datetime.now()


class Booking(BaseModel):
    """Booking Aggregate Root Entity - the reservation ledger"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    booking_no: Optional[str] = None
    serial_no: Optional[int] = None

    # Guest
    full_name: str = Field(min_length=1)
    nid_passport: Optional[str] = None
    address: Optional[str] = None
    phone: str = Field(min_length=1)
    email: Optional[str] = None

    # Room snapshot, taken at booking time
    hotel_name: str = Field(min_length=1)
    hotel_id: int = Field(ge=1)
    room_category_id: str = Field(min_length=1)
    room_category_name: str = Field(min_length=1)
    room_number_id: str = Field(min_length=1)
    room_number_name: str = Field(min_length=1)
    room_price: Decimal = Field(ge=0)

    # Stay
    check_in_date: date
    check_out_date: date
    nights: int = Field(ge=1)
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)

    # Payment
    total_bill: Decimal = Field(ge=0)
    advance_payment: Decimal = Field(ge=0)
    due_payment: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = None
    note: Optional[str] = None
    is_kitchen: bool = False
    extra_bed: bool = False
    kitchen_total_bill: Decimal = Field(default=Decimal("0"), ge=0)
    extra_bed_total_bill: Decimal = Field(default=Decimal("0"), ge=0)

    # Linkage
    reference: Optional[str] = None
    invoice_no: Optional[str] = None

    # Status & audit
    status_id: BookingStatus = BookingStatus.CONFIRMED
    booked_by: str = Field(min_length=1)
    booked_by_id: str = Field(min_length=1)
    updated_by_id: Optional[str] = None
    canceled_by: Optional[str] = None
    reason: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(data: Dict[str, Any]) -> "Booking":
        """Create a booking, validating every field and invariant"""
        data = dict(data)
        if data.get("nights") is None:
            nights = Booking._derive_nights(data.get("check_in_date"), data.get("check_out_date"))
            if nights is not None:
                data["nights"] = nights

        try:
            booking = build(Booking, data)
        except ValidationFailure as e:
            reported = {err["field"] for err in e.errors}
            extra = [
                err for err in Booking._invariant_errors(
                    _parse_date(data.get("check_in_date")),
                    _parse_date(data.get("check_out_date")),
                    _parse_decimal(data.get("total_bill")),
                    _parse_decimal(data.get("advance_payment")),
                )
                if err["field"] not in reported
            ]
            raise ValidationFailure(e.errors + extra)
        booking._validate_invariants()
        booking.recalculate_due_payment()
        return booking

    # ==================== MODIFICATION METHODS ====================
    def apply_update(self, changes: Dict[str, Any], updated_by_id: Optional[str] = None) -> "Booking":
        """Return a re-validated copy with the changes applied"""
        merged = self.model_dump()
        merged.update(changes)
        if ("check_in_date" in changes or "check_out_date" in changes) and "nights" not in changes:
            merged["nights"] = None
        merged["updated_at"] = datetime.now()
        if updated_by_id:
            merged["updated_by_id"] = updated_by_id
        return Booking.create(merged)

    def cancel(self, canceled_by: Optional[str], reason: Optional[str]) -> None:
        """Soft delete: keep the row, drop it from conflict checks"""
        self.status_id = BookingStatus.CANCELLED
        self.canceled_by = canceled_by
        self.reason = reason
        self.updated_at = datetime.now()

    def recalculate_due_payment(self) -> None:
        self.due_payment = max(Decimal("0"), self.total_bill - self.advance_payment)

    # ==================== QUERY METHODS ====================
    def is_cancelled(self) -> bool:
        return self.status_id == BookingStatus.CANCELLED

    @property
    def stay(self) -> DateRange:
        return DateRange(check_in=self.check_in_date, check_out=self.check_out_date)

    @property
    def room_key(self) -> Tuple[int, str, str]:
        return (self.hotel_id, self.room_number_id, self.room_category_id)

    # ==================== PRIVATE VALIDATION METHODS ====================
    def _validate_invariants(self) -> None:
        errors = Booking._invariant_errors(
            self.check_in_date, self.check_out_date, self.total_bill, self.advance_payment
        )
        if errors:
            raise ValidationFailure(errors)

    @staticmethod
    def _invariant_errors(
        check_in: Optional[date],
        check_out: Optional[date],
        total_bill: Optional[Decimal],
        advance_payment: Optional[Decimal]
    ) -> List[Dict[str, str]]:
        """Cross-field rules, evaluated on whichever operands are known"""
        errors = []
        if check_in is not None and check_out is not None and check_out <= check_in:
            errors.append({"field": "check_out_date", "message": "Check-out date must be after check-in date"})
        if total_bill is not None and advance_payment is not None and advance_payment > total_bill:
            errors.append({"field": "advance_payment", "message": "Advance payment cannot exceed total bill"})
        return errors

    @staticmethod
    def _derive_nights(check_in: Any, check_out: Any) -> Optional[int]:
        start = _parse_date(check_in)
        end = _parse_date(check_out)
        if start is None or end is None:
            return None
        nights = (end - start).days
        # leave non-positive spans to the check-out invariant
        return nights if nights >= 1 else 1


class Order(BaseModel):
    """Restaurant order, present here for its order numbering"""

    order_id: UUID = Field(default_factory=uuid4)
    order_number: str
    invoice_no: Optional[str] = None
    customer_name: str = Field(min_length=1)
    customer_phone: Optional[str] = None
    table_number: Optional[str] = None
    order_type: OrderType = OrderType.DINE_IN
    items: List[str] = Field(min_length=1)
    subtotal: Decimal = Field(ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(ge=0)
    payment_status: OrderPaymentStatus = OrderPaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    notes: Optional[str] = None
    ordered_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    @staticmethod
    def calculate_total(subtotal: Decimal, tax: Decimal, discount: Decimal) -> Decimal:
        total = subtotal + tax - discount
        if total < 0:
            raise ValidationFailure.single("total", "Total amount cannot be negative")
        return total
