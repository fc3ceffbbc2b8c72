"""Application Services - Business use cases"""
import logging
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar
from uuid import UUID

from pydantic import BaseModel

from application.locks import KeyedLocks
from application.overlap_detector import OverlapDetector
from application.sequence_generator import SequenceGenerator
from domain.auth import User
from domain.entities import (
    Hotel, RoomCategory, Room, Booking, Order, build, rebuild, merge_images, parse_uuid
)
from domain.enums import BookingStatus, RoomStatus
from domain.events import DomainEvent, EventPublisher
from domain.exceptions import ConcurrentModificationError, ConflictError, NotFoundError, ValidationFailure
from domain.overlap import ConflictSummary
from domain.repositories import BookingRepository, HotelRepository, OrderRepository
from domain.value_objects import LegacyRoomBooking
from infrastructure import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

HOTEL_READ_ONLY = {"id", "hotel_id", "room_categories", "total_rooms", "available_rooms", "version", "created_at"}
CATEGORY_READ_ONLY = {"category_id", "room_numbers", "created_at"}
ROOM_READ_ONLY = {"room_id", "bookings", "booked_dates", "created_at"}
HOTEL_SORT_FIELDS = {"created_at", "updated_at", "hotel_name", "hotel_id", "rating", "total_rooms", "available_rooms"}


def _writable(changes: Dict[str, Any], read_only: set) -> Dict[str, Any]:
    return {k: v for k, v in changes.items() if k not in read_only}


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json")


class HotelService:
    """Service for the Hotel inventory tree

    Every mutation loads the hotel, changes it through the aggregate, and
    writes it back with `_commit`. A concurrent write makes the save fail; the
    whole read-modify-write is then replayed on a fresh copy.
    """

    def __init__(
        self,
        repository: HotelRepository,
        sequences: SequenceGenerator,
        publisher: EventPublisher,
        max_retries: int = settings.HOTEL_SAVE_RETRIES
    ):
        self.repository = repository
        self.sequences = sequences
        self.publisher = publisher
        self.max_retries = max_retries

    # ==================== LOOKUP ====================
    async def resolve_hotel(self, identifier: Any) -> Hotel:
        """Find a hotel by storage UUID, falling back to the numeric hotel_id"""
        hotel = None
        storage_id = parse_uuid(identifier)
        if storage_id is not None:
            hotel = await self.repository.find_by_id(storage_id)
        if hotel is None:
            try:
                hotel_id = int(str(identifier))
            except ValueError:
                hotel_id = None
            if hotel_id is not None:
                hotel = await self.repository.find_by_hotel_id(hotel_id)
        if hotel is None:
            raise NotFoundError("Hotel not found")
        return hotel

    # ==================== HOTEL CRUD ====================
    async def create_hotel(self, data: Dict[str, Any]) -> Hotel:
        data = _writable(data, HOTEL_READ_ONLY)
        data["images"] = merge_images([], data.get("images") or [])
        # ids are drawn only for input that validates
        hotel = build(Hotel, dict(data, hotel_id=1))
        hotel.hotel_id = await self.sequences.next_hotel_id()
        hotel.refresh_room_counts()
        await self.repository.insert(hotel)

        logger.info("Created hotel %s (%s)", hotel.hotel_id, hotel.hotel_name)
        self._emit("hotel:created", hotel, hotel.id, snapshot=_dump(hotel))
        return hotel

    async def list_hotels(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> Tuple[List[Hotel], Dict[str, Any]]:
        """Filter, sort and paginate hotels; returns (page items, pagination)"""
        if sort_by not in HOTEL_SORT_FIELDS:
            raise ValidationFailure.single("sort_by", f"Cannot sort by {sort_by}")
        if page < 1 or limit < 1:
            raise ValidationFailure.single("page", "page and limit must be positive")

        hotels = await self.repository.find_all()
        if status:
            hotels = [h for h in hotels if h.status == status]
        if search:
            needle = search.lower()
            hotels = [
                h for h in hotels
                if needle in h.hotel_name.lower()
                or needle in h.hotel_description.lower()
                or needle in (h.address.city or "").lower()
            ]
        hotels.sort(key=lambda h: getattr(h, sort_by), reverse=sort_order.lower() == "desc")

        total = len(hotels)
        total_pages = (total + limit - 1) // limit
        start = (page - 1) * limit
        pagination = {
            "current_page": page,
            "total_pages": total_pages,
            "total_items": total,
            "items_per_page": limit,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        }
        return hotels[start:start + limit], pagination

    async def get_hotel(self, identifier: Any) -> Hotel:
        return await self.resolve_hotel(identifier)

    async def update_hotel(self, identifier: Any, changes: Dict[str, Any]) -> Hotel:
        changes = _writable(changes, HOTEL_READ_ONLY)

        def mutation(hotel: Hotel) -> None:
            local = dict(changes)
            if "images" in local:
                local["images"] = merge_images(hotel.images, local["images"] or [])
            updated = rebuild(hotel, local)
            for field in local:
                setattr(hotel, field, getattr(updated, field))

        hotel, _ = await self._mutate(identifier, mutation)
        logger.info("Updated hotel %s: %s", hotel.hotel_id, sorted(changes))
        self._emit("hotel:updated", hotel, hotel.id, snapshot=_dump(hotel))
        return hotel

    async def delete_hotel(self, identifier: Any) -> Hotel:
        hotel = await self.resolve_hotel(identifier)
        if not await self.repository.delete(hotel.id):
            raise NotFoundError("Hotel not found")
        logger.info("Deleted hotel %s", hotel.hotel_id)
        self._emit("hotel:deleted", hotel, hotel.id)
        return hotel

    # ==================== CATEGORIES ====================
    async def add_category(self, identifier: Any, data: Dict[str, Any]) -> RoomCategory:
        data = _writable(data, CATEGORY_READ_ONLY)
        data["images"] = merge_images([], data.get("images") or [])
        category = build(RoomCategory, data)

        def mutation(hotel: Hotel) -> RoomCategory:
            return hotel.add_category(category.model_copy(deep=True))

        hotel, added = await self._mutate(identifier, mutation)
        logger.info("Added category %s to hotel %s", added.name, hotel.hotel_id)
        self._emit("hotel:category:added", hotel, added.category_id, category=_dump(added))
        return added

    async def list_categories(self, identifier: Any) -> List[RoomCategory]:
        hotel = await self.resolve_hotel(identifier)
        return hotel.room_categories

    async def update_category(self, identifier: Any, category_ref: Any, changes: Dict[str, Any]) -> RoomCategory:
        changes = _writable(changes, CATEGORY_READ_ONLY)

        def mutation(hotel: Hotel) -> RoomCategory:
            category = hotel.require_category(category_ref)
            if changes.get("name"):
                hotel.ensure_category_name_available(changes["name"], exclude_id=category.category_id)
            local = dict(changes)
            if "images" in local:
                local["images"] = merge_images(category.images, local["images"] or [])
            updated = rebuild(category, local)
            updated.updated_at = datetime.now()
            hotel.replace_category(updated)
            return updated

        hotel, category = await self._mutate(identifier, mutation)
        logger.info("Updated category %s of hotel %s", category.name, hotel.hotel_id)
        self._emit("hotel:category:updated", hotel, category.category_id, category=_dump(category))
        return category

    async def remove_category(self, identifier: Any, category_ref: Any) -> RoomCategory:
        def mutation(hotel: Hotel) -> RoomCategory:
            category = hotel.require_category(category_ref)
            hotel.remove_category(category.category_id)
            return category

        hotel, category = await self._mutate(identifier, mutation)
        logger.info("Removed category %s from hotel %s", category.name, hotel.hotel_id)
        self._emit("hotel:category:deleted", hotel, category.category_id)
        return category

    # ==================== ROOMS ====================
    async def add_room(self, identifier: Any, category_ref: Any, data: Dict[str, Any]) -> Room:
        data = _writable(data, ROOM_READ_ONLY)
        data["images"] = merge_images([], data.get("images") or [])
        room = build(Room, data)

        def mutation(hotel: Hotel) -> Room:
            return hotel.require_category(category_ref).add_room(room.model_copy(deep=True))

        hotel, added = await self._mutate(identifier, mutation)
        logger.info("Added room %s to hotel %s", added.name, hotel.hotel_id)
        self._emit("hotel:room:added", hotel, added.room_id, category=str(category_ref), room=_dump(added))
        return added

    async def list_rooms(self, identifier: Any, category_ref: Any) -> List[Room]:
        hotel = await self.resolve_hotel(identifier)
        return hotel.require_category(category_ref).room_numbers

    async def update_room(self, identifier: Any, category_ref: Any, room_ref: Any, changes: Dict[str, Any]) -> Room:
        changes = _writable(changes, ROOM_READ_ONLY)

        def mutation(hotel: Hotel) -> Room:
            category = hotel.require_category(category_ref)
            room = category.require_room(room_ref)
            if changes.get("name"):
                category.ensure_room_name_available(changes["name"], exclude_id=room.room_id)
            local = dict(changes)
            if "images" in local:
                local["images"] = merge_images(room.images, local["images"] or [])
            updated = rebuild(room, local)
            updated.updated_at = datetime.now()
            category.replace_room(updated)
            return updated

        hotel, room = await self._mutate(identifier, mutation)
        logger.info("Updated room %s of hotel %s", room.name, hotel.hotel_id)
        self._emit("hotel:room:updated", hotel, room.room_id, category=str(category_ref), room=_dump(room))
        return room

    async def remove_room(self, identifier: Any, category_ref: Any, room_ref: Any) -> Room:
        def mutation(hotel: Hotel) -> Room:
            category = hotel.require_category(category_ref)
            room = category.require_room(room_ref)
            category.remove_room(room.room_id)
            return room

        hotel, room = await self._mutate(identifier, mutation)
        logger.info("Removed room %s from hotel %s", room.name, hotel.hotel_id)
        self._emit("hotel:room:deleted", hotel, room.room_id, category=str(category_ref))
        return room

    async def update_room_statuses(self, identifier: Any, category_ref: Any, statuses: List[Dict[str, Any]]) -> Hotel:
        """Set room statuses by room name; unknown names are skipped"""
        wanted = []
        for index, item in enumerate(statuses):
            try:
                wanted.append((str(item["name"]), RoomStatus(item["status"])))
            except (KeyError, ValueError):
                raise ValidationFailure.single(f"room_statuses.{index}", "Each entry needs a room name and a valid status")

        def mutation(hotel: Hotel) -> List[str]:
            category = hotel.require_category(category_ref)
            changed = []
            for name, status in wanted:
                room = next((r for r in category.room_numbers if r.name == name), None)
                if room is None:
                    logger.warning("No room %s in category %s of hotel %s", name, category.name, hotel.hotel_id)
                    continue
                room.status = status
                room.updated_at = datetime.now()
                changed.append(name)
            return changed

        hotel, changed = await self._mutate(identifier, mutation)
        logger.info("Updated status of %d room(s) in hotel %s", len(changed), hotel.hotel_id)
        self._emit("hotel:room:status:updated", hotel, None, category=str(category_ref), rooms=changed)
        return hotel

    # ==================== IMAGES ====================
    async def attach_hotel_images(self, identifier: Any, urls: List[str]) -> Hotel:
        def mutation(hotel: Hotel) -> None:
            hotel.images = merge_images(hotel.images, urls)

        hotel, _ = await self._mutate(identifier, mutation)
        self._emit("hotel:images:updated", hotel, hotel.id, target="hotel", images=hotel.images)
        return hotel

    async def attach_category_images(self, identifier: Any, category_ref: Any, urls: List[str]) -> RoomCategory:
        def mutation(hotel: Hotel) -> RoomCategory:
            category = hotel.require_category(category_ref)
            category.images = merge_images(category.images, urls)
            category.updated_at = datetime.now()
            return category

        hotel, category = await self._mutate(identifier, mutation)
        self._emit("hotel:images:updated", hotel, category.category_id, target="category", images=category.images)
        return category

    async def attach_room_images(self, identifier: Any, category_ref: Any, room_ref: Any, urls: List[str]) -> Room:
        def mutation(hotel: Hotel) -> Room:
            room = hotel.require_category(category_ref).require_room(room_ref)
            room.images = merge_images(room.images, urls)
            room.updated_at = datetime.now()
            return room

        hotel, room = await self._mutate(identifier, mutation)
        self._emit("hotel:images:updated", hotel, room.room_id, target="room", images=room.images)
        return room

    # ==================== LEGACY ROOM MIRROR ====================
    async def record_room_booking(
        self,
        identifier: Any,
        category_name: str,
        room_name: str,
        booking: Optional[Dict[str, Any]],
        booked_dates: List[str]
    ) -> Room:
        """Append a booking record and its days to the room's embedded mirror"""
        record = build(LegacyRoomBooking, booking) if booking else None

        def mutation(hotel: Hotel) -> Room:
            room = hotel.require_category(category_name).require_room(room_name)
            room.record_legacy_booking(record, list(booked_dates))
            return room

        hotel, room = await self._mutate(identifier, mutation)
        self._emit("hotel:room:booking:added", hotel, room.room_id, booked_dates=list(booked_dates))
        return room

    async def remove_room_booking_dates(
        self,
        identifier: Any,
        category_name: str,
        room_name: str,
        dates_to_delete: List[str]
    ) -> Room:
        def mutation(hotel: Hotel) -> Room:
            room = hotel.require_category(category_name).require_room(room_name)
            room.remove_legacy_booking_dates(dates_to_delete)
            return room

        hotel, room = await self._mutate(identifier, mutation)
        self._emit("hotel:room:booking:removed", hotel, room.room_id, dates=list(dates_to_delete))
        return room

    # ==================== WRITE PATH ====================
    async def _commit(self, hotel: Hotel) -> Hotel:
        """Recompute the derived counts and write, provided nobody wrote in between"""
        hotel.refresh_room_counts()
        hotel.touch()
        return await self.repository.save(hotel, expected_version=hotel.version)

    async def _mutate(self, identifier: Any, mutation: Callable[[Hotel], T]) -> Tuple[Hotel, T]:
        for attempt in range(1, self.max_retries + 1):
            hotel = await self.resolve_hotel(identifier)
            result = mutation(hotel)
            try:
                await self._commit(hotel)
                return hotel, result
            except ConcurrentModificationError as e:
                logger.warning("Retrying hotel write (%d/%d): %s", attempt, self.max_retries, e.message)
        raise ConflictError(
            "Hotel was modified concurrently, please retry",
            {"hotel": str(identifier), "attempts": self.max_retries},
        )

    def _emit(self, name: str, hotel: Hotel, entity_id: Any = None, **payload: Any) -> None:
        self.publisher.publish(DomainEvent(
            name=name,
            entity_id=str(entity_id) if entity_id is not None else None,
            hotel_id=hotel.hotel_id,
            payload=payload,
        ))


class BookingWithHotel(BaseModel):
    """A booking plus the hotel imagery shown on a multi-room stay"""
    booking: Booking
    hotel_logo: Optional[str] = None
    hotel_images: List[str] = []


class BookingStats(BaseModel):
    total_bookings: int = 0
    total_revenue: Decimal = Decimal("0")
    total_advance_payment: Decimal = Decimal("0")
    total_due_payment: Decimal = Decimal("0")
    average_bill: Decimal = Decimal("0")
    today_bookings: int = 0
    today_revenue: Decimal = Decimal("0")
    status_breakdown: Dict[int, int] = {}


def _round_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class BookingService:
    """Service for the reservation ledger"""

    LINKAGE_FIELDS = ("hotel_id", "room_number_id", "room_category_id", "check_in_date", "check_out_date")
    READ_ONLY = {"booking_id", "booking_no", "serial_no", "created_at", "due_payment"}
    ROOM_FIELDS = ("hotel_id", "room_number_id", "room_category_id")

    def __init__(
        self,
        repository: BookingRepository,
        detector: OverlapDetector,
        sequences: SequenceGenerator,
        publisher: EventPublisher,
        hotel_repository: Optional[HotelRepository] = None,
        locks: Optional[KeyedLocks] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.repository = repository
        self.detector = detector
        self.sequences = sequences
        self.publisher = publisher
        self.hotel_repository = hotel_repository
        self.locks = locks or KeyedLocks()
        self.clock = clock

    # ==================== WRITES ====================
    async def create_booking(self, data: Dict[str, Any], actor: Optional[User] = None) -> Booking:
        """Validate, check the room is free, number and insert a booking"""
        missing = [f for f in self.LINKAGE_FIELDS if data.get(f) in (None, "")]
        if missing:
            raise ValidationFailure([
                {"field": f, "message": f"{f} is required to check for conflicts"} for f in missing
            ])

        data = _writable(data, self.READ_ONLY)
        if actor is not None:
            data["booked_by"] = data.get("booked_by") or actor.display_name
            data["booked_by_id"] = data.get("booked_by_id") or str(actor.user_id)
        booking = Booking.create(data)

        async with self.locks.hold(booking.room_key):
            await self.detector.ensure_available(booking)
            booking.booking_no = await self._booking_no_for(booking.reference)
            booking.serial_no = await self.sequences.next_serial_no()
            await self.repository.insert(booking)

        logger.info(
            "Booked %s/%s of hotel %s for %s..%s (booking %s, serial %s)",
            booking.room_category_name, booking.room_number_name, booking.hotel_id,
            booking.check_in_date, booking.check_out_date, booking.booking_no, booking.serial_no,
        )
        self._emit("hotel:booking:created", booking)
        return booking

    async def update_booking(self, booking_id: UUID, data: Dict[str, Any], actor: Optional[User] = None) -> Booking:
        existing = await self._require(booking_id)
        changes = _writable(data, self.READ_ONLY)
        updated = existing.apply_update(changes, updated_by_id=str(actor.user_id) if actor else None)

        moved = any(
            f in changes and changes[f] is not None
            for f in self.ROOM_FIELDS + ("check_in_date", "check_out_date")
        )
        reactivated = existing.is_cancelled() and not updated.is_cancelled()
        if (moved or reactivated) and not updated.is_cancelled():
            async with self.locks.hold(existing.room_key, updated.room_key):
                await self.detector.ensure_available(updated, exclude_booking_id=existing.booking_id)
                await self.repository.update(updated)
        else:
            await self.repository.update(updated)

        logger.info("Updated booking %s: %s", updated.booking_no, sorted(changes))
        self._emit("hotel:booking:updated", updated)
        return updated

    async def cancel_booking(
        self,
        booking_id: UUID,
        canceled_by: Optional[str] = None,
        reason: Optional[str] = None,
        actor: Optional[User] = None
    ) -> Booking:
        """Soft delete: the booking stays in the ledger with status 255"""
        booking = await self._require(booking_id)
        if canceled_by is None and actor is not None:
            canceled_by = actor.display_name
        booking.cancel(canceled_by, reason)
        if actor is not None:
            booking.updated_by_id = str(actor.user_id)
        await self.repository.update(booking)

        logger.info("Cancelled booking %s (%s)", booking.booking_no, reason or "no reason given")
        self._emit("hotel:booking:cancelled", booking)
        return booking

    async def delete_booking(self, booking_id: UUID) -> Booking:
        booking = await self._require(booking_id)
        await self.repository.delete(booking_id)
        logger.info("Deleted booking %s", booking.booking_no)
        self._emit("hotel:booking:deleted", booking)
        return booking

    # ==================== READS ====================
    async def get_booking(self, booking_id: UUID) -> Booking:
        return await self._require(booking_id)

    async def list_bookings(self) -> List[Booking]:
        """Active bookings, newest first"""
        return await self.repository.find_matching()

    async def list_hotel_bookings(self, hotel_id: int) -> List[Booking]:
        bookings = await self.repository.find_matching(hotel_id=hotel_id)
        if not bookings:
            raise NotFoundError("No bookings found for this hotel")
        return bookings

    async def get_bookings_by_booking_no(self, booking_no: str) -> List[BookingWithHotel]:
        """Every room of a multi-room stay, with its hotel's logo and images"""
        bookings = await self.repository.find_by_booking_no(booking_no)
        if not bookings:
            raise NotFoundError("No bookings found with this booking number")

        hotels: Dict[int, Hotel] = {}
        if self.hotel_repository is not None:
            found = await self.hotel_repository.find_by_hotel_ids(sorted({b.hotel_id for b in bookings}))
            hotels = {h.hotel_id: h for h in found}

        results = []
        for booking in bookings:
            hotel = hotels.get(booking.hotel_id)
            images = list(hotel.images) if hotel else []
            results.append(BookingWithHotel(
                booking=booking,
                hotel_logo=images[0] if images else None,
                hotel_images=images,
            ))
        return results

    async def check_availability(
        self,
        hotel_id: int,
        room_number_id: str,
        room_category_id: str,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[UUID] = None
    ) -> Optional[ConflictSummary]:
        """None when the room is free, else the colliding booking"""
        return await self.detector.find_conflict(
            hotel_id, room_number_id, room_category_id, check_in, check_out, exclude_booking_id
        )

    async def get_room_occupancy(self, hotel_id: int, room_number_id: str, room_category_id: str) -> List[date]:
        """Booked nights of a room, derived from active ledger entries"""
        bookings = await self.repository.find_active_for_room(hotel_id, room_number_id, room_category_id)
        nights = set()
        for booking in bookings:
            nights.update(booking.stay.days())
        return sorted(nights)

    async def get_booking_stats(
        self,
        hotel_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status_id: Optional[BookingStatus] = None
    ) -> BookingStats:
        bookings = await self.repository.find_matching(
            hotel_id=hotel_id,
            status_id=status_id,
            created_from=datetime.combine(start_date, time.min) if start_date else None,
            created_to=datetime.combine(end_date, time.max) if end_date else None,
        )

        stats = BookingStats(total_bookings=len(bookings))
        today = self.clock().date()
        breakdown: Dict[int, int] = {}
        for booking in bookings:
            stats.total_revenue += booking.total_bill
            stats.total_advance_payment += booking.advance_payment
            stats.total_due_payment += booking.due_payment
            if booking.created_at.date() == today:
                stats.today_bookings += 1
                stats.today_revenue += booking.total_bill
            status = int(booking.status_id)
            breakdown[status] = breakdown.get(status, 0) + 1

        if bookings:
            stats.average_bill = stats.total_revenue / len(bookings)
        stats.total_revenue = _round_money(stats.total_revenue)
        stats.total_advance_payment = _round_money(stats.total_advance_payment)
        stats.total_due_payment = _round_money(stats.total_due_payment)
        stats.average_bill = _round_money(stats.average_bill)
        stats.today_revenue = _round_money(stats.today_revenue)
        stats.status_breakdown = breakdown
        return stats

    # ==================== HELPERS ====================
    async def _require(self, booking_id: UUID) -> Booking:
        booking = await self.repository.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def _booking_no_for(self, reference: Optional[str]) -> str:
        """Share the referenced booking's number, or draw a new one"""
        if reference:
            if await self.repository.find_by_booking_no(reference):
                return reference
            logger.info("Reference %s matches no booking, issuing a new number", reference)
        return await self.sequences.next_booking_no()

    def _emit(self, name: str, booking: Booking) -> None:
        self.publisher.publish(DomainEvent(
            name=name,
            entity_id=str(booking.booking_id),
            hotel_id=booking.hotel_id,
            payload={"booking": _dump(booking)},
        ))


class OrderService:
    """Service for restaurant orders"""

    def __init__(self, repository: OrderRepository, sequences: SequenceGenerator):
        self.repository = repository
        self.sequences = sequences

    async def create_order(self, data: Dict[str, Any], actor: Optional[User] = None) -> Order:
        data = dict(data)
        errors = []
        if not (data.get("customer_name") or "").strip():
            errors.append({"field": "customer_name", "message": "Customer name is required"})
        if not data.get("items"):
            errors.append({"field": "items", "message": "Order must contain at least one item"})
        if errors:
            raise ValidationFailure(errors)

        subtotal = Decimal(str(data.get("subtotal") or 0))
        tax = Decimal(str(data.get("tax") or 0))
        discount = Decimal(str(data.get("discount") or 0))
        data["total"] = Order.calculate_total(subtotal, tax, discount)
        if actor is not None:
            data.setdefault("ordered_by", actor.display_name)
        data["order_number"] = await self.sequences.next_order_number()

        order = build(Order, data)
        await self.repository.insert(order)
        logger.info("Created order %s (%d item(s))", order.order_number, len(order.items))
        return order

    async def get_order(self, order_number: str) -> Order:
        order = await self.repository.find_by_number(order_number)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def list_orders(self) -> List[Order]:
        return await self.repository.find_all()
