import logging
from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, Depends, File, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.staticfiles import StaticFiles

from api.schemas import (
    # Hotel
    CreateHotelRequest, UpdateHotelRequest, CreateCategoryRequest, UpdateCategoryRequest,
    CreateRoomRequest, UpdateRoomRequest, UpdateRoomStatusesRequest,
    RecordRoomBookingRequest, RemoveRoomBookingDatesRequest,
    HotelResponse, HotelListResponse, CategoryResponse, RoomResponse,
    # Booking
    CreateBookingRequest, UpdateBookingRequest, CancelBookingRequest, CheckAvailabilityRequest,
    AvailabilityResponse, BookingResponse, BookingWithHotelResponse, BookingStatsResponse,
    RoomOccupancyResponse,
    # Order
    CreateOrderRequest, OrderResponse,
    # Auth
    Token, UserResponse
)
from api.dependencies import get_current_active_user, authenticate_user
from application.locks import KeyedLocks
from application.overlap_detector import OverlapDetector
from application.sequence_generator import SequenceGenerator
from application.services import BookingService, BookingWithHotel, HotelService, OrderService
from domain.auth import User
from domain.entities import Booking, Hotel, Order, RoomCategory, Room
from domain.enums import BookingStatus, HotelStatus, PaymentMethod, RoomStatus
from domain.exceptions import ConcurrentModificationError, ConflictError, NotFoundError, ValidationFailure
from infrastructure import settings
from infrastructure.image_storage import LocalImageStorage
from infrastructure.notifications import InMemoryEventBroadcaster
from infrastructure.repositories.in_memory_repositories import (
    InMemoryHotelRepository, InMemoryBookingRepository, InMemoryOrderRepository,
    InMemorySequenceCounterRepository
)
from infrastructure.security import create_access_token

settings.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hotel Inventory & Reservation API",
    description="Hotel inventory tree and reservation ledger with overlap-safe booking",
    version="1.0.0"
)

app.mount(
    settings.UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads"
)

# Initialize repositories and collaborators
hotel_repo = InMemoryHotelRepository()
booking_repo = InMemoryBookingRepository()
order_repo = InMemoryOrderRepository()
counter_repo = InMemorySequenceCounterRepository()
event_broadcaster = InMemoryEventBroadcaster(history_size=settings.EVENT_HISTORY_SIZE)
image_storage = LocalImageStorage()
sequence_generator = SequenceGenerator(counter_repo, booking_repo, order_repo, hotel_repo)
booking_locks = KeyedLocks()

# Dependency injection
def get_hotel_service() -> HotelService:
    return HotelService(hotel_repo, sequence_generator, event_broadcaster)

def get_booking_service() -> BookingService:
    return BookingService(
        booking_repo, OverlapDetector(booking_repo), sequence_generator,
        event_broadcaster, hotel_repository=hotel_repo, locks=booking_locks
    )

def get_order_service() -> OrderService:
    return OrderService(order_repo, sequence_generator)

def get_image_storage() -> LocalImageStorage:
    return image_storage

# ============================================================================
# ERROR MAPPING
# ============================================================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})

@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": exc.message, "conflict": jsonable_encoder(exc.details)})

@app.exception_handler(ConcurrentModificationError)
async def concurrent_modification_handler(request: Request, exc: ConcurrentModificationError):
    return JSONResponse(status_code=409, content={"detail": exc.message, "conflict": {}})

@app.exception_handler(ValidationFailure)
async def validation_failure_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": exc.errors})

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for item in exc.errors():
        loc = [str(part) for part in item["loc"]]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        errors.append({"field": ".".join(loc) or "body", "message": item["msg"]})
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = f"Internal server error: {exc}" if settings.DEBUG else "Internal server error"
    return JSONResponse(status_code=500, content={"detail": detail})

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {
        "values": {item.name: item.value for item in BookingStatus},
        "description": "Booking status values: CONFIRMED=1, CHECKED_IN=2, CHECKED_OUT=3, CANCELLED=255"
    }

@app.get("/api/enums/payment-method", tags=["Enum Reference"])
async def get_payment_methods():
    return {"values": [item.value for item in PaymentMethod]}

@app.get("/api/enums/room-status", tags=["Enum Reference"])
async def get_room_statuses():
    return {"values": [item.value for item in RoomStatus]}

@app.get("/api/enums/hotel-status", tags=["Enum Reference"])
async def get_hotel_statuses():
    return {"values": [item.value for item in HotelStatus]}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = authenticate_user(form_data.username, form_data.password)
    if not user:
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token = create_access_token(
        data={"sub": user.username}, expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    logger.info("Issued token for %s", user.username)
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# HOTEL ENDPOINTS
# ============================================================================

@app.post("/api/hotels", response_model=HotelResponse, status_code=201, tags=["Hotels"])
async def create_hotel(
    request: CreateHotelRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create a hotel; hotel_id is assigned sequentially"""
    hotel = await service.create_hotel(request.model_dump())
    return _hotel_to_response(hotel)

@app.get("/api/hotels", response_model=HotelListResponse, tags=["Hotels"])
async def list_hotels(
    status: Optional[HotelStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    """List hotels with filtering, search, sorting and pagination"""
    hotels, pagination = await service.list_hotels(
        status=status, search=search, page=page, limit=limit, sort_by=sort_by, sort_order=sort_order
    )
    return {"hotels": [_hotel_to_response(h) for h in hotels], "pagination": pagination}

@app.get("/api/hotels/{hotel_ref}", response_model=HotelResponse, tags=["Hotels"])
async def get_hotel(
    hotel_ref: str,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    """Get a hotel by storage id or numeric hotel_id"""
    return _hotel_to_response(await service.get_hotel(hotel_ref))

@app.put("/api/hotels/{hotel_ref}", response_model=HotelResponse, tags=["Hotels"])
async def update_hotel(
    hotel_ref: str,
    request: UpdateHotelRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    hotel = await service.update_hotel(hotel_ref, request.model_dump(exclude_unset=True))
    return _hotel_to_response(hotel)

@app.delete("/api/hotels/{hotel_ref}", tags=["Hotels"])
async def delete_hotel(
    hotel_ref: str,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    hotel = await service.delete_hotel(hotel_ref)
    return {"message": "Hotel deleted successfully", "hotel_id": hotel.hotel_id}

@app.post("/api/hotels/{hotel_ref}/images", response_model=HotelResponse, tags=["Images"])
async def upload_hotel_images(
    hotel_ref: str,
    images: List[UploadFile] = File(...),
    service: HotelService = Depends(get_hotel_service),
    storage: LocalImageStorage = Depends(get_image_storage),
    current_user: User = Depends(get_current_active_user)
):
    """Upload up to 3 images; the hotel keeps its 3 oldest"""
    stored = await storage.save(images, "hotels")
    try:
        hotel = await service.attach_hotel_images(hotel_ref, [s.url for s in stored])
    except Exception:
        storage.delete(s.path for s in stored)
        raise
    return _hotel_to_response(hotel)

# ============================================================================
# CATEGORY ENDPOINTS
# ============================================================================

@app.post("/api/hotels/{hotel_ref}/categories", response_model=CategoryResponse, status_code=201, tags=["Categories"])
async def add_category(
    hotel_ref: str,
    request: CreateCategoryRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    category = await service.add_category(hotel_ref, request.model_dump())
    return _category_to_response(category)

@app.get("/api/hotels/{hotel_ref}/categories", response_model=List[CategoryResponse], tags=["Categories"])
async def list_categories(
    hotel_ref: str,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    categories = await service.list_categories(hotel_ref)
    return [_category_to_response(c) for c in categories]

@app.put("/api/hotels/{hotel_ref}/categories/{category_ref}", response_model=CategoryResponse, tags=["Categories"])
async def update_category(
    hotel_ref: str,
    category_ref: str,
    request: UpdateCategoryRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update a category located by id or name"""
    category = await service.update_category(hotel_ref, category_ref, request.model_dump(exclude_unset=True))
    return _category_to_response(category)

@app.delete("/api/hotels/{hotel_ref}/categories/{category_ref}", tags=["Categories"])
async def delete_category(
    hotel_ref: str,
    category_ref: str,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    category = await service.remove_category(hotel_ref, category_ref)
    return {"message": "Category deleted successfully", "category_id": str(category.category_id)}

@app.post("/api/hotels/{hotel_ref}/categories/{category_ref}/images", response_model=CategoryResponse, tags=["Images"])
async def upload_category_images(
    hotel_ref: str,
    category_ref: str,
    images: List[UploadFile] = File(...),
    service: HotelService = Depends(get_hotel_service),
    storage: LocalImageStorage = Depends(get_image_storage),
    current_user: User = Depends(get_current_active_user)
):
    stored = await storage.save(images, "categories")
    try:
        category = await service.attach_category_images(hotel_ref, category_ref, [s.url for s in stored])
    except Exception:
        storage.delete(s.path for s in stored)
        raise
    return _category_to_response(category)

@app.put("/api/hotels/{hotel_ref}/categories/{category_ref}/room-status", response_model=HotelResponse, tags=["Rooms"])
async def update_room_statuses(
    hotel_ref: str,
    category_ref: str,
    request: UpdateRoomStatusesRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    """Set the status of several rooms by name; unknown names are ignored"""
    hotel = await service.update_room_statuses(
        hotel_ref, category_ref, [item.model_dump() for item in request.room_statuses]
    )
    return _hotel_to_response(hotel)

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.post("/api/hotels/{hotel_ref}/categories/{category_ref}/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def add_room(
    hotel_ref: str,
    category_ref: str,
    request: CreateRoomRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    room = await service.add_room(hotel_ref, category_ref, request.model_dump())
    return _room_to_response(room)

@app.get("/api/hotels/{hotel_ref}/categories/{category_ref}/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def list_rooms(
    hotel_ref: str,
    category_ref: str,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    rooms = await service.list_rooms(hotel_ref, category_ref)
    return [_room_to_response(r) for r in rooms]

@app.put("/api/hotels/{hotel_ref}/categories/{category_ref}/rooms/{room_ref}", response_model=RoomResponse, tags=["Rooms"])
async def update_room(
    hotel_ref: str,
    category_ref: str,
    room_ref: str,
    request: UpdateRoomRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    room = await service.update_room(hotel_ref, category_ref, room_ref, request.model_dump(exclude_unset=True))
    return _room_to_response(room)

@app.delete("/api/hotels/{hotel_ref}/categories/{category_ref}/rooms/{room_ref}", tags=["Rooms"])
async def delete_room(
    hotel_ref: str,
    category_ref: str,
    room_ref: str,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    room = await service.remove_room(hotel_ref, category_ref, room_ref)
    return {"message": "Room deleted successfully", "room_id": str(room.room_id)}

@app.post("/api/hotels/{hotel_ref}/categories/{category_ref}/rooms/{room_ref}/images", response_model=RoomResponse, tags=["Images"])
async def upload_room_images(
    hotel_ref: str,
    category_ref: str,
    room_ref: str,
    images: List[UploadFile] = File(...),
    service: HotelService = Depends(get_hotel_service),
    storage: LocalImageStorage = Depends(get_image_storage),
    current_user: User = Depends(get_current_active_user)
):
    stored = await storage.save(images, "rooms")
    try:
        room = await service.attach_room_images(hotel_ref, category_ref, room_ref, [s.url for s in stored])
    except Exception:
        storage.delete(s.path for s in stored)
        raise
    return _room_to_response(room)

# ============================================================================
# LEGACY ROOM BOOKING MIRROR
# ============================================================================

@app.put("/api/hotels/{hotel_ref}/room-bookings", response_model=RoomResponse, tags=["Legacy"], deprecated=True)
async def record_room_booking(
    hotel_ref: str,
    request: RecordRoomBookingRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    """Append to a room's embedded booking list. Not consulted for availability."""
    room = await service.record_room_booking(
        hotel_ref,
        request.category_name,
        request.room_name,
        request.booking.model_dump() if request.booking else None,
        request.booked_dates,
    )
    return _room_to_response(room)

@app.delete("/api/hotels/{hotel_ref}/room-bookings", response_model=RoomResponse, tags=["Legacy"], deprecated=True)
async def remove_room_booking_dates(
    hotel_ref: str,
    request: RemoveRoomBookingDatesRequest,
    service: HotelService = Depends(get_hotel_service),
    current_user: User = Depends(get_current_active_user)
):
    room = await service.remove_room_booking_dates(
        hotel_ref, request.category_name, request.room_name, request.dates_to_delete
    )
    return _room_to_response(room)

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Create a booking; 409 when the room is taken for any of the nights"""
    booking = await service.create_booking(request.model_dump(exclude_none=True), actor=current_user)
    return _booking_to_response(booking)

@app.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def list_bookings(
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Active bookings, newest first"""
    bookings = await service.list_bookings()
    return [_booking_to_response(b) for b in bookings]

@app.post("/api/bookings/check-availability", response_model=AvailabilityResponse, tags=["Bookings"])
async def check_availability(
    request: CheckAvailabilityRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    conflict = await service.check_availability(
        hotel_id=request.hotel_id,
        room_number_id=request.room_number_id,
        room_category_id=request.room_category_id,
        check_in=request.check_in_date,
        check_out=request.check_out_date,
        exclude_booking_id=request.exclude_booking_id
    )
    if conflict is None:
        return {"available": True, "conflict": None}
    return {"available": False, "conflict": conflict.to_details()}

@app.get("/api/bookings/stats", response_model=BookingStatsResponse, tags=["Bookings"])
async def get_booking_stats(
    hotel_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status_id: Optional[BookingStatus] = None,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Revenue and count summary; cancelled bookings count only when status_id=255"""
    stats = await service.get_booking_stats(
        hotel_id=hotel_id, start_date=start_date, end_date=end_date, status_id=status_id
    )
    return BookingStatsResponse(**stats.model_dump())

@app.get("/api/bookings/occupancy", response_model=RoomOccupancyResponse, tags=["Bookings"])
async def get_room_occupancy(
    hotel_id: int,
    room_number_id: str,
    room_category_id: str,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    booked = await service.get_room_occupancy(hotel_id, room_number_id, room_category_id)
    return {
        "hotel_id": hotel_id,
        "room_number_id": room_number_id,
        "room_category_id": room_category_id,
        "booked_dates": booked,
    }

@app.get("/api/bookings/hotel/{hotel_id}", response_model=List[BookingResponse], tags=["Bookings"])
async def list_hotel_bookings(
    hotel_id: int,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    bookings = await service.list_hotel_bookings(hotel_id)
    return [_booking_to_response(b) for b in bookings]

@app.get("/api/bookings/number/{booking_no}", response_model=List[BookingWithHotelResponse], tags=["Bookings"])
async def get_bookings_by_booking_no(
    booking_no: str,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """All rooms booked under one booking number"""
    entries = await service.get_bookings_by_booking_no(booking_no)
    return [_booking_with_hotel_to_response(e) for e in entries]

@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    return _booking_to_response(await service.get_booking(booking_id))

@app.put("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def update_booking(
    booking_id: UUID,
    request: UpdateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Update a booking; dates or room changes are re-checked for overlap"""
    booking = await service.update_booking(booking_id, request.model_dump(exclude_unset=True), actor=current_user)
    return _booking_to_response(booking)

@app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    booking = await service.cancel_booking(
        booking_id, canceled_by=request.canceled_by, reason=request.reason, actor=current_user
    )
    return _booking_to_response(booking)

@app.delete("/api/bookings/{booking_id}", tags=["Bookings"])
async def delete_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    current_user: User = Depends(get_current_active_user)
):
    """Hard delete; prefer cancel to keep history"""
    booking = await service.delete_booking(booking_id)
    return {"message": "Booking deleted successfully", "booking_no": booking.booking_no}

# ============================================================================
# ORDER ENDPOINTS
# ============================================================================

@app.post("/api/orders", response_model=OrderResponse, status_code=201, tags=["Orders"])
async def create_order(
    request: CreateOrderRequest,
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_active_user)
):
    order = await service.create_order(request.model_dump(), actor=current_user)
    return _order_to_response(order)

@app.get("/api/orders", response_model=List[OrderResponse], tags=["Orders"])
async def list_orders(
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_active_user)
):
    return [_order_to_response(o) for o in await service.list_orders()]

@app.get("/api/orders/{order_number}", response_model=OrderResponse, tags=["Orders"])
async def get_order(
    order_number: str,
    service: OrderService = Depends(get_order_service),
    current_user: User = Depends(get_current_active_user)
):
    return _order_to_response(await service.get_order(order_number))

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _room_to_response(room: Room) -> RoomResponse:
    return RoomResponse(**room.model_dump())

def _category_to_response(category: RoomCategory) -> CategoryResponse:
    return CategoryResponse(**category.model_dump())

def _hotel_to_response(hotel: Hotel) -> HotelResponse:
    return HotelResponse(**hotel.model_dump())

def _booking_to_response(booking: Booking) -> BookingResponse:
    return BookingResponse(**booking.model_dump())

def _booking_with_hotel_to_response(entry: BookingWithHotel) -> BookingWithHotelResponse:
    return BookingWithHotelResponse(
        **entry.booking.model_dump(),
        hotel_logo=entry.hotel_logo,
        hotel_images=entry.hotel_images
    )

def _order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(**order.model_dump())
