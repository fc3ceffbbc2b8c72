"""Human-readable identifiers: booking numbers, serial numbers, order numbers, hotel ids

Each identifier is drawn from an atomic counter. The first time a counter key
is used it is seeded from a scan of existing data, so numbering continues
where data written without counters left off.
"""
import logging
import time as _time
from datetime import datetime, time, timedelta
from typing import Callable

from domain.repositories import (
    BookingRepository, HotelRepository, OrderRepository, SequenceCounterRepository
)

logger = logging.getLogger(__name__)

SERIAL_KEY = "booking:serial"
HOTEL_ID_KEY = "hotel:id"


def booking_no_prefix(moment: datetime) -> str:
    """YYMMDD"""
    return moment.strftime("%y%m%d")


def format_booking_no(prefix: str, daily_serial: int) -> str:
    # widens to 3+ digits past 99 a day instead of wrapping onto used numbers
    return f"{prefix}{daily_serial:02d}"


def parse_daily_serial(booking_no: str, prefix: str) -> int:
    suffix = booking_no[len(prefix):]
    return int(suffix) if suffix.isdigit() else 0


def format_order_number(moment: datetime, daily_count: int) -> str:
    return f"ORD-{moment.strftime('%Y%m%d')}-{daily_count:04d}"


class SequenceGenerator:
    """Generates identifiers for bookings, orders and hotels"""

    def __init__(
        self,
        counters: SequenceCounterRepository,
        booking_repo: BookingRepository,
        order_repo: OrderRepository,
        hotel_repo: HotelRepository,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.counters = counters
        self.booking_repo = booking_repo
        self.order_repo = order_repo
        self.hotel_repo = hotel_repo
        self.clock = clock

    async def next_booking_no(self) -> str:
        """YYMMDD + daily serial, e.g. 24060103"""
        prefix = booking_no_prefix(self.clock())

        async def highest_today() -> int:
            numbers = await self.booking_repo.find_booking_numbers_with_prefix(prefix)
            return max((parse_daily_serial(n, prefix) for n in numbers), default=0)

        daily_serial = await self.counters.next_value(f"booking:{prefix}", highest_today)
        return format_booking_no(prefix, daily_serial)

    async def next_serial_no(self) -> int:
        """Global serial, starting at 1"""

        async def last_serial() -> int:
            last = await self.booking_repo.find_last_inserted()
            return last.serial_no or 0 if last else 0

        return await self.counters.next_value(SERIAL_KEY, last_serial)

    async def next_order_number(self) -> str:
        """ORD-YYYYMMDD-NNNN; falls back to a timestamp suffix if counting fails"""
        now = self.clock()
        day_start = datetime.combine(now.date(), time.min)
        day_end = day_start + timedelta(days=1)
        try:
            count = await self.counters.next_value(
                f"order:{now.strftime('%Y%m%d')}",
                lambda: self.order_repo.count_created_between(day_start, day_end),
            )
        except Exception:
            logger.warning("Order counter unavailable, using timestamp suffix", exc_info=True)
            return f"ORD-{now.strftime('%Y%m%d')}-{str(int(_time.time() * 1000))[-4:]}"
        return format_order_number(now, count)

    async def next_hotel_id(self) -> int:
        return await self.counters.next_value(HOTEL_ID_KEY, self.hotel_repo.max_hotel_id)
