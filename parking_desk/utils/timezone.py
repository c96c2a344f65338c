# parking_desk/utils/timezone.py
"""
Display helpers for vehicle timestamps.
The remote API stores times in UTC; operators read them in their own zone.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from parking_desk.config import settings
from parking_desk.schemas.vehicle import VehicleRecord, VehicleStatus
from parking_desk.utils.logger import get_logger

logger = get_logger(__name__)

SORT_ORDERS = ("newest", "oldest", "longest_parked")


def _zone(tz_name: Optional[str]) -> ZoneInfo:
    name = tz_name or settings.DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"[TZ] Unknown timezone '{name}', falling back to UTC")
        return ZoneInfo("UTC")


def convert_to_utc(value: datetime, tz_name: Optional[str] = None) -> datetime:
    """Naive datetimes are read in tz_name (or the default zone)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=_zone(tz_name))
    return value.astimezone(timezone.utc)


def format_in_timezone(value: Optional[datetime], tz_name: Optional[str] = None,
                       fmt: str = "%d %b %Y, %I:%M %p") -> str:
    if value is None:
        return "-"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(_zone(tz_name)).strftime(fmt)


def parking_duration(registered_at: Optional[datetime], until: Optional[datetime] = None) -> str:
    """Human readable time parked, e.g. '2 days 3 hours' or '5 hours'."""
    if registered_at is None:
        return "-"
    start = convert_to_utc(registered_at, "UTC")
    end = convert_to_utc(until, "UTC") if until else datetime.now(timezone.utc)
    total_hours = max(int((end - start).total_seconds() // 3600), 0)
    days, hours = divmod(total_hours, 24)

    def plural(n, unit):
        return f"{n} {unit}" if n == 1 else f"{n} {unit}s"

    if days:
        return f"{plural(days, 'day')} {plural(hours, 'hour')}"
    return plural(hours, "hour")


def sort_vehicles(vehicles: Iterable[VehicleRecord], order: str = "newest") -> list[VehicleRecord]:
    """
    newest / oldest sort on registered_at.
    longest_parked keeps only parked vehicles, oldest registration first.
    Records without a registration time sort last.
    """
    if order not in SORT_ORDERS:
        raise ValueError(f"Unknown sort order '{order}'")

    vehicles = list(vehicles)
    if order == "longest_parked":
        vehicles = [v for v in vehicles if v.status == VehicleStatus.PARKED]

    dated = [v for v in vehicles if v.registered_at is not None]
    undated = [v for v in vehicles if v.registered_at is None]
    dated.sort(key=lambda v: convert_to_utc(v.registered_at, "UTC"), reverse=(order == "newest"))
    return dated + undated
