"""
Dimension helpers shared by the order mapper: deterministic keys,
geography tiers, price ranges, calendar attributes and the order status
catalogue.
"""

import hashlib
from datetime import datetime
from zoneinfo import ZoneInfo


def _normalize(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def stable_key(*parts) -> int:
    """
    Deterministic positive BIGINT key for a tuple of values.

    Parts are trimmed and lower-cased first, so "Hà Nội " and "hà nội"
    produce the same key.
    """
    payload = "|".join(_normalize(part) for part in parts)
    digest = hashlib.md5(payload.encode("utf-8")).hexdigest()
    return int(digest[:15], 16)


# =======================
# GEOGRAPHY
# =======================

URBAN_PROVINCES = ("Hà Nội", "Hồ Chí Minh", "Đà Nẵng", "Hải Phòng")
METRO_PROVINCES = ("Hà Nội", "Hồ Chí Minh")
UNKNOWN_PLACE = "Unknown"


def safe_place(name: str | None) -> str:
    return name.strip() if name and name.strip() else UNKNOWN_PLACE


def is_urban_province(province: str | None) -> bool:
    return province is not None and any(city in province for city in URBAN_PROVINCES)


def is_metro_province(province: str | None) -> bool:
    return province is not None and any(city in province for city in METRO_PROVINCES)


def economic_tier(province: str | None) -> str:
    if is_metro_province(province):
        return "TIER_1"
    if is_urban_province(province):
        return "TIER_2"
    return "TIER_3"


def shipping_zone(province: str | None) -> str:
    if is_metro_province(province):
        return "ZONE_1"
    if is_urban_province(province):
        return "ZONE_2"
    return "ZONE_3"


def delivery_days(province: str | None) -> int:
    if is_metro_province(province):
        return 1
    if is_urban_province(province):
        return 2
    return 3


# =======================
# PRODUCTS
# =======================

def price_range(price: float) -> str:
    if price < 100_000:
        return "UNDER_100K"
    if price < 500_000:
        return "100K_500K"
    if price < 1_000_000:
        return "500K_1M"
    return "OVER_1M"


# =======================
# CALENDAR
# =======================

def to_local(moment: datetime, zone: ZoneInfo) -> datetime:
    """Aware timestamps are converted into ``zone``; naive ones are taken as already local."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(zone).replace(tzinfo=None)


def date_key(moment: datetime) -> int:
    return int(moment.strftime("%Y%m%d"))


def is_peak_hour(moment: datetime) -> bool:
    return 10 <= moment.hour <= 14 or 18 <= moment.hour <= 22


def quarter(moment: datetime) -> int:
    return (moment.month - 1) // 3 + 1


# =======================
# ORDER STATUS CATALOGUE
# =======================

# platform numeric status -> (standard code, standard name, category)
STATUS_CATALOGUE: dict[int, tuple[str, str, str]] = {
    0: ("PENDING", "Pending", "PROCESSING"),
    1: ("CONFIRMED", "Confirmed", "PROCESSING"),
    2: ("SHIPPED", "Shipped", "FULFILLMENT"),
    3: ("DELIVERED", "Delivered", "COMPLETED"),
    4: ("RETURNING", "Returning", "RETURN"),
    5: ("RETURNED", "Returned", "RETURN"),
    6: ("CANCELLED", "Cancelled", "CANCELLED"),
    8: ("IN_TRANSIT", "In transit", "FULFILLMENT"),
}
UNKNOWN_STATUS = ("UNKNOWN", "Unknown", "UNKNOWN")


def standard_status(code: int | None) -> tuple[str, str, str]:
    if code is None:
        return UNKNOWN_STATUS
    return STATUS_CATALOGUE.get(code, UNKNOWN_STATUS)
