from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

HOUR_MULTIPLIERS: dict[int, Decimal] = {
    0: Decimal("0.3"),
    1: Decimal("0.2"),
    2: Decimal("0.1"),
    3: Decimal("0.1"),
    4: Decimal("0.1"),
    5: Decimal("0.2"),
    6: Decimal("0.4"),
    7: Decimal("0.6"),
    8: Decimal("0.8"),
    9: Decimal("1.0"),
    10: Decimal("1.1"),
    11: Decimal("1.2"),
    12: Decimal("1.0"),
    13: Decimal("0.9"),
    14: Decimal("1.1"),
    15: Decimal("1.2"),
    16: Decimal("1.1"),
    17: Decimal("1.0"),
    18: Decimal("0.9"),
    19: Decimal("0.8"),
    20: Decimal("0.7"),
    21: Decimal("0.6"),
    22: Decimal("0.5"),
    23: Decimal("0.4"),
}

# Index 0 is Sunday.
DAY_MULTIPLIERS: tuple[Decimal, ...] = (
    Decimal("0.6"),
    Decimal("1.0"),
    Decimal("1.1"),
    Decimal("1.2"),
    Decimal("1.1"),
    Decimal("1.0"),
    Decimal("0.8"),
)

PLATFORM_MULTIPLIERS: dict[str, Decimal] = {
    "META": Decimal("1.0"),
    "GOOGLE": Decimal("1.2"),
    "TIKTOK": Decimal("0.8"),
    "LINKEDIN": Decimal("0.6"),
    "YOUTUBE": Decimal("0.9"),
}

DEFAULT_PLATFORM_MULTIPLIER = Decimal("1.0")


def hour_multiplier(hour: int) -> Decimal:
    if hour not in HOUR_MULTIPLIERS:
        raise ValueError(f"hour must be within 0-23, got {hour!r}")
    return HOUR_MULTIPLIERS[hour]


def day_multiplier(weekday: int) -> Decimal:
    """Multiplier for *weekday* counted from Sunday (0) to Saturday (6)."""
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be within 0-6, got {weekday!r}")
    return DAY_MULTIPLIERS[weekday]


def platform_multiplier(platform: str) -> Decimal:
    return PLATFORM_MULTIPLIERS.get((platform or "").upper(), DEFAULT_PLATFORM_MULTIPLIER)


def sunday_based_weekday(moment: datetime) -> int:
    """``datetime.weekday()`` counts from Monday; the day table counts from Sunday."""
    return (moment.weekday() + 1) % 7


def local_time(moment: datetime, tz_name: str) -> datetime:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    if tz_name.upper() == "UTC":
        return moment.astimezone(timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))
