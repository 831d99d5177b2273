import logging
from datetime import date, datetime
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...core.config import settings

logger = logging.getLogger(__name__)


@lru_cache()
def clinic_zone(name: str) -> Optional[ZoneInfo]:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Time zone {name!r} unavailable, using host local time")
        return None


def clinic_now() -> datetime:
    tz = clinic_zone(settings.CLINIC_TIMEZONE)
    if tz is None:
        return datetime.now()
    return datetime.now(tz)


def clinic_today() -> date:
    return clinic_now().date()


def years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return day.replace(year=day.year - years, day=28)
