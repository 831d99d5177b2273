import uuid
from datetime import date


def build_booking_code(work_date: date) -> str:
    """Human-readable reference such as ``BK-20251120-7F3C``."""
    return f"BK-{work_date:%Y%m%d}-{uuid.uuid4().hex[:4].upper()}"
