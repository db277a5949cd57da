# groundops_api/services/derivation.py
"""
Derived-field rules and input parsing shared by the attendance ledger and
its blueprints.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional, Tuple

from groundops_api.common.errors import ValidationFailed
from groundops_api.models.attendance import STATUSES

DEFAULT_CUTOFF = time(9, 0)

# hours_worked is Numeric(5, 2); a single shift never spans more than a day
MAX_SHIFT_HOURS = 24
MAX_SHIFT = timedelta(hours=MAX_SHIFT_HOURS)

_TWO_PLACES = Decimal("0.01")

_DT_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
)


# ---------- derived fields ----------

def parse_cutoff(raw: Any) -> time:
    """'HH:MM' (or a time) -> time. Falls back to 09:00 on junk."""
    if isinstance(raw, time):
        return raw
    try:
        hh, mm = str(raw).strip().split(":")[:2]
        return time(int(hh), int(mm))
    except Exception:
        return DEFAULT_CUTOFF


def classify_check_in(ts: datetime, cutoff: time = DEFAULT_CUTOFF) -> str:
    # strictly after the cutoff is late; exactly on it is still present
    return "late" if ts.time() > cutoff else "present"


def hours_between(check_in: Optional[datetime], check_out: Optional[datetime]) -> Optional[Decimal]:
    if check_in is None or check_out is None:
        return None
    seconds = Decimal(str((check_out - check_in).total_seconds()))
    return (seconds / Decimal(3600)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


# ---------- input parsing ----------

def parse_date(v: Any, field: str = "date") -> Optional[date]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return datetime.strptime(str(v).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationFailed(f"{field} must be YYYY-MM-DD")


def parse_datetime(v: Any, field: str) -> Optional[datetime]:
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v
    s = str(v).strip()
    try:
        parsed = datetime.fromisoformat(s.replace(" ", "T").replace("Z", "+00:00"))
        # stored naive (server local); drop any offset the client sent
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass
    for fmt in _DT_FORMATS:
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            pass
    raise ValidationFailed(f"{field} must be an ISO datetime")


def parse_status(v: Any) -> str:
    s = str(v or "").strip().lower()
    if s not in STATUSES:
        raise ValidationFailed(f"status must be one of: {', '.join(STATUSES)}")
    return s


def _coord(v: Any, field: str, limit: int) -> Optional[Decimal]:
    if v is None or v == "":
        return None
    try:
        d = Decimal(str(v))
    except Exception:
        raise ValidationFailed(f"{field} must be numeric")
    if not d.is_finite() or abs(d) > limit:
        raise ValidationFailed(f"{field} must be within ±{limit}")
    return d


def parse_coordinates(lat: Any, lon: Any, prefix: str = "") -> Tuple[Optional[Decimal], Optional[Decimal]]:
    return _coord(lat, f"{prefix}latitude", 90), _coord(lon, f"{prefix}longitude", 180)


def check_time_order(check_in: Optional[datetime], check_out: Optional[datetime]) -> None:
    if check_out is None:
        return
    if check_in is None:
        raise ValidationFailed("check_out_time requires check_in_time")
    if check_out < check_in:
        raise ValidationFailed("check_out_time cannot be earlier than check_in_time")
    if check_out - check_in > MAX_SHIFT:
        raise ValidationFailed(f"check_out_time must be within {MAX_SHIFT_HOURS} hours of check_in_time")
