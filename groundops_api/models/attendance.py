# groundops_api/models/attendance.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from groundops_api.extensions import db

STATUSES = ("present", "absent", "late")


def _num(v) -> Optional[float]:
    return float(v) if v is not None else None


def _iso(v) -> Optional[str]:
    return v.isoformat() if v is not None else None


class AttendanceRecord(db.Model):
    """
    One row per staff member per calendar day.

      NONE        -> no row for (user_id, date)
      CHECKED_IN  -> check_in_time set, check_out_time null
      CHECKED_OUT -> both set; hours_worked derived from the pair

    Admin-created rows may exist without a check-in (e.g. status='absent');
    a later self check-in fills them in.
    """

    __tablename__ = "attendance"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    date = db.Column(db.Date, nullable=False)

    check_in_time: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    check_out_time: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    hours_worked: Mapped[Optional[Decimal]] = mapped_column(db.Numeric(5, 2), nullable=True)
    status: Mapped[str] = mapped_column(db.String(10), nullable=False, default="present")

    # geo (decimal degrees), each independently nullable
    check_in_latitude: Mapped[Optional[Decimal]] = mapped_column(db.Numeric(10, 8), nullable=True)
    check_in_longitude: Mapped[Optional[Decimal]] = mapped_column(db.Numeric(11, 8), nullable=True)
    check_out_latitude: Mapped[Optional[Decimal]] = mapped_column(db.Numeric(10, 8), nullable=True)
    check_out_longitude: Mapped[Optional[Decimal]] = mapped_column(db.Numeric(11, 8), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(db.Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    user = relationship("User", lazy="joined")

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),
        CheckConstraint("status in ('present','absent','late')", name="ck_attendance_status"),
        Index("ix_attendance_date_status", "date", "status"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "date": _iso(self.date),
            "check_in_time": _iso(self.check_in_time),
            "check_out_time": _iso(self.check_out_time),
            "hours_worked": _num(self.hours_worked),
            "status": self.status,
            "check_in_latitude": _num(self.check_in_latitude),
            "check_in_longitude": _num(self.check_in_longitude),
            "check_out_latitude": _num(self.check_out_latitude),
            "check_out_longitude": _num(self.check_out_longitude),
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
