# groundops_api/services/attendance_ledger.py
from __future__ import annotations

import logging
from datetime import date, time
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from groundops_api.common.errors import (
    AlreadyCheckedIn,
    AlreadyCheckedOut,
    NotCheckedIn,
    RecordExists,
    RecordNotFound,
    ValidationFailed,
)
from groundops_api.common.paging import apply_sort, paginate, sort_params
from groundops_api.extensions import db
from groundops_api.models.attendance import AttendanceRecord
from groundops_api.models.user import User
from groundops_api.services.audit_trail import AuditTrail, Mutation, audited, snapshot
from groundops_api.services.derivation import (
    DEFAULT_CUTOFF,
    check_time_order,
    classify_check_in,
    hours_between,
    parse_coordinates,
    parse_date,
    parse_datetime,
    parse_status,
)

log = logging.getLogger(__name__)

ENTITY = "attendance"

SORTABLE = {
    "date": AttendanceRecord.date,
    "check_in_time": AttendanceRecord.check_in_time,
    "check_out_time": AttendanceRecord.check_out_time,
    "hours_worked": AttendanceRecord.hours_worked,
    "status": AttendanceRecord.status,
    "user_id": AttendanceRecord.user_id,
    "created_at": AttendanceRecord.created_at,
}
DEFAULT_SORT = [(AttendanceRecord.date, False), (AttendanceRecord.check_in_time, False)]

# coordinate column pairs + prefix used in validation messages
_COORDS = (
    ("check_in_latitude", "check_in_longitude", "check_in_"),
    ("check_out_latitude", "check_out_longitude", "check_out_"),
)


def _dump(rec: AttendanceRecord) -> Dict[str, Any]:
    return snapshot(rec.to_dict())


class AttendanceLedger:
    """
    Per-user, per-day attendance records.

    Self-service flow is NONE -> CHECKED_IN -> CHECKED_OUT, keyed by the
    clock's current date. The admin_* operations bypass that flow but still
    validate their input and are audited like everything else.

    Duplicates are prevented by the (user_id, date) unique constraint and the
    guarded UPDATEs below, never by a read-then-write check alone.
    """

    def __init__(self, *, audit: AuditTrail, clock, cutoff: time = DEFAULT_CUTOFF):
        self.audit = audit
        self.clock = clock
        self.cutoff = cutoff

    # ---------- self-service ----------

    @audited(ENTITY)
    def check_in(self, *, actor: int, origin=None, latitude=None, longitude=None) -> Mutation:
        now = self.clock.now()
        today = now.date()
        lat, lon = parse_coordinates(latitude, longitude)
        status = classify_check_in(now, self.cutoff)

        rec = self._for_day(actor, today)
        if rec is not None:
            if rec.check_in_time is not None:
                raise AlreadyCheckedIn()
            if rec.check_out_time is not None:
                raise AlreadyCheckedOut()
            # admin placeholder (e.g. pre-marked absent): fill it in
            before = _dump(rec)
            filled = self._guarded_update(
                rec.id,
                AttendanceRecord.check_in_time.is_(None),
                check_in_time=now,
                check_in_latitude=lat,
                check_in_longitude=lon,
                status=status,
                updated_at=now,
            )
            if not filled:
                raise AlreadyCheckedIn()
            db.session.refresh(rec)
            log.info("check-in (placeholder) user=%s date=%s status=%s", actor, today, status)
            return Mutation(rec.id, before, _dump(rec), rec, action="UPDATE")

        rec = AttendanceRecord(
            user_id=actor,
            date=today,
            check_in_time=now,
            check_in_latitude=lat,
            check_in_longitude=lon,
            status=status,
            created_at=now,
            updated_at=now,
        )
        db.session.add(rec)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            # lost the race to a concurrent check-in for the same day
            if self._for_day(actor, today) is not None:
                raise AlreadyCheckedIn()
            raise
        log.info("check-in user=%s date=%s status=%s", actor, today, status)
        return Mutation(rec.id, None, _dump(rec), rec, action="CREATE")

    @audited(ENTITY, "UPDATE")
    def check_out(self, *, actor: int, origin=None, latitude=None, longitude=None) -> Mutation:
        now = self.clock.now()
        today = now.date()
        lat, lon = parse_coordinates(latitude, longitude)

        rec = self._for_day(actor, today)
        if rec is None or rec.check_in_time is None:
            raise NotCheckedIn()
        if rec.check_out_time is not None:
            raise AlreadyCheckedOut()
        check_time_order(rec.check_in_time, now)

        before = _dump(rec)
        done = self._guarded_update(
            rec.id,
            AttendanceRecord.check_out_time.is_(None),
            check_out_time=now,
            check_out_latitude=lat,
            check_out_longitude=lon,
            hours_worked=hours_between(rec.check_in_time, now),
            updated_at=now,
        )
        if not done:
            raise AlreadyCheckedOut()
        db.session.refresh(rec)
        log.info("check-out user=%s date=%s hours=%s", actor, today, rec.hours_worked)
        return Mutation(rec.id, before, _dump(rec), rec)

    # ---------- administrative channel ----------

    @audited(ENTITY, "CREATE")
    def admin_create(self, data: Dict[str, Any], *, actor: int, origin=None) -> Mutation:
        missing = [k for k in ("user_id", "date", "status") if data.get(k) in (None, "")]
        if missing:
            raise ValidationFailed("User ID, date, and status are required", payload={"missing": missing})

        user_id = self._user_id(data.get("user_id"))
        day = parse_date(data.get("date"))
        fields = self._parse_fields(data)
        check_time_order(fields.get("check_in_time"), fields.get("check_out_time"))

        now = self.clock.now()
        rec = AttendanceRecord(user_id=user_id, date=day, created_at=now, updated_at=now, **fields)
        rec.hours_worked = hours_between(rec.check_in_time, rec.check_out_time)
        db.session.add(rec)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if self._for_day(user_id, day) is not None:
                raise RecordExists()
            raise
        log.info("admin create attendance id=%s user=%s date=%s by=%s", rec.id, user_id, day, actor)
        return Mutation(rec.id, None, _dump(rec), rec)

    @audited(ENTITY, "UPDATE")
    def admin_update(self, record_id: int, data: Dict[str, Any], *, actor: int, origin=None) -> Mutation:
        rec = db.session.get(AttendanceRecord, record_id)
        if rec is None:
            raise RecordNotFound()

        fields = self._parse_fields(data)
        if "date" in data:
            day = parse_date(data.get("date"))
            if day is None:
                raise ValidationFailed("date cannot be empty")
            fields["date"] = day

        check_in = fields.get("check_in_time", rec.check_in_time)
        check_out = fields.get("check_out_time", rec.check_out_time)
        check_time_order(check_in, check_out)

        before = _dump(rec)
        for k, v in fields.items():
            setattr(rec, k, v)
        # status is taken as given; lateness is only derived at self check-in
        rec.hours_worked = hours_between(check_in, check_out)
        rec.updated_at = self.clock.now()
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            clash = self._for_day(rec.user_id, fields.get("date", rec.date))
            if clash is not None and clash.id != record_id:
                raise RecordExists()
            raise
        log.info("admin update attendance id=%s by=%s fields=%s", record_id, actor, sorted(fields))
        return Mutation(rec.id, before, _dump(rec), rec)

    @audited(ENTITY, "DELETE")
    def admin_delete(self, record_id: int, *, actor: int, origin=None) -> Mutation:
        rec = db.session.get(AttendanceRecord, record_id)
        if rec is None:
            raise RecordNotFound()
        before = _dump(rec)
        db.session.delete(rec)
        db.session.commit()
        log.info("admin delete attendance id=%s by=%s", record_id, actor)
        return Mutation(record_id, before, None, None)

    # ---------- reads ----------

    def get(self, record_id: int) -> AttendanceRecord:
        rec = db.session.get(AttendanceRecord, record_id)
        if rec is None:
            raise RecordNotFound()
        return rec

    def get_today(self, user_id: int) -> Optional[AttendanceRecord]:
        return self._for_day(user_id, self.clock.now().date())

    def recent(self, user_id: int, limit: int = 10):
        return (
            AttendanceRecord.query.filter(AttendanceRecord.user_id == user_id)
            .order_by(AttendanceRecord.date.desc())
            .limit(limit)
            .all()
        )

    def query(self, filters: Dict[str, Any] | None = None, page: int = 1, size: int = 20, sort: str | None = None):
        """
        filters: user_id, status, start_date, end_date (dates inclusive;
        either bound may be omitted). Returns (records, pagination).
        """
        f = filters or {}
        q = AttendanceRecord.query
        if f.get("user_id") is not None:
            q = q.filter(AttendanceRecord.user_id == f["user_id"])
        if f.get("status"):
            q = q.filter(AttendanceRecord.status == f["status"])
        if f.get("start_date") and f.get("end_date"):
            q = q.filter(AttendanceRecord.date.between(f["start_date"], f["end_date"]))
        elif f.get("start_date"):
            q = q.filter(AttendanceRecord.date >= f["start_date"])
        elif f.get("end_date"):
            q = q.filter(AttendanceRecord.date <= f["end_date"])

        q = apply_sort(q, sort_params(sort, SORTABLE), DEFAULT_SORT)
        return paginate(q, page, size)

    # ---------- helpers ----------

    @staticmethod
    def _for_day(user_id: int, day: date) -> Optional[AttendanceRecord]:
        return AttendanceRecord.query.filter_by(user_id=user_id, date=day).first()

    @staticmethod
    def _guarded_update(record_id: int, guard, **values) -> bool:
        """UPDATE ... WHERE id=? AND <guard>; True if the row still matched."""
        n = (
            AttendanceRecord.query
            .filter(AttendanceRecord.id == record_id, guard)
            .update(values, synchronize_session=False)
        )
        if n != 1:
            db.session.rollback()
            return False
        db.session.commit()
        return True

    @staticmethod
    def _user_id(raw) -> int:
        try:
            uid = int(raw)
        except (TypeError, ValueError):
            raise ValidationFailed("user_id must be an integer")
        if db.session.get(User, uid) is None:
            raise ValidationFailed("User not found", payload={"user_id": uid})
        return uid

    @staticmethod
    def _parse_fields(data: Dict[str, Any]) -> Dict[str, Any]:
        """Parse the optional admin-editable columns that are present in data."""
        out: Dict[str, Any] = {}
        for key in ("check_in_time", "check_out_time"):
            if key in data:
                out[key] = parse_datetime(data.get(key), key)
        if "status" in data:
            out["status"] = parse_status(data.get("status"))
        if "notes" in data:
            out["notes"] = (data.get("notes") or "").strip() or None
        for lat_key, lon_key, prefix in _COORDS:
            if lat_key in data or lon_key in data:
                lat, lon = parse_coordinates(data.get(lat_key), data.get(lon_key), prefix)
                if lat_key in data:
                    out[lat_key] = lat
                if lon_key in data:
                    out[lon_key] = lon
        return out
