# groundops_api/blueprints/attendance_admin.py
from __future__ import annotations

from flask import Blueprint, request

from groundops_api.blueprints.attendance import ledger, request_origin
from groundops_api.common.auth import admin_only, admin_or_government, current_principal
from groundops_api.common.errors import ValidationFailed
from groundops_api.common.http import json_body, ok
from groundops_api.common.paging import page_limit
from groundops_api.models.attendance import AttendanceRecord
from groundops_api.services.derivation import parse_date, parse_status

bp = Blueprint("attendance_admin", __name__, url_prefix="/api/v1/attendance/admin")


def _row(rec: AttendanceRecord):
    out = rec.to_dict()
    u = rec.user
    out["user"] = {
        "id": u.id,
        "username": u.username,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "designation": u.designation,
    } if u is not None else None
    return out


def _filters():
    args = request.args
    user_id = args.get("user_id")
    if user_id not in (None, ""):
        try:
            user_id = int(user_id)
        except ValueError:
            raise ValidationFailed("user_id must be an integer")
    else:
        user_id = None
    status = args.get("status")
    return {
        "user_id": user_id,
        "status": parse_status(status) if status else None,
        "start_date": parse_date(args.get("start_date"), "start_date"),
        "end_date": parse_date(args.get("end_date"), "end_date"),
    }


# ---------- routes ----------

@bp.get("")
@admin_or_government
def list_attendance():
    """
    GET /api/v1/attendance/admin?user_id=&status=&start_date=&end_date=&page=&size=&sort=

    sort: comma list of date, check_in_time, check_out_time, hours_worked,
    status, user_id, created_at; prefix '-' for descending.
    Default: -date,-check_in_time
    """
    page, size = page_limit()
    records, pagination = ledger().query(_filters(), page, size, sort=request.args.get("sort"))
    return ok({"records": [_row(r) for r in records], "pagination": pagination})


@bp.get("/<int:record_id>")
@admin_or_government
def get_attendance(record_id: int):
    return ok(_row(ledger().get(record_id)))


@bp.post("")
@admin_only
def create_attendance():
    """
    POST /api/v1/attendance/admin
    {
      "user_id": 7, "date": "2025-03-01", "status": "absent",   // required
      "check_in_time": "2025-03-01T08:00:00",                   // optional
      "check_out_time": "2025-03-01T16:30:00",                  // optional
      "notes": "..."                                            // optional
    }
    409 RECORD_EXISTS if the user already has a record for that date.
    """
    rec = ledger().admin_create(json_body(), actor=current_principal().user_id, origin=request_origin())
    return ok(_row(rec), 201, message="Attendance record created successfully")


@bp.put("/<int:record_id>")
@admin_only
def update_attendance(record_id: int):
    """Partial update; only keys present in the body are touched (null clears optional fields)."""
    rec = ledger().admin_update(
        record_id, json_body(), actor=current_principal().user_id, origin=request_origin()
    )
    return ok(_row(rec), message="Attendance record updated successfully")


@bp.delete("/<int:record_id>")
@admin_only
def delete_attendance(record_id: int):
    ledger().admin_delete(record_id, actor=current_principal().user_id, origin=request_origin())
    return ok({"deleted": True, "id": record_id}, message="Attendance record deleted successfully")
