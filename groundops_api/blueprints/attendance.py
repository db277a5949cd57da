# groundops_api/blueprints/attendance.py
from __future__ import annotations

from flask import Blueprint, current_app, request

from groundops_api.common.auth import current_principal, requires_login
from groundops_api.common.http import client_origin, json_body, ok
from groundops_api.common.paging import page_limit
from groundops_api.models.attendance import AttendanceRecord
from groundops_api.services.audit_trail import RequestOrigin
from groundops_api.services.derivation import parse_date

bp = Blueprint("attendance", __name__, url_prefix="/api/v1/attendance")

HISTORY_PAGE_SIZE = 10
RECENT_LIMIT = 10


def ledger():
    return current_app.extensions["attendance_ledger"]


def request_origin() -> RequestOrigin:
    addr, agent = client_origin()
    return RequestOrigin(source_address=addr, client_agent=agent)


def _row(rec: AttendanceRecord | None):
    return rec.to_dict() if rec is not None else None


# ---------- routes ----------

@bp.get("/today")
@requires_login
def today():
    return ok(_row(ledger().get_today(current_principal().user_id)))


@bp.post("/check-in")
@requires_login
def check_in():
    """
    POST /api/v1/attendance/check-in
    { "latitude": 19.0896, "longitude": 72.8656 }   // both optional

    Timestamp is always server time. 409 ALREADY_CHECKED_IN on a second
    check-in for the same day.
    """
    data = json_body()
    rec = ledger().check_in(
        actor=current_principal().user_id,
        origin=request_origin(),
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
    )
    return ok(_row(rec), message="Checked in successfully")


@bp.post("/check-out")
@requires_login
def check_out():
    """
    POST /api/v1/attendance/check-out
    { "latitude": ..., "longitude": ... }           // both optional

    400 NOT_CHECKED_IN without a check-in today, 409 ALREADY_CHECKED_OUT when
    repeated. hours_worked is filled in on success.
    """
    data = json_body()
    rec = ledger().check_out(
        actor=current_principal().user_id,
        origin=request_origin(),
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
    )
    return ok(_row(rec), message="Checked out successfully")


@bp.get("/history")
@requires_login
def history():
    """
    GET /api/v1/attendance/history?start_date=&end_date=&page=&size=

    Own records, newest first. Date bounds are inclusive and independent.
    """
    page, size = page_limit(default_size=HISTORY_PAGE_SIZE)
    filters = {
        "user_id": current_principal().user_id,
        "start_date": parse_date(request.args.get("start_date"), "start_date"),
        "end_date": parse_date(request.args.get("end_date"), "end_date"),
    }
    records, pagination = ledger().query(filters, page, size, sort="-date")
    return ok({"records": [_row(r) for r in records], "pagination": pagination})


@bp.get("/recent")
@requires_login
def recent():
    rows = ledger().recent(current_principal().user_id, RECENT_LIMIT)
    return ok([_row(r) for r in rows])
