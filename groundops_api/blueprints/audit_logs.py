# groundops_api/blueprints/audit_logs.py
from __future__ import annotations

from flask import Blueprint, current_app, request

from groundops_api.common.auth import admin_only
from groundops_api.common.errors import ValidationFailed
from groundops_api.common.http import ok
from groundops_api.common.paging import page_limit, paginate
from groundops_api.models.audit_log import ACTIONS
from groundops_api.services.derivation import parse_date

# read-only: the audit trail exposes no update/delete routes
bp = Blueprint("audit_logs", __name__, url_prefix="/api/v1/audit-logs")


def _int_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailed(f"{name} must be an integer")


@bp.get("")
@admin_only
def list_audit_logs():
    """
    GET /api/v1/audit-logs?user_id=&action=&entity_type=&entity_id=&start_date=&end_date=&page=&size=
    Newest first.
    """
    action = (request.args.get("action") or "").strip().upper() or None
    if action and action not in ACTIONS:
        raise ValidationFailed(f"action must be one of: {', '.join(ACTIONS)}")

    filters = {
        "user_id": _int_arg("user_id"),
        "action": action,
        "entity_type": (request.args.get("entity_type") or "").strip() or None,
        "entity_id": _int_arg("entity_id"),
        "start_date": parse_date(request.args.get("start_date"), "start_date"),
        "end_date": parse_date(request.args.get("end_date"), "end_date"),
    }
    page, size = page_limit()
    q = current_app.extensions["audit_trail"].query(filters)
    rows, pagination = paginate(q, page, size)
    return ok({"records": [r.to_dict() for r in rows], "pagination": pagination})
