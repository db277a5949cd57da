from flask import Blueprint, jsonify
from sqlalchemy import text

from groundops_api.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        db.session.rollback()
        db_ok = False
    return jsonify({"success": True, "data": {"status": "ok" if db_ok else "degraded", "db": db_ok}}), 200
