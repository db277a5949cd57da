# groundops_api/common/auth.py
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps

from flask import g
from flask_jwt_extended import jwt_required, get_jwt_identity

from groundops_api.common.http import fail
from groundops_api.extensions import db
from groundops_api.models.user import User


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
    is_active: bool


def _resolve_user():
    uid = get_jwt_identity()
    try:
        return db.session.get(User, int(uid)) if uid is not None else None
    except (TypeError, ValueError):
        return None


def current_principal() -> Principal:
    """Principal resolved by requires_roles / requires_login for this request."""
    return g.principal


# ---------- decorators ----------

def requires_roles(*codes: str):
    """
    Require a valid access token for an active user holding AT LEAST ONE of
    the given roles. No codes = any authenticated, active user.
    - Role is read live from the users table, not from token claims.
    - 'admin' always passes.
    """
    def outer(fn):
        @wraps(fn)
        @jwt_required()
        def inner(*args, **kwargs):
            user = _resolve_user()
            if not user:
                return fail("User not found or inactive", status=401, code="USER_NOT_FOUND")
            if not user.is_active:
                return fail("Account is inactive", status=401, code="ACCOUNT_INACTIVE")

            if codes and user.role != "admin" and user.role not in codes:
                return fail(
                    f"User role {user.role} is not authorized to access this route",
                    status=403,
                    code="FORBIDDEN",
                )

            g.principal = Principal(user_id=user.id, role=user.role, is_active=user.is_active)
            return fn(*args, **kwargs)
        return inner
    return outer


def requires_login(fn):
    return requires_roles()(fn)


admin_only = requires_roles("admin")
admin_or_government = requires_roles("admin", "government")
