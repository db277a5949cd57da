from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import (
    create_access_token, create_refresh_token,
    jwt_required, get_jwt_identity
)
from groundops_api.common.auth import current_principal, requires_login
from groundops_api.common.http import client_origin, fail, json_body
from groundops_api.extensions import db
from groundops_api.models.user import User

bp = Blueprint("auth_v1", __name__, url_prefix="/api/v1/auth")


def _tokens(u: User):
    claims = {"role": u.role, "username": u.username}
    access = create_access_token(identity=str(u.id), additional_claims=claims)
    refresh = create_refresh_token(identity=str(u.id), additional_claims={"role": u.role})
    return access, refresh


def _audit(action: str, u: User, new_values=None):
    addr, agent = client_origin()
    current_app.extensions["audit_trail"].record(
        actor_user_id=u.id,
        action=action,
        entity_type="users",
        entity_id=u.id,
        old_values=None,
        new_values=new_values,
        source_address=addr,
        client_agent=agent,
    )


@bp.post("/login")
def login():
    data = json_body()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        return fail("Please provide username and password", 400, "MISSING_CREDENTIALS")

    u = User.query.filter_by(username=username).first()
    if not u or not u.check_password(password):
        current_app.logger.warning("login failed for username=%s", username)
        return fail("Invalid credentials", 401, "INVALID_CREDENTIALS")
    if not u.is_active:
        return fail("Account is inactive", 401, "ACCOUNT_INACTIVE")

    clock = current_app.extensions["clock"]
    u.last_login = clock.now()
    db.session.commit()
    _audit("LOGIN", u, {"last_login": u.last_login.isoformat()})

    access, refresh = _tokens(u)
    return jsonify({"success": True, "data": {"access": access, "refresh": refresh, "user": u.to_dict()}}), 200


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    uid = get_jwt_identity()
    u = db.session.get(User, int(uid)) if uid else None
    if not u or not u.is_active:
        return fail("Invalid refresh token", 401, "INVALID_REFRESH_TOKEN")
    access, refresh_token = _tokens(u)
    return jsonify({"success": True, "data": {"access": access, "refresh": refresh_token}}), 200


@bp.post("/logout")
@requires_login
def logout():
    # tokens are stateless; logout is recorded, not enforced
    u = db.session.get(User, current_principal().user_id)
    _audit("LOGOUT", u)
    return jsonify({"success": True, "message": "Logged out successfully"}), 200


@bp.get("/me")
@requires_login
def me():
    u = db.session.get(User, current_principal().user_id)
    return jsonify({"success": True, "data": u.to_dict()}), 200
