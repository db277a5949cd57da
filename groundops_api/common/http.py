# groundops_api/common/http.py
from flask import jsonify, request


def ok(data=None, status=200, **meta):
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status


def fail(message="Bad Request", status=400, code=None, detail=None, errors=None):
    err = {"message": message}
    if code: err["code"] = code
    if detail: err["detail"] = detail
    if errors: err["errors"] = errors
    return jsonify({"success": False, "error": err}), status


def json_body() -> dict:
    data = request.get_json(silent=True, force=True)
    if not isinstance(data, dict):
        data = {}
    return data


def client_origin() -> tuple[str | None, str | None]:
    """(source address, user agent) of the current request."""
    addr = request.headers.get("X-Forwarded-For", "").split(",")[0].strip() or request.remote_addr
    return addr or None, request.headers.get("User-Agent")
