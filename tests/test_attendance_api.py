from datetime import datetime

from groundops_api.extensions import db
from groundops_api.models.audit_log import AuditLog


def _login(client, username, password="secret123"):
    rv = client.post("/api/v1/auth/login", json={"username": username, "password": password})
    assert rv.status_code == 200, rv.get_json()
    return {"Authorization": f"Bearer {rv.get_json()['data']['access']}"}


def _error_code(rv):
    return rv.get_json()["error"]["code"]


# ---------- auth ----------

def test_login_records_audit_and_last_login(client, staff):
    rv = client.post("/api/v1/auth/login", json={"username": "staff", "password": "secret123"})
    body = rv.get_json()
    assert rv.status_code == 200
    assert body["data"]["user"]["last_login"] == "2025-03-03T08:30:00"
    assert body["data"]["refresh"]

    entry = AuditLog.query.one()
    assert (entry.action, entry.entity_type, entry.entity_id) == ("LOGIN", "users", staff.id)


def test_login_failures(client, new_user):
    new_user("grounded", is_active=False)
    rv = client.post("/api/v1/auth/login", json={"username": "grounded"})
    assert rv.status_code == 400 and _error_code(rv) == "MISSING_CREDENTIALS"

    rv = client.post("/api/v1/auth/login", json={"username": "grounded", "password": "wrong"})
    assert rv.status_code == 401 and _error_code(rv) == "INVALID_CREDENTIALS"

    rv = client.post("/api/v1/auth/login", json={"username": "grounded", "password": "secret123"})
    assert rv.status_code == 401 and _error_code(rv) == "ACCOUNT_INACTIVE"
    assert AuditLog.query.count() == 0


def test_deactivated_account_is_locked_out(client, staff):
    headers = _login(client, "staff")
    staff.is_active = False
    db.session.commit()

    rv = client.get("/api/v1/attendance/today", headers=headers)
    assert rv.status_code == 401
    assert _error_code(rv) == "ACCOUNT_INACTIVE"


def test_missing_token_rejected(client):
    assert client.get("/api/v1/attendance/today").status_code == 401


def test_me_and_logout(client, staff):
    headers = _login(client, "staff")
    rv = client.get("/api/v1/auth/me", headers=headers)
    assert rv.get_json()["data"]["username"] == "staff"

    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
    assert [e.action for e in AuditLog.query.order_by(AuditLog.id)] == ["LOGIN", "LOGOUT"]


def test_refresh_issues_new_access_token(client, staff):
    rv = client.post("/api/v1/auth/login", json={"username": "staff", "password": "secret123"})
    refresh = rv.get_json()["data"]["refresh"]
    rv = client.post("/api/v1/auth/refresh", headers={"Authorization": f"Bearer {refresh}"})
    assert rv.status_code == 200
    assert rv.get_json()["data"]["access"]


# ---------- self-service ----------

def test_check_in_and_out_over_http(client, clock, staff):
    headers = _login(client, "staff")
    headers["X-Forwarded-For"] = "10.0.0.7, 172.16.0.1"
    headers["User-Agent"] = "ramp-tablet"

    assert client.get("/api/v1/attendance/today", headers=headers).get_json()["data"] is None

    rv = client.post("/api/v1/attendance/check-in", json={"latitude": 19.0896, "longitude": 72.8656}, headers=headers)
    assert rv.status_code == 200
    body = rv.get_json()
    assert body["data"]["status"] == "present"
    assert body["meta"]["message"] == "Checked in successfully"

    rv = client.post("/api/v1/attendance/check-in", headers=headers)
    assert rv.status_code == 409 and _error_code(rv) == "ALREADY_CHECKED_IN"

    clock.set(datetime(2025, 3, 3, 17, 0))
    rv = client.post("/api/v1/attendance/check-out", headers=headers)
    assert rv.status_code == 200
    assert rv.get_json()["data"]["hours_worked"] == 8.5

    rv = client.post("/api/v1/attendance/check-out", headers=headers)
    assert rv.status_code == 409 and _error_code(rv) == "ALREADY_CHECKED_OUT"

    entry = AuditLog.query.filter_by(entity_type="attendance", action="CREATE").one()
    assert entry.source_address == "10.0.0.7"
    assert entry.client_agent == "ramp-tablet"


def test_check_out_before_check_in(client, staff):
    headers = _login(client, "staff")
    rv = client.post("/api/v1/attendance/check-out", headers=headers)
    assert rv.status_code == 400
    assert _error_code(rv) == "NOT_CHECKED_IN"


def test_check_in_validation_error(client, staff):
    headers = _login(client, "staff")
    rv = client.post("/api/v1/attendance/check-in", json={"latitude": "ninety"}, headers=headers)
    assert rv.status_code == 422
    assert _error_code(rv) == "VALIDATION_ERROR"


def test_history_and_recent(client, clock, staff):
    headers = _login(client, "staff")
    for day in range(1, 13):
        clock.set(datetime(2025, 3, day, 8, 0))
        client.post("/api/v1/attendance/check-in", headers=headers)

    rv = client.get("/api/v1/attendance/history?page=2", headers=headers)
    data = rv.get_json()["data"]
    assert [r["date"] for r in data["records"]] == ["2025-03-02", "2025-03-01"]
    assert data["pagination"]["totalRecords"] == 12
    assert data["pagination"]["totalPages"] == 2

    rv = client.get("/api/v1/attendance/history?start_date=2025-03-10&end_date=2025-03-11", headers=headers)
    assert [r["date"] for r in rv.get_json()["data"]["records"]] == ["2025-03-11", "2025-03-10"]

    rv = client.get("/api/v1/attendance/history?start_date=03-10-2025", headers=headers)
    assert rv.status_code == 422

    rv = client.get("/api/v1/attendance/recent", headers=headers)
    assert len(rv.get_json()["data"]) == 10


def test_history_is_scoped_to_caller(client, staff, new_user, ledger):
    other = new_user("fueler")
    ledger.check_in(actor=other.id)
    headers = _login(client, "staff")
    rv = client.get("/api/v1/attendance/history", headers=headers)
    assert rv.get_json()["data"]["records"] == []


# ---------- admin channel ----------

def test_admin_crud(client, staff, admin):
    headers = _login(client, "admin")
    rv = client.post("/api/v1/attendance/admin", json={
        "user_id": staff.id, "date": "2025-03-01", "status": "present",
        "check_in_time": "2025-03-01T08:00:00", "check_out_time": "2025-03-01T16:30:00",
    }, headers=headers)
    assert rv.status_code == 201
    created = rv.get_json()["data"]
    assert created["hours_worked"] == 8.5
    assert created["user"]["username"] == "staff"

    rv = client.post("/api/v1/attendance/admin", json={
        "user_id": staff.id, "date": "2025-03-01", "status": "absent",
    }, headers=headers)
    assert rv.status_code == 409 and _error_code(rv) == "RECORD_EXISTS"

    rv = client.put(f"/api/v1/attendance/admin/{created['id']}", json={"status": "late"}, headers=headers)
    assert rv.status_code == 200
    assert rv.get_json()["data"]["status"] == "late"

    rv = client.get(f"/api/v1/attendance/admin/{created['id']}", headers=headers)
    assert rv.get_json()["data"]["status"] == "late"

    rv = client.delete(f"/api/v1/attendance/admin/{created['id']}", headers=headers)
    assert rv.get_json()["data"] == {"deleted": True, "id": created["id"]}

    rv = client.get(f"/api/v1/attendance/admin/{created['id']}", headers=headers)
    assert rv.status_code == 404 and _error_code(rv) == "RECORD_NOT_FOUND"


def test_admin_create_missing_fields(client, admin):
    headers = _login(client, "admin")
    rv = client.post("/api/v1/attendance/admin", json={"date": "2025-03-01"}, headers=headers)
    assert rv.status_code == 422
    assert rv.get_json()["error"]["detail"] == {"missing": ["user_id", "status"]}


def test_role_gates(client, staff, admin, government, ledger):
    ledger.check_in(actor=staff.id)
    gov = _login(client, "inspector")
    user = _login(client, "staff")

    rv = client.get("/api/v1/attendance/admin?status=present", headers=gov)
    assert rv.status_code == 200
    assert rv.get_json()["data"]["pagination"]["totalRecords"] == 1

    rv = client.post("/api/v1/attendance/admin", json={
        "user_id": staff.id, "date": "2025-03-01", "status": "absent",
    }, headers=gov)
    assert rv.status_code == 403 and _error_code(rv) == "FORBIDDEN"

    assert client.get("/api/v1/attendance/admin", headers=user).status_code == 403
    assert client.get("/api/v1/audit-logs", headers=gov).status_code == 403


def test_audit_log_listing(client, staff, admin, ledger):
    ledger.check_in(actor=staff.id)
    headers = _login(client, "admin")

    rv = client.get("/api/v1/audit-logs?action=CREATE", headers=headers)
    data = rv.get_json()["data"]
    assert data["pagination"]["totalRecords"] == 1
    assert data["records"][0]["entity_type"] == "attendance"

    rv = client.get("/api/v1/audit-logs?size=1", headers=headers)
    data = rv.get_json()["data"]
    assert data["records"][0]["action"] == "LOGIN"
    assert data["pagination"]["hasNext"] is True

    rv = client.get("/api/v1/audit-logs?action=ERASE", headers=headers)
    assert rv.status_code == 422


def test_health(client):
    rv = client.get("/health")
    assert rv.get_json()["data"] == {"status": "ok", "db": True}
