# groundops_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from groundops_api.common.http import fail


class APIError(Exception):
    """Custom API Error class."""
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message, code=None, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload


class ValidationFailed(APIError):
    status_code = 422
    code = "VALIDATION_ERROR"


class Conflict(APIError):
    status_code = 409
    code = "CONFLICT"


class NotFound(APIError):
    status_code = 404
    code = "NOT_FOUND"


# ---- attendance domain ----

class AlreadyCheckedIn(Conflict):
    code = "ALREADY_CHECKED_IN"

    def __init__(self, message="You have already checked in today", **kw):
        super().__init__(message, **kw)


class AlreadyCheckedOut(Conflict):
    code = "ALREADY_CHECKED_OUT"

    def __init__(self, message="You have already checked out today", **kw):
        super().__init__(message, **kw)


class NotCheckedIn(APIError):
    status_code = 400
    code = "NOT_CHECKED_IN"

    def __init__(self, message="You must check in first", **kw):
        super().__init__(message, **kw)


class RecordExists(Conflict):
    code = "RECORD_EXISTS"

    def __init__(self, message="Attendance record already exists for this user and date", **kw):
        super().__init__(message, **kw)


class RecordNotFound(NotFound):
    code = "RECORD_NOT_FOUND"

    def __init__(self, message="Attendance record not found", **kw):
        super().__init__(message, **kw)


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _dup(e: IntegrityError):
        return fail("Duplicate or FK constraint failed", status=409, code="CONSTRAINT_ERROR")

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Internal server error", status=500, code="INTERNAL_SERVER_ERROR")
