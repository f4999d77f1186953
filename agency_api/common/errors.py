# agency_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from agency_api.common.http import fail


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


class NotFoundError(APIError):
    status_code = 404
    code = "NOT_FOUND"


class EmployeeNotFound(NotFoundError):
    code = "EMPLOYEE_NOT_FOUND"


class NoSalaryStructure(NotFoundError):
    code = "NO_SALARY_STRUCTURE"


class AuthenticationError(APIError):
    status_code = 401
    code = "AUTHENTICATION_FAILED"


class AuthorizationError(APIError):
    status_code = 403
    code = "FORBIDDEN"


class ValidationError(APIError):
    status_code = 422
    code = "VALIDATION_ERROR"


class ComputationSkipped(Exception):
    """Payroll already exists for the period. A no-op signal, not a failure."""

    def __init__(self, employee_id, month: int, year: int):
        super().__init__(f"payroll exists for employee {employee_id} {year}-{month:02d}")
        self.employee_id = employee_id
        self.month = month
        self.year = year


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
        return fail("Internal server error", status=500)
