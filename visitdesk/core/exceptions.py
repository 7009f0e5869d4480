import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class NotFound(AppException):
    status_code = 404


class QRCodeNotFound(NotFound):
    def __init__(self, message: str = "Invalid or expired QR code."):
        super().__init__(message)


class FormNotFound(NotFound):
    def __init__(self, message: str = "Form associated with this QR code not found."):
        super().__init__(message)


class VisitNotFound(NotFound):
    def __init__(self, message: str = "Visit not found"):
        super().__init__(message)


class PremiseNotFound(NotFound):
    def __init__(self, message: str = "Premise not found"):
        super().__init__(message)


class Forbidden(AppException):
    status_code = 403


class InvalidInput(AppException):
    status_code = 400


class QRCodeInactive(InvalidInput):
    def __init__(self, message: str = "This QR code is no longer active."):
        super().__init__(message)


class FormInactive(InvalidInput):
    def __init__(self, message: str = "This form is no longer active."):
        super().__init__(message)


class Conflict(AppException):
    status_code = 409


class InvalidStateTransition(AppException):
    status_code = 400

    def __init__(self, message: str, current_status: str | None = None):
        self.current_status = current_status
        super().__init__(message)


class NotApproved(InvalidStateTransition):
    def __init__(self, current_status: str | None = None):
        super().__init__("Visitor not approved yet.", current_status=current_status)


class AlreadyCheckedOut(InvalidStateTransition):
    def __init__(self, current_status: str | None = "checked_out"):
        super().__init__("Visitor already checked out.", current_status=current_status)


class SystemFault(AppException):
    """Faults that are never caused by the caller; logged server side."""

    status_code = 500


class ConfigurationFault(SystemFault):
    pass


class IdentityResolutionError(SystemFault):
    pass


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SystemFault)
    async def _system_fault_handler(request: Request, exc: SystemFault):
        logger.error(
            "%s on %s %s request_id=%s: %s",
            exc.__class__.__name__,
            request.method,
            request.url.path,
            getattr(request.state, "request_id", "-"),
            exc.message,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message},
        )

    @app.exception_handler(AppException)
    async def _app_exception_handler(_: Request, exc: AppException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(_: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error on %s %s request_id=%s",
            request.method,
            request.url.path,
            getattr(request.state, "request_id", "-"),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error"},
        )
