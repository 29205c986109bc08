import logging
import traceback
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError

from academy import config

logger = logging.getLogger(__name__)


# ==================== ERROR TAXONOMY ====================

class AcademyError(HTTPException):
    """Base for domain errors; carries its own HTTP status"""
    http_status = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(
            status_code=self.http_status,
            detail=detail or self.default_detail,
            headers=headers
        )


class ValidationError(AcademyError):
    http_status = 400
    default_detail = "Validation failed"

    def __init__(self, detail: Optional[str] = None, errors: Optional[list] = None):
        super().__init__(detail)
        self.errors = errors or []


class Unauthenticated(AcademyError):
    http_status = 401
    default_detail = "Not authorized"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(AcademyError):
    http_status = 403
    default_detail = "Not allowed to perform this action"


class NotFound(AcademyError):
    http_status = 404
    default_detail = "Resource not found"


class AlreadyExists(AcademyError):
    http_status = 400
    default_detail = "Resource already exists"


class AlreadyEnrolled(AlreadyExists):
    default_detail = "Already enrolled in this course"


class InvalidState(AcademyError):
    http_status = 400
    default_detail = "Operation not allowed in the current state"


class PaymentFailed(AcademyError):
    http_status = 400
    default_detail = "Payment failed"


class PaymentProviderError(AcademyError):
    http_status = 502
    default_detail = "Payment provider error"


class DataIntegrity(AcademyError):
    http_status = 500
    default_detail = "Stored data is inconsistent"


# ==================== RESPONDERS ====================

def _error_body(detail, exc: Optional[BaseException] = None) -> dict:
    body = {"detail": detail}
    if exc is not None and not config.IS_PRODUCTION:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "errors": exc.errors}
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ())[1:])
        errors.append({"field": field, "message": err.get("msg")})
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=400, content={"detail": "Duplicate value"})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body("Internal server error", exc))


async def data_integrity_handler(request: Request, exc: DataIntegrity):
    logger.error("Data integrity fault on %s: %s", request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail, exc))


def register_error_handlers(app: FastAPI):
    """Attach the centralized error responders"""
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(DataIntegrity, data_integrity_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
