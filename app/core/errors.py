"""Error kinds reported by the treasure hunt API.

Every failure the caller can act on is a subclass of ``HuntError`` with a
stable ``kind`` string. The handlers registered in ``app.main`` render them
as ``{"success": false, "error": kind, "message": ...}`` so clients can
branch on the kind instead of parsing messages.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class HuntError(Exception):
    kind = "Error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "error": self.kind, "message": self.message}


# Authentication

class AuthenticationError(HuntError):
    kind = "AuthenticationError"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class InvalidCredentials(AuthenticationError):
    kind = "InvalidCredentials"
    default_message = "Invalid username or password"


class SessionExpired(AuthenticationError):
    kind = "SessionExpired"
    default_message = "Session expired, please log in again"


class PermissionDenied(HuntError):
    kind = "PermissionDenied"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Admin access required"


# Conflicts

class ConflictError(HuntError):
    kind = "Conflict"
    status_code = status.HTTP_409_CONFLICT


class DuplicateUser(ConflictError):
    kind = "DuplicateUser"
    default_message = "Username already registered"


class AlreadyAnswered(ConflictError):
    kind = "AlreadyAnswered"
    default_message = "This question has already been answered"


class AlreadyReviewed(ConflictError):
    kind = "AlreadyReviewed"
    default_message = "This answer has already been reviewed"


class QuestionInUse(ConflictError):
    kind = "QuestionInUse"
    default_message = "Question already has submitted answers"


# Validation

class ValidationError(HuntError):
    kind = "ValidationError"
    status_code = 422
    default_message = "Invalid request"


class MissingImage(ValidationError):
    kind = "MissingImage"
    default_message = "This question requires an image upload"


class EmptyAnswer(ValidationError):
    kind = "EmptyAnswer"
    default_message = "Provide a text answer or an image"


class InvalidPoints(ValidationError):
    kind = "InvalidPoints"
    default_message = "Points must be a positive integer"


class InvalidImage(ValidationError):
    kind = "InvalidImage"
    default_message = "Only image files are allowed"


class BonusLocked(ValidationError):
    kind = "BonusLocked"
    default_message = "No bonus question unlocked yet"


class QuestionNotCurrent(ValidationError):
    kind = "QuestionNotCurrent"
    default_message = "Question is not your current question"


class NotFoundError(HuntError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InternalError(HuntError):
    kind = "InternalError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"


async def hunt_error_handler(request: Request, exc: HuntError):
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    body = ValidationError(details[0]["message"] if details else None).to_dict()
    body["details"] = details
    return JSONResponse(status_code=422, content=body)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=InternalError().to_dict())


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(HuntError, hunt_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
