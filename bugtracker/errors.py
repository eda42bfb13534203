# bugtracker/errors.py
import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors surfaced to clients as {"kind", "message"}."""

    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__


class Unauthenticated(DomainError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(DomainError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(DomainError):
    status_code = 404
    default_message = "Resource not found"


class ValidationError(DomainError):
    status_code = 422
    default_message = "Invalid request"


class Conflict(DomainError):
    status_code = 409
    default_message = "Resource conflict"


class AlreadyMember(Conflict):
    default_message = "User is already a member of this project"


class DuplicateEmail(Conflict):
    default_message = "Email already in use"


class DomainInvariantViolation(DomainError):
    status_code = 400


class CannotRemoveOwner(DomainInvariantViolation):
    default_message = "Cannot remove the project owner from the team"


class InvalidTarget(DomainInvariantViolation):
    default_message = "User is the project owner"


class NotAMember(DomainInvariantViolation):
    default_message = "User is not a member of this project"


# -------------------------
# Request boundary handlers
# -------------------------
async def domain_error_handler(request: Request, exc: DomainError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"kind": exc.kind, "message": exc.message},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "kind": "ValidationError",
            "message": "Request body or parameters are invalid",
            "errors": jsonable_encoder(exc.errors()),
        },
    )


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"kind": "InternalError", "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
