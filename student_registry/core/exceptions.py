# student_registry/core/exceptions.py

from enum import Enum
from typing import Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

M = TypeVar("M", bound=BaseModel)


class ErrorKind(str, Enum):
    ValidationError = "validation_error"
    InvalidCredentials = "invalid_credentials"
    InvalidOrExpiredToken = "invalid_or_expired_token"
    Unauthorized = "unauthorized"
    Forbidden = "forbidden"
    NotFound = "not_found"
    UpstreamFailure = "upstream_failure"
    RateLimited = "rate_limited"
    ServerError = "server_error"


# ------------------------------------------------------------
# BASE ERROR
# ------------------------------------------------------------
class AppError(Exception):
    """
    Base for every failure a service reports to its caller.
    The exception handlers in main.py turn these into the
    {success: false, error, message, errors} envelope.
    """

    status_code: int = 500
    kind: ErrorKind = ErrorKind.ServerError
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_payload(self) -> dict:
        payload = {
            "success": False,
            "error": self.kind.value,
            "message": self.message,
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationError(AppError):
    status_code = 400
    kind = ErrorKind.ValidationError
    default_message = "Validation error"

    @classmethod
    def from_errors(cls, errors: Iterable[dict]) -> "ValidationError":
        """Build from pydantic / FastAPI error dicts, one message per violation."""
        return cls(errors=[_describe(err) for err in errors])


# Prefix pydantic puts on ValueErrors raised by our own validators
OWN_MESSAGE_PREFIX = "Value error, "


def _describe(err: dict) -> str:
    """
    Validators in schemas/ raise complete sentences, which pass through as-is.
    Anything pydantic reports itself is prefixed with the camelCase wire name.
    """
    msg = str(err.get("msg", "Invalid value"))
    if msg.startswith(OWN_MESSAGE_PREFIX):
        return msg.removeprefix(OWN_MESSAGE_PREFIX)

    fields = [str(p) for p in err.get("loc", ()) if isinstance(p, str) and p != "body"]
    if not fields:
        return msg
    field = fields[-1]
    return f"{to_camel(field) if '_' in field else field}: {msg}"


class InvalidCredentials(AppError):
    status_code = 401
    kind = ErrorKind.InvalidCredentials
    default_message = "Invalid email or password"


class InvalidOrExpiredToken(AppError):
    status_code = 400
    kind = ErrorKind.InvalidOrExpiredToken
    default_message = "Invalid or expired reset token"


class Unauthorized(AppError):
    status_code = 401
    kind = ErrorKind.Unauthorized
    default_message = "Not authorized to access this route"


class Forbidden(AppError):
    status_code = 403
    kind = ErrorKind.Forbidden
    default_message = "Access denied"


class NotFound(AppError):
    status_code = 404
    kind = ErrorKind.NotFound
    default_message = "Resource not found"


class UpstreamFailure(AppError):
    status_code = 502
    kind = ErrorKind.UpstreamFailure
    default_message = "Upstream service failed"


def validate_input(model: Type[M], **data) -> M:
    """Instantiate `model`, reporting every violated field as one ValidationError."""
    try:
        return model(**data)
    except PydanticValidationError as exc:
        raise ValidationError.from_errors(exc.errors()) from None
