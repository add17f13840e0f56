"""Typed failures raised by the link service.

Every failure carries a stable ``code`` and the HTTP status the transport
boundary maps it to. Nothing below the boundary deals in status codes.
"""

__all__ = [
    "LinkServiceError",
    "LinkValidationError",
    "ConflictError",
    "NotFoundError",
    "GoneError",
    "UnauthenticatedError",
    "ForbiddenError",
    "ResourceExhaustedError",
]


class LinkServiceError(Exception):
    """Base class for all recoverable link service failures."""

    code = "LINK_ERROR"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class LinkValidationError(LinkServiceError):
    """Malformed input, rejected before the store is touched."""

    code = "VALIDATION_ERROR"
    http_status = 422


class ConflictError(LinkServiceError):
    """Short code already taken."""

    code = "CONFLICT"
    http_status = 409


class NotFoundError(LinkServiceError):
    code = "NOT_FOUND"
    http_status = 404


class GoneError(LinkServiceError):
    """Link exists but is inactive or expired."""

    code = "GONE"
    http_status = 410


class ForbiddenError(LinkServiceError):
    code = "FORBIDDEN"
    http_status = 403


class ResourceExhaustedError(LinkServiceError):
    """No free short code found within the retry bound."""

    code = "RESOURCE_EXHAUSTED"
    http_status = 503


class UnauthenticatedError(LinkServiceError):
    """No caller identity was supplied by the authentication layer."""

    code = "UNAUTHENTICATED"
    http_status = 401
