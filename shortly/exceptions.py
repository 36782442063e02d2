"""Error taxonomy for Shortly.

Every error raised by the service layer derives from ``ShortlyError`` and
carries the HTTP status and machine-readable code it maps to. The handlers
registered in ``shortly.main`` render them as::

    {"status": "<code>", "message": "<human readable text>"}

``NotFoundError`` deliberately covers three cases that callers must not be
able to tell apart: the record is absent, it belongs to another user, or it
belongs to a custom domain other than the one the request arrived on.
"""

__all__ = [
    "ShortlyError",
    "ValidationError",
    "AuthenticationError",
    "NotFoundError",
    "GoneError",
    "AllocationError",
]


class ShortlyError(Exception):
    status_code: int = 500
    code: str = "error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        return {"status": self.code, "message": self.message}


class ValidationError(ShortlyError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class AuthenticationError(ShortlyError):
    status_code = 401
    code = "unauthorized"
    default_message = "Not authorized to access this resource"


class NotFoundError(ShortlyError):
    status_code = 404
    code = "not_found"
    default_message = "Link not found"


class GoneError(ShortlyError):
    status_code = 410
    code = "gone"
    default_message = "Link is no longer available"


class AllocationError(ShortlyError):
    """No free short identifier was found within the retry cap."""

    status_code = 503
    code = "allocation_failed"
    default_message = "Could not allocate a short identifier"
