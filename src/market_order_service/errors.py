"""Error taxonomy for the order and ticket engine.

Every error surfaced to callers derives from OrderingError and carries the
HTTP status the API layer answers with. Messages of client-facing errors are
returned verbatim, so they must never contain store internals.
"""


class OrderingError(Exception):
    """Base class for all errors raised by the ordering core."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(OrderingError):
    """Request is malformed (empty cart, missing identifiers, bad quantity)."""

    status_code = 400


class NotFoundError(OrderingError):
    """Vendor, menu item, order or ticket does not exist."""

    status_code = 404


class UnavailableError(OrderingError):
    """Vendor is inactive or a menu item is inactive or 86'ed."""

    status_code = 422


class ConflictError(OrderingError):
    """Illegal status transition."""

    status_code = 409


class ResourceExhaustedError(OrderingError):
    """Code allocation gave up after the bounded number of attempts."""

    status_code = 503


class InternalError(OrderingError):
    """Unexpected store or collaborator failure.

    The detailed cause is logged where it happens; the message here is
    what the caller sees.
    """

    status_code = 500


class CodeCollisionError(Exception):
    """A generated ticket or order code is already taken.

    Raised by repositories when the conditional code claim fails and consumed
    by the allocation retry loop. Never reaches API callers.
    """

    def __init__(self, code: str) -> None:
        super().__init__(f"Code {code} is already allocated")
        self.code = code
