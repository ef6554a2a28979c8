"""Error taxonomy for the message board.

Every error carries a wire ``code`` and an HTTP ``status`` so the transport
can map it without inspecting the type.
"""

from typing import Optional


class BoardError(Exception):
    """Base class for board errors raised to callers."""

    code = "INTERNAL"
    status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(BoardError):
    """A user or message identifier did not resolve."""

    code = "NOT_FOUND"
    status = 404

    def __init__(self, kind: str, key: Optional[str] = None) -> None:
        super().__init__(f"{kind.capitalize()} not found")
        self.kind = kind
        self.key = key


class ValidationFailed(BoardError):
    """Mutation input rejected at the store boundary."""

    code = "VALIDATION_FAILED"
    status = 400


class InvalidRequest(BoardError):
    """Malformed or unsupported call at the RPC boundary."""

    code = "BAD_REQUEST"
    status = 400


class SubscriptionClosed(BoardError):
    """Receive attempted on a listener that has been closed."""

    code = "SUBSCRIPTION_CLOSED"
    status = 410
