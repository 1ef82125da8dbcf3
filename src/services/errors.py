"""Domain errors raised by settlement operations.

Calculation anomalies (missing readings, missing rate, negative consumption, no
tenants) are not errors: they are returned as warning strings next to a
best-effort result. The classes below are for writes that must not happen.
"""


class SettlementError(Exception):
    """Base settlement engine error."""

    def __init__(self, message: str, code: str):
        """Initialize error."""
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(SettlementError):
    """Entity missing, owned by someone else, or not in a usable status.

    The three causes share one message, so it never reveals whether another
    owner's settlement exists.
    """

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found")


class UnauthorizedError(SettlementError):
    """Entity exists but belongs to another owner."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, "unauthorized")


class InvalidStateError(SettlementError):
    """Entity status does not permit the operation."""

    def __init__(self, message: str = "Invalid state"):
        super().__init__(message, "invalid_state")


class ValidationError(SettlementError):
    """Caller-supplied data breaks a domain rule."""

    def __init__(self, message: str = "Validation failed"):
        super().__init__(message, "validation_error")


__all__ = [
    "InvalidStateError",
    "NotFoundError",
    "SettlementError",
    "UnauthorizedError",
    "ValidationError",
]
