"""
Domain exceptions for the viewing subsystem.

Routes translate these into HTTP responses; background jobs log them.
"""


class ViewingError(Exception):
    """Base class for viewing subsystem errors."""


class ConflictError(ViewingError):
    """The requested slot is already held by a non-cancelled viewing."""

    def __init__(self, message: str = "Time slot already booked"):
        super().__init__(message)


class ViewingNotFoundError(ViewingError):
    def __init__(self, viewing_id):
        self.viewing_id = viewing_id
        super().__init__(f"Viewing {viewing_id} not found")


class InvalidStatusTransitionError(ViewingError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot change viewing status from '{current}' to '{requested}'"
        )


class StoreUnavailableError(ViewingError):
    """The viewing store could not be reached."""


class NotificationError(ViewingError):
    """A notification could not be delivered. Never escalated past the call site."""
