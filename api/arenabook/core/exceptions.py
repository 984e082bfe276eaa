"""Infrastructure errors.

Business-rule rejections are never raised; they travel as BookingViolation
values. These exceptions mark failures a caller may retry unchanged.
"""


class StorageError(Exception):
    """The store could not be read or written."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class InvalidScheduleError(StorageError):
    """A recurring schedule holds data the generator cannot interpret."""
