"""
Typed failures raised by the article store and its collaborators.

The HTTP layer maps these to status codes; anything that is not a
``StoreError`` (driver errors, timeouts) is a storage failure and is left
to propagate unchanged.
"""


class StoreError(Exception):
    """Base class for failures the store reports to its caller."""

    default_message = "store error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class NotFoundError(StoreError):
    """
    The slug or id does not resolve, or the caller does not own the row
    it tried to change. Both cases look the same to the caller.
    """

    default_message = "record not found"


class EditConflictError(StoreError):
    """The article changed since the caller read it (version mismatch)."""

    default_message = "edit conflict"


class DuplicateError(StoreError):
    """A unique constraint rejected the write."""

    default_message = "duplicate record"


class StoreValidationError(StoreError):
    """Input violates a constraint the store enforces itself."""

    default_message = "invalid input"
