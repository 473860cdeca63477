"""
Custom exceptions for OnAir operations.

Expected control flow (a conflicted anchor write, an empty lookahead queue)
is reported through return values, never through these classes.
"""


class OnAirError(Exception):
    """Base exception for all OnAir errors."""

    pass


class ValidationError(OnAirError):
    """Raised when a pure function receives invalid input."""

    pass


class EmptyCatalogError(ValidationError):
    """Raised when selection is asked to choose from no candidates."""

    pass


class ResourceError(OnAirError):
    """Raised when a resource is not available."""

    pass


class StoreUnavailableError(ResourceError):
    """Raised when the anchor store or the catalog cannot be reached.

    Always retryable: callers surface it instead of guessing a state.
    """

    retryable = True

    def __init__(self, store: str, detail: str = "") -> None:
        self.store = store
        self.detail = detail
        message = f"{store} unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)

