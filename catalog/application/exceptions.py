"""Domain errors raised by the application layer.

Transports translate these into their own not-found representation:
REST answers 404, GraphQL attaches a field error.
"""


class NotFoundError(Exception):
    """Raised when an id does not resolve to a stored entity."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(detail)
        self.detail = detail
