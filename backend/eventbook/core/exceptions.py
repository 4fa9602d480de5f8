"""
Typed failures raised by the service layer.

Every error carries the HTTP status the API maps it to, so routes never
translate errors themselves. Raw driver errors are converted to Unavailable
before they leave a service.
"""


class EventBookError(Exception):
    """Base class for all domain failures."""

    kind = "error"

    def __init__(self, message: str, status_code: int = 400) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def extra(self) -> dict:
        """Additional fields for the error response body."""
        return {}


class NotFound(EventBookError):
    kind = "not_found"

    def __init__(self, entity: str, entity_id=None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} not found", 404)

    def extra(self) -> dict:
        return {"entity": self.entity}


class ValidationFailed(EventBookError):
    kind = "validation_failed"

    def __init__(self, field: str, reason: str = "invalid value") -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}", 422)

    def extra(self) -> dict:
        return {"field": self.field}


class Conflict(EventBookError):
    kind = "conflict"

    def __init__(self, reason: str) -> None:
        super().__init__(reason, 409)


class CapacityExceeded(EventBookError):
    kind = "capacity_exceeded"

    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough seats available. Available: {available}, Requested: {requested}",
            409,
        )

    def extra(self) -> dict:
        return {"requested": self.requested, "available": self.available}


class InvalidState(EventBookError):
    kind = "invalid_state"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason, 400)


class Unavailable(EventBookError):
    """A downstream dependency is unreachable or timed out. Retryable."""

    kind = "unavailable"

    def __init__(self, dependency: str, reason: str = "") -> None:
        self.dependency = dependency
        message = f"{dependency} unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, 503)

    def extra(self) -> dict:
        return {"dependency": self.dependency}
