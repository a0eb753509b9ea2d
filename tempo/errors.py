"""Error taxonomy shared by the services, the REST app, and the CLI."""

from __future__ import annotations

from pydantic import ValidationError


class TempoError(Exception):
    """Base class for every error surfaced to a caller."""

    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TempoError):
    """A referenced task, session, or log id does not exist."""

    http_status = 404

    def __init__(self, resource: str, resource_id: int) -> None:
        super().__init__(f"{resource} not found: id={resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class InvalidArgumentError(TempoError):
    """Malformed input: bad duration, inverted or future range, blank nickname."""

    http_status = 400


class ConflictError(TempoError):
    """The operation is not allowed in the record's current state."""

    http_status = 409


def from_validation_error(exc: ValidationError) -> InvalidArgumentError:
    """Flatten a pydantic ValidationError into a single readable message."""
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return InvalidArgumentError("; ".join(parts) or "Invalid request")
