"""
Domain errors raised by the milestone services.

Blueprints map them to HTTP once, in their errorhandlers:

    NotFoundError    404  unknown template, override or student
    ValidationError  400  missing or malformed input, nothing written
    StorageError     500  commit rejected, session already rolled back
"""


class NotFoundError(Exception):
    """A looked-up entity does not exist (or is inactive).

    ``resource`` names the entity kind; ``resource_id`` is the key that
    failed to resolve and is quoted in the message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            label = resource
        elif isinstance(resource_id, str):
            label = f"{resource} {resource_id!r}"
        else:
            label = f"{resource} id={resource_id}"
        super().__init__(f"{label} not found")


class ValidationError(Exception):
    """Rejected input. ``details`` maps field name to problem."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class StorageError(Exception):
    """The database refused a write. Not retried."""
