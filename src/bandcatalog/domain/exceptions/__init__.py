"""Domain exceptions.

One class per error kind (see domain/entities/error_codes.py), plus a few transient
specializations that carry extra context for the caller.
"""

from typing import Any, ClassVar

from bandcatalog.domain.entities.error_codes import ErrorKind, get_user_message


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    kind: ClassVar[ErrorKind] = ErrorKind.TRANSIENT

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). Don't raise this directly - always pick a subclass so the kind is right.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message

    @property
    def user_message(self) -> str:
        """Message suitable for showing to an end user."""
        return get_user_message(self.kind)


class ValidationError(DomainException):
    """Input validation failed; nothing was written."""

    kind = ErrorKind.VALIDATION


class NoBandSelectedError(ValidationError):
    """Raised when an operation is attempted without a band scope."""

    def __init__(self, operation: str = "operation") -> None:
        super().__init__(f"No band selected for {operation}")
        self.operation = operation


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found (or is not in the claimed band)."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} not found")
        self.entity_type = entity_type
        self.entity_id = entity_id


class PermissionDeniedError(DomainException):
    """Cross-band access or ownership violation."""

    kind = ErrorKind.PERMISSION


class SchemaMismatchError(DomainException):
    """The backing store lacks an expected capability (column, table, primitive).

    Yo, callers that have a structural fallback catch this and switch paths. Anything without
    a fallback lets it bubble so the user gets the "schema update needed" message.
    """

    kind = ErrorKind.SCHEMA_MISMATCH

    def __init__(self, message: str, capability: str | None = None) -> None:
        super().__init__(message)
        self.capability = capability


class CatalogProtectedError(DomainException):
    """Rename or delete of the catalog list. Always rejected."""

    kind = ErrorKind.CATALOG_PROTECTED

    def __init__(self, setlist_id: str, action: str) -> None:
        super().__init__(f"Cannot {action} the catalog setlist {setlist_id}")
        self.setlist_id = setlist_id
        self.action = action


class TransientError(DomainException):
    """Generic network/database failure. The user may retry."""

    kind = ErrorKind.TRANSIENT


class ListBusyError(TransientError):
    """Another mutating operation is already running on this list."""

    def __init__(self, setlist_id: str, busy_with: str) -> None:
        super().__init__(f"Setlist {setlist_id} is busy ({busy_with})")
        self.setlist_id = setlist_id
        self.busy_with = busy_with


class ReorderFailedError(TransientError):
    """Persisting a reorder failed.

    rolled_back=True means the local order was reverted to the pre-drag snapshot;
    False means there was no snapshot and the list was reloaded from the store.
    """

    def __init__(self, setlist_id: str, rolled_back: bool, cause: str) -> None:
        super().__init__(f"Failed to save order for setlist {setlist_id}: {cause}")
        self.setlist_id = setlist_id
        self.rolled_back = rolled_back


class CascadeDeleteError(TransientError):
    """A catalog cascade delete stopped part-way.

    removed_from lists the setlists whose membership was already removed; the song record
    itself is still present (it is always deleted last).
    """

    def __init__(self, song_id: str, removed_from: list[str], cause: str) -> None:
        super().__init__(
            f"Removing song {song_id} from catalog stopped after "
            f"{len(removed_from)} list(s): {cause}"
        )
        self.song_id = song_id
        self.removed_from = removed_from


class DuplicateEntityException(DomainException):
    """Raised when a write hits a uniqueness constraint."""

    kind = ErrorKind.CONFLICT

    def __init__(self, entity_type: str, entity_id: Any) -> None:
        super().__init__(f"{entity_type} with id {entity_id} already exists")
        self.entity_type = entity_type
        self.entity_id = entity_id


EntityNotFoundError = EntityNotFoundException
DuplicateEntityError = DuplicateEntityException


__all__ = [
    "CascadeDeleteError",
    "CatalogProtectedError",
    "DomainException",
    "DuplicateEntityError",
    "DuplicateEntityException",
    "EntityNotFoundError",
    "EntityNotFoundException",
    "ErrorKind",
    "ListBusyError",
    "NoBandSelectedError",
    "PermissionDeniedError",
    "ReorderFailedError",
    "SchemaMismatchError",
    "TransientError",
    "ValidationError",
]
