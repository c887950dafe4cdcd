"""Error kinds - the classification every user-facing failure is reduced to.

Hey future me - the UI never sees a raw driver or transport error. Everything that escapes a
user-facing operation is a DomainException subclass carrying one of these kinds, and the kind
picks the message the user reads. Keep this list SHORT: a new kind means a new message, a new
HTTP status mapping and a new branch in every client.

KINDS:
- VALIDATION: bad input, rejected before any write
- NOT_FOUND: list/song missing, or verified to belong to another band
- PERMISSION: cross-band or ownership violation
- SCHEMA_MISMATCH: the store lacks a capability (column, primitive) we expected
- CATALOG_PROTECTED: rename/delete of the catalog list, never allowed
- TRANSIENT: network/database hiccup, safe to retry by hand
- CONFLICT: uniqueness race, resolved internally (re-query the winner)

USAGE:
    from bandcatalog.domain.entities.error_codes import ErrorKind, get_user_message

    message = get_user_message(ErrorKind.NOT_FOUND)
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Classification of domain failures.

    StrEnum, so ErrorKind.NOT_FOUND == "not_found" and it serializes as-is in JSON bodies.
    """

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    SCHEMA_MISMATCH = "schema_mismatch"
    CATALOG_PROTECTED = "catalog_protected"
    TRANSIENT = "transient"
    CONFLICT = "conflict"


# Kinds where asking the user to "try again" makes sense.
RETRYABLE_KINDS: frozenset[str] = frozenset({ErrorKind.TRANSIENT, ErrorKind.CONFLICT})


USER_MESSAGES: dict[str, str] = {
    ErrorKind.VALIDATION: "Please check your input and try again.",
    ErrorKind.NOT_FOUND: "Setlist not found or has been deleted.",
    ErrorKind.PERMISSION: "Access denied. You may not have permission for this band.",
    ErrorKind.SCHEMA_MISMATCH: "Database schema update needed. Please contact support.",
    ErrorKind.CATALOG_PROTECTED: "The Catalog cannot be renamed or deleted.",
    ErrorKind.TRANSIENT: "Network error. Please check your connection.",
    ErrorKind.CONFLICT: "This item was changed at the same time elsewhere. Please try again.",
}


def is_retryable_error(kind: str | None) -> bool:
    """Check whether an error kind is worth a manual retry.

    Args:
        kind: Error kind string (or None)

    Returns:
        True for transient kinds, False otherwise (including None)
    """
    if kind is None:
        return False
    return kind in RETRYABLE_KINDS


def get_user_message(kind: str | None) -> str:
    """Human-readable message for an error kind.

    Unknown or missing kinds fall back to the transient message.
    """
    if kind is None:
        return USER_MESSAGES[ErrorKind.TRANSIENT]
    return USER_MESSAGES.get(kind, USER_MESSAGES[ErrorKind.TRANSIENT])
