"""Exception handlers that turn domain exceptions into HTTP responses.

Every response body has the same shape:

    {"detail": <developer message>, "kind": <error kind>, "user_message": <text for the UI>}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from bandcatalog.domain.exceptions import (
    CatalogProtectedError,
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    PermissionDeniedError,
    SchemaMismatchError,
    TransientError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _error_response(exc: DomainException, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "kind": exc.kind.value,
            "user_message": exc.user_message,
        },
    )


# Hey future me, Starlette picks the handler by walking the exception's MRO, so subclasses
# (NoBandSelectedError, ListBusyError, ReorderFailedError, CascadeDeleteError) land in their
# parent's handler. Register during app setup, before the first request.
def register_exception_handlers(app: FastAPI) -> None:
    """Register one handler per error kind.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        """Bad input, nothing written: 400."""
        logger.warning(
            "Validation error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _error_response(exc, status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(EntityNotFoundException)
    async def not_found_handler(
        request: Request, exc: EntityNotFoundException
    ) -> JSONResponse:
        """Missing or not in this band: 404."""
        logger.info(
            "Entity not found at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "entity_type": exc.entity_type},
        )
        return _error_response(exc, status.HTTP_404_NOT_FOUND)

    @app.exception_handler(PermissionDeniedError)
    async def permission_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
        """Cross-band access: 403."""
        logger.warning(
            "Permission denied at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path},
        )
        return _error_response(exc, status.HTTP_403_FORBIDDEN)

    @app.exception_handler(SchemaMismatchError)
    async def schema_mismatch_handler(
        request: Request, exc: SchemaMismatchError
    ) -> JSONResponse:
        """Store lacks a capability and there was no fallback: 503."""
        logger.error(
            "Schema mismatch at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "capability": exc.capability},
        )
        return _error_response(exc, status.HTTP_503_SERVICE_UNAVAILABLE)

    @app.exception_handler(CatalogProtectedError)
    async def catalog_protected_handler(
        request: Request, exc: CatalogProtectedError
    ) -> JSONResponse:
        """Rename/delete of the catalog: 409."""
        logger.info(
            "Catalog protected at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "action": exc.action},
        )
        return _error_response(exc, status.HTTP_409_CONFLICT)

    @app.exception_handler(TransientError)
    async def transient_handler(request: Request, exc: TransientError) -> JSONResponse:
        """Network/database trouble, retry makes sense: 503."""
        logger.warning(
            "Transient error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
        return _error_response(exc, status.HTTP_503_SERVICE_UNAVAILABLE)

    @app.exception_handler(DuplicateEntityException)
    async def duplicate_handler(
        request: Request, exc: DuplicateEntityException
    ) -> JSONResponse:
        """Uniqueness conflict that wasn't resolved in the service layer: 409."""
        logger.warning(
            "Conflict at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "entity_type": exc.entity_type},
        )
        return _error_response(exc, status.HTTP_409_CONFLICT)
