"""Dependency injection for API endpoints.

Services are built once in the lifespan (see main.py) and hung on app.state; the helpers below
hand them to endpoints.
"""

from typing import Any, cast

from fastapi import HTTPException, Request

from bandcatalog.application.services.bulk_import import BulkImportEngine
from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogInvariantManager,
)
from bandcatalog.application.services.list_membership_service import (
    ListMembershipService,
)
from bandcatalog.application.services.setlist_service import SetlistService
from bandcatalog.application.services.song_metadata_service import SongMetadataService
from bandcatalog.infrastructure.persistence.database import Database


# Hey future me, a missing attribute means the lifespan didn't run or crashed halfway. That's
# "server not ready" (503), not a bug in the request.
def _from_state(request: Request, name: str) -> Any:
    if not hasattr(request.app.state, name):
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return getattr(request.app.state, name)


def get_database(request: Request) -> Database:
    """Database from app state."""
    return cast(Database, _from_state(request, "db"))


def get_catalog_manager(request: Request) -> CatalogInvariantManager:
    """Catalog invariant manager from app state."""
    return cast(CatalogInvariantManager, _from_state(request, "catalog_manager"))


def get_setlist_service(request: Request) -> SetlistService:
    """Setlist service from app state."""
    return cast(SetlistService, _from_state(request, "setlist_service"))


def get_membership_service(request: Request) -> ListMembershipService:
    """List membership service from app state."""
    return cast(ListMembershipService, _from_state(request, "membership_service"))


def get_metadata_service(request: Request) -> SongMetadataService:
    """Song metadata service from app state."""
    return cast(SongMetadataService, _from_state(request, "metadata_service"))


def get_bulk_import_engine(request: Request) -> BulkImportEngine:
    """Bulk import engine from app state."""
    return cast(BulkImportEngine, _from_state(request, "bulk_import"))
