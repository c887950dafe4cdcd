"""Application lifecycle: wiring at startup, cleanup at shutdown."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from bandcatalog.application.services.bulk_import import BulkImportEngine
from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogInvariantManager,
)
from bandcatalog.application.services.list_membership_service import (
    ListMembershipService,
)
from bandcatalog.application.services.metadata_broadcast import MetadataBroadcast
from bandcatalog.application.services.setlist_service import SetlistService
from bandcatalog.application.services.song_metadata_service import SongMetadataService
from bandcatalog.application.services.song_registry import SongRegistry
from bandcatalog.application.services.sort_policy import SortPolicy
from bandcatalog.application.services.tempo_enrichment import TempoEnrichmentService
from bandcatalog.config import Settings, get_settings
from bandcatalog.infrastructure.integrations.tempo_client import TempoClient
from bandcatalog.infrastructure.observability import configure_logging
from bandcatalog.infrastructure.persistence import Database, SqlAlchemyRemoteStore

logger = logging.getLogger(__name__)


def wire_services(app: FastAPI, settings: Settings, db: Database) -> None:
    """Build the service graph and hang it on app.state."""
    store = SqlAlchemyRemoteStore(db, atomic_reposition=settings.database.atomic_reposition)
    broadcast = MetadataBroadcast()
    tempo_lookup = TempoClient(settings.tempo) if settings.tempo.enabled else None
    enrichment = TempoEnrichmentService(store, tempo_lookup, broadcast, settings.tempo)
    registry = SongRegistry(store, enrichment=enrichment, broadcast=broadcast)
    catalog_manager = CatalogInvariantManager(store, settings.catalog)
    membership_service = ListMembershipService(
        store, catalog_manager, registry, broadcast=broadcast
    )
    sort_policy = SortPolicy()

    app.state.store = store
    app.state.broadcast = broadcast
    app.state.tempo_enrichment = enrichment
    app.state.song_registry = registry
    app.state.catalog_manager = catalog_manager
    app.state.membership_service = membership_service
    app.state.sort_policy = sort_policy
    app.state.setlist_service = SetlistService(store, catalog_manager, sort_policy)
    app.state.metadata_service = SongMetadataService(store, settings.metadata, broadcast)
    app.state.bulk_import = BulkImportEngine(
        store, catalog_manager, registry, membership_service, settings.bulk_import
    )


# Listen future me, everything before `yield` runs at STARTUP, everything after at SHUTDOWN.
# The try/finally makes sure the tempo client and the DB engine are closed even when startup
# blows up halfway. Settings come from app.state when create_app() was handed some (tests).
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)

    db: Database | None = None
    try:
        db = Database(settings.database)
        app.state.db = db
        if settings.database.auto_create_tables:
            await db.create_tables()
        logger.info("Database initialized: %s", settings.database.url)

        wire_services(app, settings, db)
        logger.info(
            "Services ready",
            extra={"tempo_enrichment": app.state.tempo_enrichment.enabled},
        )

        yield
    finally:
        logger.info("Shutting down application")
        enrichment = getattr(app.state, "tempo_enrichment", None)
        if enrichment is not None:
            await enrichment.close()
        if db is not None:
            await db.close()
        logger.info("Application shutdown complete")
