"""Shared fixtures.

Hey future me - every test gets its own SQLite FILE under tmp_path (not :memory:, the async
engine hands out several connections and each would see its own empty in-memory DB). The
service fixtures are wired exactly like infrastructure/lifecycle.py does it, minus tempo
enrichment, which tests switch on explicitly.
"""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

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
from bandcatalog.config.settings import (
    CatalogSettings,
    DatabaseSettings,
    ImportSettings,
    MetadataSettings,
)
from bandcatalog.infrastructure.persistence import Database, SqlAlchemyRemoteStore


@pytest.fixture
def band_id() -> str:
    """Band scope used by most tests."""
    return "band-alpha"


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite file for this test."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
async def database(database_url: str) -> AsyncIterator[Database]:
    """Database with all tables created."""
    db = Database(DatabaseSettings(url=database_url))
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def store(database: Database) -> SqlAlchemyRemoteStore:
    """Remote store over the test database."""
    return SqlAlchemyRemoteStore(database)


@pytest.fixture
def broadcast() -> MetadataBroadcast:
    """Fresh song update bus."""
    return MetadataBroadcast()


@pytest.fixture
def catalog_settings() -> CatalogSettings:
    """Default catalog settings."""
    return CatalogSettings()


@pytest.fixture
def catalog_manager(
    store: SqlAlchemyRemoteStore, catalog_settings: CatalogSettings
) -> CatalogInvariantManager:
    """Catalog invariant manager."""
    return CatalogInvariantManager(store, catalog_settings)


@pytest.fixture
def registry(store: SqlAlchemyRemoteStore, broadcast: MetadataBroadcast) -> SongRegistry:
    """Song registry without tempo enrichment."""
    return SongRegistry(store, enrichment=None, broadcast=broadcast)


@pytest.fixture
def membership_service(
    store: SqlAlchemyRemoteStore,
    catalog_manager: CatalogInvariantManager,
    registry: SongRegistry,
    broadcast: MetadataBroadcast,
) -> ListMembershipService:
    """Catalog-first membership service."""
    return ListMembershipService(store, catalog_manager, registry, broadcast=broadcast)


@pytest.fixture
def setlist_service(
    store: SqlAlchemyRemoteStore, catalog_manager: CatalogInvariantManager
) -> SetlistService:
    """Setlist CRUD service."""
    return SetlistService(store, catalog_manager)


@pytest.fixture
def metadata_service(
    store: SqlAlchemyRemoteStore, broadcast: MetadataBroadcast
) -> SongMetadataService:
    """Song metadata service."""
    return SongMetadataService(store, MetadataSettings(), broadcast)


@pytest.fixture
def import_settings() -> ImportSettings:
    """Bulk import settings with a small batch size so batching is exercised."""
    return ImportSettings(batch_size=2)


@pytest.fixture
def bulk_import(
    store: SqlAlchemyRemoteStore,
    catalog_manager: CatalogInvariantManager,
    registry: SongRegistry,
    membership_service: ListMembershipService,
    import_settings: ImportSettings,
) -> BulkImportEngine:
    """Bulk import engine."""
    return BulkImportEngine(
        store, catalog_manager, registry, membership_service, import_settings
    )
