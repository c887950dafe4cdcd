"""Catalog and list consistency services."""

from bandcatalog.application.services.bulk_import import BulkImportEngine, BulkSongParser
from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogHealReport,
    CatalogInvariantManager,
)
from bandcatalog.application.services.list_membership_service import (
    ListMembershipService,
)
from bandcatalog.application.services.metadata_broadcast import (
    MetadataBroadcast,
    Subscription,
)
from bandcatalog.application.services.reorder_engine import (
    Committed,
    Pending,
    ReorderEngine,
    ReorderOutcome,
)
from bandcatalog.application.services.setlist_service import SetlistService, SetlistSongs
from bandcatalog.application.services.setlist_view import SetlistView
from bandcatalog.application.services.song_metadata_service import (
    UNSET,
    SongMetadataService,
)
from bandcatalog.application.services.song_registry import SongRegistry
from bandcatalog.application.services.sort_policy import ListSortMode, SortPolicy
from bandcatalog.application.services.tempo_enrichment import TempoEnrichmentService

__all__ = [
    "UNSET",
    "BulkImportEngine",
    "BulkSongParser",
    "CatalogHealReport",
    "CatalogInvariantManager",
    "Committed",
    "ListMembershipService",
    "ListSortMode",
    "MetadataBroadcast",
    "Pending",
    "ReorderEngine",
    "ReorderOutcome",
    "SetlistService",
    "SetlistSongs",
    "SetlistView",
    "SongMetadataService",
    "SongRegistry",
    "SortPolicy",
    "Subscription",
    "TempoEnrichmentService",
]
