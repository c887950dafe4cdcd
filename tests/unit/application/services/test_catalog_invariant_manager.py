"""Tests for CatalogInvariantManager.

Hey future me - the real-database tests cover the happy paths and the legacy data shapes.
Failure modes (a delete that never works, a store without the catalog flag) use a mocked
store because SQLite won't produce them on demand.
"""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, call

import pytest

from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogHealReport,
    CatalogHealState,
    CatalogInvariantManager,
    elect_canonical,
)
from bandcatalog.application.services.song_registry import SongRegistry
from bandcatalog.config.settings import CatalogSettings
from bandcatalog.domain.entities import Setlist
from bandcatalog.domain.exceptions import (
    DuplicateEntityError,
    NoBandSelectedError,
    SchemaMismatchError,
    TransientError,
)
from bandcatalog.domain.ports import IRemoteStore
from bandcatalog.infrastructure.persistence import SqlAlchemyRemoteStore

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _setlist(setlist_id: str, name: str = "Catalog", **kwargs) -> Setlist:
    return Setlist(id=setlist_id, band_id="band-alpha", name=name, **kwargs)


@pytest.fixture
def mock_store(mocker: MagicMock) -> MagicMock:
    """Store double for failure scenarios."""
    return mocker.AsyncMock(spec=IRemoteStore)


class TestElectCanonical:
    """Most songs wins, ties go to the oldest."""

    def test_most_songs_wins(self) -> None:
        small = _setlist("a", song_count=1, created_at=T0)
        big = _setlist("b", song_count=5, created_at=T0 + timedelta(days=1))

        assert elect_canonical([small, big]).id == "b"

    def test_tie_goes_to_oldest(self) -> None:
        newer = _setlist("a", song_count=2, created_at=T0 + timedelta(days=1))
        older = _setlist("b", song_count=2, created_at=T0)

        assert elect_canonical([newer, older]).id == "b"


class TestEnsureCatalog:
    """ensure_catalog() against the real store."""

    async def test_creates_catalog_once(
        self,
        catalog_manager: CatalogInvariantManager,
        store: SqlAlchemyRemoteStore,
        band_id: str,
    ) -> None:
        catalog_id = await catalog_manager.ensure_catalog(band_id)

        setlists = await store.list_setlists(band_id)
        assert [(s.id, s.name, s.is_catalog) for s in setlists] == [
            (catalog_id, "Catalog", True)
        ]

    async def test_second_call_is_idempotent_and_writes_nothing(
        self, catalog_manager: CatalogInvariantManager, band_id: str
    ) -> None:
        first = await catalog_manager.heal(band_id)
        second = await catalog_manager.heal(band_id)

        assert second.catalog_id == first.catalog_id
        assert second.writes == 0
        assert second.trace == [CatalogHealState.CHECKING, CatalogHealState.DONE]

    async def test_concurrent_calls_agree_on_one_catalog(
        self,
        catalog_manager: CatalogInvariantManager,
        store: SqlAlchemyRemoteStore,
        band_id: str,
    ) -> None:
        results = await asyncio.gather(
            *(catalog_manager.ensure_catalog(band_id) for _ in range(5))
        )

        assert len(set(results)) == 1
        catalogs = [s for s in await store.list_setlists(band_id) if s.is_catalog]
        assert len(catalogs) == 1

    async def test_bands_are_isolated(
        self, catalog_manager: CatalogInvariantManager, band_id: str
    ) -> None:
        ours = await catalog_manager.ensure_catalog(band_id)
        theirs = await catalog_manager.ensure_catalog("band-beta")

        assert ours != theirs

    async def test_requires_band(self, catalog_manager: CatalogInvariantManager) -> None:
        with pytest.raises(NoBandSelectedError):
            await catalog_manager.ensure_catalog("  ")

    async def test_legacy_lists_are_merged_and_renamed(
        self,
        catalog_manager: CatalogInvariantManager,
        store: SqlAlchemyRemoteStore,
        registry: SongRegistry,
        band_id: str,
    ) -> None:
        """Two unflagged legacy catalogs: songs are merged into the elected one, which gets
        the canonical name and the flag."""
        all_songs = await store.create_setlist(band_id, "All Songs")
        old_catalog = await store.create_setlist(band_id, "catalog")
        a = await registry.create_or_find_song(band_id, "A", "Artist")
        b = await registry.create_or_find_song(band_id, "B", "Artist")
        c = await registry.create_or_find_song(band_id, "C", "Artist")
        for song_id in (a, b):
            await store.append_membership(all_songs.id, song_id)
        for song_id in (b, c):
            await store.append_membership(old_catalog.id, song_id)

        report = await catalog_manager.heal(band_id)

        assert report.catalog_id == all_songs.id
        assert CatalogHealState.DEDUPING in report.trace
        assert CatalogHealState.RENAMING in report.trace
        setlists = await store.list_setlists(band_id)
        assert len(setlists) == 1
        catalog = setlists[0]
        assert (catalog.name, catalog.is_catalog, catalog.song_count) == ("Catalog", True, 3)
        positions = [s.position for s in await store.fetch_setlist_songs(catalog.id)]
        assert positions == [0, 1, 2]

    async def test_single_legacy_list_is_renamed(
        self,
        catalog_manager: CatalogInvariantManager,
        store: SqlAlchemyRemoteStore,
        band_id: str,
    ) -> None:
        legacy = await store.create_setlist(band_id, "All Songs")

        catalog_id = await catalog_manager.ensure_catalog(band_id)

        assert catalog_id == legacy.id
        catalog = await store.get_setlist(catalog_id)
        assert catalog is not None
        assert catalog.name == "Catalog"
        assert catalog.is_catalog

    async def test_get_catalog_returns_aggregates(
        self, catalog_manager: CatalogInvariantManager, band_id: str
    ) -> None:
        catalog = await catalog_manager.get_catalog(band_id)

        assert catalog.is_catalog
        assert catalog.song_count == 0


class TestHealingFailures:
    """Corrective writes are best effort; the walk is bounded."""

    async def test_cap_returns_best_candidate_when_delete_keeps_failing(
        self, mock_store: MagicMock
    ) -> None:
        canonical = _setlist("big", is_catalog=True, song_count=3, created_at=T0)
        duplicate = _setlist("small", is_catalog=True, song_count=1, created_at=T0)
        mock_store.list_setlists.return_value = [canonical, duplicate]
        mock_store.fetch_setlist_songs.return_value = []
        mock_store.delete_setlist.side_effect = TransientError("delete failed")
        manager = CatalogInvariantManager(mock_store, CatalogSettings(max_heal_passes=3))

        report = await manager.heal("band-alpha")

        assert report.capped
        assert report.catalog_id == "big"
        assert report.passes == 3
        assert mock_store.delete_setlist.await_count == 3

    async def test_lost_create_race_adopts_winner(self, mock_store: MagicMock) -> None:
        winner = _setlist("winner", is_catalog=True)
        mock_store.list_setlists.side_effect = [[], [winner]]
        mock_store.create_setlist.side_effect = DuplicateEntityError("Setlist", "Catalog")
        manager = CatalogInvariantManager(mock_store, CatalogSettings())

        report = await manager.heal("band-alpha")

        assert report.catalog_id == "winner"
        assert report.trace == [
            CatalogHealState.CHECKING,
            CatalogHealState.CREATING,
            CatalogHealState.CHECKING,
            CatalogHealState.DONE,
        ]

    async def test_store_without_flag_creates_by_name(self, mock_store: MagicMock) -> None:
        mock_store.list_setlists.return_value = []
        mock_store.create_setlist.side_effect = [
            SchemaMismatchError("no is_catalog column"),
            _setlist("by-name"),
        ]
        manager = CatalogInvariantManager(mock_store, CatalogSettings())

        catalog_id = await manager.ensure_catalog("band-alpha")

        assert catalog_id == "by-name"
        assert mock_store.create_setlist.await_args_list[1] == call("band-alpha", "Catalog")

    async def test_store_without_flag_does_not_rename_forever(
        self, mock_store: MagicMock
    ) -> None:
        mock_store.list_setlists.return_value = [_setlist("legacy", name="Catalog")]
        mock_store.update_setlist.side_effect = SchemaMismatchError("no is_catalog column")
        manager = CatalogInvariantManager(mock_store, CatalogSettings())

        report = await manager.heal("band-alpha")

        assert report.catalog_id == "legacy"
        assert mock_store.update_setlist.await_count == 1
        assert report.writes == 0

    async def test_failed_rename_still_returns_catalog(self, mock_store: MagicMock) -> None:
        mock_store.list_setlists.return_value = [_setlist("legacy", name="All Songs")]
        mock_store.update_setlist.side_effect = TransientError("timeout")
        manager = CatalogInvariantManager(mock_store, CatalogSettings())

        assert await manager.ensure_catalog("band-alpha") == "legacy"

    async def test_no_catalog_and_create_fails_raises(self, mock_store: MagicMock) -> None:
        mock_store.list_setlists.return_value = []
        mock_store.create_setlist.side_effect = TransientError("offline")
        manager = CatalogInvariantManager(mock_store, CatalogSettings())

        with pytest.raises(TransientError):
            await manager.ensure_catalog("band-alpha")

    async def test_ensure_catalog_raises_when_heal_yields_nothing(
        self, mock_store: MagicMock, mocker: MagicMock
    ) -> None:
        manager = CatalogInvariantManager(mock_store, CatalogSettings())
        mocker.patch.object(
            manager, "heal", return_value=CatalogHealReport(band_id="band-alpha")
        )

        with pytest.raises(TransientError):
            await manager.ensure_catalog("band-alpha")
