"""Tests for bulk song import: parsing, batched add and undo."""

from unittest.mock import MagicMock

import pytest

from bandcatalog.application.services.bulk_import import (
    BulkImportEngine,
    BulkSongParser,
    split_columns,
)
from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogInvariantManager,
)
from bandcatalog.application.services.setlist_service import SetlistService
from bandcatalog.application.services.song_registry import SongRegistry
from bandcatalog.config.settings import ImportSettings
from bandcatalog.domain.entities import BulkRowIssue
from bandcatalog.domain.exceptions import EntityNotFoundError, TransientError
from bandcatalog.infrastructure.persistence import SqlAlchemyRemoteStore


async def _titles(store: SqlAlchemyRemoteStore, setlist_id: str) -> list[str]:
    return [s.title for s in await store.fetch_setlist_songs(setlist_id)]


class TestSplitColumns:
    """Delimiter detection."""

    def test_tab_wins(self) -> None:
        assert split_columns("AC/DC\tBack In Black, Live\t94") == [
            "AC/DC",
            "Back In Black, Live",
            "94",
        ]

    def test_comma(self) -> None:
        assert split_columns("Metallica, Enter Sandman , 123") == [
            "Metallica",
            "Enter Sandman",
            "123",
        ]

    def test_two_or_more_spaces(self) -> None:
        assert split_columns("Pink Floyd    Money   120") == ["Pink Floyd", "Money", "120"]


class TestBulkSongParser:
    """Row validation, duplicates and truncation."""

    @pytest.fixture
    def parser(self) -> BulkSongParser:
        return BulkSongParser(ImportSettings(max_rows=5))

    def test_valid_row_with_bpm_suffix_and_tuning(self, parser: BulkSongParser) -> None:
        result = parser.parse("Metallica\tEnter Sandman\t123 bpm\tEb")

        row = result.valid_rows[0]
        assert (row.artist, row.title, row.bpm) == ("Metallica", "Enter Sandman", 123)
        assert (row.tuning, row.tuning_label) == ("half_step_down", "Half-Step")

    def test_blank_lines_skipped_and_line_numbers_kept(self, parser: BulkSongParser) -> None:
        result = parser.parse("\nA, One\n\n   \nB, Two\n")

        assert [r.line_number for r in result.all_rows] == [2, 5]

    def test_missing_title_and_artist(self, parser: BulkSongParser) -> None:
        result = parser.parse("Metallica\n, Lonely Song")

        assert [r.error for r in result.invalid_rows] == [
            BulkRowIssue.MISSING_TITLE,
            BulkRowIssue.MISSING_ARTIST,
        ]
        assert not result.has_valid_rows

    @pytest.mark.parametrize("raw_bpm", ["fast", "0", "301", "12.5"])
    def test_invalid_bpm(self, parser: BulkSongParser, raw_bpm: str) -> None:
        result = parser.parse(f"Artist, Song, {raw_bpm}")

        assert result.invalid_rows[0].error is BulkRowIssue.INVALID_BPM

    def test_unknown_tuning_is_a_warning(self, parser: BulkSongParser) -> None:
        result = parser.parse("Artist, Song, 100, Nashville")

        row = result.valid_rows[0]
        assert row.warning is BulkRowIssue.UNKNOWN_TUNING
        assert row.tuning is None
        assert row.bpm == 100
        assert result.warning_count == 1

    def test_duplicates_ignore_case(self, parser: BulkSongParser) -> None:
        result = parser.parse("Artist, Song\nartist, SONG\nArtist, Song, 100")

        assert result.duplicates_removed == 1
        assert len(result.all_rows) == 2

    def test_rows_beyond_limit_are_counted(self, parser: BulkSongParser) -> None:
        text = "\n".join(f"Artist, Song {n}" for n in range(8))

        result = parser.parse(text)

        assert len(result.all_rows) == 5
        assert result.truncated_count == 3

    def test_empty_input(self, parser: BulkSongParser) -> None:
        result = parser.parse("   \n ")

        assert result.all_rows == []
        assert not result.has_valid_rows


class TestBulkAdd:
    """Batched import into a list and the catalog."""

    async def test_import_with_one_bad_row_then_undo(
        self,
        bulk_import: BulkImportEngine,
        setlist_service: SetlistService,
        store: SqlAlchemyRemoteStore,
        band_id: str,
    ) -> None:
        gig = await setlist_service.create_setlist(band_id, "Friday Gig")
        text = (
            "Metallica\tEnter Sandman\t123\tStandard\n"
            "AC/DC\t\t94\n"
            "Queen\tBohemian Rhapsody\n"
            "Nirvana\tLithium\t123\tDrop D\n"
        )
        progress: list[tuple[int, int]] = []
        parsed = bulk_import.parse(text)

        result = await bulk_import.bulk_add(
            band_id, gig.id, parsed.all_rows, on_progress=lambda d, t: progress.append((d, t))
        )

        assert result.added_count == 3
        assert [r.line_number for r in result.failed_rows] == [2]
        assert result.can_undo
        assert len(result.target_list_membership_ids) == 3
        assert progress == [(2, 3), (3, 3)]
        assert await _titles(store, gig.id) == ["Enter Sandman", "Bohemian Rhapsody", "Lithium"]
        assert len(await _titles(store, result.catalog_id)) == 3

        removed = await bulk_import.undo(band_id, result.target_list_membership_ids)

        assert removed == 3
        assert await _titles(store, gig.id) == []
        assert len(await _titles(store, result.catalog_id)) == 3

    async def test_undo_leaves_songs_that_were_already_listed(
        self,
        bulk_import: BulkImportEngine,
        setlist_service: SetlistService,
        store: SqlAlchemyRemoteStore,
        band_id: str,
    ) -> None:
        gig = await setlist_service.create_setlist(band_id, "Gig")
        await bulk_import.import_text(band_id, gig.id, "Queen, Bohemian Rhapsody")

        _parsed, result = await bulk_import.import_text(
            band_id, gig.id, "queen, bohemian rhapsody\nQueen, Somebody To Love"
        )
        await bulk_import.undo(band_id, result.target_list_membership_ids)

        assert result.added_count == 2
        assert len(result.target_list_membership_ids) == 1
        assert await _titles(store, gig.id) == ["Bohemian Rhapsody"]

    async def test_import_into_catalog_has_nothing_to_undo(
        self,
        bulk_import: BulkImportEngine,
        catalog_manager: CatalogInvariantManager,
        store: SqlAlchemyRemoteStore,
        band_id: str,
    ) -> None:
        catalog_id = await catalog_manager.ensure_catalog(band_id)

        _parsed, result = await bulk_import.import_text(band_id, catalog_id, "A, One\nB, Two")

        assert result.added_count == 2
        assert not result.can_undo
        assert len(await _titles(store, catalog_id)) == 2

    async def test_import_fills_missing_fields_only(
        self,
        bulk_import: BulkImportEngine,
        registry: SongRegistry,
        setlist_service: SetlistService,
        store: SqlAlchemyRemoteStore,
        band_id: str,
    ) -> None:
        song_id = await registry.create_or_find_song(band_id, "Song", "Artist", bpm=90)
        gig = await setlist_service.create_setlist(band_id, "Gig")

        await bulk_import.import_text(band_id, gig.id, "Artist, Song, 140, Drop D")

        song = await store.get_song(song_id)
        assert song is not None
        assert (song.bpm, song.tuning) == (90, "drop_d")

    async def test_failing_row_is_skipped(
        self,
        bulk_import: BulkImportEngine,
        registry: SongRegistry,
        setlist_service: SetlistService,
        store: SqlAlchemyRemoteStore,
        band_id: str,
        mocker: MagicMock,
    ) -> None:
        gig = await setlist_service.create_setlist(band_id, "Gig")
        real_create = registry.create_or_find_song

        async def flaky(band: str, title: str, artist: str, **kwargs) -> str:
            if title == "Two":
                raise TransientError("timeout")
            return await real_create(band, title, artist, **kwargs)

        mocker.patch.object(registry, "create_or_find_song", side_effect=flaky)

        _parsed, result = await bulk_import.import_text(
            band_id, gig.id, "A, One\nA, Two\nA, Three"
        )

        assert result.added_count == 2
        assert [r.title for r in result.failed_rows] == ["Two"]
        assert await _titles(store, gig.id) == ["One", "Three"]

    async def test_unknown_target_list(
        self, bulk_import: BulkImportEngine, band_id: str
    ) -> None:
        with pytest.raises(EntityNotFoundError):
            await bulk_import.import_text(band_id, "missing", "A, One")

    async def test_undo_ignores_other_bands_memberships(
        self,
        bulk_import: BulkImportEngine,
        setlist_service: SetlistService,
        band_id: str,
    ) -> None:
        their_gig = await setlist_service.create_setlist("band-beta", "Gig")
        _parsed, result = await bulk_import.import_text("band-beta", their_gig.id, "A, One")

        removed = await bulk_import.undo(band_id, result.target_list_membership_ids)

        assert removed == 0

    async def test_undo_nothing(self, bulk_import: BulkImportEngine, band_id: str) -> None:
        assert await bulk_import.undo(band_id, []) == 0
