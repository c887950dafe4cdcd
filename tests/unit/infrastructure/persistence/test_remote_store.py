"""Tests for SqlAlchemyRemoteStore against a temporary SQLite database."""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from bandcatalog.config.settings import DatabaseSettings
from bandcatalog.domain.entities import Song
from bandcatalog.domain.exceptions import (
    DuplicateEntityError,
    EntityNotFoundError,
    SchemaMismatchError,
    TransientError,
    ValidationError,
)
from bandcatalog.infrastructure.persistence import Database, SqlAlchemyRemoteStore
from bandcatalog.infrastructure.persistence.remote_store import store_errors


async def _song(
    store: SqlAlchemyRemoteStore, title: str, band_id: str = "band-alpha", **fields
) -> Song:
    song = Song(id=str(uuid.uuid4()), band_id=band_id, title=title, artist="Artist", **fields)
    return await store.insert_song(song)


async def _positions(store: SqlAlchemyRemoteStore, setlist_id: str) -> list[tuple[str, int]]:
    return [(s.title, s.position) for s in await store.fetch_setlist_songs(setlist_id)]


class TestSetlists:
    """Setlist primitives."""

    async def test_second_catalog_is_a_conflict(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        await store.create_setlist(band_id, "Catalog", is_catalog=True)

        with pytest.raises(DuplicateEntityError):
            await store.create_setlist(band_id, "Catalog", is_catalog=True)

        # a catalog in another band is fine
        await store.create_setlist("band-beta", "Catalog", is_catalog=True)

    async def test_aggregates_use_effective_duration(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        one = await _song(store, "One", duration_seconds=100)
        two = await _song(store, "Two", duration_seconds=200)
        three = await _song(store, "Three")
        await store.append_membership(gig.id, one.id)
        await store.append_membership(gig.id, two.id, duration_override=150)
        await store.append_membership(gig.id, three.id)

        loaded = await store.get_setlist(gig.id)

        assert loaded is not None
        assert loaded.song_count == 3
        assert loaded.total_duration_seconds == 250

    async def test_list_is_band_scoped_and_oldest_first(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        first = await store.create_setlist(band_id, "First")
        await store.create_setlist("band-beta", "Theirs")
        second = await store.create_setlist(band_id, "Second")

        setlists = await store.list_setlists(band_id)

        assert [s.id for s in setlists] == [first.id, second.id]

    async def test_update_missing_setlist(self, store: SqlAlchemyRemoteStore) -> None:
        with pytest.raises(EntityNotFoundError):
            await store.update_setlist("missing", name="x")

    async def test_delete_removes_memberships(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        song = await _song(store, "One")
        await store.append_membership(gig.id, song.id)

        await store.delete_setlist(gig.id)

        assert await store.get_setlist(gig.id) is None
        assert await store.find_membership(gig.id, song.id) is None


class TestMemberships:
    """Membership primitives keep positions contiguous."""

    async def test_append_and_delete_compact(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        songs = [await _song(store, title) for title in ("A", "B", "C", "D")]
        for song in songs:
            await store.append_membership(gig.id, song.id)

        assert await store.delete_membership(gig.id, songs[1].id)
        assert not await store.delete_membership(gig.id, songs[1].id)

        assert await _positions(store, gig.id) == [("A", 0), ("C", 1), ("D", 2)]
        await store.append_membership(gig.id, songs[1].id)
        assert await _positions(store, gig.id) == [("A", 0), ("C", 1), ("D", 2), ("B", 3)]

    async def test_same_song_twice_is_a_conflict(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        song = await _song(store, "A")
        await store.append_membership(gig.id, song.id)

        with pytest.raises(DuplicateEntityError):
            await store.append_membership(gig.id, song.id)

    async def test_unknown_song_is_not_found(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")

        with pytest.raises(EntityNotFoundError):
            await store.append_membership(gig.id, "no-such-song")

    async def test_update_membership(self, store: SqlAlchemyRemoteStore, band_id: str) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        song = await _song(store, "A")
        membership = await store.append_membership(gig.id, song.id)

        updated = await store.update_membership(membership.id, bpm_override=99)

        assert updated.bpm_override == 99
        with pytest.raises(ValidationError):
            await store.update_membership(membership.id, setlist_id="other")
        with pytest.raises(EntityNotFoundError):
            await store.update_membership("missing", bpm_override=1)

    async def test_delete_memberships_by_id_compacts_each_list(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        songs = [await _song(store, title) for title in ("A", "B", "C")]
        memberships = [await store.append_membership(gig.id, s.id) for s in songs]

        removed = await store.delete_memberships(band_id, [memberships[0].id, "unknown"])

        assert removed == 1
        assert await _positions(store, gig.id) == [("B", 0), ("C", 1)]
        assert await store.delete_memberships("band-beta", [memberships[1].id]) == 0


class TestReposition:
    """The atomic reposition primitive."""

    async def test_reposition(self, store: SqlAlchemyRemoteStore, band_id: str) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        songs = [await _song(store, title) for title in ("A", "B", "C")]
        for song in songs:
            await store.append_membership(gig.id, song.id)

        await store.reposition_memberships(gig.id, [songs[2].id, songs[0].id, songs[1].id])

        assert await _positions(store, gig.id) == [("C", 0), ("A", 1), ("B", 2)]

    async def test_mismatched_ids_rejected(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        song = await _song(store, "A")
        await store.append_membership(gig.id, song.id)

        with pytest.raises(ValidationError):
            await store.reposition_memberships(gig.id, [song.id, "other"])
        with pytest.raises(ValidationError):
            await store.reposition_memberships(gig.id, [song.id, song.id])

    async def test_unavailable_primitive(self, database: Database) -> None:
        store = SqlAlchemyRemoteStore(database, atomic_reposition=False)

        with pytest.raises(SchemaMismatchError):
            await store.reposition_memberships("gig", [])


class TestSongs:
    """Song primitives."""

    async def test_key_is_case_insensitive(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        song = await _song(store, "Come Together")

        found = await store.find_song(band_id, "come together", " ARTIST ")

        assert found is not None
        assert found.id == song.id
        with pytest.raises(DuplicateEntityError):
            await _song(store, "COME TOGETHER")

    async def test_key_folds_non_ascii_letters(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        song = await _song(store, "Édith Et Ölaf")

        found = await store.find_song(band_id, "édith et ölaf", "artist")

        assert found is not None
        assert found.id == song.id
        with pytest.raises(DuplicateEntityError):
            await _song(store, "ÉDITH ET ÖLAF")

    async def test_renamed_song_is_found_by_new_title(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        song = await _song(store, "Old Name")

        await store.update_song(song.id, {"title": "Ärger"})

        assert await store.find_song(band_id, "Old Name", "Artist") is None
        found = await store.find_song(band_id, "ärger", "Artist")
        assert found is not None
        assert found.id == song.id

    async def test_update_and_clear_fields(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        song = await _song(store, "A", bpm=100, notes="capo")

        updated = await store.update_song(song.id, {"bpm": 120, "notes": None})

        assert updated is not None
        assert (updated.bpm, updated.notes) == (120, None)
        assert await store.update_song("missing", {"bpm": 1}) is None
        with pytest.raises(ValidationError):
            await store.update_song(song.id, {"band_id": "other"})

    async def test_delete_song_takes_leftover_memberships(
        self, store: SqlAlchemyRemoteStore, band_id: str
    ) -> None:
        gig = await store.create_setlist(band_id, "Gig")
        a = await _song(store, "A")
        b = await _song(store, "B")
        await store.append_membership(gig.id, a.id)
        await store.append_membership(gig.id, b.id)

        assert await store.delete_song(a.id)
        assert not await store.delete_song(a.id)

        assert await _positions(store, gig.id) == [("B", 0)]

    async def test_missing_bpm_listing(self, store: SqlAlchemyRemoteStore, band_id: str) -> None:
        await _song(store, "A", bpm=100)
        await _song(store, "B")
        await _song(store, "C", band_id="band-beta")

        missing = await store.list_songs_missing_bpm(band_id)

        assert [s.title for s in missing] == ["B"]


class TestErrorTranslation:
    """Driver errors never leave the store."""

    async def test_missing_tables_are_a_schema_mismatch(self, database_url: str) -> None:
        db = Database(DatabaseSettings(url=database_url))
        try:
            with pytest.raises(SchemaMismatchError):
                await SqlAlchemyRemoteStore(db).list_setlists("band-alpha")
        finally:
            await db.close()

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (
                IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")),
                DuplicateEntityError,
            ),
            (
                IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed")),
                EntityNotFoundError,
            ),
            (
                OperationalError("SELECT", {}, Exception("no such column: is_catalog")),
                SchemaMismatchError,
            ),
            (
                OperationalError("SELECT", {}, Exception("database is locked")),
                TransientError,
            ),
            (SQLAlchemyError("connection reset"), TransientError),
        ],
    )
    async def test_translation(self, error: Exception, expected: type) -> None:
        with pytest.raises(expected) as exc_info:
            async with store_errors("op", "Row", "1"):
                raise error

        assert exc_info.value.__cause__ is error

    async def test_domain_errors_pass_through(self) -> None:
        with pytest.raises(ValidationError):
            async with store_errors("op"):
                raise ValidationError("bad")
