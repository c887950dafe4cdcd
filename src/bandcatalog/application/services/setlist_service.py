"""Setlist CRUD on top of the catalog invariant."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from bandcatalog.application.services.band_scope import (
    load_setlist_in_band,
    require_band,
)
from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogInvariantManager,
)
from bandcatalog.application.services.reorder_engine import ReorderEngine
from bandcatalog.application.services.sort_policy import ListSortMode, SortPolicy
from bandcatalog.domain.entities import Setlist, SetlistSong, total_duration
from bandcatalog.domain.exceptions import (
    CatalogProtectedError,
    ValidationError,
)
from bandcatalog.domain.ports import IRemoteStore

logger = logging.getLogger(__name__)

MAX_COPY_SUFFIX = 100


@dataclass
class SetlistSongs:
    """A list's songs in display order plus the aggregates a UI shows."""

    setlist: Setlist
    songs: list[SetlistSong] = field(default_factory=list)
    sort_mode: ListSortMode = ListSortMode.MANUAL

    @property
    def song_count(self) -> int:
        return len(self.songs)

    @property
    def total_duration_seconds(self) -> int:
        return total_duration(self.songs)


class SetlistService:
    """List, create, rename, delete and duplicate a band's setlists."""

    def __init__(
        self,
        store: IRemoteStore,
        catalog_manager: CatalogInvariantManager,
        sort_policy: SortPolicy | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog_manager
        self._sort = sort_policy or SortPolicy()

    async def list_setlists(self, band_id: str) -> list[Setlist]:
        """All lists of a band: the catalog first, then the rest by name."""
        require_band(band_id, "list_setlists")
        catalog_id = await self._catalog.ensure_catalog(band_id)
        setlists = await self._store.list_setlists(band_id)
        catalog = [s for s in setlists if s.id == catalog_id]
        others = sorted(
            (s for s in setlists if s.id != catalog_id),
            key=lambda s: (s.name.casefold(), s.created_at),
        )
        return catalog + others

    async def create_setlist(self, band_id: str, name: str) -> Setlist:
        """Create a normal (non-catalog) list."""
        require_band(band_id, "create_setlist")
        clean = self._validate_name(name)
        await self._catalog.ensure_catalog(band_id)
        setlist = await self._store.create_setlist(band_id, clean)
        logger.info(
            "Setlist created",
            extra={"band_id": band_id, "setlist_id": setlist.id, "setlist_name": clean},
        )
        return setlist

    async def rename_setlist(self, band_id: str, setlist_id: str, name: str) -> Setlist:
        """Rename a non-catalog list."""
        require_band(band_id, "rename_setlist")
        clean = self._validate_name(name)
        setlist = await self._load_editable(band_id, setlist_id, "rename")
        await self._store.update_setlist(setlist.id, name=clean)
        setlist.name = clean
        return setlist

    async def delete_setlist(self, band_id: str, setlist_id: str) -> None:
        """Delete a non-catalog list and its memberships. Songs stay in the catalog."""
        require_band(band_id, "delete_setlist")
        setlist = await self._load_editable(band_id, setlist_id, "delete")
        await self._store.delete_setlist(setlist.id)
        logger.info(
            "Setlist deleted",
            extra={"band_id": band_id, "setlist_id": setlist_id, "songs": setlist.song_count},
        )

    async def duplicate_setlist(self, band_id: str, setlist_id: str) -> Setlist:
        """Copy a list with its order and overrides under a "(Copy)" name.

        Duplicating the catalog gives a normal list; all its songs are in the catalog already.
        """
        require_band(band_id, "duplicate_setlist")
        source = await load_setlist_in_band(self._store, band_id, setlist_id)
        taken = {s.name.casefold() for s in await self._store.list_setlists(band_id)}
        name = self._copy_name(source.name, taken)

        copy = await self._store.create_setlist(band_id, name)
        songs = await self._store.fetch_setlist_songs(source.id)
        for song in songs:
            await self._store.append_membership(
                copy.id,
                song.song_id,
                bpm_override=song.membership.bpm_override,
                tuning_override=song.membership.tuning_override,
                duration_override=song.membership.duration_override,
            )
        logger.info(
            "Setlist duplicated",
            extra={"band_id": band_id, "source_id": source.id, "copy_id": copy.id},
        )
        copy.song_count = len(songs)
        copy.total_duration_seconds = total_duration(songs)
        return copy

    async def get_setlist_songs(
        self,
        band_id: str,
        setlist_id: str,
        sort_mode: ListSortMode = ListSortMode.MANUAL,
    ) -> SetlistSongs:
        """Songs of a list in display order."""
        require_band(band_id, "get_setlist_songs")
        setlist = await load_setlist_in_band(self._store, band_id, setlist_id)
        songs = await self._store.fetch_setlist_songs(setlist.id)
        ordered = self._sort.apply(songs, is_catalog=setlist.is_catalog, mode=sort_mode)
        return SetlistSongs(setlist=setlist, songs=ordered, sort_mode=sort_mode)

    async def reorder_setlist(
        self, band_id: str, setlist_id: str, song_ids: Sequence[str]
    ) -> SetlistSongs:
        """Persist a complete manual order for a non-catalog list.

        Raises:
            ValidationError: Catalog list, or song_ids not exactly the list's songs
            ReorderFailedError: The write failed; nothing was changed
        """
        require_band(band_id, "reorder_setlist")
        setlist = await load_setlist_in_band(self._store, band_id, setlist_id)
        if setlist.is_catalog:
            raise ValidationError("The catalog is always sorted by artist and title")
        engine = ReorderEngine(
            self._store, setlist.id, await self._store.fetch_setlist_songs(setlist.id)
        )
        engine.set_order(song_ids)
        await engine.persist_reorder()
        return SetlistSongs(setlist=setlist, songs=list(engine.order))

    async def _load_editable(self, band_id: str, setlist_id: str, action: str) -> Setlist:
        # legacy catalogs carry no flag until healed
        catalog_id = await self._catalog.ensure_catalog(band_id)
        setlist = await load_setlist_in_band(self._store, band_id, setlist_id)
        if (
            setlist.is_catalog
            or setlist.id == catalog_id
            or self._catalog.is_catalog_name(setlist.name)
        ):
            raise CatalogProtectedError(setlist_id, action)
        return setlist

    def _validate_name(self, name: str | None) -> str:
        clean = " ".join((name or "").split())
        if not clean:
            raise ValidationError("Setlist name cannot be empty")
        if self._catalog.is_catalog_name(clean):
            raise ValidationError(f'"{clean}" is reserved for the catalog')
        return clean

    @staticmethod
    def _copy_name(name: str, taken: set[str]) -> str:
        candidate = f"{name} (Copy)"
        if candidate.casefold() not in taken:
            return candidate
        for n in range(2, MAX_COPY_SUFFIX + 1):
            candidate = f"{name} (Copy {n})"
            if candidate.casefold() not in taken:
                return candidate
        raise ValidationError(f'Too many copies of "{name}"')
