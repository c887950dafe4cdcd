"""Adding and removing songs on setlists under the catalog-first rule.

Catalog-first: a song may only be in a setlist if it is also in the band's catalog. Adds always
go catalog first, then the target list. Removal has two deliberately separate entry points:

- remove_from_list(): one membership of one non-catalog list, nothing else
- remove_from_catalog(): the song leaves EVERY list of the band and the song record is deleted
"""

import logging

from bandcatalog.application.services.band_scope import (
    load_setlist_in_band,
    load_song_in_band,
    require_band,
)
from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogInvariantManager,
)
from bandcatalog.application.services.metadata_broadcast import MetadataBroadcast
from bandcatalog.application.services.song_registry import SongRegistry
from bandcatalog.domain.entities import (
    AddSongResult,
    CascadeDeleteReport,
    Membership,
    SongUpdateEvent,
)
from bandcatalog.domain.exceptions import (
    CascadeDeleteError,
    DomainException,
    DuplicateEntityError,
    TransientError,
    ValidationError,
)
from bandcatalog.domain.ports import IRemoteStore
from bandcatalog.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)


class ListMembershipService:
    """Membership writes that keep the catalog-first invariant."""

    def __init__(
        self,
        store: IRemoteStore,
        catalog_manager: CatalogInvariantManager,
        registry: SongRegistry,
        broadcast: MetadataBroadcast | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog_manager
        self._registry = registry
        self._broadcast = broadcast

    async def add_song_ensure_catalog(
        self,
        band_id: str,
        setlist_id: str,
        song_id: str,
        title: str = "",
        artist: str = "",
    ) -> AddSongResult:
        """Add a song to a list, adding it to the catalog first if needed.

        Adding a song that is already on the list is a no-op (was_already_in_list=True).

        Raises:
            EntityNotFoundError: List or song missing, or list in another band
            PermissionDeniedError: Song belongs to another band
        """
        require_band(band_id, "add_song")
        catalog_id = await self._catalog.ensure_catalog(band_id)
        if setlist_id != catalog_id:
            await load_setlist_in_band(self._store, band_id, setlist_id)
        song = await load_song_in_band(self._store, band_id, song_id)
        title = title or song.title
        artist = artist or song.artist

        catalog_membership, in_catalog = await self._ensure_membership(catalog_id, song_id)
        if setlist_id == catalog_id:
            return AddSongResult(
                success=True,
                song_id=song_id,
                catalog_id=catalog_id,
                was_already_in_catalog=in_catalog,
                was_already_in_list=in_catalog,
                list_membership_id=catalog_membership.id,
                song_title=title,
                song_artist=artist,
            )

        list_membership, in_list = await self._ensure_membership(setlist_id, song_id)
        logger.debug(
            "Song added to setlist",
            extra={
                "band_id": band_id,
                "setlist_id": setlist_id,
                "song_id": song_id,
                "was_already_in_catalog": in_catalog,
                "was_already_in_list": in_list,
            },
        )
        return AddSongResult(
            success=True,
            song_id=song_id,
            catalog_id=catalog_id,
            was_already_in_catalog=in_catalog,
            was_already_in_list=in_list,
            list_membership_id=list_membership.id,
            song_title=title,
            song_artist=artist,
        )

    async def add_song_by_details(
        self,
        band_id: str,
        setlist_id: str,
        title: str,
        artist: str,
        *,
        bpm: int | None = None,
        tuning: str | None = None,
        duration_seconds: int | None = None,
        album_artwork: str | None = None,
    ) -> AddSongResult:
        """Create-or-find a song by title/artist, then add it catalog-first."""
        require_band(band_id, "add_song")
        song_id = await self._registry.create_or_find_song(
            band_id,
            title,
            artist,
            bpm=bpm,
            tuning=tuning,
            duration_seconds=duration_seconds,
            album_artwork=album_artwork,
        )
        return await self.add_song_ensure_catalog(band_id, setlist_id, song_id)

    async def ensure_in_list(self, setlist_id: str, song_id: str) -> tuple[Membership, bool]:
        """Membership of a song in a list, appended if missing. Returns (membership, existed).

        No band or catalog checks; callers have done those.
        """
        return await self._ensure_membership(setlist_id, song_id)

    async def _ensure_membership(
        self, setlist_id: str, song_id: str
    ) -> tuple[Membership, bool]:
        existing = await self._store.find_membership(setlist_id, song_id)
        if existing is not None:
            return existing, True
        try:
            return await self._store.append_membership(setlist_id, song_id), False
        except DuplicateEntityError:
            existing = await self._store.find_membership(setlist_id, song_id)
            if existing is None:
                raise TransientError(
                    f"Membership of {song_id} in {setlist_id} conflicted but is missing"
                ) from None
            return existing, True

    async def remove_from_list(self, band_id: str, setlist_id: str, song_id: str) -> bool:
        """Remove one song from one non-catalog list. Returns False if it wasn't there.

        Raises:
            ValidationError: setlist_id is the catalog (use remove_from_catalog)
            EntityNotFoundError: List missing or in another band
        """
        require_band(band_id, "remove_from_list")
        catalog_id = await self._catalog.ensure_catalog(band_id)
        if setlist_id == catalog_id:
            raise ValidationError(
                "Songs are removed from the catalog with remove_from_catalog, "
                "which also removes them from every setlist"
            )
        await load_setlist_in_band(self._store, band_id, setlist_id)
        removed = await self._store.delete_membership(setlist_id, song_id)
        logger.debug(
            "Song removed from setlist",
            extra={"setlist_id": setlist_id, "song_id": song_id, "removed": removed},
        )
        return removed

    # Hey future me, this is a saga, not a transaction. The store can't delete across tables
    # atomically, so the steps are ordered to keep invariants true at every stop:
    #   1. every non-catalog list  (catalog-first still holds - song is in the catalog)
    #   2. the catalog itself
    #   3. the song record, LAST
    # If step N fails we stop, log what is left, and raise CascadeDeleteError. The song is then
    # "orphaned in membership-only state" at worst, never a membership pointing at nothing.
    # Calling remove_from_catalog() again finishes the job.
    async def remove_from_catalog(self, band_id: str, song_id: str) -> CascadeDeleteReport:
        """Delete a song from every list of the band, then delete the song. Irreversible."""
        require_band(band_id, "remove_from_catalog")
        catalog_id = await self._catalog.ensure_catalog(band_id)
        await load_song_in_band(self._store, band_id, song_id)

        async with log_operation(
            logger, "catalog_cascade_delete", band_id=band_id, song_id=song_id
        ) as summary:
            setlists = await self._store.list_setlists(band_id)
            steps = [s.id for s in setlists if s.id != catalog_id] + [catalog_id]
            removed_from: list[str] = []

            for index, setlist_id in enumerate(steps):
                try:
                    if await self._store.delete_membership(setlist_id, song_id):
                        removed_from.append(setlist_id)
                except DomainException as e:
                    logger.warning(
                        "Cascade delete interrupted, song left in membership-only state",
                        extra={
                            "band_id": band_id,
                            "song_id": song_id,
                            "failed_setlist_id": setlist_id,
                            "removed_from": removed_from,
                            "remaining_steps": steps[index:] + [f"song:{song_id}"],
                        },
                    )
                    raise CascadeDeleteError(song_id, removed_from, e.message) from e

            try:
                await self._store.delete_song(song_id)
            except DomainException as e:
                logger.warning(
                    "Cascade delete removed all memberships but not the song record",
                    extra={"band_id": band_id, "song_id": song_id},
                )
                raise CascadeDeleteError(song_id, removed_from, e.message) from e

            summary["removed_memberships"] = len(removed_from)

        if self._broadcast is not None:
            self._broadcast.publish(
                SongUpdateEvent(song_id=song_id, changed_fields={}, removed=True)
            )
        return CascadeDeleteReport(
            song_id=song_id,
            removed_memberships=len(removed_from),
            lists_touched=removed_from,
        )
