"""State holder for one open setlist, as consumed by a UI.

A view owns a ReorderEngine for the list it shows and keeps:
- display order (catalog: artist/title; other lists: manual positions or a tuning mode)
- aggregates (song count, total duration)
- busy flags and the last error, with a user-facing message per error kind

Every open() bumps a generation counter. Anything that comes back for an older generation
(a slow load, a late reorder result) is discarded instead of clobbering the newer list.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from bandcatalog.application.services.band_scope import (
    load_setlist_in_band,
    require_band,
)
from bandcatalog.application.services.list_membership_service import (
    ListMembershipService,
)
from bandcatalog.application.services.metadata_broadcast import (
    MetadataBroadcast,
    Subscription,
)
from bandcatalog.application.services.reorder_engine import (
    ReorderEngine,
    ReorderOutcome,
)
from bandcatalog.application.services.sort_policy import ListSortMode, SortPolicy
from bandcatalog.config.settings import ReorderSettings
from bandcatalog.domain.entities import (
    ErrorKind,
    Setlist,
    SetlistSong,
    SongUpdateEvent,
    total_duration,
)
from bandcatalog.domain.exceptions import (
    DomainException,
    ListBusyError,
    ValidationError,
)
from bandcatalog.domain.ports import IRemoteStore

logger = logging.getLogger(__name__)


class SetlistView:
    """One open list: load, display order, drag reorder, removal, live metadata."""

    def __init__(
        self,
        store: IRemoteStore,
        band_id: str,
        membership_service: ListMembershipService,
        broadcast: MetadataBroadcast | None = None,
        sort_policy: SortPolicy | None = None,
        settings: ReorderSettings | None = None,
    ) -> None:
        self._store = store
        self.band_id = require_band(band_id, "open_setlist")
        self._memberships = membership_service
        self._sort = sort_policy or SortPolicy()
        self._settings = settings or ReorderSettings()

        self.setlist: Setlist | None = None
        self.sort_mode = ListSortMode.MANUAL
        self.is_loading = False
        self.is_reordering = False
        self.is_deleting = False
        self.error: str | None = None
        self.error_kind: ErrorKind | None = None

        self._engine: ReorderEngine | None = None
        self._generation = 0
        self._write_lock = asyncio.Lock()
        self._debounce_task: asyncio.Task[None] | None = None
        self._subscription: Subscription | None = (
            broadcast.subscribe(self._on_song_update) if broadcast is not None else None
        )

    # --- display state ------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def is_catalog(self) -> bool:
        return self.setlist is not None and self.setlist.is_catalog

    @property
    def songs(self) -> list[SetlistSong]:
        """Songs in display order."""
        if self._engine is None:
            return []
        return self._sort.apply(
            self._engine.order, is_catalog=self.is_catalog, mode=self.sort_mode
        )

    @property
    def manual_order(self) -> list[SetlistSong]:
        """Songs in position order, whatever the display mode."""
        return list(self._engine.order) if self._engine is not None else []

    @property
    def song_count(self) -> int:
        return len(self._engine.order) if self._engine is not None else 0

    @property
    def total_duration_seconds(self) -> int:
        return total_duration(self._engine.order) if self._engine is not None else 0

    @property
    def has_pending_changes(self) -> bool:
        return self._engine is not None and self._engine.has_pending_changes

    @property
    def can_reorder(self) -> bool:
        return self.is_open and not self.is_catalog and self.sort_mode.is_manual

    def clear_error(self) -> None:
        self.error = None
        self.error_kind = None

    # --- loading ------------------------------------------------------

    async def open(self, setlist_id: str) -> None:
        """Load a list, replacing whatever the view showed before. Starts in manual mode."""
        self._cancel_debounce()
        self._generation += 1
        generation = self._generation
        self.is_loading = True
        self.clear_error()
        try:
            setlist = await load_setlist_in_band(self._store, self.band_id, setlist_id)
            songs = await self._store.fetch_setlist_songs(setlist.id)
        except DomainException as e:
            if generation == self._generation:
                self._record_error(e)
            raise
        finally:
            if generation == self._generation:
                self.is_loading = False

        if generation != self._generation:
            logger.debug(
                "Discarding stale setlist load",
                extra={"setlist_id": setlist_id, "generation": generation},
            )
            return
        self.setlist = setlist
        self.sort_mode = ListSortMode.MANUAL
        self._engine = ReorderEngine(self._store, setlist.id, songs)
        self._watch_current_songs()

    async def reload(self) -> None:
        """Re-read the open list's songs from the store (pending drags are dropped)."""
        engine = self._require_open()
        generation = self._generation
        self.is_loading = True
        try:
            songs = await self._store.fetch_setlist_songs(engine.setlist_id)
        except DomainException as e:
            if generation == self._generation:
                self._record_error(e)
            raise
        finally:
            if generation == self._generation:
                self.is_loading = False
        if generation != self._generation:
            return
        engine.reset(songs)
        self._watch_current_songs()

    # --- sorting ------------------------------------------------------

    async def set_sort_mode(self, mode: ListSortMode) -> None:
        """Change the display mode. Stored positions are never rewritten by sorting.

        Leaving manual mode saves pending drags first. Returning to manual reloads the
        persisted order from the store.
        """
        self._require_open()
        if self.is_catalog or mode == self.sort_mode:
            return
        if self.sort_mode.is_manual:
            await self.flush()
        self.sort_mode = mode
        if mode.is_manual:
            await self.reload()

    async def cycle_sort_mode(self) -> ListSortMode:
        """Advance to the next tuning mode (manual starts at Standard)."""
        await self.set_sort_mode(self.sort_mode.next_tuning_mode())
        return self.sort_mode

    # --- reordering ---------------------------------------------------

    def reorder_local(self, old_index: int, new_index: int) -> list[SetlistSong]:
        """Move a song in memory and schedule a debounced save."""
        engine = self._require_open()
        if self.is_catalog:
            raise ValidationError("The catalog is always sorted by artist and title")
        if not self.sort_mode.is_manual:
            raise ValidationError("Switch to manual order to rearrange songs")
        if self.is_deleting:
            raise ListBusyError(engine.setlist_id, "deleting")

        order = engine.reorder_local(old_index, new_index)
        self._schedule_persist()
        return list(order)

    async def persist_reorder(self) -> ReorderOutcome:
        """Save the current manual order now. Overlapping saves queue up behind each other."""
        engine = self._require_open()
        if self.is_deleting:
            raise ListBusyError(engine.setlist_id, "deleting")
        generation = self._generation

        async with self._write_lock:
            self.is_reordering = True
            try:
                outcome = await engine.persist_reorder()
            except DomainException as e:
                if generation == self._generation:
                    self._record_error(e)
                raise
            finally:
                self.is_reordering = False

        if generation != self._generation:
            logger.debug(
                "Discarding reorder result for a list that is no longer open",
                extra={"setlist_id": engine.setlist_id},
            )
        return outcome

    async def flush(self) -> None:
        """Save pending drags right away instead of waiting for the debounce window."""
        self._cancel_debounce()
        if self.has_pending_changes:
            await self.persist_reorder()

    def _schedule_persist(self) -> None:
        self._cancel_debounce()
        self._debounce_task = asyncio.create_task(
            self._debounced_persist(), name=f"setlist-reorder-{self._generation}"
        )

    def _cancel_debounce(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = None

    async def _debounced_persist(self) -> None:
        await asyncio.sleep(self._settings.debounce_seconds)
        # past the quiet window: detach so a new drag schedules its own save instead of
        # cancelling this write halfway
        self._debounce_task = None
        try:
            await self.persist_reorder()
        except DomainException:
            # already on self.error for the UI, and logged by the engine
            return

    # --- removal ------------------------------------------------------

    @asynccontextmanager
    async def _deleting(self) -> AsyncIterator[None]:
        engine = self._require_open()
        if self.is_deleting or self.is_reordering:
            raise ListBusyError(
                engine.setlist_id, "deleting" if self.is_deleting else "reordering"
            )
        self.is_deleting = True
        generation = self._generation
        try:
            yield
        except DomainException as e:
            if generation == self._generation:
                self._record_error(e)
            raise
        finally:
            self.is_deleting = False

    async def remove_song(self, song_id: str) -> None:
        """Remove a song from the open list.

        On the catalog this removes the song from EVERY list of the band and deletes it.
        """
        await self.flush()
        engine = self._require_open()
        async with self._deleting():
            if self.is_catalog:
                await self._memberships.remove_from_catalog(self.band_id, song_id)
            else:
                await self._memberships.remove_from_list(
                    self.band_id, engine.setlist_id, song_id
                )
            engine.drop_song(song_id)
            if self._subscription is not None:
                self._subscription.unwatch([song_id])

    # --- live metadata ------------------------------------------------

    def _on_song_update(self, event: SongUpdateEvent) -> None:
        engine = self._engine
        if engine is None:
            return
        current = next((s.song for s in engine.order if s.song_id == event.song_id), None)
        if current is None:
            return
        if event.removed:
            engine.drop_song(event.song_id)
            if self._subscription is not None:
                self._subscription.unwatch([event.song_id])
            return
        engine.update_song(current.with_changes(event.changed_fields))

    def _watch_current_songs(self) -> None:
        if self._subscription is not None and self._engine is not None:
            self._subscription.replace(self._engine.song_ids)

    # --- lifecycle ----------------------------------------------------

    async def close(self) -> None:
        """Save pending drags, stop listening for song updates, forget the list."""
        try:
            await self.flush()
        except DomainException:
            logger.warning(
                "Pending reorder could not be saved while closing the view",
                extra={"band_id": self.band_id, "setlist_id": self.setlist and self.setlist.id},
            )
        self._cancel_debounce()
        if self._subscription is not None:
            self._subscription.cancel()
        self._generation += 1
        self._engine = None
        self.setlist = None

    def _require_open(self) -> ReorderEngine:
        if self._engine is None:
            raise ValidationError("No setlist is open")
        return self._engine

    def _record_error(self, error: DomainException) -> None:
        self.error = error.user_message
        self.error_kind = error.kind
