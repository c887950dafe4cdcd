"""Optimistic reordering of one setlist with snapshot rollback.

State is one of two shapes, never a bag of nullable fields:

    Committed(order)             local order == what the store has
    Pending(order, snapshot)     local drags not saved yet; snapshot = last committed order

Transitions:
    Committed --reorder_local--> Pending(snapshot = committed order)
    Pending   --reorder_local--> Pending(same snapshot)       several drags, one rollback point
    Pending   --persist ok-----> Committed(order)
    Pending   --persist fails--> Committed(snapshot)  + ReorderFailedError(rolled_back=True)
    Committed --persist fails--> Committed(reloaded)  + ReorderFailedError(rolled_back=False)
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

from bandcatalog.domain.entities import SetlistSong, Song
from bandcatalog.domain.exceptions import (
    DomainException,
    ReorderFailedError,
    SchemaMismatchError,
    ValidationError,
)
from bandcatalog.domain.ports import IRemoteStore

logger = logging.getLogger(__name__)

Order = tuple[SetlistSong, ...]


def renumber(songs: Iterable[SetlistSong]) -> Order:
    """Assign positions 0..n-1 in iteration order."""
    return tuple(
        song if song.position == index else song.with_position(index)
        for index, song in enumerate(songs)
    )


@dataclass(frozen=True)
class Committed:
    """Local order matches the store."""

    order: Order


@dataclass(frozen=True)
class Pending:
    """Local order has unsaved moves; snapshot is the order to roll back to."""

    order: Order
    snapshot: Order


ListOrderState = Committed | Pending


class ReorderOutcome(str, Enum):
    """Result of a successful persist_reorder()."""

    PERSISTED = "persisted"
    PERSISTED_WITH_FALLBACK = "persisted_with_fallback"
    NOTHING_TO_SAVE = "nothing_to_save"


class ReorderEngine:
    """Holds and persists the manual order of one open setlist."""

    def __init__(
        self, store: IRemoteStore, setlist_id: str, songs: Iterable[SetlistSong] = ()
    ) -> None:
        self._store = store
        self.setlist_id = setlist_id
        self._state: ListOrderState = Committed(
            renumber(sorted(songs, key=lambda s: s.position))
        )

    @property
    def state(self) -> ListOrderState:
        return self._state

    @property
    def order(self) -> Order:
        return self._state.order

    @property
    def has_pending_changes(self) -> bool:
        return isinstance(self._state, Pending)

    @property
    def song_ids(self) -> list[str]:
        return [s.song_id for s in self._state.order]

    def reset(self, songs: Iterable[SetlistSong]) -> None:
        """Replace the state with freshly loaded store data."""
        self._state = Committed(renumber(sorted(songs, key=lambda s: s.position)))

    def reorder_local(self, old_index: int, new_index: int) -> Order:
        """Move one song in memory. The moved song ends up at new_index.

        The first move after a commit captures the rollback snapshot; later moves keep it.
        """
        order = self._state.order
        size = len(order)
        if not (0 <= old_index < size) or not (0 <= new_index < size):
            raise ValidationError(
                f"Reorder indices out of range: {old_index} -> {new_index} (size {size})"
            )
        if old_index == new_index:
            return order

        items = list(order)
        moved = items.pop(old_index)
        items.insert(new_index, moved)
        new_order = renumber(items)

        if isinstance(self._state, Committed):
            self._state = Pending(order=new_order, snapshot=self._state.order)
        else:
            self._state = Pending(order=new_order, snapshot=self._state.snapshot)
        return new_order

    def set_order(self, song_ids: Sequence[str]) -> Order:
        """Replace the whole local order at once (same snapshot rules as reorder_local)."""
        by_id = {s.song_id: s for s in self._state.order}
        if len(song_ids) != len(set(song_ids)) or set(song_ids) != set(by_id):
            raise ValidationError("Order must list every song of the setlist exactly once")
        new_order = renumber(by_id[song_id] for song_id in song_ids)
        if new_order == self._state.order:
            return new_order

        if isinstance(self._state, Committed):
            self._state = Pending(order=new_order, snapshot=self._state.order)
        else:
            self._state = Pending(order=new_order, snapshot=self._state.snapshot)
        return new_order

    def update_song(self, song: Song) -> None:
        """Swap in an updated song record everywhere it appears (order and snapshot)."""

        def patch(order: Order) -> Order:
            return tuple(s.with_song(song) if s.song_id == song.id else s for s in order)

        if isinstance(self._state, Pending):
            self._state = Pending(
                order=patch(self._state.order), snapshot=patch(self._state.snapshot)
            )
        else:
            self._state = Committed(patch(self._state.order))

    def drop_song(self, song_id: str) -> None:
        """Remove a song that was deleted in the store (positions are compacted)."""

        def without(order: Order) -> Order:
            return renumber(s for s in order if s.song_id != song_id)

        if isinstance(self._state, Pending):
            self._state = Pending(
                order=without(self._state.order), snapshot=without(self._state.snapshot)
            )
        else:
            self._state = Committed(without(self._state.order))

    async def persist_reorder(self, force: bool = False) -> ReorderOutcome:
        """Send the current order to the store.

        Args:
            force: Write even when nothing is pending

        Raises:
            ReorderFailedError: The write failed; the local order was rolled back to the
                snapshot (rolled_back=True) or reloaded from the store (rolled_back=False)
        """
        if isinstance(self._state, Committed) and not force:
            return ReorderOutcome.NOTHING_TO_SAVE

        sent = self._state.order
        try:
            outcome = await self._write(sent)
        except DomainException as e:
            raise await self._recover(e) from e

        current = self._state
        if isinstance(current, Pending) and current.order != sent:
            # more moves landed while the write was in flight; what we sent is the new baseline
            self._state = Pending(order=current.order, snapshot=sent)
        else:
            self._state = Committed(current.order)
        logger.debug(
            "Setlist order saved",
            extra={
                "setlist_id": self.setlist_id,
                "songs": len(sent),
                "outcome": outcome.value,
            },
        )
        return outcome

    async def _write(self, order: Order) -> ReorderOutcome:
        song_ids = [s.song_id for s in order]
        try:
            await self._store.reposition_memberships(self.setlist_id, song_ids)
            return ReorderOutcome.PERSISTED
        except SchemaMismatchError:
            logger.info(
                "Atomic reposition unavailable, saving order row by row",
                extra={"setlist_id": self.setlist_id},
            )
        await self._reposition_row_by_row(order)
        return ReorderOutcome.PERSISTED_WITH_FALLBACK

    # Listen up, this fallback is NOT atomic. Phase 1 parks every row at n+i, phase 2 sets i, so
    # no two rows ever share a position, but a failure in between leaves gaps until the next
    # successful save or compaction. The caller rolls back/reloads on failure like any other.
    async def _reposition_row_by_row(self, order: Sequence[SetlistSong]) -> None:
        size = len(order)
        for index, song in enumerate(order):
            await self._store.update_membership(song.membership_id, position=size + index)
        for index, song in enumerate(order):
            await self._store.update_membership(song.membership_id, position=index)

    async def _recover(self, error: DomainException) -> ReorderFailedError:
        """Roll back to the snapshot, or reload if there is none. Returns the error to raise."""
        state = self._state
        if isinstance(state, Pending):
            self._state = Committed(state.snapshot)
            logger.warning(
                "Saving setlist order failed, rolled back to last saved order",
                extra={"setlist_id": self.setlist_id, "error": error.message},
            )
            return ReorderFailedError(self.setlist_id, True, error.message)

        logger.warning(
            "Saving setlist order failed without a snapshot, reloading",
            extra={"setlist_id": self.setlist_id, "error": error.message},
        )
        try:
            self.reset(await self._store.fetch_setlist_songs(self.setlist_id))
        except DomainException:
            logger.error(
                "Reload after failed reorder also failed",
                extra={"setlist_id": self.setlist_id},
                exc_info=True,
            )
        return ReorderFailedError(self.setlist_id, False, error.message)
