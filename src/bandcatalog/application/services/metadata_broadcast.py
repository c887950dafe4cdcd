"""In-process publish/subscribe channel for global song field edits.

Hey future me - this replaces "reload every open list after an edit". When someone changes a
song's bpm in one view, every other open SetlistView holding that song patches its cached
copy from the event. Rules:
- keyed by song id; a subscriber only hears about songs it watches
- for one song, an event older than the newest one already delivered is dropped
- no ordering between different songs, no persistence, no cross-process delivery
- a subscriber that raises is logged and skipped; the others still get the event

Each view gets the bus handed in explicitly (no module-level singleton), and a Subscription only
keeps a weak reference back to the bus, so dropping the bus never leaks through views.
"""

import logging
import weakref
from collections.abc import Callable, Iterable
from datetime import datetime

from bandcatalog.domain.entities import SongUpdateEvent

logger = logging.getLogger(__name__)

SongUpdateHandler = Callable[[SongUpdateEvent], None]


class Subscription:
    """Handle returned by MetadataBroadcast.subscribe()."""

    def __init__(
        self,
        broadcast: "MetadataBroadcast",
        handler: SongUpdateHandler,
    ) -> None:
        self._broadcast_ref = weakref.ref(broadcast)
        self.handler = handler
        self.song_ids: set[str] = set()
        self.active = True

    def watch(self, song_ids: Iterable[str]) -> None:
        """Start receiving events for these songs."""
        broadcast = self._broadcast_ref()
        if broadcast is None or not self.active:
            return
        for song_id in song_ids:
            if song_id not in self.song_ids:
                self.song_ids.add(song_id)
                broadcast._index(song_id, self)

    def unwatch(self, song_ids: Iterable[str]) -> None:
        """Stop receiving events for these songs."""
        broadcast = self._broadcast_ref()
        for song_id in list(song_ids):
            if song_id in self.song_ids:
                self.song_ids.discard(song_id)
                if broadcast is not None:
                    broadcast._unindex(song_id, self)

    def replace(self, song_ids: Iterable[str]) -> None:
        """Watch exactly this set of songs."""
        wanted = set(song_ids)
        self.unwatch(self.song_ids - wanted)
        self.watch(wanted - self.song_ids)

    def cancel(self) -> None:
        """Unsubscribe from everything."""
        self.unwatch(set(self.song_ids))
        self.active = False


class MetadataBroadcast:
    """Song update bus for one process."""

    def __init__(self) -> None:
        self._by_song: dict[str, list[Subscription]] = {}
        self._latest: dict[str, datetime] = {}

    def subscribe(
        self, handler: SongUpdateHandler, song_ids: Iterable[str] = ()
    ) -> Subscription:
        """Register a handler, optionally watching some songs right away."""
        subscription = Subscription(self, handler)
        subscription.watch(song_ids)
        return subscription

    def subscriber_count(self, song_id: str) -> int:
        """Number of subscriptions watching a song."""
        return len(self._by_song.get(song_id, ()))

    def publish(self, event: SongUpdateEvent) -> int:
        """Deliver an event to every subscriber watching its song.

        Returns:
            Number of handlers that received the event (0 if it was stale)
        """
        latest = self._latest.get(event.song_id)
        if latest is not None and event.timestamp < latest:
            logger.debug(
                "Dropping stale song update",
                extra={"song_id": event.song_id, "timestamp": event.timestamp.isoformat()},
            )
            return 0
        self._latest[event.song_id] = event.timestamp

        delivered = 0
        for subscription in list(self._by_song.get(event.song_id, ())):
            if not subscription.active:
                continue
            try:
                subscription.handler(event)
                delivered += 1
            except Exception:
                logger.warning(
                    "Song update subscriber failed",
                    extra={"song_id": event.song_id},
                    exc_info=True,
                )
        if event.removed:
            self._latest.pop(event.song_id, None)
        return delivered

    def _index(self, song_id: str, subscription: Subscription) -> None:
        self._by_song.setdefault(song_id, []).append(subscription)

    def _unindex(self, song_id: str, subscription: Subscription) -> None:
        subscribers = self._by_song.get(song_id)
        if not subscribers:
            return
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            del self._by_song[song_id]
