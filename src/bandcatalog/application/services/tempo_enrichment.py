"""Best-effort tempo (BPM) enrichment for songs that have none."""

import asyncio
import logging

from bandcatalog.application.services.metadata_broadcast import MetadataBroadcast
from bandcatalog.config.settings import TempoSettings
from bandcatalog.domain.entities import SongUpdateEvent
from bandcatalog.domain.ports import IRemoteStore, ITempoLookup

logger = logging.getLogger(__name__)

MIN_ENRICHED_BPM = 1
MAX_ENRICHED_BPM = 300


# Hey future me - everything here is fire-and-forget. A song without bpm is perfectly valid,
# so a failed or slow lookup must never surface to whoever created the song. We keep strong
# refs to scheduled tasks (asyncio only holds weak ones) and drain() them on shutdown/in tests.
class TempoEnrichmentService:
    """Looks up missing bpm values and writes them back."""

    def __init__(
        self,
        store: IRemoteStore,
        lookup: ITempoLookup | None,
        broadcast: MetadataBroadcast | None,
        settings: TempoSettings,
    ) -> None:
        self._store = store
        self._lookup = lookup
        self._broadcast = broadcast
        self._settings = settings
        self._tasks: set[asyncio.Task[int | None]] = set()

    @property
    def enabled(self) -> bool:
        return self._lookup is not None and self._settings.enabled

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, song_id: str, title: str, artist: str) -> asyncio.Task[int | None] | None:
        """Start a background lookup for one song. Returns the task, or None if disabled."""
        if not self.enabled:
            return None
        task = asyncio.create_task(
            self._enrich_quietly(song_id, title, artist),
            name=f"tempo-enrich-{song_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def enrich_song(self, song_id: str, title: str, artist: str) -> int | None:
        """Look up and store bpm for one song. Returns the bpm written, if any.

        Never overwrites a bpm that appeared on the song in the meantime.
        """
        if self._lookup is None:
            return None
        bpm = await self._lookup.lookup_bpm(title, artist)
        if bpm is None or not (MIN_ENRICHED_BPM <= bpm <= MAX_ENRICHED_BPM):
            return None

        song = await self._store.get_song(song_id)
        if song is None or song.bpm is not None:
            return None
        updated = await self._store.update_song(song_id, {"bpm": bpm})
        if updated is None:
            return None

        logger.debug(
            "Song tempo enriched",
            extra={"song_id": song_id, "bpm": bpm},
        )
        if self._broadcast is not None:
            self._broadcast.publish(SongUpdateEvent(song_id=song_id, changed_fields={"bpm": bpm}))
        return bpm

    async def _enrich_quietly(self, song_id: str, title: str, artist: str) -> int | None:
        try:
            return await self.enrich_song(song_id, title, artist)
        except Exception:
            logger.debug(
                "Tempo enrichment failed",
                extra={"song_id": song_id, "title": title, "artist": artist},
                exc_info=True,
            )
            return None

    async def enrich_missing(self, band_id: str, limit: int = 100) -> int:
        """Enrich a band's songs without bpm in small batches. Returns how many got one."""
        if not self.enabled:
            return 0
        songs = await self._store.list_songs_missing_bpm(band_id, limit=limit)
        enriched = 0
        batch_size = self._settings.batch_size
        for start in range(0, len(songs), batch_size):
            if start:
                await asyncio.sleep(self._settings.batch_delay_seconds)
            batch = songs[start : start + batch_size]
            results = await asyncio.gather(
                *(self._enrich_quietly(s.id, s.title, s.artist) for s in batch)
            )
            enriched += sum(1 for r in results if r is not None)

        logger.info(
            "Tempo enrichment pass finished",
            extra={"band_id": band_id, "candidates": len(songs), "enriched": enriched},
        )
        return enriched

    async def drain(self) -> None:
        """Wait for all scheduled lookups to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel pending lookups and close the lookup client."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._lookup is not None:
            await self._lookup.close()
