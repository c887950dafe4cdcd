"""Create-or-find for band-wide song records."""

import logging
import uuid
from typing import Any

from bandcatalog.application.services.band_scope import require_band
from bandcatalog.application.services.metadata_broadcast import MetadataBroadcast
from bandcatalog.application.services.tempo_enrichment import TempoEnrichmentService
from bandcatalog.domain.entities import Song, SongUpdateEvent
from bandcatalog.domain.exceptions import (
    DuplicateEntityError,
    TransientError,
    ValidationError,
)
from bandcatalog.domain.ports import IRemoteStore
from bandcatalog.domain.value_objects import SongKey, normalize_tuning

logger = logging.getLogger(__name__)


def clean_tuning(value: str | None) -> str | None:
    """Canonical tuning id if recognized, otherwise the trimmed input (None if blank)."""
    if value is None or not value.strip():
        return None
    normalized = normalize_tuning(value)
    return normalized.id if normalized else value.strip()


class SongRegistry:
    """Deduplicating song store front.

    Songs are unique per band by normalized (title, artist). Finding an existing song fills in
    only its empty fields; present values are never overwritten.
    """

    def __init__(
        self,
        store: IRemoteStore,
        enrichment: TempoEnrichmentService | None = None,
        broadcast: MetadataBroadcast | None = None,
    ) -> None:
        self._store = store
        self._enrichment = enrichment
        self._broadcast = broadcast

    async def create_or_find_song(
        self,
        band_id: str,
        title: str,
        artist: str,
        *,
        bpm: int | None = None,
        tuning: str | None = None,
        duration_seconds: int | None = None,
        album_artwork: str | None = None,
    ) -> str:
        """Return the id of the band's song matching title/artist, creating it if needed."""
        song, _created = await self.find_or_create(
            band_id,
            title,
            artist,
            bpm=bpm,
            tuning=tuning,
            duration_seconds=duration_seconds,
            album_artwork=album_artwork,
        )
        return song.id

    async def find_or_create(
        self,
        band_id: str,
        title: str,
        artist: str,
        *,
        bpm: int | None = None,
        tuning: str | None = None,
        duration_seconds: int | None = None,
        album_artwork: str | None = None,
    ) -> tuple[Song, bool]:
        """Like create_or_find_song() but returns (song, created)."""
        require_band(band_id, "create_or_find_song")
        key = SongKey.from_raw(band_id, title, artist)
        if not key.is_complete():
            raise ValidationError("Song title and artist are required")
        if bpm is not None and bpm <= 0:
            raise ValidationError(f"Invalid bpm: {bpm}")
        if duration_seconds is not None and duration_seconds < 0:
            raise ValidationError(f"Invalid duration: {duration_seconds}")

        fields: dict[str, Any] = {
            "bpm": bpm,
            "tuning": clean_tuning(tuning),
            "duration_seconds": duration_seconds,
            "album_artwork": album_artwork.strip() if album_artwork else None,
        }

        existing = await self._store.find_song(band_id, key.title, key.artist)
        if existing is not None:
            return await self._fill_missing(existing, fields), False

        candidate = Song(
            id=str(uuid.uuid4()),
            band_id=band_id,
            title=key.title,
            artist=key.artist,
            **fields,
        )
        try:
            created = await self._store.insert_song(candidate)
        except DuplicateEntityError:
            # Hey future me - two adds of the same song raced past find_song(). The unique index
            # let exactly one insert through; adopt that one instead of failing.
            winner = await self._store.find_song(band_id, key.title, key.artist)
            if winner is None:
                raise TransientError(
                    f"Song '{key.title}' by '{key.artist}' conflicted but could not be re-read"
                ) from None
            logger.info(
                "Song insert lost a race, using existing record",
                extra={"band_id": band_id, "song_id": winner.id},
            )
            return await self._fill_missing(winner, fields), False

        logger.debug(
            "Song created",
            extra={"band_id": band_id, "song_id": created.id, "title": created.title},
        )
        self._request_enrichment(created)
        return created, True

    async def _fill_missing(self, song: Song, fields: dict[str, Any]) -> Song:
        missing = song.missing_fields(**fields)
        if missing:
            updated = await self._store.update_song(song.id, missing)
            if updated is None:
                raise TransientError(f"Song {song.id} was deleted while being updated")
            song = updated
            if self._broadcast is not None:
                self._broadcast.publish(
                    SongUpdateEvent(song_id=song.id, changed_fields=dict(missing))
                )
        self._request_enrichment(song)
        return song

    def _request_enrichment(self, song: Song) -> None:
        if song.bpm is None and self._enrichment is not None:
            self._enrichment.schedule(song.id, song.title, song.artist)
