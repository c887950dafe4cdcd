"""Global song edits and per-list overrides."""

import logging
from enum import Enum
from typing import Any, Final

from bandcatalog.application.services.band_scope import (
    load_setlist_in_band,
    load_song_in_band,
    require_band,
)
from bandcatalog.application.services.metadata_broadcast import MetadataBroadcast
from bandcatalog.application.services.song_registry import clean_tuning
from bandcatalog.config.settings import MetadataSettings
from bandcatalog.domain.entities import Membership, Song, SongUpdateEvent
from bandcatalog.domain.exceptions import (
    EntityNotFoundError,
    ValidationError,
)
from bandcatalog.domain.ports import IRemoteStore
from bandcatalog.domain.value_objects import normalize_song_text

logger = logging.getLogger(__name__)


class _Unset(Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"


# Hey future me - UNSET means "leave this field alone", None means "clear it". That's how the
# API tells "bpm not sent" apart from "bpm: null".
UNSET: Final = _Unset.UNSET


class SongMetadataService:
    """Validated writes of song metadata.

    Global edits go to the song record and are broadcast to every open view of the song.
    Overrides go to one membership and stay on that list.
    """

    def __init__(
        self,
        store: IRemoteStore,
        settings: MetadataSettings,
        broadcast: MetadataBroadcast | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._broadcast = broadcast

    async def update_song_fields(
        self,
        band_id: str,
        song_id: str,
        *,
        title: str | _Unset = UNSET,
        artist: str | _Unset = UNSET,
        bpm: int | None | _Unset = UNSET,
        duration_seconds: int | None | _Unset = UNSET,
        tuning: str | None | _Unset = UNSET,
        notes: str | None | _Unset = UNSET,
        album_artwork: str | None | _Unset = UNSET,
    ) -> Song:
        """Edit global fields of a song and broadcast what actually changed.

        Raises:
            ValidationError: Empty title/artist or a value out of range
            EntityNotFoundError: Song missing
            PermissionDeniedError: Song belongs to another band
        """
        require_band(band_id, "update_song")
        requested: dict[str, Any] = {}

        if title is not UNSET:
            requested["title"] = self._required_text(title, "title")
        if artist is not UNSET:
            requested["artist"] = self._required_text(artist, "artist")
        if bpm is not UNSET:
            requested["bpm"] = self._check_bpm(bpm)
        if duration_seconds is not UNSET:
            requested["duration_seconds"] = self._check_duration(duration_seconds)
        if tuning is not UNSET:
            requested["tuning"] = clean_tuning(tuning)
        if notes is not UNSET:
            requested["notes"] = (notes or "").strip() or None
        if album_artwork is not UNSET:
            requested["album_artwork"] = (album_artwork or "").strip() or None

        song = await load_song_in_band(self._store, band_id, song_id)
        changes = {
            name: value for name, value in requested.items() if getattr(song, name) != value
        }
        if not changes:
            return song

        updated = await self._store.update_song(song_id, changes)
        if updated is None:
            raise EntityNotFoundError("Song", song_id)

        logger.info(
            "Song metadata updated",
            extra={"band_id": band_id, "song_id": song_id, "fields": sorted(changes)},
        )
        if self._broadcast is not None:
            self._broadcast.publish(SongUpdateEvent(song_id=song_id, changed_fields=changes))
        return updated

    async def set_overrides(
        self,
        band_id: str,
        setlist_id: str,
        song_id: str,
        *,
        bpm: int | None | _Unset = UNSET,
        tuning: str | None | _Unset = UNSET,
        duration_seconds: int | None | _Unset = UNSET,
    ) -> Membership:
        """Set or clear per-list overrides. The global song record is not touched."""
        require_band(band_id, "set_overrides")
        fields: dict[str, Any] = {}
        if bpm is not UNSET:
            fields["bpm_override"] = self._check_bpm(bpm)
        if tuning is not UNSET:
            fields["tuning_override"] = clean_tuning(tuning)
        if duration_seconds is not UNSET:
            fields["duration_override"] = self._check_duration(duration_seconds)

        await load_setlist_in_band(self._store, band_id, setlist_id)
        membership = await self._store.find_membership(setlist_id, song_id)
        if membership is None:
            raise EntityNotFoundError("Membership", f"{setlist_id}/{song_id}")
        if not fields:
            return membership

        updated = await self._store.update_membership(membership.id, **fields)
        logger.debug(
            "Setlist overrides updated",
            extra={"setlist_id": setlist_id, "song_id": song_id, "fields": sorted(fields)},
        )
        return updated

    @staticmethod
    def _required_text(value: str | None, name: str) -> str:
        normalized = normalize_song_text(value)
        if not normalized:
            raise ValidationError(f"Song {name} cannot be empty")
        return normalized

    def _check_bpm(self, bpm: int | None) -> int | None:
        if bpm is None:
            return None
        if not (self._settings.min_bpm <= bpm <= self._settings.max_bpm):
            raise ValidationError(
                f"BPM must be between {self._settings.min_bpm} and {self._settings.max_bpm}"
            )
        return bpm

    def _check_duration(self, seconds: int | None) -> int | None:
        if seconds is None:
            return None
        if not (0 <= seconds <= self._settings.max_duration_seconds):
            raise ValidationError(
                f"Duration must be between 0 and {self._settings.max_duration_seconds} seconds"
            )
        return seconds
