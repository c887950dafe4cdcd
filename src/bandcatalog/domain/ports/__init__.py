"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from bandcatalog.domain.entities import Membership, Setlist, SetlistSong, Song


# Hey future me, this is THE contract between the consistency engine and whatever stores the data.
# Every method is ONE primitive write or read - the store gives no cross-call transactions, so
# anything multi-step (catalog healing, cascade delete, bulk import) is orchestrated in the
# application services and must tolerate a failure between any two calls. Implementations must:
# - translate driver errors into domain exceptions (DuplicateEntityError, SchemaMismatchError,
#   TransientError) - never leak raw driver errors
# - keep positions of every list contiguous (0..n-1) after each membership insert/delete
class IRemoteStore(ABC):
    """Remote store for setlists, songs and memberships."""

    # --- setlists -------------------------------------------------------

    @abstractmethod
    async def list_setlists(self, band_id: str) -> list[Setlist]:
        """List a band's setlists with song_count and total_duration_seconds.

        Ordered by creation time, oldest first.
        """
        pass

    @abstractmethod
    async def get_setlist(self, setlist_id: str) -> Setlist | None:
        """Get one setlist (with aggregates) by id, regardless of band."""
        pass

    @abstractmethod
    async def create_setlist(
        self, band_id: str, name: str, *, is_catalog: bool = False
    ) -> Setlist:
        """Create a setlist.

        Raises:
            DuplicateEntityError: If a catalog already exists for the band
        """
        pass

    @abstractmethod
    async def update_setlist(
        self,
        setlist_id: str,
        *,
        name: str | None = None,
        is_catalog: bool | None = None,
    ) -> None:
        """Update name and/or catalog flag. None leaves a field unchanged."""
        pass

    @abstractmethod
    async def delete_setlist(self, setlist_id: str) -> None:
        """Delete a setlist and all of its memberships."""
        pass

    # --- memberships ----------------------------------------------------

    @abstractmethod
    async def fetch_setlist_songs(self, setlist_id: str) -> list[SetlistSong]:
        """Memberships of a list joined with their songs, ordered by position."""
        pass

    @abstractmethod
    async def find_membership(self, setlist_id: str, song_id: str) -> Membership | None:
        """Get the membership of a song in a list, if any."""
        pass

    @abstractmethod
    async def append_membership(
        self,
        setlist_id: str,
        song_id: str,
        *,
        bpm_override: int | None = None,
        tuning_override: str | None = None,
        duration_override: int | None = None,
    ) -> Membership:
        """Insert a membership at the next position (max + 1) of the list.

        Raises:
            DuplicateEntityError: If the song is already in the list
        """
        pass

    @abstractmethod
    async def update_membership(self, membership_id: str, **fields: Any) -> Membership:
        """Update position and/or override fields of one membership."""
        pass

    @abstractmethod
    async def delete_membership(self, setlist_id: str, song_id: str) -> bool:
        """Delete one membership and compact the list. Returns False if absent."""
        pass

    @abstractmethod
    async def delete_memberships(self, band_id: str, membership_ids: Sequence[str]) -> int:
        """Delete memberships by id (only those in the band's lists). Returns the count."""
        pass

    @abstractmethod
    async def reposition_memberships(
        self, setlist_id: str, song_ids: Sequence[str]
    ) -> None:
        """Atomically set positions so that song_ids[i] sits at position i.

        Raises:
            SchemaMismatchError: If the backend does not offer this primitive
            ValidationError: If song_ids is not exactly the list's songs
        """
        pass

    # --- songs ----------------------------------------------------------

    @abstractmethod
    async def find_song(self, band_id: str, title: str, artist: str) -> Song | None:
        """Case-insensitive lookup by (band, title, artist)."""
        pass

    @abstractmethod
    async def get_song(self, song_id: str) -> Song | None:
        """Get a song by id, regardless of band."""
        pass

    @abstractmethod
    async def list_songs_missing_bpm(self, band_id: str, limit: int = 100) -> list[Song]:
        """Songs of a band that have no bpm yet."""
        pass

    @abstractmethod
    async def insert_song(self, song: Song) -> Song:
        """Insert a song.

        Raises:
            DuplicateEntityError: If the (band, title, artist) key already exists
        """
        pass

    @abstractmethod
    async def update_song(self, song_id: str, fields: dict[str, Any]) -> Song | None:
        """Write global song fields (None values clear). Returns None if the song is gone."""
        pass

    @abstractmethod
    async def delete_song(self, song_id: str) -> bool:
        """Delete a song row. Returns False if it was already gone."""
        pass


class ITempoLookup(ABC):
    """External tempo (BPM) lookup."""

    @abstractmethod
    async def lookup_bpm(self, title: str, artist: str) -> int | None:
        """Look up the tempo of a song. None if unknown."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        pass


__all__ = ["IRemoteStore", "ITempoLookup"]
