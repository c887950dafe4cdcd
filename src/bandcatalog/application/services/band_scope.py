"""Band scope guards shared by the services."""

from bandcatalog.domain.entities import Setlist, Song
from bandcatalog.domain.exceptions import (
    EntityNotFoundError,
    NoBandSelectedError,
    PermissionDeniedError,
)
from bandcatalog.domain.ports import IRemoteStore


def require_band(band_id: str | None, operation: str) -> str:
    """Return the band id, or raise if it is missing/blank."""
    if band_id is None or not str(band_id).strip():
        raise NoBandSelectedError(operation)
    return band_id


# Hey future me - a list in ANOTHER band is reported as not found, not as forbidden. From the
# caller's point of view the list doesn't exist in the band they're working in.
async def load_setlist_in_band(
    store: IRemoteStore, band_id: str, setlist_id: str
) -> Setlist:
    """Fetch a setlist and verify it belongs to the band."""
    setlist = await store.get_setlist(setlist_id)
    if setlist is None or setlist.band_id != band_id:
        raise EntityNotFoundError("Setlist", setlist_id)
    return setlist


async def load_song_in_band(store: IRemoteStore, band_id: str, song_id: str) -> Song:
    """Fetch a song and verify it belongs to the band.

    Raises:
        EntityNotFoundError: Song does not exist
        PermissionDeniedError: Song belongs to another band
    """
    song = await store.get_song(song_id)
    if song is None:
        raise EntityNotFoundError("Song", song_id)
    if song.band_id != band_id:
        raise PermissionDeniedError(f"Song {song_id} does not belong to band {band_id}")
    return song
