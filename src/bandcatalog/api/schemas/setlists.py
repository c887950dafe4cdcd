"""API schemas for setlists and their songs."""

from datetime import datetime

from pydantic import BaseModel, Field

from bandcatalog.application.services.setlist_service import SetlistSongs
from bandcatalog.application.services.sort_policy import ListSortMode
from bandcatalog.domain.entities import AddSongResult, Membership, Setlist, SetlistSong


class SetlistResponse(BaseModel):
    """A setlist with its aggregates."""

    id: str
    band_id: str
    name: str
    is_catalog: bool
    song_count: int
    total_duration_seconds: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, setlist: Setlist) -> "SetlistResponse":
        return cls(
            id=setlist.id,
            band_id=setlist.band_id,
            name=setlist.name,
            is_catalog=setlist.is_catalog,
            song_count=setlist.song_count,
            total_duration_seconds=setlist.total_duration_seconds,
            created_at=setlist.created_at,
            updated_at=setlist.updated_at,
        )


class SetlistListResponse(BaseModel):
    """All setlists of a band, catalog first."""

    setlists: list[SetlistResponse]
    catalog_id: str | None = Field(default=None, description="Id of the band's catalog")


class SetlistCreateRequest(BaseModel):
    """Create a setlist."""

    name: str = Field(..., min_length=1, max_length=200)


class SetlistRenameRequest(BaseModel):
    """Rename a setlist."""

    name: str = Field(..., min_length=1, max_length=200)


class SetlistSongResponse(BaseModel):
    """One song row of a setlist, with per-list overrides already applied."""

    song_id: str
    membership_id: str
    position: int
    title: str
    artist: str
    bpm: int | None = Field(default=None, description="Effective bpm (override wins)")
    tuning: str | None = Field(default=None, description="Effective tuning (override wins)")
    duration_seconds: int | None = None
    notes: str | None = None
    album_artwork: str | None = None
    bpm_override: int | None = None
    tuning_override: str | None = None
    duration_override: int | None = None

    @classmethod
    def from_entity(cls, song: SetlistSong) -> "SetlistSongResponse":
        return cls(
            song_id=song.song_id,
            membership_id=song.membership_id,
            position=song.position,
            title=song.title,
            artist=song.artist,
            bpm=song.effective_bpm,
            tuning=song.effective_tuning,
            duration_seconds=song.effective_duration_seconds,
            notes=song.song.notes,
            album_artwork=song.song.album_artwork,
            bpm_override=song.membership.bpm_override,
            tuning_override=song.membership.tuning_override,
            duration_override=song.membership.duration_override,
        )


class SetlistSongsResponse(BaseModel):
    """Songs of a setlist in display order."""

    setlist: SetlistResponse
    sort_mode: ListSortMode
    song_count: int
    total_duration_seconds: int
    songs: list[SetlistSongResponse]

    @classmethod
    def from_result(cls, result: SetlistSongs) -> "SetlistSongsResponse":
        return cls(
            setlist=SetlistResponse.from_entity(result.setlist),
            sort_mode=result.sort_mode,
            song_count=result.song_count,
            total_duration_seconds=result.total_duration_seconds,
            songs=[SetlistSongResponse.from_entity(s) for s in result.songs],
        )


class ReorderRequest(BaseModel):
    """Complete new manual order of a setlist."""

    song_ids: list[str] = Field(..., description="Every song id of the list, in new order")


class AddSongRequest(BaseModel):
    """Add a song by id, or by title/artist (created if the band doesn't have it yet)."""

    song_id: str | None = None
    title: str | None = None
    artist: str | None = None
    bpm: int | None = Field(default=None, ge=1, le=300)
    tuning: str | None = None
    duration_seconds: int | None = Field(default=None, ge=0)
    album_artwork: str | None = None


class AddSongResponse(BaseModel):
    """Outcome of a catalog-first add."""

    success: bool
    song_id: str
    catalog_id: str
    was_already_in_catalog: bool
    was_already_in_list: bool
    membership_id: str | None
    message: str

    @classmethod
    def from_result(cls, result: AddSongResult) -> "AddSongResponse":
        return cls(
            success=result.success,
            song_id=result.song_id,
            catalog_id=result.catalog_id,
            was_already_in_catalog=result.was_already_in_catalog,
            was_already_in_list=result.was_already_in_list,
            membership_id=result.list_membership_id,
            message=result.message,
        )


class OverridesRequest(BaseModel):
    """Per-list overrides. Omitted fields stay as they are, null clears an override."""

    bpm: int | None = None
    tuning: str | None = None
    duration_seconds: int | None = None


class MembershipResponse(BaseModel):
    """A song's membership in one setlist."""

    id: str
    setlist_id: str
    song_id: str
    position: int
    bpm_override: int | None
    tuning_override: str | None
    duration_override: int | None

    @classmethod
    def from_entity(cls, membership: Membership) -> "MembershipResponse":
        return cls(
            id=membership.id,
            setlist_id=membership.setlist_id,
            song_id=membership.song_id,
            position=membership.position,
            bpm_override=membership.bpm_override,
            tuning_override=membership.tuning_override,
            duration_override=membership.duration_override,
        )
