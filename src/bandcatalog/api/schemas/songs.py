"""API schemas for band-wide song records."""

from datetime import datetime

from pydantic import BaseModel, Field

from bandcatalog.domain.entities import CascadeDeleteReport, Song


class SongResponse(BaseModel):
    """A song's global fields."""

    id: str
    band_id: str
    title: str
    artist: str
    bpm: int | None
    duration_seconds: int | None
    tuning: str | None
    notes: str | None
    album_artwork: str | None
    updated_at: datetime

    @classmethod
    def from_entity(cls, song: Song) -> "SongResponse":
        return cls(
            id=song.id,
            band_id=song.band_id,
            title=song.title,
            artist=song.artist,
            bpm=song.bpm,
            duration_seconds=song.duration_seconds,
            tuning=song.tuning,
            notes=song.notes,
            album_artwork=song.album_artwork,
            updated_at=song.updated_at,
        )


# Hey future me - only fields the client actually SENT are applied (model_fields_set). Sending
# "bpm": null clears the bpm, leaving bpm out keeps it.
class SongUpdateRequest(BaseModel):
    """Edit global song fields."""

    title: str | None = Field(default=None, max_length=300)
    artist: str | None = Field(default=None, max_length=300)
    bpm: int | None = None
    duration_seconds: int | None = None
    tuning: str | None = None
    notes: str | None = None
    album_artwork: str | None = None


class CascadeDeleteResponse(BaseModel):
    """Outcome of deleting a song through the catalog."""

    song_id: str
    removed_memberships: int
    lists_touched: list[str]

    @classmethod
    def from_report(cls, report: CascadeDeleteReport) -> "CascadeDeleteResponse":
        return cls(
            song_id=report.song_id,
            removed_memberships=report.removed_memberships,
            lists_touched=list(report.lists_touched),
        )
