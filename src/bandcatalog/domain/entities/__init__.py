"""Domain entities."""

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from bandcatalog.domain.entities.error_codes import (
    USER_MESSAGES,
    ErrorKind,
    get_user_message,
    is_retryable_error,
)

# Global song fields that can be edited and broadcast. Overrides live on Membership instead.
SONG_GLOBAL_FIELDS: frozenset[str] = frozenset(
    {"title", "artist", "bpm", "duration_seconds", "tuning", "notes", "album_artwork"}
)


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(UTC)


@dataclass
class Setlist:
    """A named, ordered list of songs belonging to a band.

    song_count and total_duration_seconds are aggregates computed by the store when the
    list is fetched; they are not updated locally.
    """

    id: str
    band_id: str
    name: str
    is_catalog: bool = False
    song_count: int = 0
    total_duration_seconds: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Validate setlist data."""
        if not self.band_id:
            raise ValueError("Setlist requires a band_id")
        if not self.name or not self.name.strip():
            raise ValueError("Setlist name cannot be empty")


@dataclass
class Song:
    """A band-wide song record. One per (band, normalized title, normalized artist)."""

    id: str
    band_id: str
    title: str
    artist: str
    bpm: int | None = None
    duration_seconds: int | None = None
    tuning: str | None = None
    notes: str | None = None
    album_artwork: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        """Validate song data."""
        if not self.band_id:
            raise ValueError("Song requires a band_id")
        if not self.title or not self.title.strip():
            raise ValueError("Song title cannot be empty")
        if not self.artist or not self.artist.strip():
            raise ValueError("Song artist cannot be empty")

    # Hey future me - this is the "never clobber" rule! When an existing song is found again
    # (bulk import, manual add), only fields that are None on the record get filled. A bpm the
    # band typed in by hand must never be overwritten by a pasted spreadsheet value.
    def missing_fields(self, **candidates: Any) -> dict[str, Any]:
        """Subset of candidate values for fields that are currently empty on this song."""
        return {
            name: value
            for name, value in candidates.items()
            if value is not None and getattr(self, name) is None
        }

    def with_changes(self, changes: dict[str, Any]) -> "Song":
        """Copy of this song with global field changes applied."""
        allowed = {k: v for k, v in changes.items() if k in SONG_GLOBAL_FIELDS}
        return replace(self, **allowed)


@dataclass
class Membership:
    """A song's place in one setlist, with optional per-list overrides.

    An override of None means "inherit the song's global value".
    """

    id: str
    setlist_id: str
    song_id: str
    position: int
    bpm_override: int | None = None
    tuning_override: str | None = None
    duration_override: int | None = None

    def __post_init__(self) -> None:
        """Validate membership data."""
        if self.position < 0:
            raise ValueError("Membership position cannot be negative")


@dataclass(frozen=True)
class SetlistSong:
    """Display row: a membership joined with its song."""

    membership: Membership
    song: Song

    @property
    def song_id(self) -> str:
        return self.song.id

    @property
    def membership_id(self) -> str:
        return self.membership.id

    @property
    def position(self) -> int:
        return self.membership.position

    @property
    def title(self) -> str:
        return self.song.title

    @property
    def artist(self) -> str:
        return self.song.artist

    @property
    def effective_bpm(self) -> int | None:
        if self.membership.bpm_override is not None:
            return self.membership.bpm_override
        return self.song.bpm

    @property
    def effective_tuning(self) -> str | None:
        if self.membership.tuning_override is not None:
            return self.membership.tuning_override
        return self.song.tuning

    @property
    def effective_duration_seconds(self) -> int | None:
        if self.membership.duration_override is not None:
            return self.membership.duration_override
        return self.song.duration_seconds

    def with_position(self, position: int) -> "SetlistSong":
        """Copy with a new position."""
        return replace(self, membership=replace(self.membership, position=position))

    def with_song(self, song: Song) -> "SetlistSong":
        """Copy with an updated song record (overrides are kept)."""
        return replace(self, song=song)


def total_duration(songs: "list[SetlistSong] | tuple[SetlistSong, ...]") -> int:
    """Sum of effective durations; songs without a duration count as 0."""
    return sum(s.effective_duration_seconds or 0 for s in songs)


@dataclass(frozen=True)
class SongUpdateEvent:
    """A change to a song's global fields.

    changed_fields maps field name to its new value; a value of None means the field was
    cleared. removed=True means the song was deleted through the catalog.
    """

    song_id: str
    changed_fields: dict[str, Any]
    timestamp: datetime = field(default_factory=utc_now)
    removed: bool = False


@dataclass(frozen=True)
class AddSongResult:
    """Outcome of adding a song to a list (catalog-first)."""

    success: bool
    song_id: str
    catalog_id: str
    was_already_in_catalog: bool = False
    was_already_in_list: bool = False
    list_membership_id: str | None = None
    song_title: str = ""
    song_artist: str = ""

    @property
    def message(self) -> str:
        """Short confirmation text for the UI."""
        label = f'"{self.song_title}"' if self.song_title else "Song"
        if self.was_already_in_list:
            return f"{label} is already in this setlist"
        return f"{label} added"


@dataclass(frozen=True)
class CascadeDeleteReport:
    """Outcome of removing a song through the catalog."""

    song_id: str
    removed_memberships: int
    lists_touched: list[str] = field(default_factory=list)


class BulkRowIssue(str, Enum):
    """Per-row problem found while parsing bulk input."""

    MISSING_TITLE = "missing_title"
    MISSING_ARTIST = "missing_artist"
    INVALID_BPM = "invalid_bpm"
    UNKNOWN_TUNING = "unknown_tuning"


@dataclass(frozen=True)
class BulkSongRow:
    """One parsed line of bulk input.

    error set -> row is rejected; warning set -> row is imported with the noted field dropped.
    """

    line_number: int
    artist: str
    title: str
    bpm: int | None = None
    tuning: str | None = None
    tuning_label: str | None = None
    raw_bpm: str = ""
    raw_tuning: str = ""
    error: BulkRowIssue | None = None
    error_message: str | None = None
    warning: BulkRowIssue | None = None
    warning_message: str | None = None

    @property
    def is_valid(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BulkParseResult:
    """Result of parsing raw bulk text."""

    all_rows: list[BulkSongRow] = field(default_factory=list)
    valid_rows: list[BulkSongRow] = field(default_factory=list)
    invalid_rows: list[BulkSongRow] = field(default_factory=list)
    duplicates_removed: int = 0
    truncated_count: int = 0

    @property
    def has_valid_rows(self) -> bool:
        return bool(self.valid_rows)

    @property
    def warning_count(self) -> int:
        return sum(1 for row in self.valid_rows if row.warning is not None)


@dataclass(frozen=True)
class BulkAddResult:
    """Result of a bulk add. target_list_membership_ids is the undo token set."""

    added_count: int
    catalog_id: str
    target_list_membership_ids: list[str] = field(default_factory=list)
    failed_rows: list[BulkSongRow] = field(default_factory=list)

    @property
    def can_undo(self) -> bool:
        return bool(self.target_list_membership_ids)


__all__ = [
    "SONG_GLOBAL_FIELDS",
    "USER_MESSAGES",
    "AddSongResult",
    "BulkAddResult",
    "BulkParseResult",
    "BulkRowIssue",
    "BulkSongRow",
    "CascadeDeleteReport",
    "ErrorKind",
    "Membership",
    "Setlist",
    "SetlistSong",
    "Song",
    "SongUpdateEvent",
    "get_user_message",
    "is_retryable_error",
    "total_duration",
    "utc_now",
]
