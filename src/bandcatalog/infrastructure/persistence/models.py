"""SQLAlchemy ORM models for bandcatalog."""

import uuid
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, validates

from bandcatalog.domain.value_objects import song_lookup_key


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite hands datetimes back naive. Anything comparing created_at (catalog
# election tie-break!) must go through this first or you'll get offset-naive/aware TypeErrors.
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, the partial unique index is the database half of "exactly one catalog per band".
# Two concurrent ensure_catalog() calls that both decide to CREATE will race here, and the loser
# gets an IntegrityError that the store turns into DuplicateEntityError -> the manager re-checks
# and adopts the winner. Legacy rows named "All Songs" without the flag are NOT covered by the
# index; the healer dedups and flags those.
class SetlistModel(Base):
    """A band's setlist. is_catalog marks the single master catalog."""

    __tablename__ = "setlists"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    band_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_catalog: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    memberships: Mapped[list["SetlistSongModel"]] = relationship(
        "SetlistSongModel",
        back_populates="setlist",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index(
            "uq_setlists_one_catalog_per_band",
            "band_id",
            unique=True,
            sqlite_where=sa.text("is_catalog = 1"),
            postgresql_where=sa.text("is_catalog"),
        ),
    )


class SongModel(Base):
    """A band-wide song record."""

    __tablename__ = "songs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    band_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    artist: Mapped[str] = mapped_column(String(255), nullable=False)
    title_key: Mapped[str] = mapped_column(String(255), nullable=False)
    artist_key: Mapped[str] = mapped_column(String(255), nullable=False)
    bpm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tuning: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    album_artwork: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    @validates("title", "artist")
    def _sync_lookup_key(self, key: str, value: str) -> str:
        setattr(self, f"{key}_key", song_lookup_key(value))
        return value


# one song per band and case-folded (title, artist); the registry relies on this to settle
# create races
Index(
    "uq_songs_band_title_artist",
    SongModel.band_id,
    SongModel.title_key,
    SongModel.artist_key,
    unique=True,
)


class SetlistSongModel(Base):
    """Membership of a song in a setlist, with per-list overrides."""

    __tablename__ = "setlist_songs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    setlist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("setlists.id", ondelete="CASCADE"), nullable=False
    )
    song_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("songs.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bpm_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tuning_override: Mapped[str | None] = mapped_column(String(64), nullable=True)
    duration_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    setlist: Mapped["SetlistModel"] = relationship(
        "SetlistModel", back_populates="memberships"
    )
    song: Mapped["SongModel"] = relationship("SongModel")

    __table_args__ = (
        sa.UniqueConstraint("setlist_id", "song_id", name="uq_setlist_songs_setlist_song"),
        Index("ix_setlist_songs_position", "setlist_id", "position"),
        Index("ix_setlist_songs_song_id", "song_id"),
    )
