"""SQLAlchemy implementation of the remote store port.

Each public method is one primitive and runs in its own transaction (Database.session_scope).
Nothing here spans calls; multi-step flows live in the application services.
"""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Select, delete, func, select
from sqlalchemy.exc import (
    IntegrityError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from bandcatalog.domain.entities import (
    SONG_GLOBAL_FIELDS,
    Membership,
    Setlist,
    SetlistSong,
    Song,
)
from bandcatalog.domain.exceptions import (
    DomainException,
    DuplicateEntityError,
    EntityNotFoundError,
    SchemaMismatchError,
    TransientError,
    ValidationError,
)
from bandcatalog.domain.ports import IRemoteStore
from bandcatalog.domain.value_objects import song_lookup_key
from bandcatalog.infrastructure.persistence.database import Database
from bandcatalog.infrastructure.persistence.models import (
    SetlistModel,
    SetlistSongModel,
    SongModel,
    ensure_utc_aware,
)

logger = logging.getLogger(__name__)

MEMBERSHIP_FIELDS = frozenset(
    {"position", "bpm_override", "tuning_override", "duration_override"}
)

# Substrings of driver messages that mean "your schema is older/newer than this code".
# SQLite says "no such column"; Postgres reports SQLSTATE 42703/42883/42P01.
_SCHEMA_ERROR_MARKERS = (
    "no such column",
    "no such table",
    "no such function",
    "has no column named",
    "does not exist",
    "undefinedcolumn",
    "undefinedfunction",
    "undefinedtable",
    "42703",
    "42883",
    "42p01",
)


def _is_schema_error(exc: SQLAlchemyError) -> bool:
    text = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in text for marker in _SCHEMA_ERROR_MARKERS)


def _is_foreign_key_error(exc: IntegrityError) -> bool:
    text = str(exc.orig or exc).lower()
    return "foreign key" in text or "23503" in text


# Hey future me, this is the ONLY place raw SQLAlchemy errors are allowed to exist. Everything
# leaving the store is a DomainException so services can branch on kind:
# - unique violation      -> DuplicateEntityError (registry re-queries the winner)
# - FK violation          -> EntityNotFoundError (row vanished under us)
# - missing column/table  -> SchemaMismatchError (services may fall back)
# - anything else         -> TransientError (user sees "network error, retry")
@asynccontextmanager
async def store_errors(
    operation: str, entity_type: str = "Row", entity_id: Any = None
) -> AsyncIterator[None]:
    """Translate SQLAlchemy errors raised in the block into domain exceptions."""
    try:
        yield
    except DomainException:
        raise
    except IntegrityError as e:
        if _is_foreign_key_error(e):
            raise EntityNotFoundError(entity_type, entity_id) from e
        raise DuplicateEntityError(entity_type, entity_id) from e
    except (OperationalError, ProgrammingError) as e:
        if _is_schema_error(e):
            logger.warning(
                "Store schema mismatch during %s: %s",
                operation,
                e,
                extra={"operation": operation},
            )
            raise SchemaMismatchError(
                f"Store is missing a capability needed by {operation}",
                capability=operation,
            ) from e
        raise TransientError(f"{operation} failed: {e}") from e
    except SQLAlchemyError as e:
        raise TransientError(f"{operation} failed: {e}") from e


def _to_song(model: SongModel) -> Song:
    return Song(
        id=model.id,
        band_id=model.band_id,
        title=model.title,
        artist=model.artist,
        bpm=model.bpm,
        duration_seconds=model.duration_seconds,
        tuning=model.tuning,
        notes=model.notes,
        album_artwork=model.album_artwork,
        created_at=ensure_utc_aware(model.created_at),
        updated_at=ensure_utc_aware(model.updated_at),
    )


def _to_membership(model: SetlistSongModel) -> Membership:
    return Membership(
        id=model.id,
        setlist_id=model.setlist_id,
        song_id=model.song_id,
        position=model.position,
        bpm_override=model.bpm_override,
        tuning_override=model.tuning_override,
        duration_override=model.duration_override,
    )


def _to_setlist(model: SetlistModel, song_count: int, total_duration: int) -> Setlist:
    return Setlist(
        id=model.id,
        band_id=model.band_id,
        name=model.name,
        is_catalog=bool(model.is_catalog),
        song_count=int(song_count or 0),
        total_duration_seconds=int(total_duration or 0),
        created_at=ensure_utc_aware(model.created_at),
        updated_at=ensure_utc_aware(model.updated_at),
    )


def _setlists_with_aggregates() -> Select[Any]:
    effective_duration = func.coalesce(
        SetlistSongModel.duration_override, SongModel.duration_seconds
    )
    return (
        select(
            SetlistModel,
            func.count(SetlistSongModel.id),
            func.coalesce(func.sum(effective_duration), 0),
        )
        .outerjoin(SetlistSongModel, SetlistSongModel.setlist_id == SetlistModel.id)
        .outerjoin(SongModel, SongModel.id == SetlistSongModel.song_id)
        .group_by(SetlistModel.id)
    )


async def _compact_positions(session: AsyncSession, setlist_id: str) -> None:
    """Renumber a list's memberships to 0..n-1 keeping their relative order."""
    stmt = (
        select(SetlistSongModel)
        .where(SetlistSongModel.setlist_id == setlist_id)
        .order_by(SetlistSongModel.position, SetlistSongModel.created_at)
    )
    result = await session.execute(stmt)
    for index, model in enumerate(result.scalars().all()):
        if model.position != index:
            model.position = index


class SqlAlchemyRemoteStore(IRemoteStore):
    """Remote store backed by SQLAlchemy async sessions."""

    def __init__(self, database: Database, atomic_reposition: bool = True) -> None:
        """Initialize store.

        Args:
            database: Database providing session_scope()
            atomic_reposition: Whether reposition_memberships is offered
        """
        self._db = database
        self._atomic_reposition = atomic_reposition

    # --- setlists -------------------------------------------------------

    async def list_setlists(self, band_id: str) -> list[Setlist]:
        """List a band's setlists with aggregates, oldest first."""
        stmt = (
            _setlists_with_aggregates()
            .where(SetlistModel.band_id == band_id)
            .order_by(SetlistModel.created_at, SetlistModel.id)
        )
        async with (
            store_errors("list_setlists", "Band", band_id),
            self._db.session_scope() as session,
        ):
            result = await session.execute(stmt)
            return [
                _to_setlist(model, count, total) for model, count, total in result.all()
            ]

    async def get_setlist(self, setlist_id: str) -> Setlist | None:
        """Get one setlist with aggregates."""
        stmt = _setlists_with_aggregates().where(SetlistModel.id == setlist_id)
        async with (
            store_errors("get_setlist", "Setlist", setlist_id),
            self._db.session_scope() as session,
        ):
            row = (await session.execute(stmt)).first()
            if row is None:
                return None
            model, count, total = row
            return _to_setlist(model, count, total)

    async def create_setlist(
        self, band_id: str, name: str, *, is_catalog: bool = False
    ) -> Setlist:
        """Create a setlist (DuplicateEntityError if a second catalog is attempted)."""
        async with (
            store_errors("create_setlist", "Setlist", name),
            self._db.session_scope() as session,
        ):
            model = SetlistModel(band_id=band_id, name=name, is_catalog=is_catalog)
            session.add(model)
            await session.flush()
            return _to_setlist(model, 0, 0)

    async def update_setlist(
        self,
        setlist_id: str,
        *,
        name: str | None = None,
        is_catalog: bool | None = None,
    ) -> None:
        """Update name and/or catalog flag."""
        async with (
            store_errors("update_setlist", "Setlist", setlist_id),
            self._db.session_scope() as session,
        ):
            model = await session.get(SetlistModel, setlist_id)
            if model is None:
                raise EntityNotFoundError("Setlist", setlist_id)
            if name is not None:
                model.name = name
            if is_catalog is not None:
                model.is_catalog = is_catalog

    async def delete_setlist(self, setlist_id: str) -> None:
        """Delete a setlist and its memberships."""
        async with (
            store_errors("delete_setlist", "Setlist", setlist_id),
            self._db.session_scope() as session,
        ):
            await session.execute(
                delete(SetlistSongModel).where(SetlistSongModel.setlist_id == setlist_id)
            )
            await session.execute(delete(SetlistModel).where(SetlistModel.id == setlist_id))

    # --- memberships ----------------------------------------------------

    async def fetch_setlist_songs(self, setlist_id: str) -> list[SetlistSong]:
        """Memberships joined with songs, ordered by position."""
        stmt = (
            select(SetlistSongModel, SongModel)
            .join(SongModel, SongModel.id == SetlistSongModel.song_id)
            .where(SetlistSongModel.setlist_id == setlist_id)
            .order_by(SetlistSongModel.position, SetlistSongModel.created_at)
        )
        async with (
            store_errors("fetch_setlist_songs", "Setlist", setlist_id),
            self._db.session_scope() as session,
        ):
            result = await session.execute(stmt)
            return [
                SetlistSong(membership=_to_membership(m), song=_to_song(s))
                for m, s in result.all()
            ]

    async def find_membership(self, setlist_id: str, song_id: str) -> Membership | None:
        """Membership of a song in a list, if any."""
        stmt = select(SetlistSongModel).where(
            SetlistSongModel.setlist_id == setlist_id,
            SetlistSongModel.song_id == song_id,
        )
        async with (
            store_errors("find_membership", "Membership", song_id),
            self._db.session_scope() as session,
        ):
            model = (await session.execute(stmt)).scalar_one_or_none()
            return _to_membership(model) if model else None

    async def append_membership(
        self,
        setlist_id: str,
        song_id: str,
        *,
        bpm_override: int | None = None,
        tuning_override: str | None = None,
        duration_override: int | None = None,
    ) -> Membership:
        """Insert at max(position) + 1."""
        next_position = select(
            func.coalesce(func.max(SetlistSongModel.position), -1) + 1
        ).where(SetlistSongModel.setlist_id == setlist_id)
        async with (
            store_errors("append_membership", "Membership", f"{setlist_id}/{song_id}"),
            self._db.session_scope() as session,
        ):
            position = (await session.execute(next_position)).scalar_one()
            model = SetlistSongModel(
                setlist_id=setlist_id,
                song_id=song_id,
                position=position,
                bpm_override=bpm_override,
                tuning_override=tuning_override,
                duration_override=duration_override,
            )
            session.add(model)
            await session.flush()
            return _to_membership(model)

    async def update_membership(self, membership_id: str, **fields: Any) -> Membership:
        """Update position and/or overrides."""
        unknown = set(fields) - MEMBERSHIP_FIELDS
        if unknown:
            raise ValidationError(f"Unknown membership fields: {sorted(unknown)}")
        async with (
            store_errors("update_membership", "Membership", membership_id),
            self._db.session_scope() as session,
        ):
            model = await session.get(SetlistSongModel, membership_id)
            if model is None:
                raise EntityNotFoundError("Membership", membership_id)
            for name, value in fields.items():
                setattr(model, name, value)
            await session.flush()
            return _to_membership(model)

    async def delete_membership(self, setlist_id: str, song_id: str) -> bool:
        """Delete one membership and compact the list."""
        async with (
            store_errors("delete_membership", "Membership", song_id),
            self._db.session_scope() as session,
        ):
            result = await session.execute(
                delete(SetlistSongModel).where(
                    SetlistSongModel.setlist_id == setlist_id,
                    SetlistSongModel.song_id == song_id,
                )
            )
            if not result.rowcount:  # type: ignore[attr-defined]
                return False
            await _compact_positions(session, setlist_id)
            return True

    async def delete_memberships(self, band_id: str, membership_ids: Sequence[str]) -> int:
        """Delete memberships by id within a band's lists and compact affected lists."""
        if not membership_ids:
            return 0
        stmt = (
            select(SetlistSongModel.id, SetlistSongModel.setlist_id)
            .join(SetlistModel, SetlistModel.id == SetlistSongModel.setlist_id)
            .where(
                SetlistModel.band_id == band_id,
                SetlistSongModel.id.in_(list(membership_ids)),
            )
        )
        async with (
            store_errors("delete_memberships", "Band", band_id),
            self._db.session_scope() as session,
        ):
            rows = (await session.execute(stmt)).all()
            if not rows:
                return 0
            ids = [row[0] for row in rows]
            await session.execute(
                delete(SetlistSongModel).where(SetlistSongModel.id.in_(ids))
            )
            for setlist_id in {row[1] for row in rows}:
                await _compact_positions(session, setlist_id)
            return len(ids)

    # Listen up, "atomic" here means ONE transaction: either every position changes or none do.
    # We still go through an offset phase (n+i, flush, then i) so a backend with a unique
    # (setlist_id, position) index never sees two rows on the same position mid-update.
    async def reposition_memberships(
        self, setlist_id: str, song_ids: Sequence[str]
    ) -> None:
        """Set positions so song_ids[i] is at position i, in one transaction."""
        if not self._atomic_reposition:
            raise SchemaMismatchError(
                "reposition_memberships is not available on this store",
                capability="reposition_memberships",
            )
        if len(set(song_ids)) != len(song_ids):
            raise ValidationError("Reorder contains the same song twice")

        stmt = select(SetlistSongModel).where(SetlistSongModel.setlist_id == setlist_id)
        async with (
            store_errors("reposition_memberships", "Setlist", setlist_id),
            self._db.session_scope() as session,
        ):
            models = {m.song_id: m for m in (await session.execute(stmt)).scalars().all()}
            if set(models) != set(song_ids):
                raise ValidationError(
                    f"Reorder for setlist {setlist_id} does not match its current songs"
                )
            total = len(song_ids)
            for index, song_id in enumerate(song_ids):
                models[song_id].position = total + index
            await session.flush()
            for index, song_id in enumerate(song_ids):
                models[song_id].position = index

    # --- songs ----------------------------------------------------------

    async def find_song(self, band_id: str, title: str, artist: str) -> Song | None:
        """Case-insensitive lookup by (band, title, artist)."""
        stmt = select(SongModel).where(
            SongModel.band_id == band_id,
            SongModel.title_key == song_lookup_key(title),
            SongModel.artist_key == song_lookup_key(artist),
        )
        async with (
            store_errors("find_song", "Song", f"{artist}/{title}"),
            self._db.session_scope() as session,
        ):
            model = (await session.execute(stmt)).scalars().first()
            return _to_song(model) if model else None

    async def get_song(self, song_id: str) -> Song | None:
        """Get a song by id."""
        async with (
            store_errors("get_song", "Song", song_id),
            self._db.session_scope() as session,
        ):
            model = await session.get(SongModel, song_id)
            return _to_song(model) if model else None

    async def list_songs_missing_bpm(self, band_id: str, limit: int = 100) -> list[Song]:
        """Songs without bpm, oldest first."""
        stmt = (
            select(SongModel)
            .where(SongModel.band_id == band_id, SongModel.bpm.is_(None))
            .order_by(SongModel.created_at)
            .limit(limit)
        )
        async with (
            store_errors("list_songs_missing_bpm", "Band", band_id),
            self._db.session_scope() as session,
        ):
            return [_to_song(m) for m in (await session.execute(stmt)).scalars().all()]

    async def insert_song(self, song: Song) -> Song:
        """Insert a song (DuplicateEntityError on key conflict)."""
        async with (
            store_errors("insert_song", "Song", f"{song.artist}/{song.title}"),
            self._db.session_scope() as session,
        ):
            model = SongModel(
                id=song.id,
                band_id=song.band_id,
                title=song.title,
                artist=song.artist,
                bpm=song.bpm,
                duration_seconds=song.duration_seconds,
                tuning=song.tuning,
                notes=song.notes,
                album_artwork=song.album_artwork,
                created_at=song.created_at,
                updated_at=song.updated_at,
            )
            session.add(model)
            await session.flush()
            return _to_song(model)

    async def update_song(self, song_id: str, fields: dict[str, Any]) -> Song | None:
        """Write global song fields."""
        unknown = set(fields) - SONG_GLOBAL_FIELDS
        if unknown:
            raise ValidationError(f"Unknown song fields: {sorted(unknown)}")
        async with (
            store_errors("update_song", "Song", song_id),
            self._db.session_scope() as session,
        ):
            model = await session.get(SongModel, song_id)
            if model is None:
                return None
            for name, value in fields.items():
                setattr(model, name, value)
            await session.flush()
            return _to_song(model)

    async def delete_song(self, song_id: str) -> bool:
        """Delete a song; any memberships still pointing at it go too, lists stay compact."""
        async with (
            store_errors("delete_song", "Song", song_id),
            self._db.session_scope() as session,
        ):
            leftover = (
                await session.execute(
                    select(SetlistSongModel.setlist_id).where(
                        SetlistSongModel.song_id == song_id
                    )
                )
            ).scalars().all()
            if leftover:
                await session.execute(
                    delete(SetlistSongModel).where(SetlistSongModel.song_id == song_id)
                )
                for setlist_id in set(leftover):
                    await _compact_positions(session, setlist_id)
            result = await session.execute(delete(SongModel).where(SongModel.id == song_id))
            return bool(result.rowcount)  # type: ignore[attr-defined]
