"""Bulk song import: paste parsing, batched add, and undo.

Input is one song per line, columns ARTIST, SONG, BPM, TUNING (BPM and TUNING optional):

    Metallica<TAB>Enter Sandman<TAB>123<TAB>Standard      spreadsheet paste
    Metallica, Enter Sandman, 123, Standard               typed by hand
    Metallica    Enter Sandman    123                     two+ spaces (old exports)
"""

import logging
import re
from collections.abc import Callable, Sequence

from bandcatalog.application.services.band_scope import (
    load_setlist_in_band,
    require_band,
)
from bandcatalog.application.services.catalog_invariant_manager import (
    CatalogInvariantManager,
)
from bandcatalog.application.services.list_membership_service import (
    ListMembershipService,
)
from bandcatalog.application.services.song_registry import SongRegistry
from bandcatalog.config.settings import ImportSettings
from bandcatalog.domain.entities import (
    BulkAddResult,
    BulkParseResult,
    BulkRowIssue,
    BulkSongRow,
)
from bandcatalog.domain.exceptions import DomainException
from bandcatalog.domain.ports import IRemoteStore
from bandcatalog.domain.value_objects import normalize_tuning
from bandcatalog.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

_MULTI_SPACE_RE = re.compile(r"\s{2,}")
_BPM_SUFFIX_RE = re.compile(r"\s*bpm$", re.IGNORECASE)


def split_columns(line: str) -> list[str]:
    """Split one line: tab if present, else comma, else runs of 2+ spaces."""
    if "\t" in line:
        parts = line.split("\t")
    elif "," in line:
        parts = line.split(",")
    else:
        parts = _MULTI_SPACE_RE.split(line)
    return [p.strip() for p in parts]


class BulkSongParser:
    """Parses pasted text into validated rows."""

    def __init__(self, settings: ImportSettings) -> None:
        self._settings = settings

    def parse(self, raw_text: str) -> BulkParseResult:
        """Parse raw text.

        Blank lines are skipped; lines beyond max_rows are dropped and counted in
        truncated_count; exact duplicates (artist, title, bpm, tuning, ignoring case) collapse
        into the first occurrence before validation.
        """
        if not raw_text or not raw_text.strip():
            return BulkParseResult()

        lines = [
            (number, line.strip())
            for number, line in enumerate(raw_text.splitlines(), start=1)
            if line.strip()
        ]
        truncated = max(0, len(lines) - self._settings.max_rows)
        if truncated:
            lines = lines[: self._settings.max_rows]

        rows: list[BulkSongRow] = []
        seen: set[tuple[str, str, str, str]] = set()
        duplicates = 0
        for number, line in lines:
            columns = split_columns(line)
            artist = columns[0] if columns else ""
            title = columns[1] if len(columns) > 1 else ""
            raw_bpm = columns[2] if len(columns) > 2 else ""
            raw_tuning = columns[3] if len(columns) > 3 else ""

            key = (artist.casefold(), title.casefold(), raw_bpm, raw_tuning.casefold())
            if key in seen:
                duplicates += 1
                continue
            seen.add(key)
            rows.append(self._validate(number, artist, title, raw_bpm, raw_tuning))

        return BulkParseResult(
            all_rows=rows,
            valid_rows=[r for r in rows if r.is_valid],
            invalid_rows=[r for r in rows if not r.is_valid],
            duplicates_removed=duplicates,
            truncated_count=truncated,
        )

    def _validate(
        self, line_number: int, artist: str, title: str, raw_bpm: str, raw_tuning: str
    ) -> BulkSongRow:
        base = {
            "line_number": line_number,
            "artist": artist,
            "title": title,
            "raw_bpm": raw_bpm,
            "raw_tuning": raw_tuning,
        }
        if not title:
            return BulkSongRow(
                **base, error=BulkRowIssue.MISSING_TITLE, error_message="Missing song title"
            )
        if not artist:
            return BulkSongRow(
                **base, error=BulkRowIssue.MISSING_ARTIST, error_message="Missing artist"
            )

        bpm: int | None = None
        if raw_bpm:
            bpm = self._parse_bpm(raw_bpm)
            if bpm is None:
                return BulkSongRow(
                    **base,
                    error=BulkRowIssue.INVALID_BPM,
                    error_message=(
                        f"BPM must be a whole number between "
                        f"{self._settings.min_bpm} and {self._settings.max_bpm}"
                    ),
                )

        if raw_tuning:
            tuning = normalize_tuning(raw_tuning)
            if tuning is None:
                return BulkSongRow(
                    **base,
                    bpm=bpm,
                    warning=BulkRowIssue.UNKNOWN_TUNING,
                    warning_message="Unknown tuning ignored",
                )
            return BulkSongRow(**base, bpm=bpm, tuning=tuning.id, tuning_label=tuning.label)

        return BulkSongRow(**base, bpm=bpm)

    def _parse_bpm(self, raw: str) -> int | None:
        cleaned = _BPM_SUFFIX_RE.sub("", raw.strip())
        try:
            bpm = int(cleaned)
        except ValueError:
            return None
        if not (self._settings.min_bpm <= bpm <= self._settings.max_bpm):
            return None
        return bpm


class BulkImportEngine:
    """Batched import of parsed rows into a setlist (and always the catalog)."""

    def __init__(
        self,
        store: IRemoteStore,
        catalog_manager: CatalogInvariantManager,
        registry: SongRegistry,
        membership_service: ListMembershipService,
        settings: ImportSettings,
    ) -> None:
        self._store = store
        self._catalog = catalog_manager
        self._registry = registry
        self._memberships = membership_service
        self._settings = settings
        self.parser = BulkSongParser(settings)

    def parse(self, raw_text: str) -> BulkParseResult:
        """Parse pasted text (no writes)."""
        return self.parser.parse(raw_text)

    # Hey future me, partial success is NORMAL here. One bad row (network blip, weird data)
    # is logged and skipped; the rest of the paste still lands. added_count tells the user how
    # many made it, failed_rows which didn't. Rows are processed in order, one at a time, so
    # the target list ends up in paste order.
    async def bulk_add(
        self,
        band_id: str,
        setlist_id: str,
        rows: Sequence[BulkSongRow],
        on_progress: ProgressCallback | None = None,
    ) -> BulkAddResult:
        """Create/find each song, add it to the catalog and (if different) the target list.

        Only target-list memberships created by this call are returned for undo; songs that
        were already on the list are left alone by undo.
        """
        require_band(band_id, "bulk_add")
        catalog_id = await self._catalog.ensure_catalog(band_id)
        if setlist_id != catalog_id:
            await load_setlist_in_band(self._store, band_id, setlist_id)

        valid_rows = [r for r in rows if r.is_valid]
        failed_rows = [r for r in rows if not r.is_valid]
        membership_ids: list[str] = []
        added = 0
        batch_size = self._settings.batch_size

        async with log_operation(
            logger,
            "bulk_import",
            band_id=band_id,
            setlist_id=setlist_id,
            rows=len(valid_rows),
        ) as summary:
            for start in range(0, len(valid_rows), batch_size):
                batch = valid_rows[start : start + batch_size]
                for row in batch:
                    try:
                        membership_id = await self._add_row(band_id, catalog_id, setlist_id, row)
                    except DomainException as e:
                        failed_rows.append(row)
                        logger.warning(
                            "Bulk import row failed, skipping",
                            extra={
                                "band_id": band_id,
                                "line_number": row.line_number,
                                "error": e.message,
                                "error_kind": e.kind.value,
                            },
                        )
                        continue
                    added += 1
                    if membership_id is not None:
                        membership_ids.append(membership_id)
                if on_progress is not None:
                    on_progress(min(start + len(batch), len(valid_rows)), len(valid_rows))
            summary["added"] = added
            summary["failed"] = len(failed_rows)

        return BulkAddResult(
            added_count=added,
            catalog_id=catalog_id,
            target_list_membership_ids=membership_ids,
            failed_rows=failed_rows,
        )

    async def _add_row(
        self, band_id: str, catalog_id: str, setlist_id: str, row: BulkSongRow
    ) -> str | None:
        song_id = await self._registry.create_or_find_song(
            band_id, row.title, row.artist, bpm=row.bpm, tuning=row.tuning
        )
        await self._memberships.ensure_in_list(catalog_id, song_id)
        if setlist_id == catalog_id:
            return None
        membership, existed = await self._memberships.ensure_in_list(setlist_id, song_id)
        return None if existed else membership.id

    async def import_text(
        self, band_id: str, setlist_id: str, raw_text: str
    ) -> tuple[BulkParseResult, BulkAddResult]:
        """Parse then add the valid rows."""
        parsed = self.parse(raw_text)
        result = await self.bulk_add(band_id, setlist_id, parsed.valid_rows)
        return parsed, result

    # Catalog memberships created by the import stay: undo only reverses what the user saw
    # appear on the target list.
    async def undo(self, band_id: str, membership_ids: Sequence[str]) -> int:
        """Delete exactly the given target-list memberships. Returns how many were removed."""
        require_band(band_id, "undo_bulk_add")
        if not membership_ids:
            return 0
        removed = await self._store.delete_memberships(band_id, list(membership_ids))
        logger.info(
            "Bulk import undone",
            extra={"band_id": band_id, "requested": len(membership_ids), "removed": removed},
        )
        return removed
