"""Keeps exactly one catalog setlist per band.

Hey future me, this is the self-healing part. Older data has every flavor of broken catalog:
no catalog at all, a legacy "All Songs" list without the flag, two catalogs created by two
devices at the same moment. ensure_catalog() walks an explicit state machine:

    CHECKING -> DEDUPING -> CHECKING      (more than one candidate)
    CHECKING -> CREATING -> DONE          (no candidate)
    CHECKING -> RENAMING -> DONE          (one candidate, wrong name or missing flag)
    CHECKING -> DONE                      (one correct catalog, zero writes)

CHECKING runs at most `max_heal_passes` times, and the whole walk has a hard transition cap.
When the cap is hit we return the best candidate we have instead of failing. Corrective writes
(merge, delete duplicate, rename) are best effort: a failure is logged and the walk moves on.
Only "there is no catalog and we couldn't create one" reaches the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from bandcatalog.application.services.band_scope import require_band
from bandcatalog.config.settings import CatalogSettings
from bandcatalog.domain.entities import Setlist
from bandcatalog.domain.exceptions import (
    DomainException,
    DuplicateEntityError,
    SchemaMismatchError,
    TransientError,
)
from bandcatalog.domain.ports import IRemoteStore

logger = logging.getLogger(__name__)


class CatalogHealState(str, Enum):
    """States of the catalog healing walk."""

    CHECKING = "checking"
    DEDUPING = "deduping"
    CREATING = "creating"
    RENAMING = "renaming"
    DONE = "done"


@dataclass
class CatalogHealReport:
    """What one ensure_catalog() run did."""

    band_id: str
    catalog_id: str | None = None
    writes: int = 0
    passes: int = 0
    capped: bool = False
    trace: list[CatalogHealState] = field(default_factory=list)
    candidates: list[Setlist] = field(default_factory=list)


def elect_canonical(candidates: list[Setlist]) -> Setlist:
    """Most songs wins; ties go to the oldest list."""
    return sorted(candidates, key=lambda s: (-s.song_count, s.created_at, s.id))[0]


class CatalogInvariantManager:
    """Guarantees one catalog list per band."""

    def __init__(self, store: IRemoteStore, settings: CatalogSettings) -> None:
        self._store = store
        self._settings = settings
        self._band_locks: dict[str, asyncio.Lock] = {}

    @property
    def max_transitions(self) -> int:
        # each pass is CHECKING plus at most one corrective state, then DONE
        return self._settings.max_heal_passes * 2 + 2

    def is_catalog_name(self, name: str) -> bool:
        """True for the canonical or a legacy catalog name (case-insensitive)."""
        return self._settings.is_catalog_name(name)

    async def ensure_catalog(self, band_id: str) -> str:
        """Return the band's catalog id, creating/repairing it as needed."""
        report = await self.heal(band_id)
        if report.catalog_id is None:
            raise TransientError(f"Could not establish a catalog for band {band_id}")
        return report.catalog_id

    async def get_catalog(self, band_id: str) -> Setlist:
        """Ensure the catalog and return it with aggregates."""
        catalog_id = await self.ensure_catalog(band_id)
        catalog = await self._store.get_setlist(catalog_id)
        if catalog is None:
            raise TransientError(f"Catalog {catalog_id} disappeared while loading")
        return catalog

    # Yo, the per-band lock only serializes healers inside THIS process. Other processes are
    # kept honest by the partial unique index; a lost CREATE race shows up here as
    # DuplicateEntityError and sends us back to CHECKING.
    async def heal(self, band_id: str) -> CatalogHealReport:
        """Run the healing state machine for a band."""
        require_band(band_id, "ensure_catalog")
        lock = self._band_locks.setdefault(band_id, asyncio.Lock())
        async with lock:
            report = await self._run(band_id)

        if report.catalog_id is None:
            raise TransientError(f"Could not establish a catalog for band {band_id}")
        if report.writes:
            logger.info(
                "Catalog healed",
                extra={
                    "band_id": band_id,
                    "catalog_id": report.catalog_id,
                    "writes": report.writes,
                    "passes": report.passes,
                    "trace": [s.value for s in report.trace],
                },
            )
        return report

    async def _run(self, band_id: str) -> CatalogHealReport:
        report = CatalogHealReport(band_id=band_id)
        state = CatalogHealState.CHECKING

        while state is not CatalogHealState.DONE:
            if len(report.trace) >= self.max_transitions or (
                state is CatalogHealState.CHECKING
                and report.passes >= self._settings.max_heal_passes
            ):
                report.capped = True
                if report.catalog_id is None and report.candidates:
                    report.catalog_id = elect_canonical(report.candidates).id
                logger.warning(
                    "Catalog healing capped, using best available catalog",
                    extra={
                        "band_id": band_id,
                        "catalog_id": report.catalog_id,
                        "passes": report.passes,
                    },
                )
                break

            report.trace.append(state)
            if state is CatalogHealState.CHECKING:
                report.passes += 1
                state = await self._check(report)
            elif state is CatalogHealState.DEDUPING:
                state = await self._dedupe(report)
            elif state is CatalogHealState.CREATING:
                state = await self._create(report)
            elif state is CatalogHealState.RENAMING:
                state = await self._rename(report)

        if state is CatalogHealState.DONE:
            report.trace.append(state)
        return report

    async def _check(self, report: CatalogHealReport) -> CatalogHealState:
        setlists = await self._store.list_setlists(report.band_id)
        candidates = [s for s in setlists if s.is_catalog]
        if not candidates:
            candidates = [s for s in setlists if self.is_catalog_name(s.name)]
        report.candidates = candidates

        if len(candidates) > 1:
            return CatalogHealState.DEDUPING
        if not candidates:
            report.catalog_id = None
            return CatalogHealState.CREATING

        catalog = candidates[0]
        report.catalog_id = catalog.id
        if catalog.is_catalog and catalog.name == self._settings.canonical_name:
            return CatalogHealState.DONE
        return CatalogHealState.RENAMING

    async def _dedupe(self, report: CatalogHealReport) -> CatalogHealState:
        canonical = elect_canonical(report.candidates)
        report.catalog_id = canonical.id
        duplicates = [c for c in report.candidates if c.id != canonical.id]
        logger.warning(
            "Duplicate catalogs found, merging",
            extra={
                "band_id": report.band_id,
                "canonical_id": canonical.id,
                "duplicate_ids": [d.id for d in duplicates],
            },
        )

        try:
            present = {s.song_id for s in await self._store.fetch_setlist_songs(canonical.id)}
        except DomainException:
            logger.warning(
                "Could not read canonical catalog, skipping merge",
                extra={"band_id": report.band_id, "canonical_id": canonical.id},
                exc_info=True,
            )
            return CatalogHealState.CHECKING

        for duplicate in duplicates:
            if await self._merge_into(report, canonical.id, duplicate.id, present):
                try:
                    await self._store.delete_setlist(duplicate.id)
                    report.writes += 1
                except DomainException:
                    logger.warning(
                        "Failed to delete duplicate catalog",
                        extra={"band_id": report.band_id, "duplicate_id": duplicate.id},
                        exc_info=True,
                    )
        return CatalogHealState.CHECKING

    async def _merge_into(
        self,
        report: CatalogHealReport,
        canonical_id: str,
        duplicate_id: str,
        present: set[str],
    ) -> bool:
        """Copy a duplicate's songs into the canonical catalog. False if anything failed."""
        try:
            songs = await self._store.fetch_setlist_songs(duplicate_id)
        except DomainException:
            logger.warning(
                "Failed to read duplicate catalog",
                extra={"band_id": report.band_id, "duplicate_id": duplicate_id},
                exc_info=True,
            )
            return False

        merged_all = True
        for entry in songs:
            if entry.song_id in present:
                continue
            try:
                await self._store.append_membership(canonical_id, entry.song_id)
                report.writes += 1
            except DuplicateEntityError:
                pass
            except DomainException:
                merged_all = False
                logger.warning(
                    "Failed to merge song into canonical catalog",
                    extra={"band_id": report.band_id, "song_id": entry.song_id},
                    exc_info=True,
                )
                continue
            present.add(entry.song_id)
        return merged_all

    async def _create(self, report: CatalogHealReport) -> CatalogHealState:
        name = self._settings.canonical_name
        try:
            catalog = await self._store.create_setlist(report.band_id, name, is_catalog=True)
        except DuplicateEntityError:
            logger.info(
                "Catalog created concurrently, re-checking",
                extra={"band_id": report.band_id},
            )
            return CatalogHealState.CHECKING
        except SchemaMismatchError:
            logger.warning(
                "Store has no catalog flag, creating catalog by name only",
                extra={"band_id": report.band_id},
            )
            try:
                catalog = await self._store.create_setlist(report.band_id, name)
            except DomainException:
                logger.error(
                    "Failed to create catalog",
                    extra={"band_id": report.band_id},
                    exc_info=True,
                )
                return CatalogHealState.DONE
        except DomainException:
            logger.error(
                "Failed to create catalog",
                extra={"band_id": report.band_id},
                exc_info=True,
            )
            return CatalogHealState.DONE

        report.writes += 1
        report.catalog_id = catalog.id
        report.candidates = [catalog]
        return CatalogHealState.DONE

    async def _rename(self, report: CatalogHealReport) -> CatalogHealState:
        if report.catalog_id is None:
            return CatalogHealState.CHECKING
        name = self._settings.canonical_name
        try:
            await self._store.update_setlist(report.catalog_id, name=name, is_catalog=True)
            report.writes += 1
        except SchemaMismatchError:
            # no catalog flag on this store; the name alone marks the catalog
            if any(c.id == report.catalog_id and c.name == name for c in report.candidates):
                return CatalogHealState.DONE
            try:
                await self._store.update_setlist(report.catalog_id, name=name)
                report.writes += 1
            except DomainException:
                logger.warning(
                    "Failed to rename catalog",
                    extra={"band_id": report.band_id, "catalog_id": report.catalog_id},
                    exc_info=True,
                )
        except DomainException:
            logger.warning(
                "Failed to rename catalog",
                extra={"band_id": report.band_id, "catalog_id": report.catalog_id},
                exc_info=True,
            )
        return CatalogHealState.DONE
