"""Bulk import endpoints: preview, import, undo."""

import logging

from fastapi import APIRouter, Depends

from bandcatalog.api.dependencies import get_bulk_import_engine
from bandcatalog.api.schemas.imports import (
    ImportPreviewResponse,
    ImportResponse,
    ImportTextRequest,
    UndoImportRequest,
    UndoImportResponse,
)
from bandcatalog.application.services.bulk_import import BulkImportEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bands/{band_id}/setlists/{setlist_id}/import")


@router.post("/preview", response_model=ImportPreviewResponse)
async def preview_import(
    band_id: str,
    setlist_id: str,
    body: ImportTextRequest,
    engine: BulkImportEngine = Depends(get_bulk_import_engine),
) -> ImportPreviewResponse:
    """Parse pasted text and report per-row problems. Nothing is written."""
    return ImportPreviewResponse.from_result(engine.parse(body.text))


@router.post("", response_model=ImportResponse)
async def run_import(
    band_id: str,
    setlist_id: str,
    body: ImportTextRequest,
    engine: BulkImportEngine = Depends(get_bulk_import_engine),
) -> ImportResponse:
    """Import the valid rows into the setlist (and the catalog)."""
    parsed, result = await engine.import_text(band_id, setlist_id, body.text)
    return ImportResponse.from_results(parsed, result)


@router.post("/undo", response_model=UndoImportResponse)
async def undo_import(
    band_id: str,
    setlist_id: str,
    body: UndoImportRequest,
    engine: BulkImportEngine = Depends(get_bulk_import_engine),
) -> UndoImportResponse:
    """Take an import's songs back off the setlist. The catalog keeps them."""
    return UndoImportResponse(removed=await engine.undo(band_id, body.membership_ids))
