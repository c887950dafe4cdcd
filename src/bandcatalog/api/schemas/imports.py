"""API schemas for bulk song import."""

from pydantic import BaseModel, Field

from bandcatalog.domain.entities import (
    BulkAddResult,
    BulkParseResult,
    BulkRowIssue,
    BulkSongRow,
)


class ImportTextRequest(BaseModel):
    """Pasted text, one song per line: ARTIST, SONG, BPM, TUNING."""

    text: str = Field(..., description="Tab, comma or multi-space separated rows")


class BulkRowResponse(BaseModel):
    """One parsed row for the preview table."""

    line_number: int
    artist: str
    title: str
    bpm: int | None
    tuning: str | None
    tuning_label: str | None
    is_valid: bool
    error: BulkRowIssue | None
    error_message: str | None
    warning: BulkRowIssue | None
    warning_message: str | None

    @classmethod
    def from_row(cls, row: BulkSongRow) -> "BulkRowResponse":
        return cls(
            line_number=row.line_number,
            artist=row.artist,
            title=row.title,
            bpm=row.bpm,
            tuning=row.tuning,
            tuning_label=row.tuning_label,
            is_valid=row.is_valid,
            error=row.error,
            error_message=row.error_message,
            warning=row.warning,
            warning_message=row.warning_message,
        )


class ImportPreviewResponse(BaseModel):
    """Parse result, nothing written."""

    rows: list[BulkRowResponse]
    valid_count: int
    invalid_count: int
    warning_count: int
    duplicates_removed: int
    truncated_count: int

    @classmethod
    def from_result(cls, result: BulkParseResult) -> "ImportPreviewResponse":
        return cls(
            rows=[BulkRowResponse.from_row(r) for r in result.all_rows],
            valid_count=len(result.valid_rows),
            invalid_count=len(result.invalid_rows),
            warning_count=result.warning_count,
            duplicates_removed=result.duplicates_removed,
            truncated_count=result.truncated_count,
        )


class ImportResponse(BaseModel):
    """Outcome of an import. undo_membership_ids is what POST .../import/undo takes back."""

    added_count: int
    catalog_id: str
    undo_membership_ids: list[str]
    can_undo: bool
    invalid_rows: list[BulkRowResponse]
    failed_rows: list[BulkRowResponse]
    duplicates_removed: int
    truncated_count: int

    @classmethod
    def from_results(
        cls, parsed: BulkParseResult, result: BulkAddResult
    ) -> "ImportResponse":
        invalid = {r.line_number for r in parsed.invalid_rows}
        return cls(
            added_count=result.added_count,
            catalog_id=result.catalog_id,
            undo_membership_ids=list(result.target_list_membership_ids),
            can_undo=result.can_undo,
            invalid_rows=[BulkRowResponse.from_row(r) for r in parsed.invalid_rows],
            failed_rows=[
                BulkRowResponse.from_row(r)
                for r in result.failed_rows
                if r.line_number not in invalid
            ],
            duplicates_removed=parsed.duplicates_removed,
            truncated_count=parsed.truncated_count,
        )


class UndoImportRequest(BaseModel):
    """Membership ids returned by the import."""

    membership_ids: list[str] = Field(..., min_length=1)


class UndoImportResponse(BaseModel):
    """How many memberships the undo removed."""

    removed: int
