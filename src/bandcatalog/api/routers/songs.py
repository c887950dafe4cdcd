"""Band-wide song endpoints: global edits and catalog deletion."""

import logging

from fastapi import APIRouter, Depends

from bandcatalog.api.dependencies import get_membership_service, get_metadata_service
from bandcatalog.api.schemas.songs import (
    CascadeDeleteResponse,
    SongResponse,
    SongUpdateRequest,
)
from bandcatalog.application.services.list_membership_service import (
    ListMembershipService,
)
from bandcatalog.application.services.song_metadata_service import SongMetadataService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bands/{band_id}")


@router.patch("/songs/{song_id}", response_model=SongResponse)
async def update_song(
    band_id: str,
    song_id: str,
    body: SongUpdateRequest,
    service: SongMetadataService = Depends(get_metadata_service),
) -> SongResponse:
    """Edit a song's global fields. Every open view of the song picks the change up."""
    changes = {name: getattr(body, name) for name in body.model_fields_set}
    return SongResponse.from_entity(await service.update_song_fields(band_id, song_id, **changes))


# Listen up, this is the BIG delete: the song leaves every setlist of the band and the record
# is gone. A partial failure answers 503 with kind=transient; calling again finishes the job.
@router.delete("/catalog/songs/{song_id}", response_model=CascadeDeleteResponse)
async def delete_from_catalog(
    band_id: str,
    song_id: str,
    service: ListMembershipService = Depends(get_membership_service),
) -> CascadeDeleteResponse:
    """Remove a song from the catalog and every setlist, then delete it."""
    report = await service.remove_from_catalog(band_id, song_id)
    return CascadeDeleteResponse.from_report(report)
