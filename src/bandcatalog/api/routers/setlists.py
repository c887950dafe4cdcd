"""Setlist endpoints: CRUD, songs, manual order and per-list overrides."""

import logging

from fastapi import APIRouter, Depends, Query, Response, status

from bandcatalog.api.dependencies import (
    get_membership_service,
    get_metadata_service,
    get_setlist_service,
)
from bandcatalog.api.schemas.setlists import (
    AddSongRequest,
    AddSongResponse,
    MembershipResponse,
    OverridesRequest,
    ReorderRequest,
    SetlistCreateRequest,
    SetlistListResponse,
    SetlistRenameRequest,
    SetlistResponse,
    SetlistSongsResponse,
)
from bandcatalog.application.services.list_membership_service import (
    ListMembershipService,
)
from bandcatalog.application.services.setlist_service import SetlistService
from bandcatalog.application.services.song_metadata_service import SongMetadataService
from bandcatalog.application.services.sort_policy import ListSortMode
from bandcatalog.domain.exceptions import EntityNotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bands/{band_id}/setlists")


@router.get("", response_model=SetlistListResponse)
async def list_setlists(
    band_id: str,
    service: SetlistService = Depends(get_setlist_service),
) -> SetlistListResponse:
    """List the band's setlists, catalog first (created on first access)."""
    setlists = await service.list_setlists(band_id)
    return SetlistListResponse(
        setlists=[SetlistResponse.from_entity(s) for s in setlists],
        catalog_id=next((s.id for s in setlists if s.is_catalog), None),
    )


@router.post("", response_model=SetlistResponse, status_code=status.HTTP_201_CREATED)
async def create_setlist(
    band_id: str,
    body: SetlistCreateRequest,
    service: SetlistService = Depends(get_setlist_service),
) -> SetlistResponse:
    """Create a setlist."""
    return SetlistResponse.from_entity(await service.create_setlist(band_id, body.name))


@router.patch("/{setlist_id}", response_model=SetlistResponse)
async def rename_setlist(
    band_id: str,
    setlist_id: str,
    body: SetlistRenameRequest,
    service: SetlistService = Depends(get_setlist_service),
) -> SetlistResponse:
    """Rename a setlist (never the catalog)."""
    setlist = await service.rename_setlist(band_id, setlist_id, body.name)
    return SetlistResponse.from_entity(setlist)


@router.delete("/{setlist_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_setlist(
    band_id: str,
    setlist_id: str,
    service: SetlistService = Depends(get_setlist_service),
) -> Response:
    """Delete a setlist (never the catalog). Its songs stay in the catalog."""
    await service.delete_setlist(band_id, setlist_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{setlist_id}/duplicate",
    response_model=SetlistResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_setlist(
    band_id: str,
    setlist_id: str,
    service: SetlistService = Depends(get_setlist_service),
) -> SetlistResponse:
    """Copy a setlist with its order and overrides."""
    return SetlistResponse.from_entity(await service.duplicate_setlist(band_id, setlist_id))


@router.get("/{setlist_id}/songs", response_model=SetlistSongsResponse)
async def get_setlist_songs(
    band_id: str,
    setlist_id: str,
    sort_mode: ListSortMode = Query(
        ListSortMode.MANUAL, description="manual, standard, half_step, full_step or drop_d"
    ),
    service: SetlistService = Depends(get_setlist_service),
) -> SetlistSongsResponse:
    """Songs of a setlist in display order. The catalog ignores sort_mode."""
    result = await service.get_setlist_songs(band_id, setlist_id, sort_mode)
    return SetlistSongsResponse.from_result(result)


@router.post("/{setlist_id}/songs", response_model=AddSongResponse)
async def add_song(
    band_id: str,
    setlist_id: str,
    body: AddSongRequest,
    service: ListMembershipService = Depends(get_membership_service),
) -> AddSongResponse:
    """Add a song to a setlist (and to the catalog first, if needed).

    Either song_id, or title + artist. Adding a song twice is not an error.
    """
    if body.song_id:
        result = await service.add_song_ensure_catalog(band_id, setlist_id, body.song_id)
    elif body.title and body.artist:
        result = await service.add_song_by_details(
            band_id,
            setlist_id,
            body.title,
            body.artist,
            bpm=body.bpm,
            tuning=body.tuning,
            duration_seconds=body.duration_seconds,
            album_artwork=body.album_artwork,
        )
    else:
        raise ValidationError("Provide song_id, or title and artist")
    return AddSongResponse.from_result(result)


@router.delete("/{setlist_id}/songs/{song_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_song(
    band_id: str,
    setlist_id: str,
    song_id: str,
    service: ListMembershipService = Depends(get_membership_service),
) -> Response:
    """Remove a song from one setlist. Catalog removal lives at /catalog/songs/{song_id}."""
    if not await service.remove_from_list(band_id, setlist_id, song_id):
        raise EntityNotFoundError("Membership", f"{setlist_id}/{song_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{setlist_id}/songs/{song_id}", response_model=MembershipResponse)
async def update_overrides(
    band_id: str,
    setlist_id: str,
    song_id: str,
    body: OverridesRequest,
    service: SongMetadataService = Depends(get_metadata_service),
) -> MembershipResponse:
    """Set or clear this list's bpm/tuning/duration overrides for a song."""
    changes = {name: getattr(body, name) for name in body.model_fields_set}
    membership = await service.set_overrides(band_id, setlist_id, song_id, **changes)
    return MembershipResponse.from_entity(membership)


@router.put("/{setlist_id}/order", response_model=SetlistSongsResponse)
async def reorder_setlist(
    band_id: str,
    setlist_id: str,
    body: ReorderRequest,
    service: SetlistService = Depends(get_setlist_service),
) -> SetlistSongsResponse:
    """Save a new manual order. Must contain every song of the list exactly once."""
    result = await service.reorder_setlist(band_id, setlist_id, body.song_ids)
    return SetlistSongsResponse.from_result(result)
