"""API router initialization."""

# Hey future me, this aggregates the band-scoped routers. main.py mounts api_router under /api,
# so paths become /api/bands/{band_id}/setlists/... The health router is mounted at the root
# (plain /health) for container probes.

from fastapi import APIRouter

from bandcatalog.api.routers import health, imports, setlists, songs

api_router = APIRouter()

api_router.include_router(setlists.router, tags=["Setlists"])
api_router.include_router(imports.router, tags=["Bulk Import"])
api_router.include_router(songs.router, tags=["Songs"])

__all__ = ["api_router", "health", "imports", "setlists", "songs"]
