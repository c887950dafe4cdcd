"""Fixtures for API tests: the real app, its lifespan and a file-backed SQLite database."""

from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest
from band_api import BandApi
from fastapi import FastAPI

from bandcatalog.config import Settings
from bandcatalog.config.settings import DatabaseSettings
from bandcatalog.main import create_app


@pytest.fixture
def app(tmp_path: Path) -> FastAPI:
    """App wired against a fresh database, tempo lookups off."""
    settings = Settings(
        database=DatabaseSettings(
            url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", auto_create_tables=True
        ),
    )
    return create_app(settings)


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client that runs the app's startup and shutdown around the test."""
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
def band(client: httpx.AsyncClient) -> BandApi:
    """Endpoints of band-alpha."""
    return BandApi(client, "band-alpha")


@pytest.fixture
def other_band(client: httpx.AsyncClient) -> BandApi:
    """Endpoints of a second band sharing the database."""
    return BandApi(client, "band-beta")
