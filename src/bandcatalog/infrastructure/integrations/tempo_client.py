"""HTTP client for song tempo (BPM) lookups against a GetSongBPM-style API."""

import logging
from typing import Any

import httpx

from bandcatalog.config.settings import TempoSettings
from bandcatalog.domain.ports import ITempoLookup

logger = logging.getLogger(__name__)


class TempoClient(ITempoLookup):
    """Looks up a song's tempo by title and artist."""

    SEARCH_PATH = "/search/"

    def __init__(self, settings: TempoSettings) -> None:
        """
        Initialize tempo client.

        Args:
            settings: Tempo lookup configuration
        """
        self.settings = settings
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.base_url,
                headers={"Accept": "application/json"},
                timeout=self.settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # Hey future me, the API answers "no match" in two ways: a 404, or a 200 whose "search"
    # field is a dict like {"error": "no result"} instead of a list. Both mean None here.
    # Other HTTP errors are raised; TempoEnrichmentService treats any failure as "no bpm".
    async def search(self, title: str, artist: str) -> list[dict[str, Any]]:
        """
        Search songs by title and artist.

        Returns:
            Raw result dicts (possibly empty)

        Raises:
            httpx.HTTPError: If the request fails with anything but 404
        """
        client = await self._get_client()
        try:
            response = await client.get(
                self.SEARCH_PATH,
                params={
                    "api_key": self.settings.api_key,
                    "type": "both",
                    "lookup": f"song:{title} artist:{artist}",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return []
            raise

        results = response.json().get("search")
        if not isinstance(results, list):
            return []
        return [r for r in results if isinstance(r, dict)]

    async def lookup_bpm(self, title: str, artist: str) -> int | None:
        """Tempo of the best match, rounded to an int, or None."""
        results = await self.search(title, artist)
        if not results:
            return None

        wanted_artist = artist.strip().casefold()
        best = next(
            (
                r
                for r in results
                if str((r.get("artist") or {}).get("name", "")).strip().casefold()
                == wanted_artist
            ),
            results[0],
        )
        tempo = best.get("tempo")
        try:
            bpm = round(float(tempo))
        except (TypeError, ValueError):
            logger.debug(
                "Tempo result without usable tempo",
                extra={"title": title, "artist": artist, "tempo": tempo},
            )
            return None
        return bpm if bpm > 0 else None
