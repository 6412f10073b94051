"""Client for the Kinopoisk movie search API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..aggregation import CatalogQuery
from ..config import Settings
from ..errors import ExternalApiError

logger = logging.getLogger(__name__)


class KinopoiskClient:
    """Thin wrapper around the Kinopoisk ``/movie`` search endpoint."""

    _SEARCH_PATH = "/movie"

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": f"{self._settings.app_name} (roompicks)",
        }
        if self._settings.kinopoisk_api_key:
            headers["X-API-KEY"] = self._settings.kinopoisk_api_key
        return headers

    async def search(
        self, query: CatalogQuery, *, room_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Run a single page of the search and return the movie documents."""

        try:
            response = await self._client.get(
                self._SEARCH_PATH,
                params=query.to_params(),
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Kinopoisk search for room %s failed: %s", room_id, exc
            )
            raise ExternalApiError(
                "Failed to fetch movies from the catalog", room_id=room_id
            ) from exc

        if not response.is_success:
            logger.warning(
                "Kinopoisk search for room %s returned %s: %s",
                room_id,
                response.status_code,
                response.text[:500],
            )
            raise ExternalApiError(
                f"Catalog responded with status {response.status_code}",
                room_id=room_id,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ExternalApiError(
                "Catalog returned a malformed response", room_id=room_id
            ) from exc

        docs = payload.get("docs") if isinstance(payload, dict) else None
        if not isinstance(docs, list):
            raise ExternalApiError(
                "Catalog response did not contain a document list", room_id=room_id
            )

        movies = [doc for doc in docs if isinstance(doc, dict)]
        logger.info(
            "Kinopoisk returned %s movies for room %s (years %s, %s extra)",
            len(movies),
            room_id,
            query.year_filter,
            len(query.extra_years),
        )
        return movies
