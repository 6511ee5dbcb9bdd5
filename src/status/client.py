"""HTTP adapter for the passport status source.

The status source answers two questions: the current status text of an
application, and the numeric id of a city (needed for long-validity
passports). Both endpoints are configurable; they are expected to return
JSON:

    GET <status_url>?number=A123            -> {"status": "..."}
    GET <long_status_url>?number=B456&city_id=77 -> {"status": "..."}
    GET <city_url>                          -> [{"id": 77, "name": "Москва"}, ...]
"""

from __future__ import annotations

from typing import Any

import httpx

from src.errors import CityNotFoundError, StatusSourceError
from src.tracker.models import Category
from src.utils.logging import get_logger

logger = get_logger("status")

# Phrases the status source uses for the two outcomes with special handling
NOT_FOUND_STATUS = "Заявление с таким номером не было сохранено на сайте."
READY_STATUS = "Статус заявления: паспорт готов."


def is_ready(status: str) -> bool:
    """Whether a status text means the passport is ready for pickup."""
    return status.strip() == READY_STATUS


def is_not_found(status: str) -> bool:
    """Whether a status text means the application number is unknown."""
    return status.strip() == NOT_FOUND_STATUS


def _normalize_city(name: str) -> str:
    return " ".join(name.replace("ё", "е").replace("Ё", "Е").split()).casefold()


class StatusSourceClient:
    """
    Async client for the status source.

    Usage:
        async with StatusSourceClient(status_url, city_url) as source:
            status = await source.lookup_status("A123")
            city_id = await source.lookup_city_id("Москва")
    """

    def __init__(
        self,
        status_url: str,
        city_url: str,
        *,
        long_validity_status_url: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.status_url = status_url
        self.city_url = city_url
        self.long_validity_status_url = long_validity_status_url
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )
        self._cities: dict[str, int] | None = None

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> StatusSourceClient:
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    def supports(self, category: Category) -> bool:
        """Whether statuses of this category can be polled."""
        if category == Category.LONG_VALIDITY:
            return self.long_validity_status_url is not None
        return True

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        try:
            resp = await self._client.get(url, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as e:
            raise StatusSourceError(f"Request to {url} failed: {e}") from e
        except ValueError as e:
            raise StatusSourceError(f"Non-JSON response from {url}") from e

    async def lookup_status(
        self,
        application_number: str,
        city_id: int | None = None,
    ) -> str:
        """Return the current status text of an application.

        Args:
            application_number: Number printed on the application receipt.
            city_id: City of submission. When given the long-validity
                endpoint is queried with both identifiers.

        Raises:
            StatusSourceError: On network errors, timeouts or a malformed answer.
        """
        if city_id is not None:
            if self.long_validity_status_url is None:
                raise StatusSourceError("Long-validity status endpoint is not configured")
            url = self.long_validity_status_url
            params: dict[str, Any] = {"number": application_number, "city_id": city_id}
        else:
            url = self.status_url
            params = {"number": application_number}

        data = await self._get_json(url, params=params)
        status = data.get("status") if isinstance(data, dict) else None
        if not isinstance(status, str):
            raise StatusSourceError(f"Unexpected status payload from {url}")
        return status.strip()

    async def lookup_city_id(self, city_name: str) -> int:
        """Resolve a city name to the status source's city id.

        The city list is fetched once and cached for the client's lifetime.

        Raises:
            CityNotFoundError: If no city matches the name.
            StatusSourceError: If the list cannot be fetched.
        """
        cities = await self._load_cities()
        city_id = cities.get(_normalize_city(city_name))
        if city_id is None:
            raise CityNotFoundError(city_name)
        return city_id

    async def _load_cities(self) -> dict[str, int]:
        if self._cities is not None:
            return self._cities

        data = await self._get_json(self.city_url)
        if not isinstance(data, list):
            raise StatusSourceError(f"Unexpected city payload from {self.city_url}")

        cities: dict[str, int] = {}
        for item in data:
            try:
                cities[_normalize_city(str(item["name"]))] = int(item["id"])
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping malformed city entry: %r", item)
        if not cities:
            raise StatusSourceError(f"Empty city list from {self.city_url}")
        self._cities = cities
        return cities
