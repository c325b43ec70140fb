"""Footprint providers — where the session gets nearby buildings from."""

import logging
from collections.abc import Sequence
from typing import Protocol

import httpx

from sunnyspot.config import Settings
from sunnyspot.errors import FetchError
from sunnyspot.footprints import footprints_from_overpass
from sunnyspot.models import BuildingFootprint, GeoPoint

logger = logging.getLogger(__name__)


class FootprintProvider(Protocol):
    """Anything that can list building footprints around a point.

    An empty sequence means "no buildings nearby" and is not an error.
    Failures raise FetchError.
    """

    async def fetch_footprints(self, point: GeoPoint) -> Sequence[BuildingFootprint]: ...


class StaticFootprintProvider:
    """Serves a fixed footprint list regardless of the point."""

    def __init__(self, footprints: Sequence[BuildingFootprint]):
        self._footprints = tuple(footprints)

    async def fetch_footprints(self, point: GeoPoint) -> Sequence[BuildingFootprint]:
        return self._footprints


def build_overpass_query(point: GeoPoint, radius_m: float, timeout_s: float = 25) -> str:
    """Overpass QL for building ways/relations within ``radius_m`` of a point."""
    around = f"around:{radius_m:.0f},{point.lat:.7f},{point.lng:.7f}"
    return (
        f"[out:json][timeout:{int(timeout_s)}];\n"
        "(\n"
        f'  way["building"]({around});\n'
        f'  relation["building"]({around});\n'
        ");\n"
        "out body;\n"
        ">;\n"
        "out skel qt;\n"
    )


class OverpassFootprintProvider:
    """Fetches OpenStreetMap building footprints from an Overpass API endpoint.

    Args:
        settings: Endpoint, radius, timeout and user agent.
        client: Optional shared ``httpx.AsyncClient``. When omitted a client is
            created per request.
    """

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self._settings = settings or Settings()
        self._client = client

    async def _post(self, client: httpx.AsyncClient, query: str) -> httpx.Response:
        resp = await client.post(
            self._settings.overpass_url,
            data={"data": query},
            headers={"User-Agent": self._settings.user_agent},
            timeout=self._settings.fetch_timeout_s,
        )
        resp.raise_for_status()
        return resp

    async def fetch_footprints(self, point: GeoPoint) -> Sequence[BuildingFootprint]:
        """Query Overpass around ``point`` and convert the result.

        Raises:
            FetchError: On transport errors, non-2xx status, or a payload that
                is not Overpass JSON.
        """
        query = build_overpass_query(point, self._settings.search_radius_m)
        try:
            if self._client is not None:
                resp = await self._post(self._client, query)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await self._post(client, query)
            payload = resp.json()
        except httpx.HTTPError as e:
            raise FetchError(f"Overpass request failed: {e}", point) from e
        except ValueError as e:
            raise FetchError(f"Overpass returned invalid JSON: {e}", point) from e

        if not isinstance(payload, dict) or "elements" not in payload:
            raise FetchError("Overpass response has no 'elements'", point)

        footprints = footprints_from_overpass(payload)
        logger.info("Fetched %d footprints around %s", len(footprints), point)
        return footprints
