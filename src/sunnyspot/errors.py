"""SunnySpot error types.

Every error below is recovered inside the package: compute functions turn
them into neutral results (``None`` or ``ShadowResult.neutral()``), and the
session turns fetch failures into an empty footprint set. They are public so
that footprint providers can raise ``FetchError`` and so callers of the
lower-level helpers (``polygon_from_rings``, ``validate_point``) can catch them.
"""

from __future__ import annotations

from datetime import date
from typing import Any


class SunnySpotError(Exception):
    """Base class for all SunnySpot errors."""


class InputError(SunnySpotError):
    """Missing or unusable input (no point, non-finite coordinates, bad time).

    Attributes:
        field: Name of the rejected input.
        value: The rejected value.
    """

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r}")


class GeometryError(SunnySpotError):
    """Malformed or degenerate footprint geometry.

    Attributes:
        reason: What is wrong with the geometry.
        footprint_id: Id of the offending footprint, when known.
    """

    def __init__(self, reason: str, footprint_id: str | None = None):
        self.reason = reason
        self.footprint_id = footprint_id
        message = f"Bad footprint geometry: {reason}"
        if footprint_id is not None:
            message += f" (footprint {footprint_id})"
        super().__init__(message)


class FetchError(SunnySpotError):
    """Footprint provider failure (network, HTTP status, unreadable payload).

    An empty result is not a failure; providers return an empty sequence when
    there are no buildings nearby.
    """

    def __init__(self, message: str, point: Any = None):
        self.point = point
        super().__init__(message)


class PolarDayNightError(SunnySpotError):
    """The sun does not rise or does not set on this date at this latitude."""

    def __init__(self, point: Any, day: date):
        self.point = point
        self.day = day
        super().__init__(f"No sunrise/sunset at {point} on {day.isoformat()}")
