"""Analysis session — orchestrates footprint fetches, sun position, and shadow resolves for one point.

The session is an explicit object owned by the caller. Its only suspension
point is the footprint fetch; everything else is synchronous. State moves
INACTIVE → FETCHING → RESOLVED → INACTIVE and is changed only by ``start``,
``on_time_changed`` and ``exit``.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime, tzinfo
from typing import Any

from pytz import utc

from sunnyspot.compute import (
    clamp_to_window,
    compute_solar_state,
    compute_sun_window,
    format_time_from_decimal,
    local_datetime,
    split_decimal_hour,
    timezone_for,
    validate_point,
)
from sunnyspot.config import Settings
from sunnyspot.errors import FetchError, InputError
from sunnyspot.geodesy import distance_meters
from sunnyspot.models import (
    AnalysisState,
    BuildingFootprint,
    GeoPoint,
    ShadowResult,
    SolarState,
    SunWindow,
)
from sunnyspot.providers import FootprintProvider
from sunnyspot.renderers.geojson import building_markers
from sunnyspot.shadow import resolve_for_state

logger = logging.getLogger(__name__)

CACHE_RADIUS_M = 10.0  # Cached footprints serve any point this close to where they were fetched


def _utc_now() -> datetime:
    return datetime.now(utc)


class AnalysisSession:
    """Shadow analysis for one pinned point as the time of day changes.

    Args:
        provider: Source of building footprints.
        settings: Timeouts; defaults to ``Settings()``.
        clock: Returns the current aware datetime. Only used to seed the
            time of day and to reset it on exit.
    """

    def __init__(
        self,
        provider: FootprintProvider,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._provider = provider
        self._settings = settings or Settings()
        self._clock = clock or _utc_now

        self._state = AnalysisState.INACTIVE
        self._origin: GeoPoint | None = None
        self._tz: tzinfo = utc
        self._day, self._hour, self._minute = self._now_fields()

        self._solar: SolarState | None = None
        self._window: SunWindow | None = None
        self._result: ShadowResult | None = None

        self._cached_point: GeoPoint | None = None
        self._cached_footprints: tuple[BuildingFootprint, ...] = ()

        self._pending: asyncio.Task | None = None
        self._pending_point: GeoPoint | None = None
        self._generation = 0

    # --- read-only state ---

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is not AnalysisState.INACTIVE

    @property
    def is_analyzing(self) -> bool:
        return self._state is AnalysisState.FETCHING

    @property
    def origin(self) -> GeoPoint | None:
        return self._origin

    @property
    def solar_state(self) -> SolarState | None:
        return self._solar

    @property
    def sun_window(self) -> SunWindow | None:
        return self._window

    @property
    def result(self) -> ShadowResult | None:
        return self._result

    @property
    def footprints(self) -> tuple[BuildingFootprint, ...]:
        return self._cached_footprints

    @property
    def day(self) -> date:
        return self._day

    @property
    def time_value(self) -> float:
        return self._hour + self._minute / 60

    @property
    def time_string(self) -> str:
        return format_time_from_decimal(self.time_value)

    def window_hours(self) -> tuple[float, float]:
        """Bounds for a time-of-day control, falling back at polar day/night."""
        if self._window is None:
            return SunWindow.DEFAULT_HOURS
        return self._window.sunrise_hour, self._window.sunset_hour

    def building_markers(self) -> list[dict[str, Any]]:
        return building_markers(self._cached_footprints)

    # --- operations ---

    async def start(
        self,
        point: GeoPoint,
        day: date | None = None,
        hour: int | None = None,
        minute: int | None = None,
    ) -> ShadowResult:
        """Pin ``point`` and run a full analysis.

        Footprints are fetched unless the cache already covers a point within
        ``CACHE_RADIUS_M``. Missing date/time fields are seeded from the clock
        in the point's local timezone.

        Returns:
            The stored ShadowResult, or ``ShadowResult.neutral()`` when the
            point is unusable or the session was exited/restarted meanwhile.
        """
        try:
            point = validate_point(point)
        except InputError as e:
            logger.warning("Cannot start analysis: %s", e)
            return ShadowResult.neutral()

        self._generation += 1
        generation = self._generation

        self._tz = timezone_for(point)
        now_day, now_hour, now_minute = self._now_fields()
        self._origin = point
        self._day = day if day is not None else now_day
        self._hour = hour if hour is not None else now_hour
        self._minute = minute if minute is not None else now_minute
        self._result = None
        self._window = compute_sun_window(self._day, point, self._tz)
        try:
            self._refresh_solar()
        except InputError as e:
            logger.warning("Cannot start analysis: %s", e)
            self._reset()
            return ShadowResult.neutral()

        self._state = AnalysisState.FETCHING
        logger.info("Analysis started at %s for %s %s", point, self._day, self.time_string)

        footprints = await self._footprints_for(point, generation)
        if generation != self._generation:
            logger.debug("Discarding stale footprints for %s", point)
            return ShadowResult.neutral()

        self._refresh_solar()
        try:
            self._result = resolve_for_state(self._solar, footprints)
        except Exception:
            logger.exception("Shadow resolve failed at %s; reporting sunlight", point)
            self._result = ShadowResult.neutral()
        self._state = AnalysisState.RESOLVED
        logger.info(
            "Analysis at %s: %s", point, "in shadow" if self._result.is_in_shadow else "in sunlight"
        )
        return self._result

    def on_time_changed(
        self, hour: float, minute: int | None = None, day: date | None = None
    ) -> ShadowResult | None:
        """Re-resolve for a new time of day at the pinned point.

        ``hour`` may be a decimal hour (14.5) when ``minute`` is omitted. The
        time is clamped into the sun window. While a fetch is outstanding only
        the time and sun position are updated; the pending ``start`` resolves
        with them.

        Returns:
            The current ShadowResult, or None when the session is inactive.
        """
        if not self.is_active or self._origin is None:
            return None

        if day is not None and day != self._day:
            self._day = day
            self._window = compute_sun_window(day, self._origin, self._tz)

        value = hour if minute is None else hour + minute / 60
        self._hour, self._minute = split_decimal_hour(clamp_to_window(value, self._window))

        try:
            self._refresh_solar()
        except InputError as e:
            logger.warning("Ignoring time change: %s", e)
            return self._result

        if self._state is AnalysisState.FETCHING:
            return self._result

        try:
            self._result = resolve_for_state(self._solar, self._cached_footprints)
        except Exception:
            logger.exception("Shadow re-resolve failed at %s; keeping last result", self.time_string)
        return self._result

    def exit(self) -> None:
        """Leave analysis mode. The footprint cache survives for the next start."""
        self._generation += 1
        self._reset()
        logger.info("Analysis exited")

    # --- internals ---

    def _reset(self) -> None:
        self._state = AnalysisState.INACTIVE
        self._origin = None
        self._solar = None
        self._window = None
        self._result = None
        # The cancelled task stays referenced until it unwinds; see _footprints_for
        if self._pending is not None:
            self._pending.cancel()
        self._pending_point = None
        self._day, self._hour, self._minute = self._now_fields()

    def _now_fields(self) -> tuple[date, int, int]:
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(self._tz)
        return now.date(), now.hour, now.minute

    def _refresh_solar(self) -> None:
        when = local_datetime(self._origin, self._day, self._hour, self._minute, self._tz)
        self._solar = compute_solar_state(when, self._origin)

    def _covers(self, cached: GeoPoint | None, point: GeoPoint) -> bool:
        return cached is not None and distance_meters(cached, point) <= CACHE_RADIUS_M

    async def _footprints_for(self, point: GeoPoint, generation: int) -> Sequence[BuildingFootprint]:
        if self._covers(self._cached_point, point):
            logger.debug("Using %d cached footprints", len(self._cached_footprints))
            return self._cached_footprints

        while True:
            task = self._pending
            if task is None or task.done():
                task = asyncio.ensure_future(self._fetch(point))
                self._pending = task
                self._pending_point = point
                break
            if self._covers(self._pending_point, point):
                break
            # Only one fetch may run; wait for the superseded one to unwind
            task.cancel()
            await asyncio.wait({task})
            if generation != self._generation:
                return ()

        try:
            footprints, ok = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return ()
            raise

        if self._pending is task:
            self._pending = None
            self._pending_point = None
        if ok and generation == self._generation:
            self._cached_point = point
            self._cached_footprints = tuple(footprints)
        return footprints

    async def _fetch(self, point: GeoPoint) -> tuple[Sequence[BuildingFootprint], bool]:
        """Fetch with the safety timeout. Failures become an empty footprint set."""
        try:
            footprints = await asyncio.wait_for(
                self._provider.fetch_footprints(point), timeout=self._settings.safety_timeout_s
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Footprint fetch at %s timed out after %.0fs; assuming no buildings",
                point,
                self._settings.safety_timeout_s,
            )
            return (), False
        except FetchError as e:
            logger.warning("%s; assuming no buildings", e)
            return (), False
        except Exception:
            logger.exception("Footprint provider failed at %s; assuming no buildings", point)
            return (), False
        return tuple(footprints or ()), True
