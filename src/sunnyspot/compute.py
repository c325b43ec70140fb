"""Solar computation layer — sun position, sunrise/sunset, and local-time helpers.

Sun position and sunrise/sunset come from ``astral``. Altitude is the
geometric elevation (no refraction), matching the flat-ground shadow model.
"""

import logging
import math
from datetime import date, datetime, tzinfo

from astral import LocationInfo
from astral.sun import azimuth, elevation, sunrise, sunset
from pytz import timezone, utc
from timezonefinder import TimezoneFinder

from sunnyspot.errors import InputError, PolarDayNightError
from sunnyspot.models import GeoPoint, SolarState, SunWindow

logger = logging.getLogger(__name__)

_tf = TimezoneFinder()


def _observer(point: GeoPoint):
    return LocationInfo(latitude=point.lat, longitude=point.lng).observer


def validate_point(point: GeoPoint | None) -> GeoPoint:
    """Return ``point`` unchanged, or raise InputError if it is unusable."""
    if point is None or not isinstance(point, GeoPoint):
        raise InputError("point", point)
    if not point.is_finite():
        raise InputError("point", point)
    return point


def _as_aware(when: datetime) -> datetime:
    # Naive datetimes are taken to be UTC
    if when.tzinfo is None or when.utcoffset() is None:
        return when.replace(tzinfo=utc)
    return when


def compute_solar_state(when: datetime | None, point: GeoPoint | None) -> SolarState | None:
    """Compute sun bearing and altitude for an instant and a location.

    Args:
        when: Instant to evaluate. Naive datetimes are treated as UTC.
        point: Observer location.

    Returns:
        SolarState with bearing clockwise from true north, or None when the
        point or time is unusable.
    """
    try:
        point = validate_point(point)
        if not isinstance(when, datetime):
            raise InputError("when", when)
    except InputError as e:
        logger.debug("Skipping sun position: %s", e)
        return None

    when = _as_aware(when)
    observer = _observer(point)
    return SolarState(
        bearing_deg=azimuth(observer, when) % 360,
        altitude_deg=elevation(observer, when, with_refraction=False),
        point=point,
        when=when,
    )


def _sunrise_sunset(day: date, point: GeoPoint, tz: tzinfo) -> tuple[datetime, datetime]:
    """Sunrise and sunset on the local calendar date ``day``.

    Raises:
        PolarDayNightError: When the sun stays above or below the horizon all day.
    """
    observer = _observer(point)
    try:
        return sunrise(observer, date=day, tzinfo=tz), sunset(observer, date=day, tzinfo=tz)
    except ValueError as e:
        # astral reports "Sun is always above/below the horizon" as ValueError
        raise PolarDayNightError(point, day) from e


def compute_sun_window(
    day: date, point: GeoPoint | None, tz: tzinfo | None = None
) -> SunWindow | None:
    """Compute sunrise and sunset for a calendar date at a location.

    Times are resolved for ``day`` in the location's own timezone.

    Args:
        day: Calendar date (local to the point).
        point: Observer location.
        tz: Timezone for the decimal hours. Looked up from the point if None.

    Returns:
        SunWindow, or None at polar day/night or for an unusable point.
        Callers fall back to ``SunWindow.DEFAULT_HOURS``.
    """
    try:
        point = validate_point(point)
    except InputError as e:
        logger.debug("Skipping sun window: %s", e)
        return None

    if tz is None:
        tz = timezone_for(point)

    try:
        rise_at, set_at = _sunrise_sunset(day, point, tz)
    except PolarDayNightError as e:
        logger.info("%s; using the default time window", e)
        return None

    sunrise_local = rise_at.astimezone(tz)
    sunset_local = set_at.astimezone(tz)
    sunrise_hour = sunrise_local.hour + sunrise_local.minute / 60
    sunset_hour = sunset_local.hour + sunset_local.minute / 60
    if sunrise_hour >= sunset_hour:
        # Sunset past local midnight; the window cannot drive a single-day control
        logger.info("Sun window wraps midnight at %s on %s", point, day)
        return None

    return SunWindow(
        sunrise=rise_at,
        sunset=set_at,
        sunrise_hour=sunrise_hour,
        sunset_hour=sunset_hour,
    )


def timezone_for(point: GeoPoint) -> tzinfo:
    """Resolve the IANA timezone for a point. UTC when none is found (open sea)."""
    tz_str = _tf.timezone_at(lat=point.lat, lng=point.lng)
    if tz_str is None:
        logger.debug("No timezone at %s, using UTC", point)
        return utc
    return timezone(tz_str)


def _localize(tz: tzinfo, naive: datetime) -> datetime:
    localize = getattr(tz, "localize", None)
    if localize is not None:
        return localize(naive)
    return naive.replace(tzinfo=tz)


def local_datetime(
    point: GeoPoint, day: date, hour: int, minute: int, tz: tzinfo | None = None
) -> datetime:
    """Build the aware datetime for wall-clock fields at a location.

    Raises:
        InputError: When hour or minute is out of range.
    """
    if not 0 <= hour <= 23:
        raise InputError("hour", hour)
    if not 0 <= minute <= 59:
        raise InputError("minute", minute)
    if tz is None:
        tz = timezone_for(point)
    return _localize(tz, datetime(day.year, day.month, day.day, hour, minute))


def decimal_hour(when: datetime) -> float:
    return when.hour + when.minute / 60


def split_decimal_hour(value: float) -> tuple[int, int]:
    """Split a decimal hour (14.5) into (hour, minute) = (14, 30).

    Minutes are rounded; a rounded value of 60 carries into the hour, and the
    result is capped at 23:59.
    """
    hours = math.floor(value)
    minutes = round((value - hours) * 60)
    if minutes == 60:
        hours += 1
        minutes = 0
    if hours >= 24:
        return 23, 59
    return max(hours, 0), minutes


def format_time_from_decimal(value: float) -> str:
    """Format a decimal hour as ``HH:MM``."""
    hours, minutes = split_decimal_hour(value)
    return f"{hours:02d}:{minutes:02d}"


def clamp_to_window(value: float, window: SunWindow | None) -> float:
    """Clamp a time-control value between sunrise and sunset."""
    if window is None:
        low, high = SunWindow.DEFAULT_HOURS
    else:
        low, high = window.sunrise_hour, window.sunset_hour
    return max(low, min(high, value))
