"""Runtime settings — environment variables, optionally loaded from a .env file."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

_DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"
_DEFAULT_USER_AGENT = "SunnySpot/1.0 (building shadow analysis)"


@dataclass(frozen=True)
class Settings:
    """Knobs for the footprint provider and the analysis session."""

    overpass_url: str = _DEFAULT_OVERPASS_URL
    user_agent: str = _DEFAULT_USER_AGENT
    fetch_timeout_s: float = 10.0  # Per HTTP request
    safety_timeout_s: float = 15.0  # Upper bound on a whole fetch inside a session
    search_radius_m: float = 300.0  # Footprints are fetched within this radius


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from ``SUNNYSPOT_*`` environment variables.

    Args:
        dotenv: Load a ``.env`` file first (existing variables win).

    Returns:
        Settings with defaults for every unset variable.

    Raises:
        ValueError: When a numeric variable cannot be parsed.
    """
    if dotenv:
        load_dotenv()
    return Settings(
        overpass_url=os.environ.get("SUNNYSPOT_OVERPASS_URL", _DEFAULT_OVERPASS_URL),
        user_agent=os.environ.get("SUNNYSPOT_USER_AGENT", _DEFAULT_USER_AGENT),
        fetch_timeout_s=_env_float("SUNNYSPOT_FETCH_TIMEOUT_S", 10.0),
        safety_timeout_s=_env_float("SUNNYSPOT_SAFETY_TIMEOUT_S", 15.0),
        search_radius_m=_env_float("SUNNYSPOT_SEARCH_RADIUS_M", 300.0),
    )
