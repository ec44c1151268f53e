"""URL builders for probe targets and the dashboard API."""
from typing import Optional

from src.config import config

PROBE_NAMES = ("health", "locations", "availability", "bookings")

DEFAULT_PROBE_PATHS = {name: f"/{name}" for name in PROBE_NAMES}


def normalize_address(addr: str) -> str:
    """``host:port`` or URL -> base URL without trailing slash."""
    addr = addr.strip()
    if "://" not in addr:
        addr = f"http://{addr}"
    return addr.rstrip("/")


def probe_url(addr: str, probe: str, paths: Optional[dict[str, str]] = None) -> str:
    """URL for one probe, honouring per-probe path overrides."""
    path = (paths or {}).get(probe) or DEFAULT_PROBE_PATHS[probe]
    if "://" in path:
        return path
    return f"{normalize_address(addr)}/{path.lstrip('/')}"


def subscription_quantity_url() -> str:
    return f"{config.API_BASE_URL.rstrip('/')}/sources/me/subscription/quantity"
