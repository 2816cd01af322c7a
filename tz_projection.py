"""
Timezone projection: re-read a wall-clock time asserted in one zone as the wall-clock of another.

Only the forward mapping (instant -> wall clock in a zone) is used. The inverse is found
by a short fixed-point search: guess an instant, read it back in the source zone, shift
by the residual, repeat.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tzlocal import get_localzone_name

from errors import UnknownTimezone

logger = logging.getLogger("tz_projection")

LOCAL = "local"
_MAX_ROUNDS = 3
_ONE_MINUTE = timedelta(minutes=1)


def get_zone(name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name. Raises UnknownTimezone; never falls back."""
    key = (name or "").strip()
    if not key:
        raise UnknownTimezone(name)
    try:
        return ZoneInfo(key)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise UnknownTimezone(name) from e


def resolve_zone_name(name: str | None, configured: str | None = None) -> str:
    """
    Map a viewer zone selection to an IANA name.
    "local" (or empty) means the configured user_timezone; a configured "local" means the host zone.
    Raises UnknownTimezone if the result is not a known zone.
    """
    raw = (name or "").strip()
    if not raw or raw.lower() == LOCAL:
        raw = (configured or "").strip()
        if not raw or raw.lower() == LOCAL:
            raw = get_localzone_name()
    get_zone(raw)
    return raw


def _minute(wall: datetime) -> datetime:
    return wall.replace(second=0, microsecond=0, tzinfo=None)


def zone_clock(instant: datetime, zone: str) -> datetime:
    """Wall-clock reading (naive datetime, minute precision) of an aware instant in zone."""
    return _minute(instant.astimezone(get_zone(zone)))


def project(wall: datetime, source_zone: str, target_zone: str) -> datetime:
    """
    Given a wall-clock time asserted to be local to source_zone, return the wall-clock
    time the same instant reads as in target_zone.
    """
    target = _minute(wall)
    get_zone(target_zone)
    # Seed: read the wall values as if they were already UTC
    instant = target.replace(tzinfo=timezone.utc)
    for _ in range(_MAX_ROUNDS):
        residual = zone_clock(instant, source_zone) - target
        if abs(residual) < _ONE_MINUTE:
            break
        instant -= residual
    else:
        if zone_clock(instant, source_zone) != target:
            # Wall time skipped by a DST transition; keep the last candidate
            logger.debug("No exact instant for %s in %s", target.isoformat(), source_zone)
    return zone_clock(instant, target_zone)
