"""Wall-clock helpers.

Shared-timeline instants travel on the wire as epoch milliseconds; registry
timestamps are ISO 8601 strings in UTC.
"""

import datetime


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time, e.g. ``2026-01-01T12:00:00.123456+00:00``."""
    return utc_now().isoformat()


def epoch_ms() -> float:
    """Milliseconds since the Unix epoch.

    The server answers ``/timesync`` with this value and devices fall back to
    it when no offset estimate is available.
    """
    return utc_now().timestamp() * 1000.0
