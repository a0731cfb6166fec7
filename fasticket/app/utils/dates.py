from __future__ import annotations
from datetime import datetime

from dateutil.parser import isoparse
from dateutil.tz import tzutc


def parse_iso8601(s: str) -> datetime:
    """Parse an ISO datetime into a naive UTC datetime, the form stored in the DB.

    Accepts '2025-10-22T12:00:00Z' or '2025-10-22T12:00:00+03:00'. Naive input is
    taken to be UTC already.
    """
    try:
        dt = isoparse(s)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid date format") from exc
    if dt.tzinfo is not None:
        dt = dt.astimezone(tzutc()).replace(tzinfo=None)
    return dt
