"""
Time helpers.

Timestamps are stored as unix seconds where 0 means "not set". In Python an
unset time is ``None``: a freshness of ``None`` switches off all
conditional-GET handling for a response.
"""

from __future__ import annotations

from datetime import datetime, timezone

from werkzeug.http import http_date

# The only If-Modified-Since format we accept (RFC 7231 IMF-fixdate).
# Legacy RFC 850 / asctime dates just get a full response.
HTTP_DATE_FMT = "%a, %d %b %Y %H:%M:%S GMT"


def utc_now() -> datetime:
    """Return an *aware* datetime in UTC."""
    return datetime.now(timezone.utc)


def import_time(unix: int | None) -> datetime | None:
    if not unix:
        return None
    return datetime.fromtimestamp(unix, timezone.utc)


def export_time(dt: datetime | None) -> int:
    if dt is None:
        return 0
    return int(dt.timestamp())


def truncate(dt: datetime | None) -> datetime | None:
    """Drop sub-second precision (HTTP dates have whole seconds)."""
    if dt is None:
        return None
    return dt.replace(microsecond=0)


def last_time(*times: datetime | None) -> datetime | None:
    """The most recent of *times*, ignoring unset ones."""
    latest = None
    for t in times:
        if t is not None and (latest is None or t > latest):
            latest = t
    return latest


def http_last_modified(dt: datetime) -> str:
    """``Sun, 06 Nov 1994 08:49:37 GMT``"""
    return http_date(dt.astimezone(timezone.utc))


def parse_http_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value.strip(), HTTP_DATE_FMT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def equal_last_modified(dt: datetime, request) -> bool:
    """True when the request's If-Modified-Since is exactly *dt*."""
    ims = parse_http_date(request.headers.get("If-Modified-Since"))
    return ims is not None and ims == truncate(dt)
