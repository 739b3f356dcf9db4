from datetime import UTC, datetime
from email.utils import format_datetime, parsedate_to_datetime

from fastapi import Request


def http_date(dt: datetime) -> str:
    """Format a timestamp for the Last-Modified header"""
    return format_datetime(dt.astimezone(UTC), usegmt=True)


def not_modified(request: Request, last_modified: datetime) -> bool:
    """
    Conditional GET on modification time: True if the client sent an If-Modified-Since header
    that is not older than last_modified (at the one second resolution of HTTP dates).
    """
    header = request.headers.get("if-modified-since")
    if not header:
        return False
    try:
        since = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return False
    if since.tzinfo is None:
        since = since.replace(tzinfo=UTC)
    return int(last_modified.timestamp()) <= since.timestamp()
