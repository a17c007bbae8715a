"""Pagination cursor codec.

Cursors are opaque strings of the form ``"<date>|<id>"``. The date token
is what allows auto-pagination to stop once results become older than a
cutoff instant. A malformed date is never an error here: callers get
``None`` and treat the cutoff as not evaluable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime
from email.utils import parsedate_to_datetime

CURSOR_SEPARATOR = "|"

# JavaScript Date.prototype.toString(), e.g.
# "Wed Feb 11 2026 23:32:39 GMT+0000 (Coordinated Universal Time)"
_JS_DATE_RE = re.compile(r"^(?P<stamp>\w{3} \w{3} \d{1,2} \d{4} \d{2}:\d{2}:\d{2} GMT[+-]\d{4})")
_JS_DATE_FORMAT = "%a %b %d %Y %H:%M:%S GMT%z"


@dataclass(frozen=True)
class Cursor:
    """A structurally valid cursor split into its two tokens."""

    raw: str
    date_token: str
    opaque_id: str

    @property
    def instant(self) -> datetime | None:
        """Point in time encoded in the date token (None if unparseable)."""
        return parse_instant(self.date_token)


def split_cursor(cursor: str | None) -> Cursor | None:
    """Split a cursor on its first separator.

    Returns None for None, empty strings and strings without a separator.
    """
    if not cursor or not isinstance(cursor, str):
        return None
    date_token, sep, opaque_id = cursor.partition(CURSOR_SEPARATOR)
    if not sep:
        return None
    return Cursor(raw=cursor, date_token=date_token, opaque_id=opaque_id)


def parse_cursor_date(cursor: str | None) -> datetime | None:
    """Extract the UTC instant from a cursor, or None if there is none."""
    parsed = split_cursor(cursor)
    if parsed is None:
        return None
    return parsed.instant


def parse_instant(token: str) -> datetime | None:
    """Parse a date token into an aware UTC datetime.

    Accepts ISO-8601 (including a trailing ``Z`` and date-only values),
    RFC 2822 and JavaScript ``Date.toString()`` renderings.
    """
    token = token.strip()
    if not token:
        return None

    try:
        return to_utc(datetime.fromisoformat(token))
    except ValueError:
        pass

    match = _JS_DATE_RE.match(token)
    if match:
        try:
            return to_utc(datetime.strptime(match.group("stamp"), _JS_DATE_FORMAT))
        except ValueError:
            return None

    try:
        return to_utc(parsedate_to_datetime(token))
    except (TypeError, ValueError, IndexError):
        return None


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def coerce_instant(value: datetime | date | str | None) -> datetime | None:
    """Coerce a user-supplied cutoff into an aware UTC datetime.

    Raises:
        ValueError: If a string value cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    instant = parse_instant(value)
    if instant is None:
        raise ValueError(f"Cannot parse cutoff instant: {value!r}")
    return instant


def is_older_than(cursor: str | None, cutoff: datetime) -> bool:
    """True if the cursor's date is strictly earlier than ``cutoff``.

    A cursor without a parseable date is never considered older.
    """
    instant = parse_cursor_date(cursor)
    if instant is None:
        return False
    return instant < to_utc(cutoff)
