"""Timestamp formats used by SigV4 and HTTP.

strftime's %a and %b follow the process locale, so the English names are
spelled out here.
"""

import datetime as dt

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan",
    "Feb",
    "Mar",
    "Apr",
    "May",
    "Jun",
    "Jul",
    "Aug",
    "Sep",
    "Oct",
    "Nov",
    "Dec",
)


def to_utc(timestamp: dt.datetime) -> dt.datetime:
    # naive timestamps are taken to already be UTC
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=dt.UTC)
    return timestamp.astimezone(dt.UTC)


def basic_date(timestamp: dt.datetime) -> str:
    t = to_utc(timestamp)
    return (
        f"{t.year:04d}{t.month:02d}{t.day:02d}"
        f"T{t.hour:02d}{t.minute:02d}{t.second:02d}Z"
    )


def date_stamp(timestamp: dt.datetime) -> str:
    t = to_utc(timestamp)
    return f"{t.year:04d}{t.month:02d}{t.day:02d}"


def http_date(timestamp: dt.datetime) -> str:
    t = to_utc(timestamp)
    return (
        f"{_WEEKDAYS[t.weekday()]}, {t.day:02d} {_MONTHS[t.month - 1]} {t.year:04d} "
        f"{t.hour:02d}:{t.minute:02d}:{t.second:02d} GMT"
    )
