import datetime


def nowUTC() -> datetime.datetime:
    """
    Returns timezone aware datetime of current UTC time
    Convenience function that allows monkeypatching in tests to mock time
    """
    return datetime.datetime.now(datetime.timezone.utc)

def nowIso8601():
    """
    Returns time now in RFC-3339 profile of ISO 8601 format.

    YYYY-MM-DDTHH:MM:SS.ffffff+HH:MM
    '2020-08-22T17:50:09.988921+00:00'
    """
    return nowUTC().isoformat(timespec="microseconds")

def elapsed(since: datetime.datetime | None) -> float | None:
    """Seconds since a timestamp taken with nowUTC, or None if it was never set"""
    if since is None:
        return None
    return (nowUTC() - since).total_seconds()
