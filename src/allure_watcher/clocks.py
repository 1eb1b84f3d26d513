"""
Clock utilities for allure-watcher.

All timestamps stored on report models come from this module so that
suites, tests and steps share one timezone-aware source of time.

Functions
---------
now_utc()
    Return the current UTC time with timezone info attached.
"""

from __future__ import annotations
from datetime import datetime, timezone as tz


def now_utc() -> datetime:
    """
    Return the current UTC time.

    Returns
    -------
    datetime.datetime
        Timezone-aware datetime in UTC.

    Examples
    --------
    >>> from allure_watcher.clocks import now_utc
    >>> t = now_utc()
    >>> t.tzinfo
    datetime.timezone.utc
    """
    return datetime.now(tz.utc)
