"""
Relative age formatting for the roster pages.

Turns the epoch timestamp stored with a student into text such as
"5 minutes ago". Months are a flat 30 days and years 365 days.
"""

import re
import time
from typing import Optional

JUST_NOW = "just now"

# Plain base-10 integers only: no spaces, underscores or non-ASCII digits
TIMESTAMP_PATTERN = re.compile(r"[+-]?[0-9]+")

# Most significant unit first
INTERVALS = ["year", "month", "day", "hour", "minute"]
SECONDS_PER = {"minute": 60, "hour": 3600, "day": 86400, "month": 2592000, "year": 31536000}


def calculate_time_since(posted: str, now: Optional[float] = None) -> str:
    """
    Return a human readable '<n> <interval> ago' string for posted.

    Args:
        posted: Epoch seconds, as a string
        now: Reference epoch seconds, defaults to the current time

    Returns:
        "just now" when posted is not an integer or no time has passed,
        otherwise the largest whole unit that fits, truncated
    """
    if not isinstance(posted, str) or not TIMESTAMP_PATTERN.fullmatch(posted):
        return JUST_NOW
    posted_at = int(posted)

    if now is None:
        now = time.time()
    elapsed = int(now - posted_at)

    if elapsed == 0:
        return JUST_NOW

    if elapsed < 60:
        if elapsed == 1:
            return "1 second ago"
        return "{} seconds ago".format(elapsed)

    for interval in INTERVALS:
        value = elapsed // SECONDS_PER[interval]
        if value > 0:
            if value == 1:
                return "1 {} ago".format(interval)
            return "{} {}s ago".format(value, interval)

    return JUST_NOW
