# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Calendar helpers — local calendar days, not 24h windows.

A check-in at 23:59 and another at 00:01 land on two different days.
Everything works on naive local datetimes; "now" is always passed in so
callers (and tests) control the clock.
"""

from datetime import datetime, time, timedelta
from typing import Callable

Clock = Callable[[], datetime]

# Free-tier history window (archive + journal)
HISTORY_WINDOW_DAYS = 30


def start_of_day(t: datetime) -> datetime:
    return datetime.combine(t.date(), time.min)


def same_day(a: datetime, b: datetime) -> bool:
    return a.date() == b.date()


def is_today(t: datetime, now: datetime) -> bool:
    return t.date() == now.date()


def is_yesterday(t: datetime, now: datetime) -> bool:
    """True iff t's calendar day is exactly one day before now's."""
    return t.date() == now.date() - timedelta(days=1)


def day_distance(a: datetime, b: datetime) -> int:
    """Absolute number of calendar-day boundaries between a and b."""
    return abs((b.date() - a.date()).days)


def days_ago(days: int, now: datetime) -> datetime:
    """The instant `days` days before now (cutoff for rolling windows)."""
    return now - timedelta(days=days)


def history_cutoff(now: datetime) -> datetime:
    return days_ago(HISTORY_WINDOW_DAYS, now)