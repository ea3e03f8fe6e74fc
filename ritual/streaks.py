# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Streak engine — pure stats computation from a check-in.

Rules
-----
  Allowed   : no CommitDay for today's date AND last_commit_date isn't today
  Streak    : last check-in yesterday -> streak + 1, anything else -> 1
              (a 5-day gap resets exactly like a 1-day gap)
  Longest   : max(longest, current)
  Total     : +1, always equal to len(history)

Nothing here mutates its inputs; callers swap in the returned values.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from core.calendar import is_yesterday, start_of_day
from ritual.schemas import CommitDay, CommitmentStats


@dataclass
class CheckInResult:
    stats: CommitmentStats
    history: List[CommitDay]
    day: CommitDay


def can_check_in(stats: CommitmentStats, history: List[CommitDay], now: datetime) -> bool:
    if stats.has_committed_today(now):
        return False
    today = start_of_day(now)
    return not any(start_of_day(d.date) == today for d in history)


def check_in(
    stats: CommitmentStats,
    history: List[CommitDay],
    now: datetime,
) -> Optional[CheckInResult]:
    """New stats + history for a check-in at `now`, or None if not allowed."""
    if not can_check_in(stats, history, now):
        return None

    today = start_of_day(now)
    day = CommitDay(date=today, did_commit=True)

    if stats.last_commit_date is not None and is_yesterday(stats.last_commit_date, now):
        current = stats.current_streak + 1
    else:
        current = 1

    new_stats = CommitmentStats(
        current_streak=current,
        longest_streak=max(stats.longest_streak, current),
        total_committed_days=stats.total_committed_days + 1,
        last_commit_date=today,
    )
    return CheckInResult(stats=new_stats, history=[*history, day], day=day)


def rebuild(history: List[CommitDay]) -> Tuple[CommitmentStats, List[CommitDay]]:
    """
    Replay history through the check-in rules.

    Used on load when stored stats disagree with stored history. Days that
    share a calendar date collapse to the first one. The current streak
    reflects the last run in history; days missed since are only counted
    against it by the next check-in.
    """
    stats = CommitmentStats()
    kept: List[CommitDay] = []
    for day in sorted(history, key=lambda d: d.date):
        result = check_in(stats, kept, day.date)
        if result is None:
            continue
        stats = result.stats
        kept.append(day)
    return stats, kept


def stats_consistent(stats: CommitmentStats, history: List[CommitDay]) -> bool:
    return (
        stats.total_committed_days == len(history)
        and stats.longest_streak >= stats.current_streak
    )
