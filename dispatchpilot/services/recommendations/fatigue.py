"""
Fatigue limits applied to candidate slots.

A slot is rejected when the contractor's booked hours on that local date plus
the job would pass the hard stop, or the soft cap for non-rush jobs, or when
it would follow too many back-to-back jobs without a rest gap.
"""

from datetime import datetime, timedelta
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

from dispatchpilot.core.config import settings

from .types import TimeWindow


def daily_hours(windows: Sequence[TimeWindow], day_start: datetime, day_end: datetime) -> float:
    """Hours of the given windows falling inside [day_start, day_end)."""
    total = 0.0
    for w in windows:
        start = max(w.start, day_start)
        end = min(w.end, day_end)
        if start < end:
            total += (end - start).total_seconds()
    return total / 3600


def consecutive_jobs_before(windows: Sequence[TimeWindow], before: datetime, min_break_minutes: int) -> int:
    """
    Length of the run of jobs ending at or before `before`, counted back from the
    latest one, where each gap is at most min_break_minutes.
    """
    earlier = sorted((w for w in windows if w.end <= before), key=lambda w: w.start)
    if not earlier:
        return 0

    gap_limit = timedelta(minutes=min_break_minutes)
    count = 1
    for i in range(len(earlier) - 2, -1, -1):
        if earlier[i + 1].start - earlier[i].end <= gap_limit:
            count += 1
        else:
            break
    return count


def earliest_rested_start(start: datetime, windows: Sequence[TimeWindow]) -> datetime:
    """Push a start past the required rest gap when it would extend a full run of jobs."""
    min_break = settings.FATIGUE_MIN_BREAK_MINUTES
    if consecutive_jobs_before(windows, start, min_break) < settings.FATIGUE_MAX_CONSECUTIVE_JOBS:
        return start
    last_end = max(w.end for w in windows if w.end <= start)
    return max(start, last_end + timedelta(minutes=min_break))


def check_fatigue(
    slot: TimeWindow,
    windows: Sequence[TimeWindow],
    contractor_timezone: str,
    is_rush: bool = False,
) -> Optional[str]:
    """
    Check one proposed slot against the contractor's existing assignment windows.

    Returns:
        None when the slot is feasible, otherwise the reason it is not.
    """
    tz = ZoneInfo(contractor_timezone)
    local_day = slot.start.astimezone(tz).date()
    day_start = datetime.combine(local_day, datetime.min.time(), tzinfo=tz)
    day_end = day_start + timedelta(days=1)

    total = daily_hours(windows, day_start, day_end) + slot.duration.total_seconds() / 3600
    if total > settings.FATIGUE_HARD_STOP_HOURS:
        return f"would exceed hard stop of {settings.FATIGUE_HARD_STOP_HOURS:g} hours ({total:.1f}h)"
    if total > settings.FATIGUE_SOFT_CAP_HOURS and not is_rush:
        return f"would exceed soft cap of {settings.FATIGUE_SOFT_CAP_HOURS:g} hours ({total:.1f}h)"

    min_break = settings.FATIGUE_MIN_BREAK_MINUTES
    consecutive = consecutive_jobs_before(windows, slot.start, min_break)
    if consecutive >= settings.FATIGUE_MAX_CONSECUTIVE_JOBS:
        last_end = max(w.end for w in windows if w.end <= slot.start)
        if slot.start - last_end < timedelta(minutes=min_break):
            return f"would exceed {settings.FATIGUE_MAX_CONSECUTIVE_JOBS} consecutive jobs without a break"

    return None
