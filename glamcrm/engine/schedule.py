"""
Day Schedule Builder
Turns the appointments of one day into a contiguous run of 'event' and 'open' slots.
"""

import logging
from datetime import datetime
from typing import Any, List, Sequence

from glamcrm.engine.timeutil import HOUR, day_bounds
from glamcrm.models import RichEvent, Slot

logger = logging.getLogger(__name__)


def _touches(rich: RichEvent, day_start: datetime, day_end: datetime) -> bool:
    """Starts within the day, or starts earlier and runs into it."""
    if rich.start > day_end:
        return False
    return rich.start >= day_start or (rich.end or rich.start + HOUR) > day_start


def build_day_schedule(events: Sequence[RichEvent], day: Any) -> List[Slot]:
    """
    Build the slots covering `day` from 00:00 to 23:59 local time.

    Events that do not overlap the day are ignored; the rest are taken in
    start order. Gaps become 'open' slots. Overlapping
    events are neither merged nor rejected: each event slot is clamped to
    start at the running cursor, so an event swallowed by an earlier one
    yields an empty event slot and no open slot. Slot ranges are therefore
    contiguous and together cover exactly the day.
    """
    day_start, day_end = day_bounds(day)

    dated = [rich for rich in events if rich.start]
    skipped = len(events) - len(dated)
    if skipped:
        logger.warning(f"build_day_schedule: {skipped} event(s) without a start time left off {day_start.date()}")

    scheduled = sorted(
        (rich for rich in dated if _touches(rich, day_start, day_end)),
        key=lambda rich: rich.start,
    )
    if len(scheduled) < len(dated):
        logger.debug(f"build_day_schedule: {len(dated) - len(scheduled)} event(s) outside {day_start.date()} ignored")

    slots: List[Slot] = []
    cursor: datetime = day_start

    for rich in scheduled:
        end = rich.end or rich.start + HOUR
        start = min(max(rich.start, cursor), day_end)
        end = min(max(end, start), day_end)
        if start > cursor:
            slots.append(Slot(type='open', start=cursor, end=start))
        slots.append(Slot(type='event', start=start, end=end, rich=rich))
        cursor = max(cursor, end)

    if cursor < day_end:
        slots.append(Slot(type='open', start=cursor, end=day_end))

    return slots
