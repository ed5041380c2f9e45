"""
Calendar Aggregation
Joins appointments with their leads, buckets them by local calendar day and
picks the status colour used for each event and each day cell.
"""

import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from glamcrm.engine.timeutil import HOUR, parse_datetime
from glamcrm.models import Appointment, DayStyle, Lead, RichEvent

logger = logging.getLogger(__name__)

CATEGORIES = ('new', 'pending', 'booked', 'other')

CATEGORY_COLORS = {
    'new': '#ef4444',
    'pending': '#f59e0b',
    'booked': '#22c55e',
    'other': '#64748b',
}

_STAGE_CATEGORY = {
    'uncontacted': 'new',
    'contacted': 'pending',
    'deposit': 'pending',
    'trial': 'pending',
    'changes': 'pending',
    'booked': 'booked',
    'confirmed': 'booked',
    'completed': 'booked',
}

_STATUS_CATEGORY = {
    'tentative': 'pending',
    'booked': 'booked',
    'completed': 'booked',
    'canceled': 'other',
}

# Dominant category for a day cell, highest priority first
_DAY_PRECEDENCE = ('new', 'pending', 'booked')


def categorize(lead: Optional[Lead] = None, event: Optional[Appointment] = None) -> str:
    """
    Status category of an event. A linked lead's pipeline stage wins over the
    appointment's own status; the status only decides when there is no lead or
    its stage (e.g. 'lost') maps to nothing.
    """
    if lead is not None and lead.stage in _STAGE_CATEGORY:
        return _STAGE_CATEGORY[lead.stage]
    if event is not None and event.status:
        return _STATUS_CATEGORY.get(event.status, 'other')
    return 'other'


def hex_to_rgba(hex_color: str, alpha: float) -> str:
    clean = hex_color.lstrip('#')
    if len(clean) == 3:
        clean = ''.join(ch * 2 for ch in clean)
    value = int(clean, 16)
    r, g, b = (value >> 16) & 255, (value >> 8) & 255, value & 255
    return f"rgba({r}, {g}, {b}, {alpha})"


def enrich_events(events: Iterable[Appointment], leads: Iterable[Lead]) -> List[RichEvent]:
    """Resolve start/end, attach the linked lead and derive the category of every appointment."""
    lead_by_id = {lead.id: lead for lead in leads if lead.id}
    rich_events = []
    for event in events:
        start = parse_datetime(event.start)
        end = parse_datetime(event.end)
        if end is None and start is not None:
            end = start + HOUR
        lead = lead_by_id.get(event.lead_id) if event.lead_id else None
        category = categorize(lead, event)
        rich_events.append(RichEvent(
            event=event, start=start, end=end, lead=lead,
            category=category, color=CATEGORY_COLORS[category],
        ))
    return rich_events


def events_by_day(events: Iterable[RichEvent]) -> Dict[date, List[RichEvent]]:
    """Group by local calendar day of the start, each day sorted by start. Events without a start are left out."""
    buckets: Dict[date, List[RichEvent]] = defaultdict(list)
    dropped = 0
    for rich in events:
        if rich.start is None:
            dropped += 1
            continue
        buckets[rich.start.date()].append(rich)
    if dropped:
        logger.debug(f"events_by_day: {dropped} event(s) without a parseable start")
    return {day: sorted(items, key=lambda rich: rich.start) for day, items in buckets.items()}


def day_style_for(items: Sequence[RichEvent]) -> Optional[DayStyle]:
    """
    Colour hint for a day cell.

    An empty day is highlighted as available (pending colour). Otherwise the
    highest-priority category present wins: new > pending > booked. A day
    holding only 'other' events gets no hint.
    """
    if not items:
        return _style('pending', border_alpha=0.5)
    present = {rich.category for rich in items}
    for category in _DAY_PRECEDENCE:
        if category in present:
            return _style(category, border_alpha=0.55)
    return None


def _style(category: str, border_alpha: float) -> DayStyle:
    color = CATEGORY_COLORS[category]
    return DayStyle(
        category=category,
        background=hex_to_rgba(color, 0.12),
        border=hex_to_rgba(color, border_alpha),
    )


def month_cells(anchor: date) -> List[date]:
    """The 42 days (6 weeks, Sunday first) of the month grid containing anchor."""
    first = anchor.replace(day=1)
    # date.weekday(): Monday=0 ... Sunday=6
    offset = (first.weekday() + 1) % 7
    grid_start = first - timedelta(days=offset)
    return [grid_start + timedelta(days=i) for i in range(42)]


def focus_list(events: Iterable[RichEvent], day: date) -> List[RichEvent]:
    """Events starting on the given day, in start order."""
    return sorted(
        (rich for rich in events if rich.start and rich.start.date() == day),
        key=lambda rich: rich.start,
    )
