"""
KPI Aggregator
Booking counts, trial counts and revenue over a timeframe, plus the coarse sparkline series.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from glamcrm.config import config
from glamcrm.engine.timeutil import DAY, local_now, parse_datetime, start_of_day
from glamcrm.models import Appointment, KPISummary, Lead, Sale, Timeframe

logger = logging.getLogger(__name__)

# key -> (label, offset in days from today, length in days, calendar view mode)
TIMEFRAMES = {
    'today': ('Today', 0, 1, 'today'),
    'tomorrow': ('Tomorrow', 1, 1, 'today'),
    'week': ('This Week', 0, 7, 'month'),
}

BOOKED_STATUSES = ('booked', 'completed')


def timeframe_for(key: str = 'today', now=None) -> Timeframe:
    """Resolve a timeframe preset. Unknown keys fall back to today."""
    if key not in TIMEFRAMES:
        logger.debug(f"timeframe_for: unknown key {key!r}, using 'today'")
        key = 'today'
    label, offset, length, view_mode = TIMEFRAMES[key]
    today = start_of_day(parse_datetime(now) if now is not None else local_now())
    start = today + offset * DAY
    return Timeframe(start=start, end=start + length * DAY, label=label, key=key, view_mode=view_mode)


# =============================================================================
# TIMEFRAME FILTERS
# =============================================================================

def filter_events(events: Iterable[Appointment], timeframe: Timeframe) -> List[Appointment]:
    return [e for e in events if timeframe.contains(parse_datetime(e.start))]


def filter_sales(sales: Iterable[Sale], timeframe: Timeframe) -> List[Sale]:
    return [s for s in sales if timeframe.contains(parse_datetime(s.created_at))]


def filter_leads(leads: Iterable[Lead], timeframe: Timeframe) -> List[Lead]:
    """Leads whose service date (or creation date when unscheduled) falls in the timeframe."""
    return [
        lead for lead in leads
        if timeframe.contains(lead.service_date or parse_datetime(lead.created_at))
    ]


def is_trial(event: Appointment) -> bool:
    return 'trial' in (event.service or '').lower()


# =============================================================================
# AGGREGATION
# =============================================================================

def aggregate(
    events: Iterable[Appointment],
    sales: Iterable[Sale],
    leads: Iterable[Lead],
    timeframe: Timeframe,
) -> KPISummary:
    """
    KPIs over [timeframe.start, timeframe.end).

    Revenue is summed unrounded; rounding happens only in format_usd().
    """
    in_range = filter_events(events, timeframe)
    guide_sales = [s for s in filter_sales(sales, timeframe) if s.type == 'guide']

    summary = KPISummary(
        bookings=sum(1 for e in in_range if e.status in BOOKED_STATUSES),
        leads=len(filter_leads(leads, timeframe)),
        trials=sum(1 for e in in_range if is_trial(e)),
        service_revenue=sum((e.price or 0) for e in in_range),
        guide_revenue=sum((s.amount or 0) for s in guide_sales),
    )
    logger.debug(f"aggregate[{timeframe.key or timeframe.label}]: {summary}")
    return summary


def bucket_series(amounts: Sequence[float], bucket_count: Optional[int] = None) -> List[float]:
    """
    Sum `amounts` into bucket_count chunks of ceil(len / bucket_count) items,
    by list position rather than by time. Trailing buckets may be empty (0).
    """
    buckets = bucket_count or config.SPARKLINE_BUCKETS
    if not amounts:
        return [0] * buckets
    size = -(-len(amounts) // buckets)
    return [sum(amounts[i * size:(i + 1) * size]) for i in range(buckets)]


def sparklines(
    events: Sequence[Appointment],
    sales: Sequence[Sale],
    bucket_count: Optional[int] = None,
) -> Dict[str, List[float]]:
    """Series for the four KPI tiles, built from already filtered events and sales."""
    guide_amounts = [(s.amount or 0) for s in sales if s.type == 'guide']
    return {
        'bookings': bucket_series([1 for _ in events], bucket_count),
        'trials': bucket_series([1 if is_trial(e) else 0 for e in events], bucket_count),
        'service_revenue': bucket_series([(e.price or 0) for e in events], bucket_count),
        'guide_revenue': bucket_series(guide_amounts, bucket_count),
    }


def format_usd(amount: float) -> str:
    """Whole-dollar display, halves rounded up: 379.5 -> '$380'."""
    whole = Decimal(str(amount)).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    sign = '-' if whole < 0 else ''
    return f"{sign}${abs(int(whole)):,}"
