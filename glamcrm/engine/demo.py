"""
Demo dataset shown when live leads are unavailable, and used to seed the in-memory store.
Built fresh on every call so nothing is shared between stores or tests.
"""

from datetime import datetime, timedelta
from typing import List, Optional

from glamcrm.engine.timeutil import HOUR, local_now
from glamcrm.models import Appointment, PersistedLead, Sale

DEMO_LABEL = 'Live leads unavailable — showing demo data.'


def _now(now: Optional[datetime]) -> datetime:
    return now or local_now()


def demo_rows(now: Optional[datetime] = None) -> List[PersistedLead]:
    moment = _now(now)
    day = timedelta(days=1)
    return [
        PersistedLead(
            id='l1', name='Alice Park', email='alice@example.com', phone='555-201',
            event_date=moment.isoformat(),
            message='Bridal trial before the big day.\n\nService: Bridal Trial\nStage: uncontacted',
            source='demo', created_at=moment.isoformat(),
        ),
        PersistedLead(
            id='l2', name='Brianna Chen', email='bri@example.com', phone='555-202',
            event_date=(moment + 3 * day).isoformat(),
            message=(
                'Wedding morning, soft glam for the bride and party.\n\n'
                'Service: Wedding\nParty size: 4 guests\nAdd-ons: Lashes, Touch-up kit\nStage: booked'
            ),
            source='repeat', created_at=(moment - day).isoformat(),
        ),
        PersistedLead(
            id='l3', name='Cami Diaz', email='cami@example.com', phone='555-203',
            event_date=(moment - 10 * day).isoformat(),
            message='Studio session for headshots.\n\nService: Studio\nStage: completed',
            source='demo', created_at=(moment - 12 * day).isoformat(),
        ),
    ]


def demo_events(now: Optional[datetime] = None) -> List[Appointment]:
    moment = _now(now)
    day = timedelta(days=1)
    return [
        Appointment(
            id='e1', title='Bridal Trial — Alice', start=moment, end=moment + HOUR,
            price=120, lead_id='l1', status='booked', service='trial',
        ),
        Appointment(
            id='e2', title='Wedding — Brianna', start=moment + 3 * day, end=moment + 3 * day + 4 * HOUR,
            price=380, lead_id='l2', status='booked', service='wedding',
        ),
        Appointment(
            id='e3', title='Studio — Cami', start=moment - 10 * day, end=moment - 10 * day + 2 * HOUR,
            price=180, lead_id='l3', status='completed', service='studio',
        ),
    ]


def demo_sales(now: Optional[datetime] = None) -> List[Sale]:
    return [Sale(id='s1', amount=59, type='guide', created_at=_now(now))]
