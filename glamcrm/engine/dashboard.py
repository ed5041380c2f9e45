"""
Dashboard State Controller
Holds the lead list behind the admin dashboard, the open lead and its baseline,
and turns edits into store calls.

Edit session:
    open_lead(id)    baseline = deep copy of the lead
    update_lead(l)   optimistic local edit
    is_dirty         persistable projection of current != baseline
    save_lead()      store.update_lead -> decoded row becomes current and baseline
    close_lead()     unsaved edits are reverted to the baseline

Writes are last-write-wins: there is no version check against concurrent sessions.
"""

import copy
import logging
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from glamcrm.bus.events import (
    bus, EVENT_LEADS_LOADED, EVENT_LEADS_FALLBACK, EVENT_LEAD_SAVED,
    EVENT_LEAD_SAVE_FAILED, EVENT_LEAD_REVERTED, EVENT_LEAD_REMOVED,
)
from glamcrm.config import config
from glamcrm.engine import alerts, calendar, kpi
from glamcrm.engine.codec import decode, encode, snapshot
from glamcrm.engine.demo import DEMO_LABEL, demo_events, demo_rows, demo_sales
from glamcrm.engine.lead_store import LeadStore
from glamcrm.engine.schedule import build_day_schedule
from glamcrm.engine.timeutil import local_now, parse_datetime
from glamcrm.errors import NotFoundError, TransientIOError, ValidationError
from glamcrm.logging_config import log_call
from glamcrm.models import (
    Appointment, CalendarView, KPISummary, Lead, Sale, SearchResult, Slot,
)

logger = logging.getLogger(__name__)

ADMIN_SOURCE = 'admin-dashboard'


def _patch_from(lead: Lead) -> Dict[str, Any]:
    payload = asdict(encode(lead))
    payload.pop('id')
    return payload


class DashboardController:
    """
    Args:
        store: persistence collaborator
        events, sales: fixed appointment/sale inputs; when omitted they are read from the store on load
        now: pinned clock for timeframes and alerts (defaults to local time on each call)
        demo_fallback: show the demo dataset when loading fails (defaults to config.DEMO_FALLBACK)
    """

    def __init__(
        self,
        store: LeadStore,
        events: Optional[Iterable[Appointment]] = None,
        sales: Optional[Iterable[Sale]] = None,
        now: Optional[datetime] = None,
        demo_fallback: Optional[bool] = None,
    ):
        self.store = store
        self._events_from_store = events is None
        self._sales_from_store = sales is None
        self.events: List[Appointment] = list(events or [])
        self.sales: List[Sale] = list(sales or [])
        self._now = parse_datetime(now) if now is not None else None
        self.demo_fallback = config.DEMO_FALLBACK if demo_fallback is None else demo_fallback

        self.leads: List[Lead] = []
        self.is_demo = False
        self.fetch_error: Optional[str] = None

        self.active: Optional[Lead] = None
        self.baseline: Optional[Lead] = None
        self.save_error: Optional[str] = None

    def __repr__(self):
        return f"<DashboardController leads={len(self.leads)} demo={self.is_demo}>"

    def now(self) -> datetime:
        return self._now or local_now()

    # =========================================================================
    # LOADING
    # =========================================================================

    @log_call
    def load_leads(self) -> List[Lead]:
        """
        Fetch and decode all leads. A TransientIOError falls back to the labeled
        demo dataset (fetch_error is set) instead of propagating.
        """
        self.fetch_error = None
        try:
            rows = self.store.list_leads()
            events = self.store.list_appointments() if self._events_from_store else self.events
            sales = self.store.list_sales() if self._sales_from_store else self.sales
        except TransientIOError as exc:
            if not self.demo_fallback:
                raise
            logger.warning(f"load_leads: live leads unavailable ({exc}), showing demo data")
            self._use_demo_data()
            bus.emit(EVENT_LEADS_FALLBACK, {'error': str(exc)})
            return self.leads

        self.leads = [decode(row) for row in rows]
        self.events, self.sales = list(events), list(sales)
        self.is_demo = False
        logger.info(f"Loaded {len(self.leads)} leads, {len(self.events)} appointments, {len(self.sales)} sales")
        bus.emit(EVENT_LEADS_LOADED, {'count': len(self.leads)})
        return self.leads

    def _use_demo_data(self) -> None:
        now = self.now()
        self.leads = [decode(row) for row in demo_rows(now)]
        if self._events_from_store:
            self.events = demo_events(now)
        if self._sales_from_store:
            self.sales = demo_sales(now)
        self.is_demo = True
        self.fetch_error = DEMO_LABEL

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        for lead in self.leads:
            if lead.id == lead_id:
                return lead
        return None

    def _replace(self, lead: Lead) -> None:
        self.leads = [lead if current.id == lead.id else current for current in self.leads]

    # =========================================================================
    # EDIT SESSION
    # =========================================================================

    def open_lead(self, lead_id: str) -> Lead:
        lead = self.get_lead(lead_id)
        if lead is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        self.active = lead
        self.baseline = copy.deepcopy(lead)
        self.save_error = None
        return lead

    def update_lead(self, lead: Lead) -> Lead:
        """Apply an edited copy of a lead locally, without persisting it."""
        self._replace(lead)
        if self.active is not None and self.active.id == lead.id:
            self.active = lead
        self.save_error = None
        return lead

    @property
    def is_dirty(self) -> bool:
        if self.active is None or self.baseline is None:
            return False
        return snapshot(self.active) != snapshot(self.baseline)

    def close_lead(self) -> None:
        """Close the open lead; unsaved edits are reverted to the baseline."""
        if self.active is not None and self.baseline is not None and self.is_dirty:
            self._replace(copy.deepcopy(self.baseline))
            logger.info(f"close_lead: discarded unsaved edits to lead {self.active.id}")
            bus.emit(EVENT_LEAD_REVERTED, {'lead_id': self.active.id})
        self.active = None
        self.baseline = None
        self.save_error = None

    @log_call
    def save_lead(self, draft: Optional[Lead] = None) -> Optional[Lead]:
        """
        Persist the open lead (or the given draft).

        Returns the lead decoded from the stored row, which replaces it in the
        list and, unless another lead is open, becomes current and baseline. On TransientIOError or NotFoundError the message lands in
        save_error, local edits stay in place and None is returned.
        ValidationError is raised to the caller.
        """
        lead = draft or self.active
        if lead is None:
            raise ValidationError("No lead is open")
        if draft is not None:
            self.update_lead(draft)

        self.save_error = None
        try:
            row = self.store.update_lead(lead.id, _patch_from(lead))
        except (TransientIOError, NotFoundError) as exc:
            self.save_error = str(exc) or 'Failed to save lead'
            bus.emit(EVENT_LEAD_SAVE_FAILED, {'lead_id': lead.id, 'error': self.save_error})
            return None

        saved = decode(row)
        # Not stored in the leads table; carried over from the edited copy
        saved.invoices = lead.invoices
        saved.contracts = lead.contracts
        saved.last_contact_at = lead.last_contact_at
        self._replace(saved)
        # Saving a draft of another lead leaves the open lead and its baseline alone
        if self.active is None or self.active.id == saved.id:
            self.active = saved
            self.baseline = copy.deepcopy(saved)
        bus.emit(EVENT_LEAD_SAVED, {'lead_id': saved.id})
        return saved

    @log_call
    def create_lead(self, draft: Lead) -> Lead:
        """
        Persist a new lead built in the "new lead" form. A name is required.
        If the store is unreachable the draft is kept locally and save_error is set.
        """
        if not (draft.name or '').strip():
            raise ValidationError("Name is required")

        data = _patch_from(draft)
        data['source'] = data['source'] or ADMIN_SOURCE
        self.save_error = None
        try:
            row = self.store.create_lead(data)
        except TransientIOError as exc:
            logger.warning(f"create_lead: save failed, keeping local copy ({exc})")
            local = copy.deepcopy(draft)
            local.id = local.id or f"local-{uuid.uuid4().hex[:12]}"
            self.leads.insert(0, local)
            self.save_error = str(exc)
            bus.emit(EVENT_LEAD_SAVE_FAILED, {'lead_id': local.id, 'error': self.save_error})
            return local

        lead = decode(row)
        self.leads.insert(0, lead)
        return lead

    def delete_lead(self, lead_id: str) -> bool:
        """Drop a lead from the dashboard list. Nothing is deleted in the store."""
        before = len(self.leads)
        self.leads = [lead for lead in self.leads if lead.id != lead_id]
        if self.active is not None and self.active.id == lead_id:
            self.active = None
            self.baseline = None
        removed = len(self.leads) < before
        if removed:
            bus.emit(EVENT_LEAD_REMOVED, {'lead_id': lead_id})
        return removed

    # =========================================================================
    # VIEWS
    # =========================================================================

    def timeframe(self, key: str = 'today'):
        return kpi.timeframe_for(key, self.now())

    def kpis(self, key: str = 'today') -> KPISummary:
        return kpi.aggregate(self.events, self.sales, self.leads, self.timeframe(key))

    def sparklines(self, key: str = 'today') -> Dict[str, List[float]]:
        timeframe = self.timeframe(key)
        return kpi.sparklines(kpi.filter_events(self.events, timeframe), kpi.filter_sales(self.sales, timeframe))

    def calendar(self, key: str = 'today') -> CalendarView:
        timeframe = self.timeframe(key)
        rich = calendar.enrich_events(kpi.filter_events(self.events, timeframe), self.leads)
        return CalendarView(timeframe=timeframe, events=rich, by_day=calendar.events_by_day(rich))

    def day_schedule(self, day: Any) -> List[Slot]:
        moment = parse_datetime(day)
        if moment is None:
            raise ValidationError(f"Invalid day: {day!r}")
        rich = calendar.enrich_events(self.events, self.leads)
        return build_day_schedule(calendar.focus_list(rich, moment.date()), moment)

    def alerts(self) -> Dict[str, List[SearchResult]]:
        return {
            'overdue': alerts.overdue_invoices(self.leads, self.now()),
            'unsigned': alerts.unsigned_wedding_contracts(self.leads),
            'new': alerts.new_inquiries(self.leads),
        }

    def search(self, query: str) -> List[SearchResult]:
        return alerts.free_text_search(self.leads, query)

    def visible_leads(self, query: str = '', sort: str = 'alpha') -> List[Lead]:
        return alerts.sort_leads(alerts.filter_leads(self.leads, query), sort)
