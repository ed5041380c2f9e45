"""
Search/Alert Index
In-memory alert lists (overdue invoices, unsigned wedding contracts, new inquiries),
the header free-text search, and the lead list filter/sort modes.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from glamcrm.config import config
from glamcrm.engine.timeutil import local_now, parse_datetime
from glamcrm.models import STAGES, Lead, SearchResult

logger = logging.getLogger(__name__)

UNTITLED_LEAD = 'Untitled lead'

SORT_MODES = ('alpha', 'bookingType', 'contacted', 'completed', 'upcoming', 'repeat')


def _result(lead: Lead, result_id: str, service: Optional[str]) -> SearchResult:
    return SearchResult(
        id=result_id,
        name=lead.name or UNTITLED_LEAD,
        lead=lead,
        email=lead.email or None,
        phone=lead.phone or None,
        service=service,
        stage=lead.stage,
    )


# =============================================================================
# ALERTS
# =============================================================================

def overdue_invoices(leads: Iterable[Lead], now: Optional[datetime] = None) -> List[SearchResult]:
    """One result per invoice marked overdue, or unpaid with a due date in the past."""
    moment = parse_datetime(now) if now is not None else local_now()
    results = []
    for lead in leads:
        for invoice in lead.invoices:
            due = parse_datetime(invoice.due_at)
            past_due = invoice.status != 'paid' and due is not None and due < moment
            if invoice.status == 'overdue' or past_due:
                results.append(_result(lead, f"{lead.id}-inv-{invoice.id}", f"Invoice {invoice.id}"))
    return results


def unsigned_wedding_contracts(leads: Iterable[Lead]) -> List[SearchResult]:
    results = []
    for lead in leads:
        for contract in lead.contracts:
            if (contract.template or '').startswith('wedding_') and contract.status != 'signed':
                service = contract.title or contract.service or 'Wedding contract'
                results.append(_result(lead, f"{lead.id}-contract-{contract.id}", service))
    return results


def new_inquiries(leads: Iterable[Lead]) -> List[SearchResult]:
    return [_result(lead, f"{lead.id}-new", 'New inquiry') for lead in leads if lead.stage == 'uncontacted']


# =============================================================================
# SEARCH
# =============================================================================

def _service_text(lead: Lead) -> str:
    parts = [c.service for c in lead.contracts] + [c.title for c in lead.contracts]
    parts += [lead.service, lead.event_type]
    return ' '.join(p for p in parts if p)


def free_text_search(leads: Iterable[Lead], query: str, limit: Optional[int] = None) -> List[SearchResult]:
    """
    Leads matching every whitespace-separated token of the query (case-insensitive
    substring over name, email, phone and service fields). Input order is kept.
    """
    tokens = (query or '').lower().split()
    if not tokens:
        return []
    cap = limit or config.SEARCH_RESULT_LIMIT

    matches = []
    for lead in leads:
        services = _service_text(lead)
        haystack = ' '.join([lead.name or '', lead.email or '', lead.phone or '', services]).lower()
        if all(token in haystack for token in tokens):
            matches.append(_result(lead, lead.id, services or None))
            if len(matches) >= cap:
                break
    logger.debug(f"free_text_search: {query!r} -> {len(matches)} result(s)")
    return matches


def filter_leads(leads: Iterable[Lead], query: str) -> List[Lead]:
    """Lead list filter: the whole query as one substring of name, email or phone."""
    needle = (query or '').strip().lower()
    if not needle:
        return list(leads)
    return [
        lead for lead in leads
        if needle in f"{lead.name or ''} {lead.email or ''} {lead.phone or ''}".lower()
    ]


# =============================================================================
# SORTING
# =============================================================================

_STAGE_RANK = {stage: index for index, stage in enumerate(STAGES)}
_FAR_FUTURE = datetime.max


def _name_key(lead: Lead) -> str:
    return (lead.name or '').lower()


def _sort_key(mode: str) -> Callable[[Lead], tuple]:
    if mode == 'alpha':
        return lambda lead: (_name_key(lead),)
    if mode == 'bookingType':
        return lambda lead: ((lead.service or '').lower(), _name_key(lead))
    if mode == 'contacted':
        # Contacted leads first, most recent contact first
        return lambda lead: (
            lead.last_contact_at is None,
            -(lead.last_contact_at.timestamp()) if lead.last_contact_at else 0,
        )
    if mode == 'completed':
        return lambda lead: (lead.stage != 'completed', _STAGE_RANK.get(lead.stage, 99))
    if mode == 'upcoming':
        return lambda lead: (lead.service_date or _FAR_FUTURE,)
    if mode == 'repeat':
        return lambda lead: ('repeat' not in lead.tags, _name_key(lead))
    raise ValueError(f"Unknown sort mode '{mode}'. Choose from: {', '.join(SORT_MODES)}")


def sort_leads(leads: Iterable[Lead], mode: str = 'alpha') -> List[Lead]:
    """Stable sort of the lead list by one of SORT_MODES."""
    return sorted(leads, key=_sort_key(mode))
