"""
Data Models
Dataclasses for all entities and dashboard view structures. Pure Python objects, no database logic.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Set, Union

# Ordered pipeline; the position doubles as a sort key.
STAGES = (
    'uncontacted',
    'contacted',
    'deposit',
    'trial',
    'booked',
    'confirmed',
    'changes',
    'completed',
    'lost',
)

APPOINTMENT_STATUSES = ('tentative', 'booked', 'completed', 'canceled')
INVOICE_STATUSES = ('draft', 'sent', 'paid', 'overdue', 'void')
CONTRACT_STATUSES = ('draft', 'sent', 'signed', 'void')

Timestamp = Union[datetime, str]


@dataclass
class PersistedLead:
    """Row shape of the leads table."""
    id: str = ''
    name: Optional[str] = None
    email: str = ''
    phone: Optional[str] = None
    event_date: Optional[Timestamp] = None
    message: Optional[str] = None
    source: Optional[str] = None
    created_at: Optional[Timestamp] = None


@dataclass
class Intake:
    """Event-planning details captured for a lead."""
    service: Optional[str] = None
    preferred_date: Optional[datetime] = None
    event_time: Optional[str] = None
    location: Optional[str] = None
    party_size: Optional[int] = None
    add_ons: List[str] = field(default_factory=list)
    skin_type: Optional[str] = None
    allergies: Optional[str] = None
    style: Optional[str] = None
    refs: Optional[str] = None
    notes: Optional[str] = None
    initial_message: Optional[str] = None
    captured_at: Optional[datetime] = None


@dataclass
class LeadNote:
    id: str = ''
    text: str = ''
    at: Optional[datetime] = None


@dataclass
class Invoice:
    id: str = ''
    status: Optional[str] = None
    due_at: Optional[Timestamp] = None
    total: Optional[float] = None


@dataclass
class Contract:
    id: str = ''
    template: Optional[str] = None
    status: Optional[str] = None
    title: Optional[str] = None
    service: Optional[str] = None


@dataclass
class Lead:
    """Rich in-memory lead, decoded from a PersistedLead row."""
    id: str = ''
    name: str = ''
    email: Optional[str] = None
    phone: Optional[str] = None
    stage: str = 'uncontacted'
    source: Optional[str] = None
    event_type: Optional[str] = None
    created_at: Optional[datetime] = None
    service_date: Optional[datetime] = None
    last_contact_at: Optional[datetime] = None
    tags: Set[str] = field(default_factory=set)
    intake: Intake = field(default_factory=Intake)
    notes: List[LeadNote] = field(default_factory=list)
    internal_notes: Optional[str] = None
    invoices: List[Invoice] = field(default_factory=list)
    contracts: List[Contract] = field(default_factory=list)
    # Legacy "Key: Value" detail lines the codec does not map to a field
    unrecognized: Dict[str, str] = field(default_factory=dict)

    @property
    def service(self) -> Optional[str]:
        return self.intake.service

    @property
    def primary_note(self) -> Optional[str]:
        return self.notes[0].text if self.notes else None


@dataclass
class LeadUpdatePayload:
    """Flat, persistable projection of a Lead."""
    id: str = ''
    name: Optional[str] = None
    email: str = ''
    phone: Optional[str] = None
    event_date: Optional[str] = None
    message: Optional[str] = None
    source: Optional[str] = None


@dataclass
class Appointment:
    id: str = ''
    title: str = ''
    start: Optional[Timestamp] = None
    end: Optional[Timestamp] = None
    lead_id: Optional[str] = None
    service: Optional[str] = None
    price: Optional[float] = None
    status: Optional[str] = None
    location: Optional[str] = None


@dataclass
class Sale:
    id: str = ''
    amount: float = 0.0
    type: str = 'guide'
    created_at: Optional[Timestamp] = None


# =============================================================================
# VIEW STRUCTURES
# =============================================================================

@dataclass
class RichEvent:
    """Appointment with resolved start/end, its lead (if any) and category."""
    event: Appointment
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    lead: Optional[Lead] = None
    category: str = 'other'
    color: str = ''


@dataclass
class Slot:
    """Contiguous range within a day: 'event' (occupied) or 'open'."""
    type: str
    start: datetime
    end: datetime
    rich: Optional[RichEvent] = None


@dataclass
class DayStyle:
    category: str
    background: str
    border: str


@dataclass
class Timeframe:
    """Half-open interval [start, end)."""
    start: datetime
    end: datetime
    label: str = ''
    key: str = ''
    view_mode: str = 'today'

    def contains(self, moment: Optional[datetime]) -> bool:
        return moment is not None and self.start <= moment < self.end

    @property
    def focus_date(self) -> date:
        return self.start.date()


@dataclass
class CalendarView:
    timeframe: Timeframe
    events: List[RichEvent] = field(default_factory=list)
    by_day: Dict[date, List[RichEvent]] = field(default_factory=dict)


@dataclass
class KPISummary:
    bookings: int = 0
    leads: int = 0
    trials: int = 0
    service_revenue: float = 0.0
    guide_revenue: float = 0.0


@dataclass
class SearchResult:
    id: str
    name: str
    lead: Lead
    email: Optional[str] = None
    phone: Optional[str] = None
    service: Optional[str] = None
    stage: Optional[str] = None
