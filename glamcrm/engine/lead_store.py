"""
Lead Store - persistence collaborator for the dashboard.
A small create/read/update contract over lead rows, with two implementations:

  PostgresLeadStore  leads / appointments / sales tables via psycopg2
  InMemoryLeadStore  per-instance lists, injectable in tests and used when LEAD_STORE=memory

Rows are never deleted here; removing a lead from the dashboard is local state only.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from glamcrm.bus.events import bus, EVENT_LEAD_CREATED, EVENT_LEAD_UPDATED
from glamcrm.config import config
from glamcrm.db.connection import get_db_cursor
from glamcrm.engine.demo import demo_events, demo_rows, demo_sales
from glamcrm.engine.timeutil import local_now, parse_datetime
from glamcrm.errors import NotFoundError, ValidationError
from glamcrm.logging_config import log_call
from glamcrm.models import Appointment, PersistedLead, Sale

logger = logging.getLogger(__name__)

# Allowlist for create/update payloads — column names never come from user input directly
_LEAD_COLUMNS = {'name', 'email', 'phone', 'event_date', 'message', 'source'}
_SELECT_LEAD = "SELECT id, name, email, phone, event_date, message, source, created_at FROM leads"


def _validate_columns(fields: Dict[str, Any], allowed: set, entity: str) -> None:
    """Raise ValidationError if any key in fields is not an allowed column name."""
    invalid = set(fields.keys()) - allowed
    if invalid:
        raise ValidationError(f"Invalid {entity} fields: {invalid}")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def prepare_new_lead(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize a create payload.
    At least one of name, email or message is required; a missing email is
    stored as the placeholder sentinel because the column is NOT NULL.
    """
    _validate_columns(data, _LEAD_COLUMNS, 'lead')
    if all(_blank(data.get(key)) for key in ('name', 'email', 'message')):
        raise ValidationError("A lead needs at least a name, an email or a message")

    row = {key: data.get(key) for key in _LEAD_COLUMNS}
    for key in ('name', 'email', 'phone', 'source'):
        if isinstance(row[key], str):
            row[key] = row[key].strip() or None
    row['email'] = row['email'] or config.EMAIL_PLACEHOLDER
    if _blank(row['message']):
        row['message'] = None
    if row['event_date'] is not None and parse_datetime(row['event_date']) is None:
        logger.warning(f"prepare_new_lead: dropping unparseable event_date {row['event_date']!r}")
        row['event_date'] = None
    return row


def prepare_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    _validate_columns(patch, _LEAD_COLUMNS, 'lead')
    cleaned = dict(patch)
    if 'email' in cleaned and _blank(cleaned['email']):
        cleaned['email'] = config.EMAIL_PLACEHOLDER
    if 'event_date' in cleaned and cleaned['event_date'] is not None \
            and parse_datetime(cleaned['event_date']) is None:
        cleaned['event_date'] = None
    return cleaned


class LeadStore(ABC):
    """Create/read/update contract the dashboard talks to."""

    @abstractmethod
    def list_leads(self) -> List[PersistedLead]:
        """All lead rows, newest created first."""

    @abstractmethod
    def create_lead(self, data: Dict[str, Any]) -> PersistedLead:
        """Insert a lead. Raises ValidationError when name, email and message are all missing."""

    @abstractmethod
    def update_lead(self, lead_id: str, patch: Dict[str, Any]) -> PersistedLead:
        """Replace the given fields. Raises NotFoundError for an unknown id."""

    def list_appointments(self) -> List[Appointment]:
        return []

    def list_sales(self) -> List[Sale]:
        return []


# =============================================================================
# POSTGRES
# =============================================================================

def _row_to_lead(row: Dict[str, Any]) -> PersistedLead:
    data = dict(row)
    data['id'] = str(data['id'])
    return PersistedLead(**data)


class PostgresLeadStore(LeadStore):
    """
    Lead rows in PostgreSQL. Expected tables:

      leads(id text pk, name text, email text not null, phone text,
            event_date timestamptz, message text, source text,
            created_at timestamptz, updated_at timestamptz)
      appointments(id, title, start_at, end_at, lead_id, service, price, status, location)
      sales(id, amount, type, created_at)
    """

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn

    @log_call
    def list_leads(self) -> List[PersistedLead]:
        with get_db_cursor(dsn=self.dsn) as cur:
            cur.execute(f"{_SELECT_LEAD} ORDER BY created_at DESC")
            rows = cur.fetchall()
        logger.debug(f"list_leads: {len(rows)} rows")
        return [_row_to_lead(row) for row in rows]

    @log_call
    def create_lead(self, data: Dict[str, Any]) -> PersistedLead:
        row = prepare_new_lead(data)
        row['id'] = uuid.uuid4().hex
        with get_db_cursor(dsn=self.dsn) as cur:
            cur.execute("""
                INSERT INTO leads (
                    id, name, email, phone, event_date, message, source, created_at, updated_at
                ) VALUES (
                    %(id)s, %(name)s, %(email)s, %(phone)s, %(event_date)s,
                    %(message)s, %(source)s, NOW(), NOW()
                ) RETURNING id, name, email, phone, event_date, message, source, created_at
            """, row)
            created = _row_to_lead(cur.fetchone())
        logger.info(f"Created lead {created.id}: {created.name}")
        bus.emit(EVENT_LEAD_CREATED, {'lead_id': created.id, 'row': created})
        return created

    @log_call
    def update_lead(self, lead_id: str, patch: Dict[str, Any]) -> PersistedLead:
        updates = prepare_patch(patch)
        if not updates:
            raise ValidationError("Nothing to update")

        # Keys are validated against the allowlist above
        set_clause = ', '.join(f"{key} = %({key})s" for key in updates)
        params = dict(updates, lead_id=lead_id)

        with get_db_cursor(dsn=self.dsn) as cur:
            cur.execute(f"""
                UPDATE leads
                SET {set_clause}, updated_at = NOW()
                WHERE id = %(lead_id)s
                RETURNING id, name, email, phone, event_date, message, source, created_at
            """, params)
            row = cur.fetchone()

        if row is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        updated = _row_to_lead(row)
        logger.info(f"Updated lead {lead_id}: {sorted(updates)}")
        bus.emit(EVENT_LEAD_UPDATED, {'lead_id': lead_id, 'updates': updates})
        return updated

    @log_call
    def list_appointments(self) -> List[Appointment]:
        with get_db_cursor(dsn=self.dsn) as cur:
            cur.execute("""
                SELECT id, title, start_at AS start, end_at AS "end", lead_id,
                       service, price, status, location
                FROM appointments
                ORDER BY start_at ASC NULLS LAST
            """)
            rows = cur.fetchall()
        return [
            Appointment(**dict(row, id=str(row['id']),
                               lead_id=str(row['lead_id']) if row['lead_id'] is not None else None,
                               price=float(row['price']) if row['price'] is not None else None))
            for row in rows
        ]

    @log_call
    def list_sales(self) -> List[Sale]:
        with get_db_cursor(dsn=self.dsn) as cur:
            cur.execute("SELECT id, amount, type, created_at FROM sales ORDER BY created_at DESC")
            rows = cur.fetchall()
        return [Sale(**dict(row, id=str(row['id']), amount=float(row['amount'] or 0))) for row in rows]


# =============================================================================
# IN-MEMORY
# =============================================================================

def _created_sort_key(row: PersistedLead) -> datetime:
    return parse_datetime(row.created_at) or datetime.min


class InMemoryLeadStore(LeadStore):
    """Lead rows held by this instance only. Returned rows are copies."""

    def __init__(
        self,
        rows: Optional[Iterable[PersistedLead]] = None,
        appointments: Optional[Iterable[Appointment]] = None,
        sales: Optional[Iterable[Sale]] = None,
    ):
        self._rows: Dict[str, PersistedLead] = {row.id: copy.deepcopy(row) for row in rows or []}
        self._appointments = list(appointments or [])
        self._sales = list(sales or [])

    def list_leads(self) -> List[PersistedLead]:
        ordered = sorted(self._rows.values(), key=_created_sort_key, reverse=True)
        return [copy.deepcopy(row) for row in ordered]

    @log_call
    def create_lead(self, data: Dict[str, Any]) -> PersistedLead:
        row = PersistedLead(id=uuid.uuid4().hex, created_at=local_now(), **prepare_new_lead(data))
        self._rows[row.id] = row
        logger.info(f"Created lead {row.id}: {row.name}")
        bus.emit(EVENT_LEAD_CREATED, {'lead_id': row.id, 'row': row})
        return copy.deepcopy(row)

    @log_call
    def update_lead(self, lead_id: str, patch: Dict[str, Any]) -> PersistedLead:
        updates = prepare_patch(patch)
        row = self._rows.get(lead_id)
        if row is None:
            raise NotFoundError(f"Lead {lead_id} not found")
        for key, value in updates.items():
            setattr(row, key, value)
        logger.info(f"Updated lead {lead_id}: {sorted(updates)}")
        bus.emit(EVENT_LEAD_UPDATED, {'lead_id': lead_id, 'updates': updates})
        return copy.deepcopy(row)

    def list_appointments(self) -> List[Appointment]:
        return copy.deepcopy(self._appointments)

    def list_sales(self) -> List[Sale]:
        return copy.deepcopy(self._sales)


def build_store(store: Optional[str] = None) -> LeadStore:
    """The store selected by LEAD_STORE. The memory store starts with the demo dataset."""
    kind = (store or config.LEAD_STORE).lower()
    if kind == 'postgres':
        return PostgresLeadStore()
    if kind == 'memory':
        now = local_now()
        return InMemoryLeadStore(demo_rows(now), demo_events(now), demo_sales(now))
    raise ValueError(f"Unknown lead store '{kind}'. Choose from: postgres, memory")
