"""
Lead Record Codec
Maps flat lead rows (name/email/phone/event_date/message/source) to rich Lead objects and back.

The leads table has no columns for intake details, so they travel inside the
free-text `message` column:

    Looking for soft glam.          <- first paragraph: primary note

    Service: Bridal Makeup          <- everything after the first blank line:
    Party size: 6                      "Key: Value" detail lines
    Stage: booked
    Note (2026-05-01T10:00:00): ...    <- overflow notes

New storage should keep intake as structured data; this module remains the
compatibility layer for rows written in the message format.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from glamcrm.config import config
from glamcrm.engine.timeutil import local_now, parse_datetime, to_aware
from glamcrm.models import (
    STAGES, Intake, Lead, LeadNote, LeadUpdatePayload, PersistedLead,
)

logger = logging.getLogger(__name__)

DEFAULT_LEAD_NAME = 'New inquiry'

_PARAGRAPH_BREAK = re.compile(r'\n[ \t]*\n')
_FIRST_INTEGER = re.compile(r'\d+')
_OVERFLOW_NOTE = re.compile(r'^Note(?: \((?P<at>[^)]*)\))?:\s*(?P<text>.*)$')

# Detail keys mapped to fields by decode(); compared lower-cased
_KNOWN_KEYS = {
    'service', 'preferred date', 'event time', 'location', 'party size',
    'add-ons', 'stage', 'skin type', 'allergies', 'preferred style',
    'reference links', 'internal notes', 'intake notes',
}
# Native columns that encode() repeats in the message for readability
_COLUMN_KEYS = {'phone', 'email', 'source'}


def _clean(value: Any) -> Optional[str]:
    """Trimmed string or None when empty."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _one_line(value: str) -> str:
    return ' '.join(value.split())


def safe_iso(value: Any) -> Optional[str]:
    moment = parse_datetime(value)
    return moment.isoformat() if moment else None


def column_iso(value: Any) -> Optional[str]:
    """ISO string with the studio UTC offset, so timestamptz columns keep the local day."""
    moment = parse_datetime(value)
    return to_aware(moment).isoformat() if moment else None


def format_date_for_message(value: Any) -> str:
    """YYYY-MM-DD for anything date-like; unparseable text is passed through trimmed."""
    if value is None:
        return ''
    moment = parse_datetime(value)
    if moment:
        return moment.date().isoformat()
    return value.strip() if isinstance(value, str) else ''


# =============================================================================
# MESSAGE PARSING
# =============================================================================

def _split_message(raw: Optional[str]) -> Tuple[Optional[str], List[Tuple[str, str]], List[str]]:
    """(primary note, [(key, value), ...] in message order, loose lines)."""
    if not raw:
        return None, [], []

    text = raw.replace('\r\n', '\n')
    parts = _PARAGRAPH_BREAK.split(text, maxsplit=1)
    note = _clean(parts[0])
    if len(parts) == 1:
        return note, [], []

    pairs: List[Tuple[str, str]] = []
    loose: List[str] = []
    for line in (ln.strip() for ln in parts[1].split('\n')):
        if not line:
            continue
        idx = line.find(':')
        if idx <= 0 or _OVERFLOW_NOTE.match(line):
            loose.append(line)
            continue
        value = line[idx + 1:].strip()
        if value:
            pairs.append((line[:idx].strip(), value))
    return note, pairs, loose


def parse_message_details(raw: Optional[str]) -> Tuple[Optional[str], Dict[str, str]]:
    """
    Split a message into (primary note, details).

    details maps lower-cased keys to trimmed values; later lines win on duplicate
    keys. A message without a blank line is all primary note.
    """
    note, pairs, _ = _split_message(raw)
    return note, {key.lower(): value for key, value in pairs}


def parse_party_size(text: Optional[str]) -> Optional[int]:
    """First integer in the text ("6 guests" -> 6). None when there is none or it is zero."""
    if not text:
        return None
    match = _FIRST_INTEGER.search(text)
    if not match:
        return None
    return int(match.group()) or None


def parse_add_ons(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [item.strip() for item in text.split(',') if item.strip()]


def normalize_stage(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    wanted = text.strip().lower()
    for stage in STAGES:
        if stage == wanted:
            return stage
    return None


def _overflow_note(lead_id: str, index: int, line: str) -> LeadNote:
    match = _OVERFLOW_NOTE.match(line)
    if match:
        return LeadNote(id=f'msg-{lead_id}-{index}', text=match.group('text'),
                        at=parse_datetime(match.group('at')))
    return LeadNote(id=f'msg-{lead_id}-{index}', text=line)


# =============================================================================
# DECODE
# =============================================================================

def decode(row: PersistedLead) -> Lead:
    """Normalize a persisted row into a rich Lead."""
    note, pairs, loose = _split_message(row.message)
    details = {key.lower(): value for key, value in pairs}

    created = parse_datetime(row.created_at) or local_now()
    event_date = parse_datetime(row.event_date)

    raw_preferred = details.get('preferred date')
    preferred_date = parse_datetime(raw_preferred)

    raw_stage = details.get('stage')
    stage = normalize_stage(raw_stage)
    if raw_stage and stage is None:
        logger.debug(f"decode: lead {row.id} has unknown stage {raw_stage!r}, using 'uncontacted'")

    unrecognized: Dict[str, str] = {}
    for key, value in pairs:
        lowered = key.lower()
        if lowered == 'preferred date' and preferred_date is None:
            # Free-text dates such as "next spring" are kept rather than dropped
            unrecognized[key] = value
        elif lowered not in _KNOWN_KEYS and lowered not in _COLUMN_KEYS:
            unrecognized[key] = value

    intake = Intake(
        service=details.get('service'),
        preferred_date=preferred_date,
        event_time=details.get('event time'),
        location=details.get('location'),
        party_size=parse_party_size(details.get('party size')),
        add_ons=parse_add_ons(details.get('add-ons')),
        skin_type=details.get('skin type'),
        allergies=details.get('allergies'),
        style=details.get('preferred style'),
        refs=details.get('reference links'),
        notes=details.get('intake notes'),
        initial_message=note,
        captured_at=created,
    )

    notes: List[LeadNote] = []
    if note:
        notes.append(LeadNote(id=f'msg-{row.id}', text=note, at=created))
    for index, line in enumerate(loose, start=1):
        notes.append(_overflow_note(row.id, index, line))

    email = _clean(row.email) or _clean(details.get('email'))
    if email == config.EMAIL_PLACEHOLDER:
        email = None
    source = _clean(row.source) or _clean(details.get('source'))

    return Lead(
        id=row.id,
        name=_clean(row.name) or DEFAULT_LEAD_NAME,
        email=email,
        phone=_clean(row.phone) or _clean(details.get('phone')),
        stage=stage or 'uncontacted',
        source=source,
        created_at=created,
        service_date=event_date or preferred_date,
        tags={source} if source else set(),
        intake=intake,
        notes=notes,
        internal_notes=details.get('internal notes'),
        unrecognized=unrecognized,
    )


# =============================================================================
# ENCODE
# =============================================================================

def _detail_lines(lead: Lead) -> List[str]:
    intake = lead.intake
    lines: List[str] = []

    def add(label: str, value: Any) -> None:
        text = _clean(value)
        if text:
            lines.append(f"{label}: {_one_line(text)}")

    add('Service', intake.service or lead.event_type)
    if intake.preferred_date:
        add('Preferred date', format_date_for_message(intake.preferred_date))
    add('Event time', intake.event_time)
    add('Location', intake.location)
    if intake.party_size is not None:
        add('Party size', intake.party_size)
    add_ons = [item.strip() for item in intake.add_ons if item and item.strip()]
    if add_ons:
        add('Add-ons', ', '.join(add_ons))
    add('Stage', lead.stage)
    add('Phone', lead.phone)
    if lead.email and lead.email.strip() != config.EMAIL_PLACEHOLDER:
        add('Email', lead.email)
    add('Source', lead.source)
    add('Skin type', intake.skin_type)
    add('Allergies', intake.allergies)
    add('Preferred style', intake.style)
    add('Reference links', intake.refs)
    written = {line.split(':', 1)[0].lower() for line in lines}
    for key, value in lead.unrecognized.items():
        # A structured field that is set shadows the raw text it was parsed from
        if key.lower() in written:
            continue
        add(key, value)
    return lines


def _extra_note_lines(lead: Lead) -> List[str]:
    lines: List[str] = []
    if _clean(lead.internal_notes):
        lines.append(f"Internal notes: {_one_line(lead.internal_notes)}")
    if _clean(lead.intake.notes):
        lines.append(f"Intake notes: {_one_line(lead.intake.notes)}")
    for extra in lead.notes[1:]:
        text = _clean(extra.text)
        if not text:
            continue
        stamp = safe_iso(extra.at)
        # Always prefixed: bare "Key: value" text would parse as a detail line
        lines.append(f"Note ({stamp}): {_one_line(text)}" if stamp else f"Note: {_one_line(text)}")
    return lines


def build_message(lead: Lead) -> Optional[str]:
    """
    Rebuild the message column: primary note, detail lines, extra notes,
    joined by blank lines. Empty sections are left out.
    """
    primary = _clean(lead.primary_note) or _clean(lead.intake.initial_message) or ''
    # A blank line inside the note would end the first paragraph early
    primary = _PARAGRAPH_BREAK.sub('\n', primary)

    trailing = [
        section for section in (
            '\n'.join(_detail_lines(lead)),
            '\n'.join(_extra_note_lines(lead)),
        ) if section
    ]
    if not trailing:
        return primary or None
    body = '\n\n'.join(trailing)
    # Leading separator keeps a note-less details block from being read back as the note
    return f"{primary}\n\n{body}" if primary else f"\n\n{body}"


def encode(lead: Lead) -> LeadUpdatePayload:
    """Serialize a Lead back into the persisted row shape."""
    event_date = column_iso(lead.service_date) or column_iso(lead.intake.preferred_date)
    return LeadUpdatePayload(
        id=lead.id,
        name=_clean(lead.name),
        email=_clean(lead.email) or config.EMAIL_PLACEHOLDER,
        phone=_clean(lead.phone),
        event_date=event_date,
        message=build_message(lead),
        source=_clean(lead.source),
    )


def snapshot(lead: Lead) -> Tuple[LeadUpdatePayload, str]:
    """Persistable projection used for dirty checks; compared by value."""
    return encode(lead), lead.stage


def to_row(payload: LeadUpdatePayload, created_at: Optional[datetime] = None) -> PersistedLead:
    """Shape an update payload as the row the store would return."""
    return PersistedLead(
        id=payload.id,
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        event_date=payload.event_date,
        message=payload.message,
        source=payload.source,
        created_at=created_at,
    )
