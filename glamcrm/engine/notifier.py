"""
Booking inquiry notifications.
Builds the structured inquiry for a lead and sends it to the operator address
through the Resend REST API.
"""

import html
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from glamcrm.bus.events import bus, EVENT_INQUIRY_SENT
from glamcrm.config import config
from glamcrm.engine.codec import format_date_for_message
from glamcrm.errors import TransientIOError, ValidationError
from glamcrm.logging_config import log_call
from glamcrm.models import Lead

logger = logging.getLogger(__name__)


@dataclass
class BookingInquiry:
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    service: Optional[str] = None
    date: Optional[str] = None
    location: Optional[str] = None
    party_size: Optional[int] = None
    add_ons: List[str] = field(default_factory=list)
    notes: Optional[str] = None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_inquiry_payload(lead: Lead) -> BookingInquiry:
    """Inquiry for a lead. Raises ValidationError when the lead has no name."""
    name = _text(lead.name)
    if not name:
        raise ValidationError("Name is required")
    intake = lead.intake
    when = lead.service_date or intake.preferred_date
    return BookingInquiry(
        name=name,
        email=_text(lead.email),
        phone=_text(lead.phone),
        service=_text(intake.service or lead.event_type),
        date=format_date_for_message(when) or None,
        location=_text(intake.location),
        party_size=intake.party_size,
        add_ons=[item.strip() for item in intake.add_ons if item and item.strip()],
        notes=_text(lead.primary_note or intake.initial_message),
    )


def render_inquiry_html(inquiry: BookingInquiry) -> str:
    rows = [
        ('Name', inquiry.name),
        ('Email', inquiry.email),
        ('Phone', inquiry.phone),
        ('Service', inquiry.service),
        ('Preferred Date', inquiry.date),
        ('Location', inquiry.location),
        ('Party Size', inquiry.party_size),
        ('Add-ons', ', '.join(inquiry.add_ons) if inquiry.add_ons else None),
        ('Notes', inquiry.notes),
    ]
    lines = ['<strong>New Booking Request</strong>', '']
    lines += [
        f"<strong>{label}:</strong> {html.escape(str(value))}"
        for label, value in rows if value not in (None, '')
    ]
    return ('<div style="font-family:ui-sans-serif,system-ui,-apple-system,Segoe UI,Roboto">'
            + '<br/>'.join(lines) + '</div>')


@log_call
def send_booking_inquiry(inquiry: BookingInquiry, to: Optional[str] = None) -> str:
    """
    Send the inquiry to the operator (SITE_CONTACT_TO unless overridden).
    Returns the Resend delivery id.
    """
    if not config.RESEND_API_KEY:
        raise ValidationError("RESEND_API_KEY not set in environment")

    payload: Dict[str, Any] = {
        "from": config.RESEND_FROM,
        "to": [_text(to) or config.SITE_CONTACT_TO],
        "subject": f"Booking Inquiry — {inquiry.name}",
        "html": render_inquiry_html(inquiry),
    }
    if inquiry.email:
        payload["reply_to"] = inquiry.email

    headers = {
        "Authorization": f"Bearer {config.RESEND_API_KEY}",
        "Content-Type": "application/json",
    }

    try:
        logger.debug(f"Sending booking inquiry for {inquiry.name}")
        response = requests.post(f"{config.RESEND_BASE_URL}/emails", json=payload, headers=headers, timeout=(10, 30))
        response.raise_for_status()
        delivery_id = response.json()['id']

    except requests.exceptions.RequestException as e:
        logger.error(f"Resend API error: {e}")
        raise TransientIOError(f"Failed to send booking inquiry: {e}")
    except (KeyError, ValueError) as e:
        logger.error(f"Resend response parse error: {e}")
        raise TransientIOError(f"Unexpected Resend response format: {e}")

    logger.info(f"Booking inquiry for {inquiry.name} sent: {delivery_id}")
    bus.emit(EVENT_INQUIRY_SENT, {'delivery_id': delivery_id, 'name': inquiry.name})
    return delivery_id
