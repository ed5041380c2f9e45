#!/usr/bin/env python3
"""
Glam CRM Terminal CLI
Admin surface for the lead pipeline: lists, alerts, KPIs, calendar and day schedule.
"""

import copy
import logging
import re
import click
from datetime import date, datetime, time
from typing import Optional

from glamcrm.engine.dashboard import DashboardController
from glamcrm.engine.lead_store import build_store
from glamcrm.engine.alerts import SORT_MODES
from glamcrm.engine.calendar import day_style_for
from glamcrm.engine.kpi import TIMEFRAMES, format_usd
from glamcrm.engine.timeutil import local_now
from glamcrm.errors import GlamCRMError, ValidationError
from glamcrm.logging_config import configure_logging, log_call
from glamcrm.models import STAGES, Intake, Lead, LeadNote

_EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


@log_call
def _prompt_date(label: str, default: Optional[date] = None) -> Optional[date]:
    """Prompt for a date, re-prompting on bad format. Returns None if left blank."""
    logger = logging.getLogger("glamcrm")
    default_str = str(default) if default else ""
    while True:
        raw = click.prompt(label, default=default_str, show_default=bool(default_str)) or ""
        if not raw:
            return None
        try:
            return date.fromisoformat(raw)
        except ValueError:
            logger.debug(f"_prompt_date | rejected input={raw!r}")
            click.echo("  Invalid format — please use YYYY-MM-DD.", err=True)


@log_call
def _prompt_email() -> Optional[str]:
    """Prompt for an email address, re-prompting on bad format. Returns None if left blank."""
    logger = logging.getLogger("glamcrm")
    while True:
        raw = click.prompt("Email", default="", show_default=False) or None
        if raw is None:
            return None
        if _EMAIL_RE.match(raw):
            return raw
        logger.debug(f"_prompt_email | rejected input={raw!r}")
        click.echo("  Invalid email address — please try again or press Enter to skip.", err=True)


def _load_dashboard() -> DashboardController:
    """Controller over the configured store, with leads loaded. Warns when showing demo data."""
    dashboard = DashboardController(build_store())
    dashboard.load_leads()
    if dashboard.fetch_error:
        click.echo(f"⚠ {dashboard.fetch_error}", err=True)
    return dashboard


def _fmt_day(value) -> str:
    return value.strftime('%Y-%m-%d') if value else ''


def _fmt_time(value) -> str:
    return value.strftime('%H:%M') if value else ''


@click.group()
def cli():
    """Glam CRM - Leads, bookings & revenue for a makeup studio"""
    configure_logging()


# =============================================================================
# LEADS COMMANDS
# =============================================================================

@cli.group()
def leads():
    """Manage leads (inquiries through completed bookings)"""
    pass


@leads.command('list')
@click.option('--search', 'query', default='', help='Filter by name, email or phone')
@click.option('--sort', type=click.Choice(SORT_MODES), default='alpha', help='Sort mode (default: alpha)')
@log_call
def leads_list(query, sort):
    """List leads"""
    dashboard = _load_dashboard()
    results = dashboard.visible_leads(query, sort)

    if not results:
        click.echo("No leads found.")
        return

    click.echo(f"\nFound {len(results)} leads:\n")
    click.echo(f"{'ID':<14} {'Name':<24} {'Stage':<12} {'Service':<18} {'Date':<10}")
    click.echo("-" * 80)

    for lead in results:
        click.echo(
            f"{lead.id[:12]:<14} {lead.name[:22]:<24} {lead.stage:<12} "
            f"{(lead.service or '')[:16]:<18} {_fmt_day(lead.service_date):<10}"
        )


@leads.command('show')
@click.argument('lead_id')
@log_call
def leads_show(lead_id):
    """Show full lead details"""
    logger = logging.getLogger("glamcrm")
    dashboard = _load_dashboard()
    lead = dashboard.get_lead(lead_id)

    if not lead:
        logger.warning(f"leads_show | lead_id={lead_id} not found")
        click.echo(f"Lead {lead_id} not found.", err=True)
        return

    intake = lead.intake
    click.echo(f"\n{'='*80}")
    click.echo(f"LEAD {lead.id}: {lead.name}")
    click.echo(f"{'='*80}")
    click.echo(f"Stage:       {lead.stage}")
    click.echo(f"Email:       {lead.email or '(not set)'}")
    click.echo(f"Phone:       {lead.phone or '(not set)'}")
    click.echo(f"Source:      {lead.source or '(not set)'}")
    click.echo(f"Date:        {_fmt_day(lead.service_date) or '(not set)'}")
    click.echo(f"Service:     {intake.service or '(not set)'}")
    click.echo(f"Event time:  {intake.event_time or '(not set)'}")
    click.echo(f"Location:    {intake.location or '(not set)'}")
    click.echo(f"Party size:  {intake.party_size or 'N/A'}")
    click.echo(f"Add-ons:     {', '.join(intake.add_ons) or '(none)'}")
    if intake.skin_type or intake.allergies or intake.style:
        click.echo(f"Skin/Style:  {intake.skin_type or '-'} / {intake.allergies or '-'} / {intake.style or '-'}")
    for key, value in lead.unrecognized.items():
        click.echo(f"{key + ':':<12} {value}")

    click.echo(f"\n{'='*80}")
    click.echo("NOTES")
    click.echo(f"{'='*80}")
    if lead.notes:
        for note in lead.notes:
            stamp = note.at.strftime('%Y-%m-%d %H:%M') if note.at else '—'
            click.echo(f"[{stamp}] {note.text}")
    else:
        click.echo("No notes yet.")
    if lead.internal_notes:
        click.echo(f"\nInternal: {lead.internal_notes}")
    click.echo()


@leads.command('new')
@log_call
def leads_new():
    """Add a new lead (interactive)"""
    click.echo("\n=== NEW LEAD ===\n")

    name = click.prompt("Name", type=str)
    email = _prompt_email()
    phone = click.prompt("Phone", default="", show_default=False) or None
    service_date = _prompt_date("Date of service (YYYY-MM-DD, Enter to skip)")
    service = click.prompt("Service", default="", show_default=False) or None
    stage = click.prompt("Stage", type=click.Choice(STAGES, case_sensitive=False), default="uncontacted")
    notes = click.prompt("Notes", default="", show_default=False) or None

    when = datetime.combine(service_date, time()) if service_date else None
    draft = Lead(
        name=name,
        email=email,
        phone=phone,
        stage=stage.lower(),
        service_date=when,
        intake=Intake(service=service),
        notes=[LeadNote(text=notes)] if notes else [],
    )

    dashboard = _load_dashboard()
    try:
        lead = dashboard.create_lead(draft)
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        return

    if dashboard.save_error:
        click.echo(f"Saved locally only: {dashboard.save_error}", err=True)
        return
    click.echo(f"\n✓ Created lead {lead.id}: {lead.name}")


@leads.command('edit')
@click.argument('lead_id')
@click.option('--stage', type=click.Choice(STAGES, case_sensitive=False), help='Update stage')
@click.option('--service', help='Update service')
@click.option('--location', help='Update location')
@click.option('--party-size', type=int, help='Update party size')
@click.option('--email', help='Update email')
@click.option('--phone', help='Update phone')
@click.option('--internal', 'internal_notes', help='Update internal notes')
@log_call
def leads_edit(lead_id, stage, service, location, party_size, email, phone, internal_notes):
    """Edit a lead (use options to set fields)"""
    logger = logging.getLogger("glamcrm")
    dashboard = _load_dashboard()
    try:
        lead = dashboard.open_lead(lead_id)
    except GlamCRMError:
        logger.warning(f"leads_edit | lead_id={lead_id} not found")
        click.echo(f"Lead {lead_id} not found", err=True)
        return

    draft = copy.deepcopy(lead)
    if stage:
        draft.stage = stage.lower()
    if service:
        draft.intake.service = service
    if location:
        draft.intake.location = location
    if party_size is not None:
        draft.intake.party_size = party_size
    if email:
        draft.email = email
    if phone:
        draft.phone = phone
    if internal_notes:
        draft.internal_notes = internal_notes
    dashboard.update_lead(draft)

    if not dashboard.is_dirty:
        click.echo("No updates specified. Use --stage, --service, --location, --party-size, --email, --phone or --internal", err=True)
        return

    saved = dashboard.save_lead()
    if saved is None:
        click.echo(f"Save failed: {dashboard.save_error}", err=True)
        return
    click.echo(f"✓ Updated lead {lead_id}")


# =============================================================================
# DASHBOARD COMMANDS
# =============================================================================

@cli.command('search')
@click.argument('query')
@log_call
def search(query):
    """Search leads by name, email, phone or service (all words must match)"""
    results = _load_dashboard().search(query)
    if not results:
        click.echo(f"No leads match '{query}'.")
        return
    for r in results:
        click.echo(f"{r.id[:12]:<14} {r.name[:24]:<26} {r.stage or '':<12} {r.service or ''}")


@cli.command('alerts')
@log_call
def alerts():
    """Overdue invoices, unsigned wedding contracts and new inquiries"""
    groups = _load_dashboard().alerts()
    titles = {
        'overdue': 'OVERDUE INVOICES',
        'unsigned': 'UNSIGNED WEDDING CONTRACTS',
        'new': 'NEW INQUIRIES',
    }
    for key, title in titles.items():
        items = groups[key]
        click.echo(f"\n{title} ({len(items)})")
        click.echo("-" * 60)
        if not items:
            click.echo("  none")
        for r in items:
            click.echo(f"  {r.name:<26} {r.service or ''}")
    click.echo()


@cli.command('kpi')
@click.option('--timeframe', type=click.Choice(list(TIMEFRAMES)), default='today', help='Timeframe (default: today)')
@log_call
def kpi_summary(timeframe):
    """Bookings, trials and revenue for a timeframe"""
    dashboard = _load_dashboard()
    summary = dashboard.kpis(timeframe)
    label = dashboard.timeframe(timeframe).label

    click.echo(f"\n{label}")
    click.echo("-" * 40)
    click.echo(f"Bookings:        {summary.bookings}")
    click.echo(f"Trials:          {summary.trials}")
    click.echo(f"Leads:           {summary.leads}")
    click.echo(f"Service Revenue: {format_usd(summary.service_revenue)}")
    click.echo(f"Guide Revenue:   {format_usd(summary.guide_revenue)}")
    click.echo()


@cli.command('calendar')
@click.option('--timeframe', type=click.Choice(list(TIMEFRAMES)), default='week', help='Timeframe (default: week)')
@log_call
def calendar_view(timeframe):
    """Appointments grouped by day"""
    view = _load_dashboard().calendar(timeframe)

    if not view.by_day:
        click.echo(f"No bookings for {view.timeframe.label.lower()}.")
        return

    for day in sorted(view.by_day):
        items = view.by_day[day]
        style = day_style_for(items)
        click.echo(f"\n{day.isoformat()} [{style.category if style else '-'}]")
        for rich in items:
            event = rich.event
            price = f"${round(event.price)}" if event.price is not None else ''
            click.echo(
                f"  {_fmt_time(rich.start)}–{_fmt_time(rich.end)}  "
                f"{(event.title or event.service or 'Appointment')[:36]:<38} {rich.category:<8} {price}"
            )
    click.echo()


@cli.command('schedule')
@click.argument('day', required=False)
@log_call
def schedule(day):
    """Day schedule with open slots (DAY as YYYY-MM-DD, default today)"""
    dashboard = _load_dashboard()
    try:
        slots = dashboard.day_schedule(day or local_now())
    except ValidationError as e:
        click.echo(f"Error: {e}", err=True)
        return

    for slot in slots:
        span = f"{_fmt_time(slot.start)}–{_fmt_time(slot.end)}"
        if slot.type == 'open':
            click.echo(f"  {span}  open")
        else:
            event = slot.rich.event
            click.echo(f"  {span}  {event.title or event.service or 'Appointment'} ({slot.rich.category})")


@cli.command('notify')
@click.argument('lead_id')
@click.option('--to', help='Override the operator address')
@log_call
def notify(lead_id, to):
    """Email the booking inquiry for a lead to the studio"""
    from glamcrm.engine import notifier

    dashboard = _load_dashboard()
    lead = dashboard.get_lead(lead_id)
    if not lead:
        click.echo(f"Lead {lead_id} not found.", err=True)
        return
    try:
        delivery_id = notifier.send_booking_inquiry(notifier.build_inquiry_payload(lead), to=to)
    except GlamCRMError as e:
        logging.getLogger("glamcrm").error(f"notify failed for {lead_id}: {e}")
        click.echo(f"Error: {e}", err=True)
        return
    click.echo(f"✓ Inquiry sent ({delivery_id})")


# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    cli()
