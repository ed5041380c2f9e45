"""
Unit tests for glamcrm/cli/main.py.

Mocking strategy:
  - patch glamcrm.cli.main.build_store to hand the CLI an InMemoryLeadStore
    seeded with the demo dataset (dates relative to the current local time)
  - patch glamcrm.cli.main.configure_logging (autouse) to prevent file I/O
  - the notify command imports the notifier lazily, so it is patched at
    glamcrm.engine.notifier.send_booking_inquiry
  - Use click.testing.CliRunner to invoke commands end-to-end
"""

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from glamcrm.cli.main import cli, _prompt_date, _prompt_email
from glamcrm.engine.demo import demo_events, demo_rows, demo_sales
from glamcrm.engine.lead_store import InMemoryLeadStore, LeadStore
from glamcrm.engine.timeutil import local_now
from glamcrm.errors import TransientIOError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging():
    """Prevent configure_logging from creating log files during tests."""
    with patch("glamcrm.cli.main.configure_logging"):
        yield


@pytest.fixture
def store():
    now = local_now()
    demo = InMemoryLeadStore(demo_rows(now), demo_events(now), demo_sales(now))
    with patch("glamcrm.cli.main.build_store", return_value=demo):
        yield demo


@pytest.fixture
def offline():
    down = MagicMock(spec=LeadStore)
    down.list_leads.side_effect = TransientIOError("Database unavailable: timeout")
    with patch("glamcrm.cli.main.build_store", return_value=down), \
         patch("glamcrm.engine.dashboard.config") as cfg:
        cfg.DEMO_FALLBACK = True
        yield down


def stored(store, lead_id):
    return [row for row in store.list_leads() if row.id == lead_id][0]


# ---------------------------------------------------------------------------
# leads list / show
# ---------------------------------------------------------------------------

class TestLeadsList:

    def test_lists_all_leads(self, runner, store):
        result = runner.invoke(cli, ["leads", "list"])
        assert result.exit_code == 0
        assert "Found 3 leads" in result.output
        assert "Alice Park" in result.output
        assert "Brianna Chen" in result.output

    def test_search_filter(self, runner, store):
        result = runner.invoke(cli, ["leads", "list", "--search", "bri"])
        assert "Found 1 leads" in result.output
        assert "Alice Park" not in result.output

    def test_no_match(self, runner, store):
        result = runner.invoke(cli, ["leads", "list", "--search", "zzz"])
        assert "No leads found." in result.output

    def test_repeat_sort(self, runner, store):
        result = runner.invoke(cli, ["leads", "list", "--sort", "repeat"])
        assert result.output.index("Brianna Chen") < result.output.index("Alice Park")

    def test_invalid_sort_rejected(self, runner, store):
        result = runner.invoke(cli, ["leads", "list", "--sort", "random"])
        assert result.exit_code != 0

    def test_offline_store_shows_demo_warning(self, runner, offline):
        result = runner.invoke(cli, ["leads", "list"])
        assert result.exit_code == 0
        assert "Live leads unavailable" in result.output
        assert "Cami Diaz" in result.output


class TestLeadsShow:

    def test_shows_intake_details(self, runner, store):
        result = runner.invoke(cli, ["leads", "show", "l2"])
        assert result.exit_code == 0
        assert "LEAD l2: Brianna Chen" in result.output
        assert "Stage:       booked" in result.output
        assert "Party size:  4" in result.output
        assert "Lashes, Touch-up kit" in result.output
        assert "Wedding morning" in result.output

    def test_not_found(self, runner, store):
        result = runner.invoke(cli, ["leads", "show", "nope"])
        assert "Lead nope not found." in result.output


# ---------------------------------------------------------------------------
# leads new / edit
# ---------------------------------------------------------------------------

class TestLeadsNew:

    def test_creates_lead(self, runner, store):
        result = runner.invoke(
            cli, ["leads", "new"],
            input="Nia Lopez\nnia@example.com\n555-300\n2026-09-12\nEditorial\n\nMet at the bridal fair\n",
        )
        assert result.exit_code == 0
        assert "✓ Created lead" in result.output
        row = [r for r in store.list_leads() if r.name == "Nia Lopez"][0]
        assert row.email == "nia@example.com"
        assert row.source == "admin-dashboard"
        assert row.event_date.startswith("2026-09-12")
        assert "Service: Editorial" in row.message
        assert row.message.startswith("Met at the bridal fair")

    def test_reprompts_bad_email_and_date(self, runner, store):
        result = runner.invoke(
            cli, ["leads", "new"],
            input="Nia Lopez\nnot-an-email\n\n\n12/09/2026\n\n\n\n\n",
        )
        assert "Invalid email address" in result.output
        assert "Invalid format" in result.output
        assert "✓ Created lead" in result.output

    def test_store_outage_keeps_local_copy(self, runner, store):
        with patch.object(store, "create_lead", side_effect=TransientIOError("Database unavailable: timeout")):
            result = runner.invoke(cli, ["leads", "new"], input="Nia Lopez\n\n\n\n\n\n\n")
        assert "Saved locally only" in result.output


class TestLeadsEdit:

    def test_updates_stage(self, runner, store):
        result = runner.invoke(cli, ["leads", "edit", "l1", "--stage", "contacted", "--party-size", "3"])
        assert result.exit_code == 0
        assert "✓ Updated lead l1" in result.output
        message = stored(store, "l1").message
        assert "Stage: contacted" in message
        assert "Party size: 3" in message

    def test_no_options(self, runner, store):
        result = runner.invoke(cli, ["leads", "edit", "l1"])
        assert "No updates specified" in result.output

    def test_unknown_lead(self, runner, store):
        result = runner.invoke(cli, ["leads", "edit", "nope", "--stage", "lost"])
        assert "Lead nope not found" in result.output

    def test_save_failure_is_reported(self, runner, store):
        with patch.object(store, "update_lead", side_effect=TransientIOError("Database unavailable: timeout")):
            result = runner.invoke(cli, ["leads", "edit", "l1", "--location", "Napa"])
        assert "Save failed: Database unavailable: timeout" in result.output


# ---------------------------------------------------------------------------
# dashboard commands
# ---------------------------------------------------------------------------

def test_search_requires_every_word(runner, store):
    assert "Alice Park" in runner.invoke(cli, ["search", "alice park"]).output
    assert "No leads match 'alice doe'." in runner.invoke(cli, ["search", "alice doe"]).output


def test_alerts(runner, store):
    result = runner.invoke(cli, ["alerts"])
    assert result.exit_code == 0
    assert "NEW INQUIRIES (1)" in result.output
    assert "OVERDUE INVOICES (0)" in result.output
    assert "Alice Park" in result.output


def test_kpi_today(runner, store):
    result = runner.invoke(cli, ["kpi"])
    assert result.exit_code == 0
    assert "Bookings:        1" in result.output
    assert "Trials:          1" in result.output
    assert "Service Revenue: $120" in result.output
    assert "Guide Revenue:   $59" in result.output


def test_kpi_week_includes_wedding(runner, store):
    result = runner.invoke(cli, ["kpi", "--timeframe", "week"])
    assert "This Week" in result.output
    assert "Service Revenue: $500" in result.output


def test_calendar_week(runner, store):
    result = runner.invoke(cli, ["calendar", "--timeframe", "week"])
    assert result.exit_code == 0
    assert "Bridal Trial" in result.output
    assert "Wedding" in result.output
    assert "Studio" not in result.output


def test_schedule_today(runner, store):
    result = runner.invoke(cli, ["schedule"])
    assert result.exit_code == 0
    assert "Bridal Trial — Alice (new)" in result.output
    assert "open" in result.output


def test_schedule_invalid_day(runner, store):
    result = runner.invoke(cli, ["schedule", "someday"])
    assert "Error: Invalid day" in result.output


def test_notify(runner, store):
    with patch("glamcrm.engine.notifier.send_booking_inquiry", return_value="em_1") as mock_send:
        result = runner.invoke(cli, ["notify", "l2"])
    assert "✓ Inquiry sent (em_1)" in result.output
    inquiry = mock_send.call_args[0][0]
    assert inquiry.name == "Brianna Chen"
    assert inquiry.party_size == 4


def test_notify_without_api_key(runner, store):
    with patch("glamcrm.engine.notifier.config") as cfg:
        cfg.RESEND_API_KEY = ""
        result = runner.invoke(cli, ["notify", "l2"])
    assert "Error: RESEND_API_KEY not set" in result.output


# ---------------------------------------------------------------------------
# prompt helpers
# ---------------------------------------------------------------------------

class TestPromptHelpers:

    def test_prompt_date_blank_is_none(self):
        with patch("glamcrm.cli.main.click.prompt", return_value=""):
            assert _prompt_date("Date") is None

    def test_prompt_date_retries(self):
        with patch("glamcrm.cli.main.click.prompt", side_effect=["tomorrow", "2026-09-12"]), \
             patch("glamcrm.cli.main.click.echo"):
            assert _prompt_date("Date") == date(2026, 9, 12)

    def test_prompt_email_valid(self):
        with patch("glamcrm.cli.main.click.prompt", return_value="nia@example.com"):
            assert _prompt_email() == "nia@example.com"

    def test_prompt_email_blank_is_none(self):
        with patch("glamcrm.cli.main.click.prompt", return_value=""):
            assert _prompt_email() is None
