"""
Shared fixtures and step definitions for BDD tests.

- runner, seed, context: available to all scenario files in this directory
- seed: Given steps append rows/appointments/sales; the CLI's build_store is
  patched to build an InMemoryLeadStore from them (kept in seed["store"])
- no_logging: autouse, prevents log file creation during tests
- Given steps seeding leads, appointments and sales, and the output steps:
  shared across all feature files
"""

import pytest
from datetime import timedelta
from unittest.mock import MagicMock, patch
from click.testing import CliRunner
from pytest_bdd import given, then, parsers

from glamcrm.engine.lead_store import InMemoryLeadStore, LeadStore
from glamcrm.engine.timeutil import local_now
from glamcrm.errors import TransientIOError
from glamcrm.models import Appointment, PersistedLead, Sale

SOFT_GLAM = "Looking for soft glam.\n\nService: Bridal Makeup\nParty size: 6 guests\nStage: uncontacted"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def seed():
    data = {"rows": [], "appointments": [], "sales": [], "offline": False, "fail_saves": False, "store": None}

    def _build_store():
        if data["offline"]:
            down = MagicMock(spec=LeadStore)
            down.list_leads.side_effect = TransientIOError("Database unavailable: timeout")
            return down
        store = InMemoryLeadStore(data["rows"], data["appointments"], data["sales"])
        if data["fail_saves"]:
            store.update_lead = MagicMock(side_effect=TransientIOError("Database unavailable: timeout"))
        data["store"] = store
        return store

    with patch("glamcrm.cli.main.build_store", side_effect=_build_store):
        yield data


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture(autouse=True)
def no_logging():
    with patch("glamcrm.cli.main.configure_logging"):
        yield


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )


@then(parsers.parse('the output does not contain "{text}"'))
def output_does_not_contain(context, text):
    assert text not in context["result"].output, (
        f"Did not expect {text!r} in output:\n{context['result'].output}"
    )


@given("there are no leads")
def no_leads(seed):
    seed["rows"].clear()


@given("a bridal inquiry from Alice Park")
def alice_inquiry(seed):
    seed["rows"].append(PersistedLead(
        id="alice", name="Alice Park", email="alice@example.com", phone="555-201",
        message=SOFT_GLAM, source="website", created_at=local_now() - timedelta(days=2),
    ))


@given("a lead without an email address")
def lead_without_email(seed):
    seed["rows"].append(PersistedLead(
        id="noemail", name="Dana Reyes", email="no-email@placeholder.invalid",
        message="Call me about prom.", created_at=local_now(),
    ))


@given("the lead store is unreachable")
def store_unreachable(seed):
    seed["offline"] = True


@given("saving to the lead store fails")
def saves_fail(seed):
    seed["fail_saves"] = True


@given(parsers.parse("a booked trial today priced at {price:d}"))
def booked_trial_today(seed, price):
    start = local_now().replace(hour=9, minute=0, second=0, microsecond=0)
    seed["appointments"].append(Appointment(
        id="trial-1", title="Bridal Trial", start=start, end=start + timedelta(hours=1),
        service="Bridal Trial", status="booked", price=price,
    ))


@given(parsers.parse("a guide sale today of {amount:d}"))
def guide_sale_today(seed, amount):
    seed["sales"].append(Sale(id="sale-1", amount=amount, type="guide", created_at=local_now()))
