"""Integration tests for the SQL-backed underwriting store"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from conftest import FIXED_NOW, fixed_clock, monthly_samples
from dscr_underwriter.domain.exceptions import ConflictError, NotFoundError, ValidationError
from dscr_underwriter.domain.models import CashFlowSample, DscrCalculation
from dscr_underwriter.infrastructure.database.repositories import SqlUnderwritingStore


@pytest.fixture
def sql_store(db: Session) -> SqlUnderwritingStore:
    store = SqlUnderwritingStore(db, clock=fixed_clock)
    store.create_loan("loan-1", "borrower-1", Decimal("10000"), term_months=24)
    return store


def test_create_and_fetch_loan(sql_store: SqlUnderwritingStore):
    loan = sql_store.get_loan("loan-1")

    assert loan.borrower_id == "borrower-1"
    assert loan.principal == Decimal("10000")
    assert loan.term_months == 24
    assert loan.current_rate is None
    assert loan.status == "pending"
    assert sql_store.get_loan("missing") is None


def test_duplicate_loan_conflicts(sql_store: SqlUnderwritingStore):
    with pytest.raises(ConflictError):
        sql_store.create_loan("loan-1", "someone-else", Decimal("500"))


def test_updates_on_unknown_loan_fail(sql_store: SqlUnderwritingStore):
    with pytest.raises(NotFoundError):
        sql_store.update_loan_rate("missing", Decimal("5"))


def test_history_excludes_pending_and_old_rows(sql_store: SqlUnderwritingStore):
    sql_store.add_cash_flows("borrower-1", monthly_samples([1000, 1100], start=date(2024, 10, 5)))
    sql_store.add_cash_flows("borrower-1", monthly_samples([999], start=date(2024, 12, 1)), pending=True)
    sql_store.add_cash_flows("borrower-1", monthly_samples([50], start=date(2022, 6, 1)))
    sql_store.add_cash_flows("borrower-2", monthly_samples([700], start=date(2024, 11, 1)))

    history = sql_store.get_cash_flow_history("borrower-1", 12, FIXED_NOW.date())

    assert [s.amount for s in history] == [Decimal("1000"), Decimal("1100")]
    assert [s.occurred_on for s in history] == [date(2024, 10, 5), date(2024, 11, 5)]


def test_datetime_samples_stored_by_date(sql_store: SqlUnderwritingStore):
    sample = CashFlowSample(amount=Decimal("10"), occurred_on=datetime(2024, 11, 3, 14, 0, tzinfo=timezone.utc))
    sql_store.add_cash_flows("borrower-1", [sample])

    history = sql_store.get_cash_flow_history("borrower-1", 12, FIXED_NOW.date())

    assert history[0].occurred_on == date(2024, 11, 3)


def test_batch_over_limit_refused(sql_store: SqlUnderwritingStore, monkeypatch):
    monkeypatch.setenv("MAX_TRANSACTIONS_PER_SYNC", "2")

    with pytest.raises(ValidationError):
        sql_store.add_cash_flows("borrower-1", monthly_samples([1, 2, 3]))

    assert sql_store.add_cash_flows("borrower-1", monthly_samples([1, 2])) == 2


def test_calculation_history_newest_first(sql_store: SqlUnderwritingStore):
    ids = []
    for hours in (2, 1, 0):
        ids.append(
            sql_store.save_calculation_record(
                DscrCalculation(
                    loan_id="loan-1",
                    dscr_value=Decimal("1.5"),
                    monthly_noi=Decimal("1000"),
                    monthly_debt_service=Decimal("666.67"),
                    computed_at=FIXED_NOW - timedelta(hours=hours),
                    input_hash="a" * 64,
                )
            )
        )

    history = sql_store.get_calculation_history("loan-1")

    assert [c.id for c in history] == list(reversed(ids))
    assert sql_store.get_calculation_history("other") == []


def test_guarded_resolve_succeeds_once(sql_store: SqlUnderwritingStore):
    change = sql_store.create_pending_change(
        "loan-1", None, Decimal("7.5"), Decimal("1.3"), "DSCR calculation: 1.3000", "system"
    )

    assert sql_store.resolve_pending_change(change.id, "approved", "alice", FIXED_NOW) is True
    assert sql_store.resolve_pending_change(change.id, "rejected", "bob", FIXED_NOW) is False
    assert sql_store.resolve_pending_change(9999, "approved", "alice", FIXED_NOW) is False

    stored = sql_store.get_pending_change(change.id)
    assert stored.status == "approved"
    assert stored.approved_by == "alice"
    assert stored.resolved_at is not None


def test_list_pending_filters_and_orders(sql_store: SqlUnderwritingStore):
    sql_store.create_loan("loan-2", "borrower-2", Decimal("2000"))
    first = sql_store.create_pending_change("loan-1", None, Decimal("5"), Decimal("1.3"), "r", "system")
    second = sql_store.create_pending_change("loan-1", None, Decimal("6"), Decimal("1.3"), "r", "system")
    other = sql_store.create_pending_change("loan-2", None, Decimal("7"), Decimal("1.3"), "r", "system")
    sql_store.resolve_pending_change(other.id, "rejected", "carol", FIXED_NOW)

    # Same created_at from the fixed clock: ties broken by id, newest first
    assert [c.id for c in sql_store.list_pending_changes()] == [second.id, first.id]
    assert [c.id for c in sql_store.list_pending_changes("loan-1")] == [second.id, first.id]
    assert sql_store.list_pending_changes("loan-2") == []


def test_loan_rate_and_status_updates(sql_store: SqlUnderwritingStore):
    sql_store.update_loan_rate_and_status("loan-1", Decimal("6.25"), Decimal("1.4"), "approved")
    sql_store.update_loan_status("loan-1", "pending")

    loan = sql_store.get_loan("loan-1")
    assert loan.current_rate == Decimal("6.25")
    assert loan.dscr == Decimal("1.4")
    assert loan.status == "pending"
