"""Pytest fixtures for testing"""

import os

# Point the app at SQLite before any module builds the engine
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_underwriting.db")

import itertools
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from dscr_underwriter.api.main import create_app
from dscr_underwriter.config import Settings
from dscr_underwriter.domain.models import (
    CashFlowSample,
    ChangeStatus,
    DscrCalculation,
    Loan,
    PendingRateChange,
)
from dscr_underwriter.infrastructure.database.models import Base
from dscr_underwriter.infrastructure.database.session import get_db
from dscr_underwriter.utils.date_utils import subtract_months

# Test database
TEST_DATABASE_URL = "sqlite:///./test_underwriting.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

FIXED_NOW = datetime(2024, 12, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


def monthly_samples(amounts: List, start: date = date(2024, 1, 15)) -> List[CashFlowSample]:
    """One sample per consecutive month starting at `start`"""
    samples = []
    for offset, amount in enumerate(amounts):
        month_index = start.month - 1 + offset
        day = date(start.year + month_index // 12, month_index % 12 + 1, start.day)
        samples.append(CashFlowSample(amount=Decimal(str(amount)), occurred_on=day))
    return samples


def recent_samples(amounts: List) -> List[CashFlowSample]:
    """Monthly samples ending last month, inside any lookback window relative to today"""
    first = subtract_months(date.today(), len(amounts))
    return monthly_samples(amounts, start=date(first.year, first.month, 1))


def fixed_clock() -> datetime:
    return FIXED_NOW


def settings_with(**overrides) -> Callable[[], Settings]:
    """Settings provider returning the given overrides on every call"""
    return lambda: Settings(**overrides)


class InMemoryStore:
    """UnderwritingStore double keeping everything in dicts"""

    def __init__(self):
        self.loans: Dict[str, Loan] = {}
        self.cash_flows: Dict[str, List[CashFlowSample]] = {}
        self.calculations: List[DscrCalculation] = []
        self.changes: Dict[int, PendingRateChange] = {}
        self._ids = itertools.count(1)

    def add_loan(self, loan: Loan) -> Loan:
        self.loans[loan.id] = loan
        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        return self.loans.get(loan_id)

    def get_cash_flow_history(self, borrower_id: str, months_back: int, as_of: date) -> List[CashFlowSample]:
        cutoff = subtract_months(as_of, months_back)
        samples = [s for s in self.cash_flows.get(borrower_id, []) if s.occurred_on >= cutoff]
        return sorted(samples, key=lambda s: s.occurred_on)

    def save_calculation_record(self, calculation: DscrCalculation) -> int:
        calculation.id = len(self.calculations) + 1
        self.calculations.append(calculation)
        return calculation.id

    def get_calculation_history(self, loan_id: str) -> List[DscrCalculation]:
        return [c for c in reversed(self.calculations) if c.loan_id == loan_id]

    def create_pending_change(self, loan_id, current_rate, proposed_rate, dscr_value, reason, requested_by):
        change = PendingRateChange(
            id=next(self._ids),
            loan_id=loan_id,
            current_rate=current_rate,
            proposed_rate=proposed_rate,
            dscr_value=dscr_value,
            reason=reason,
            status=ChangeStatus.PENDING.value,
            requested_by=requested_by,
            created_at=FIXED_NOW,
        )
        self.changes[change.id] = change
        return change

    def get_pending_change(self, change_id: int) -> Optional[PendingRateChange]:
        return self.changes.get(change_id)

    def list_pending_changes(self, loan_id: Optional[str] = None) -> List[PendingRateChange]:
        pending = [
            c for c in self.changes.values()
            if c.status == ChangeStatus.PENDING.value and (loan_id is None or c.loan_id == loan_id)
        ]
        return sorted(pending, key=lambda c: (c.created_at, c.id), reverse=True)

    def resolve_pending_change(self, change_id, status, approved_by, resolved_at) -> bool:
        change = self.changes.get(change_id)
        if change is None or change.status != ChangeStatus.PENDING.value:
            return False
        change.status = status
        change.approved_by = approved_by
        change.resolved_at = resolved_at
        return True

    def update_loan_rate_and_status(self, loan_id, rate, dscr, status) -> None:
        loan = self.loans[loan_id]
        loan.current_rate = rate
        loan.dscr = dscr
        loan.status = status

    def update_loan_rate(self, loan_id, rate) -> None:
        self.loans[loan_id].current_rate = rate

    def update_loan_status(self, loan_id, status) -> None:
        self.loans[loan_id].status = status


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def funded_loan(store: InMemoryStore) -> Loan:
    """$10,000 / 24 month loan with three months of $1,000 NOI"""
    loan = store.add_loan(
        Loan(id="loan-1", borrower_id="borrower-1", principal=Decimal("10000"), term_months=24)
    )
    store.cash_flows["borrower-1"] = monthly_samples([1000, 1000, 1000], start=date(2024, 9, 15))
    return loan
