"""Data access layer for loans, cash flows, calculations and rate changes"""

from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from dscr_underwriter.config import get_settings
from dscr_underwriter.domain.exceptions import ConflictError, NotFoundError, ValidationError
from dscr_underwriter.domain.models import (
    CashFlowSample,
    ChangeStatus,
    DscrCalculation,
    Loan,
    PendingRateChange,
)
from dscr_underwriter.infrastructure.database.models import (
    CashFlowRecord,
    DscrCalculationRecord,
    LoanRecord,
    PendingRateChangeRecord,
)
from dscr_underwriter.utils.date_utils import subtract_months, utcnow
from dscr_underwriter.utils.decimal_utils import to_decimal


def _to_loan(record: LoanRecord) -> Loan:
    return Loan(
        id=record.id,
        borrower_id=record.borrower_id,
        principal=record.principal,
        term_months=record.term_months,
        current_rate=record.interest_rate,
        dscr=record.dscr,
        status=record.status,
    )


def _to_calculation(record: DscrCalculationRecord) -> DscrCalculation:
    return DscrCalculation(
        id=record.id,
        loan_id=record.loan_id,
        dscr_value=record.dscr_value,
        monthly_noi=record.monthly_noi,
        monthly_debt_service=record.monthly_debt_service,
        computed_at=record.computed_at,
        input_hash=record.input_hash,
    )


def _to_change(record: PendingRateChangeRecord) -> PendingRateChange:
    return PendingRateChange(
        id=record.id,
        loan_id=record.loan_id,
        current_rate=record.current_rate,
        proposed_rate=record.proposed_rate,
        dscr_value=record.dscr_value,
        reason=record.reason,
        status=record.status,
        requested_by=record.requested_by,
        approved_by=record.approved_by,
        created_at=record.created_at,
        resolved_at=record.resolved_at,
    )


class SqlUnderwritingStore:
    """UnderwritingStore backed by a SQLAlchemy session; callers own commit/rollback"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    # Loans

    def create_loan(
        self,
        loan_id: str,
        borrower_id: str,
        principal: Decimal,
        term_months: int = 24,
        current_rate: Optional[Decimal] = None,
    ) -> Loan:
        """Register a loan for underwriting"""
        if self._loan_record(loan_id) is not None:
            raise ConflictError(f"Loan already exists: {loan_id}")

        record = LoanRecord(
            id=loan_id,
            borrower_id=borrower_id,
            principal=to_decimal(principal),
            term_months=term_months,
            interest_rate=to_decimal(current_rate),
            status="pending",
            updated_at=self.clock(),
        )
        self.db.add(record)
        self.db.flush()
        return _to_loan(record)

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        record = self._loan_record(loan_id)
        return _to_loan(record) if record is not None else None

    def update_loan_rate_and_status(
        self, loan_id: str, rate: Optional[Decimal], dscr: Decimal, status: str
    ) -> None:
        record = self._require_loan(loan_id)
        record.interest_rate = rate
        record.dscr = dscr
        record.status = status
        record.updated_at = self.clock()
        self.db.flush()

    def update_loan_rate(self, loan_id: str, rate: Decimal) -> None:
        record = self._require_loan(loan_id)
        record.interest_rate = rate
        record.updated_at = self.clock()
        self.db.flush()

    def update_loan_status(self, loan_id: str, status: str) -> None:
        record = self._require_loan(loan_id)
        record.status = status
        record.updated_at = self.clock()
        self.db.flush()

    # Cash flows

    def add_cash_flows(self, borrower_id: str, samples: Iterable[CashFlowSample], pending: bool = False) -> int:
        """Store a batch of samples; batches above max_transactions_per_sync are refused"""
        batch = list(samples)
        limit = get_settings().max_transactions_per_sync
        if len(batch) > limit:
            raise ValidationError(f"Batch of {len(batch)} cash flows exceeds limit of {limit}")

        for sample in batch:
            occurred_on = sample.occurred_on
            if isinstance(occurred_on, datetime):
                occurred_on = occurred_on.date()
            self.db.add(
                CashFlowRecord(
                    borrower_id=borrower_id,
                    amount=to_decimal(sample.amount),
                    occurred_on=occurred_on,
                    pending=pending,
                )
            )
        self.db.flush()
        return len(batch)

    def get_cash_flow_history(self, borrower_id: str, months_back: int, as_of: date) -> List[CashFlowSample]:
        """Settled cash flows since `months_back` months before `as_of`, oldest first"""
        cutoff = subtract_months(as_of, months_back)
        records = (
            self.db.query(CashFlowRecord)
            .filter(
                CashFlowRecord.borrower_id == borrower_id,
                CashFlowRecord.occurred_on >= cutoff,
                CashFlowRecord.pending.is_(False),
            )
            .order_by(CashFlowRecord.occurred_on.asc(), CashFlowRecord.id.asc())
            .all()
        )
        return [CashFlowSample(amount=r.amount, occurred_on=r.occurred_on) for r in records]

    # Calculations

    def save_calculation_record(self, calculation: DscrCalculation) -> int:
        record = DscrCalculationRecord(
            loan_id=calculation.loan_id,
            dscr_value=calculation.dscr_value,
            monthly_noi=calculation.monthly_noi,
            monthly_debt_service=calculation.monthly_debt_service,
            computed_at=calculation.computed_at,
            input_hash=calculation.input_hash,
        )
        self.db.add(record)
        self.db.flush()  # Get ID without committing
        return record.id

    def get_calculation_history(self, loan_id: str) -> List[DscrCalculation]:
        records = (
            self.db.query(DscrCalculationRecord)
            .filter(DscrCalculationRecord.loan_id == loan_id)
            .order_by(DscrCalculationRecord.computed_at.desc(), DscrCalculationRecord.id.desc())
            .all()
        )
        return [_to_calculation(r) for r in records]

    # Rate changes

    def create_pending_change(
        self,
        loan_id: str,
        current_rate: Optional[Decimal],
        proposed_rate: Decimal,
        dscr_value: Decimal,
        reason: Optional[str],
        requested_by: Optional[str],
    ) -> PendingRateChange:
        record = PendingRateChangeRecord(
            loan_id=loan_id,
            current_rate=current_rate,
            proposed_rate=proposed_rate,
            dscr_value=dscr_value,
            reason=reason,
            status=ChangeStatus.PENDING.value,
            requested_by=requested_by,
            created_at=self.clock(),
        )
        self.db.add(record)
        self.db.flush()
        return _to_change(record)

    def get_pending_change(self, change_id: int) -> Optional[PendingRateChange]:
        record = self.db.query(PendingRateChangeRecord).filter(PendingRateChangeRecord.id == change_id).first()
        return _to_change(record) if record is not None else None

    def list_pending_changes(self, loan_id: Optional[str] = None) -> List[PendingRateChange]:
        query = self.db.query(PendingRateChangeRecord).filter(
            PendingRateChangeRecord.status == ChangeStatus.PENDING.value
        )
        if loan_id:
            query = query.filter(PendingRateChangeRecord.loan_id == loan_id)
        records = query.order_by(
            PendingRateChangeRecord.created_at.desc(), PendingRateChangeRecord.id.desc()
        ).all()
        return [_to_change(r) for r in records]

    def resolve_pending_change(
        self, change_id: int, status: str, approved_by: str, resolved_at: datetime
    ) -> bool:
        # Guarded UPDATE keeps check-and-resolve atomic across concurrent sessions
        updated = (
            self.db.query(PendingRateChangeRecord)
            .filter(
                PendingRateChangeRecord.id == change_id,
                PendingRateChangeRecord.status == ChangeStatus.PENDING.value,
            )
            .update(
                {
                    PendingRateChangeRecord.status: status,
                    PendingRateChangeRecord.approved_by: approved_by,
                    PendingRateChangeRecord.resolved_at: resolved_at,
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def _loan_record(self, loan_id: str) -> Optional[LoanRecord]:
        return self.db.query(LoanRecord).filter(LoanRecord.id == loan_id).first()

    def _require_loan(self, loan_id: str) -> LoanRecord:
        record = self._loan_record(loan_id)
        if record is None:
            raise NotFoundError(f"Loan not found: {loan_id}")
        return record
