"""Persistence interface consumed by the underwriting and approval services"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Protocol

from dscr_underwriter.domain.models import CashFlowSample, DscrCalculation, Loan, PendingRateChange


class UnderwritingStore(Protocol):
    """
    Everything the engine reads from or writes to storage.

    Implementations are injected into UnderwritingService and
    RateChangeApprovals; the SQL implementation lives in
    infrastructure.database.repositories.
    """

    def get_loan(self, loan_id: str) -> Optional[Loan]: ...

    def get_cash_flow_history(self, borrower_id: str, months_back: int, as_of: date) -> List[CashFlowSample]:
        """Settled samples from the last `months_back` months, oldest first"""
        ...

    def save_calculation_record(self, calculation: DscrCalculation) -> int: ...

    def get_calculation_history(self, loan_id: str) -> List[DscrCalculation]: ...

    def create_pending_change(
        self,
        loan_id: str,
        current_rate: Optional[Decimal],
        proposed_rate: Decimal,
        dscr_value: Decimal,
        reason: Optional[str],
        requested_by: Optional[str],
    ) -> PendingRateChange: ...

    def get_pending_change(self, change_id: int) -> Optional[PendingRateChange]: ...

    def list_pending_changes(self, loan_id: Optional[str] = None) -> List[PendingRateChange]:
        """Only changes still in status pending, newest first"""
        ...

    def resolve_pending_change(
        self, change_id: int, status: str, approved_by: str, resolved_at: datetime
    ) -> bool:
        """
        Move a change out of pending in a single write.

        Must only succeed while the stored status is still pending and must
        set status and resolved_at together. Returns False when no pending
        row matched.
        """
        ...

    def update_loan_rate_and_status(
        self, loan_id: str, rate: Optional[Decimal], dscr: Decimal, status: str
    ) -> None: ...

    def update_loan_rate(self, loan_id: str, rate: Decimal) -> None: ...

    def update_loan_status(self, loan_id: str, status: str) -> None: ...
