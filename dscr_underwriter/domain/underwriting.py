"""Underwriting orchestrator - solves a loan's rate and decides whether it applies now or waits for approval"""

import logging
from datetime import datetime
from decimal import Decimal, localcontext
from typing import Any, Callable, List, Optional

from dscr_underwriter.config import Settings, get_settings
from dscr_underwriter.domain.exceptions import InsufficientDataError, NotFoundError, ValidationError
from dscr_underwriter.domain.models import DscrCalculation, Loan, LoanStatus, RateComputation
from dscr_underwriter.domain.rate_solver import (
    DEFAULT_TERM_MONTHS,
    average_monthly_noi,
    calculate_monthly_payment,
    calculate_required_interest_rate,
    group_noi_by_month,
)
from dscr_underwriter.domain.store import UnderwritingStore
from dscr_underwriter.utils.date_utils import utcnow
from dscr_underwriter.utils.decimal_utils import DECIMAL_CONTEXT, is_positive_finite, quantize, to_decimal
from dscr_underwriter.utils.hashing import hash_cash_flow_inputs

logger = logging.getLogger(__name__)

SYSTEM_REQUESTER = "system"


class UnderwritingService:
    """Runs one evaluation cycle for a loan against an injected store"""

    def __init__(
        self,
        store: UnderwritingStore,
        settings_provider: Callable[[], Settings] = get_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.settings_provider = settings_provider
        self.clock = clock

    def compute_rate(
        self,
        loan_id: str,
        target_dscr: Any = None,
        term_months: Optional[int] = None,
    ) -> RateComputation:
        """
        Compute the loan's required rate and apply it or queue it for approval.

        Flow:
        1. Load loan and settled cash-flow history
        2. Solve for the rate at the target DSCR
        3. Derive payment, average NOI, actual DSCR and the input hash
        4. Save the calculation record (always)
        5. Gating off or rate unchanged: write rate, DSCR and status to the loan.
           Otherwise create a pending change and write DSCR/status only.

        Raises:
            ValidationError: target_dscr or term_months override is malformed
            NotFoundError: loan does not exist
            InsufficientDataError: borrower has no settled cash flows in the window
        """
        target_override = self._validate_target(target_dscr)
        term_override = self._validate_term(term_months)
        config = self.settings_provider()
        now = self.clock()

        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan not found: {loan_id}")

        samples = self.store.get_cash_flow_history(loan.borrower_id, config.cash_flow_months_back, now.date())
        if not samples:
            raise InsufficientDataError(f"No cash-flow data available for loan {loan_id}")

        target = target_override if target_override is not None else config.default_dscr_target
        term = term_override or loan.term_months or DEFAULT_TERM_MONTHS

        rate = calculate_required_interest_rate(samples, loan.principal, term, target)
        payment = calculate_monthly_payment(loan.principal, rate, term)

        with localcontext(DECIMAL_CONTEXT):
            monthly_noi = average_monthly_noi(group_noi_by_month(samples))
            actual_dscr = monthly_noi / payment if payment > 0 else Decimal(0)
        meets_target = actual_dscr >= target
        input_hash = hash_cash_flow_inputs(samples, loan.principal)

        calculation_id = self.store.save_calculation_record(
            DscrCalculation(
                loan_id=loan.id,
                dscr_value=actual_dscr,
                monthly_noi=monthly_noi,
                monthly_debt_service=payment,
                computed_at=now,
                input_hash=input_hash,
            )
        )

        rate_changed = loan.current_rate is None or loan.current_rate != rate
        pending_change_id = None

        if config.require_rate_approval and rate_changed:
            change = self.store.create_pending_change(
                loan.id,
                loan.current_rate,
                rate,
                actual_dscr,
                f"DSCR calculation: {quantize(actual_dscr, 4)}",
                SYSTEM_REQUESTER,
            )
            pending_change_id = change.id
            status = LoanStatus.PENDING_RATE_APPROVAL if meets_target else LoanStatus.PENDING
            self.store.update_loan_rate_and_status(loan.id, loan.current_rate, actual_dscr, status.value)
            logger.info(
                "Rate change queued for approval",
                extra={"loan_id": loan.id, "proposed_rate": str(rate), "change_id": change.id},
            )
        else:
            status = LoanStatus.APPROVED if meets_target else LoanStatus.PENDING
            self.store.update_loan_rate_and_status(loan.id, rate, actual_dscr, status.value)
            logger.info(
                "Rate applied to loan",
                extra={"loan_id": loan.id, "interest_rate": str(rate), "dscr": str(quantize(actual_dscr, 4))},
            )

        return RateComputation(
            loan_id=loan.id,
            interest_rate=rate,
            dscr=actual_dscr,
            monthly_noi=monthly_noi,
            monthly_payment=payment,
            target_dscr=target,
            meets_target=meets_target,
            loan_status=status.value,
            transactions_used=len(samples),
            input_hash=input_hash,
            rate_pending=pending_change_id is not None,
            pending_change_id=pending_change_id,
            calculation_id=calculation_id,
            principal=loan.principal,
        )

    def get_loan(self, loan_id: str) -> Loan:
        loan = self.store.get_loan(loan_id)
        if loan is None:
            raise NotFoundError(f"Loan not found: {loan_id}")
        return loan

    def get_dscr_history(self, loan_id: str) -> List[DscrCalculation]:
        """Audit trail of calculations for a loan, newest first"""
        self.get_loan(loan_id)
        return self.store.get_calculation_history(loan_id)

    @staticmethod
    def _validate_target(target_dscr: Any) -> Optional[Decimal]:
        if target_dscr is None:
            return None
        parsed = to_decimal(target_dscr)
        if not is_positive_finite(parsed):
            raise ValidationError(f"target_dscr must be a positive number, got {target_dscr!r}")
        return parsed

    @staticmethod
    def _validate_term(term_months: Optional[int]) -> Optional[int]:
        if term_months is None:
            return None
        if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months <= 0:
            raise ValidationError(f"term_months must be a positive integer, got {term_months!r}")
        return term_months
