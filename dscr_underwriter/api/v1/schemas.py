"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from dscr_underwriter.domain.models import DscrCalculation, PendingRateChange, RateComputation
from dscr_underwriter.utils.decimal_utils import quantize


def fixed(value: Optional[Decimal], places: int) -> Optional[str]:
    """Render a decimal with a fixed number of places, half-up"""
    if value is None:
        return None
    return format(quantize(value, places), "f")


class ComputeRateRequest(BaseModel):
    """Request body for POST /v1/loans/{loan_id}/rate"""

    target_dscr: Optional[Decimal] = Field(None, gt=0, description="Target DSCR (defaults to configured value)")
    term_months: Optional[int] = Field(None, gt=0, description="Loan term override in months")


class ComputeRateResponse(BaseModel):
    """Response for POST /v1/loans/{loan_id}/rate"""

    loan_id: str
    dscr: str
    interest_rate: str
    monthly_noi: str
    monthly_payment: str
    target_dscr: str
    meets_target: bool
    loan_status: str
    transactions_used: int
    input_hash: str
    rate_pending: bool
    pending_change_id: Optional[int] = None

    @classmethod
    def from_result(cls, result: RateComputation) -> "ComputeRateResponse":
        return cls(
            loan_id=result.loan_id,
            dscr=fixed(result.dscr, 4),
            interest_rate=fixed(result.interest_rate, 6),
            monthly_noi=fixed(result.monthly_noi, 2),
            monthly_payment=fixed(result.monthly_payment, 2),
            target_dscr=str(result.target_dscr),
            meets_target=result.meets_target,
            loan_status=result.loan_status,
            transactions_used=result.transactions_used,
            input_hash=result.input_hash,
            rate_pending=result.rate_pending,
            pending_change_id=result.pending_change_id,
        )


class CalculationItem(BaseModel):
    """Single DSCR calculation in a loan's history"""

    dscr_value: str
    monthly_noi: str
    monthly_debt_service: str
    computed_at: str
    input_hash: str

    @classmethod
    def from_record(cls, calc: DscrCalculation) -> "CalculationItem":
        return cls(
            dscr_value=fixed(calc.dscr_value, 4),
            monthly_noi=fixed(calc.monthly_noi, 2),
            monthly_debt_service=fixed(calc.monthly_debt_service, 2),
            computed_at=calc.computed_at.isoformat(),
            input_hash=calc.input_hash,
        )


class DscrHistoryResponse(BaseModel):
    """Response for GET /v1/loans/{loan_id}/dscr"""

    loan_id: str
    current_dscr: Optional[str] = None
    current_rate: Optional[str] = None
    loan_status: str
    calculation_history: List[CalculationItem]
    history_count: int


class RateChangeDecisionRequest(BaseModel):
    """Request body for approve/reject"""

    approved_by: str = Field(..., min_length=1, description="Identity of the approver")


class RateChangeDecisionResponse(BaseModel):
    change_id: int
    status: str
    resolved_by: str


class RateChangeSchema(BaseModel):
    """Proposed rate change"""

    id: int
    loan_id: str
    current_rate: Optional[str] = None
    proposed_rate: str
    dscr_value: str
    reason: Optional[str] = None
    status: str
    requested_by: Optional[str] = None
    approved_by: Optional[str] = None
    created_at: str
    resolved_at: Optional[str] = None

    @classmethod
    def from_change(cls, change: PendingRateChange) -> "RateChangeSchema":
        return cls(
            id=change.id,
            loan_id=change.loan_id,
            current_rate=fixed(change.current_rate, 6),
            proposed_rate=fixed(change.proposed_rate, 6),
            dscr_value=fixed(change.dscr_value, 4),
            reason=change.reason,
            status=change.status,
            requested_by=change.requested_by,
            approved_by=change.approved_by,
            created_at=change.created_at.isoformat(),
            resolved_at=change.resolved_at.isoformat() if change.resolved_at else None,
        )


class PendingChangesResponse(BaseModel):
    """Response for GET /v1/rate-changes"""

    changes: List[RateChangeSchema]
    count: int
    approval_required: bool
