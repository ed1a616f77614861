"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


class LoanStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PENDING_RATE_APPROVAL = "pending_rate_approval"


class ChangeStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CashFlowSample:
    """Signed monthly cash-flow entry supplied by the ingestion pipeline"""

    amount: Decimal
    occurred_on: Union[date, datetime]


@dataclass
class Loan:
    """Loan under evaluation; principal and term are read, rate/dscr/status written"""

    id: str
    borrower_id: str
    principal: Decimal
    term_months: int
    current_rate: Optional[Decimal] = None
    dscr: Optional[Decimal] = None
    status: str = LoanStatus.PENDING.value


@dataclass
class DscrCalculation:
    """Append-only audit record of a single rate computation"""

    loan_id: str
    dscr_value: Decimal
    monthly_noi: Decimal
    monthly_debt_service: Decimal
    computed_at: datetime
    input_hash: str
    id: Optional[int] = None


@dataclass
class PendingRateChange:
    """Proposed rate awaiting a human decision"""

    id: int
    loan_id: str
    current_rate: Optional[Decimal]
    proposed_rate: Decimal
    dscr_value: Decimal
    reason: Optional[str]
    status: str
    requested_by: Optional[str]
    created_at: datetime
    approved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None


@dataclass
class RateComputation:
    """Output of one underwriting run"""

    loan_id: str
    interest_rate: Decimal
    dscr: Decimal
    monthly_noi: Decimal
    monthly_payment: Decimal
    target_dscr: Decimal
    meets_target: bool
    loan_status: str
    transactions_used: int
    input_hash: str
    rate_pending: bool
    pending_change_id: Optional[int]
    calculation_id: Optional[int]
    principal: Decimal
