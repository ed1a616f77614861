"""Rate solver - finds the interest rate at which NOI covers debt service at a target DSCR"""

from collections import defaultdict
from decimal import Decimal, localcontext
from typing import Any, Dict, Iterable, List

from dscr_underwriter.domain.exceptions import ArithmeticPreconditionError
from dscr_underwriter.domain.models import CashFlowSample
from dscr_underwriter.utils.date_utils import month_key
from dscr_underwriter.utils.decimal_utils import DECIMAL_CONTEXT, is_positive_finite, quantize, to_decimal

DEFAULT_TERM_MONTHS = 24
DEFAULT_TARGET_DSCR = Decimal("1.25")
DEFAULT_MIN_RATE = Decimal(1)
DEFAULT_MAX_RATE = Decimal(10)
# Search stops once the bracket is this narrow, in rate-fraction units (0.01%)
RATE_TOLERANCE = Decimal("0.0001")
RATE_DECIMAL_PLACES = 6


def group_noi_by_month(samples: Iterable[CashFlowSample]) -> Dict[str, Decimal]:
    """Sum signed sample amounts per UTC "YYYY-MM" month"""
    noi_by_month: Dict[str, Decimal] = defaultdict(Decimal)
    with localcontext(DECIMAL_CONTEXT):
        for sample in samples:
            noi_by_month[month_key(sample.occurred_on)] += to_decimal(sample.amount)
    return dict(sorted(noi_by_month.items()))


def average_monthly_noi(noi_by_month: Dict[str, Decimal]) -> Decimal:
    """Unweighted mean NOI across distinct months (0 when there are none)"""
    if not noi_by_month:
        return Decimal(0)
    with localcontext(DECIMAL_CONTEXT):
        return sum(noi_by_month.values(), Decimal(0)) / len(noi_by_month)


def _payment_for_monthly_rate(principal: Decimal, monthly_rate: Decimal, term_months: int) -> Decimal:
    if monthly_rate == 0:
        return principal / term_months
    growth = (1 + monthly_rate) ** term_months
    return principal * monthly_rate * growth / (growth - 1)


def calculate_monthly_payment(principal: Any, annual_rate_percent: Any, term_months: int) -> Decimal:
    """
    Level amortizing payment for an annual rate expressed in percent.

    payment = P * r * (1 + r)^n / ((1 + r)^n - 1), r = annual / 100 / 12,
    or P / n for a zero rate.
    """
    with localcontext(DECIMAL_CONTEXT):
        monthly_rate = to_decimal(annual_rate_percent) / 100 / 12
        return _payment_for_monthly_rate(to_decimal(principal), monthly_rate, term_months)


def _require_positive(field: str, value: Any) -> Decimal:
    parsed = to_decimal(value)
    if not is_positive_finite(parsed):
        raise ArithmeticPreconditionError(field, f"{field} must be a positive finite number, got {value!r}")
    return parsed


def _require_term(term_months: Any) -> int:
    if isinstance(term_months, bool) or not isinstance(term_months, int) or term_months <= 0:
        raise ArithmeticPreconditionError(
            "term_months", f"term_months must be a positive integer, got {term_months!r}"
        )
    return term_months


def _require_bounds(min_rate: Any, max_rate: Any) -> tuple[Decimal, Decimal]:
    low = to_decimal(min_rate)
    high = to_decimal(max_rate)
    if low is None or not low.is_finite() or low < 0:
        raise ArithmeticPreconditionError("min_rate", f"min_rate must be a non-negative number, got {min_rate!r}")
    if high is None or not high.is_finite() or high <= low:
        raise ArithmeticPreconditionError("max_rate", f"max_rate must be greater than min_rate, got {max_rate!r}")
    return low, high


def calculate_required_interest_rate(
    samples: List[CashFlowSample],
    principal: Any,
    term_months: int = DEFAULT_TERM_MONTHS,
    target_dscr: Any = DEFAULT_TARGET_DSCR,
    min_rate: Any = DEFAULT_MIN_RATE,
    max_rate: Any = DEFAULT_MAX_RATE,
) -> Decimal:
    """
    Binary-search the annual rate (percent) at which the loan meets a target DSCR.

    Steps:
    1. Sum samples per calendar month into NOI
    2. No months, or average NOI <= 0: return min_rate
    3. Search [min_rate/100, max_rate/100]; DSCR is total NOI over the term
       divided by total payments over the term
    4. Candidate DSCR below target moves the high bound down, otherwise the
       low bound moves up
    5. Stop at a bracket of 0.0001 and return high * 100 to 6 places

    Raises:
        ArithmeticPreconditionError: principal, term, target or bounds invalid
    """
    principal = _require_positive("principal", principal)
    term_months = _require_term(term_months)
    target_dscr = _require_positive("target_dscr", target_dscr)
    min_rate, max_rate = _require_bounds(min_rate, max_rate)

    with localcontext(DECIMAL_CONTEXT):
        noi_by_month = group_noi_by_month(samples)
        if not noi_by_month:
            return quantize(min_rate, RATE_DECIMAL_PLACES)

        monthly_noi = average_monthly_noi(noi_by_month)
        if monthly_noi <= 0:
            return quantize(min_rate, RATE_DECIMAL_PLACES)

        total_noi = monthly_noi * term_months
        low = min_rate / 100
        high = max_rate / 100

        while high - low > RATE_TOLERANCE:
            mid = (low + high) / 2
            payment = _payment_for_monthly_rate(principal, mid / 12, term_months)
            candidate_dscr = total_noi / (payment * term_months)

            if candidate_dscr < target_dscr:
                high = mid
            else:
                low = mid

        return quantize(high * 100, RATE_DECIMAL_PLACES)
