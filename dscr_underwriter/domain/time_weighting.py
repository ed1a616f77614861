"""Recency-weighted averaging of monthly NOI"""

from decimal import Decimal, localcontext
from typing import Any, Mapping

from dscr_underwriter.utils.date_utils import months_between
from dscr_underwriter.utils.decimal_utils import DECIMAL_CONTEXT, to_decimal

DEFAULT_DECAY = Decimal("0.9")


def calculate_twap(noi_by_month: Mapping[str, Any], decay: Decimal = DEFAULT_DECAY) -> Decimal:
    """
    Exponentially recency-weighted mean of a "YYYY-MM" -> NOI map.

    The most recent month gets weight 1, a month k calendar months earlier
    gets decay**k. Missing, NaN and infinite values are skipped but still
    occupy their calendar slot, so a gap does not pull older months forward.

    Example:
        {"2024-01": 1000, "2024-02": 2000, "2024-03": 3000}
        -> (1000*0.81 + 2000*0.9 + 3000*1.0) / (0.81 + 0.9 + 1.0)

    Returns Decimal(0) when no month carries a usable value.
    """
    if not noi_by_month:
        return Decimal(0)

    keys = sorted(noi_by_month)
    latest = keys[-1]

    with localcontext(DECIMAL_CONTEXT):
        weighted_sum = Decimal(0)
        total_weight = Decimal(0)
        for key in keys:
            value = to_decimal(noi_by_month[key])
            if value is None or not value.is_finite():
                continue
            weight = decay ** months_between(key, latest)
            weighted_sum += value * weight
            total_weight += weight

        if total_weight == 0:
            return Decimal(0)
        return weighted_sum / total_weight
