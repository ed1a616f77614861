"""
Outlier filters for monthly cash-flow samples.

Two independent strategies, both grouping samples by UTC calendar month:

- Median absolute deviation (MAD) with a ratio heuristic for thin months
- Interquartile range (IQR) using nearest-rank quartiles

Neither filter is applied by the rate solver; callers sanitize explicitly.
Output keys and per-month values are sorted so the result does not depend
on the order of the input samples.
"""

from collections import defaultdict
from decimal import Decimal, localcontext
from typing import Dict, Iterable, List

from dscr_underwriter.domain.models import CashFlowSample
from dscr_underwriter.utils.date_utils import month_key
from dscr_underwriter.utils.decimal_utils import DECIMAL_CONTEXT, to_decimal

MODIFIED_Z_FACTOR = Decimal("0.6745")
MODIFIED_Z_THRESHOLD = Decimal("3.5")
# Ratio between the largest and smallest value that marks a thin month as contaminated
THIN_MONTH_RATIO = Decimal(10)
IQR_MULTIPLIER = Decimal("1.5")
IQR_MIN_SAMPLES = 4


def group_amounts_by_month(samples: Iterable[CashFlowSample]) -> Dict[str, List[Decimal]]:
    """Bucket sample amounts by "YYYY-MM", each bucket sorted ascending"""
    grouped: Dict[str, List[Decimal]] = defaultdict(list)
    for sample in samples:
        grouped[month_key(sample.occurred_on)].append(to_decimal(sample.amount))
    return {key: sorted(grouped[key]) for key in sorted(grouped)}


def median(sorted_values: List[Decimal]) -> Decimal:
    n = len(sorted_values)
    mid = n // 2
    if n % 2:
        return sorted_values[mid]
    return (sorted_values[mid - 1] + sorted_values[mid]) / 2


def _filter_thin_month(values: List[Decimal]) -> List[Decimal]:
    """
    Ratio heuristic for months with 2-3 samples, where MAD is unstable.

    All-positive months: if max/min > 10, keep only the smaller value (2
    samples) or the values within 10x of the median (3 samples). Mixed-sign
    months drop the single extreme side when it dwarfs the other by 10x.
    """
    low, high = values[0], values[-1]

    if low > 0 and high / low > THIN_MONTH_RATIO:
        if len(values) == 2:
            return [low]
        mid = values[1]
        return [v for v in values if v / mid <= THIN_MONTH_RATIO]

    if low < 0 < high:
        if abs(low) / high > THIN_MONTH_RATIO:
            return values[1:]
        if high / abs(low) > THIN_MONTH_RATIO:
            return values[:-1]

    return list(values)


def _filter_mad(values: List[Decimal]) -> List[Decimal]:
    center = median(values)
    deviations = sorted(abs(v - center) for v in values)
    mad = median(deviations)
    if mad == 0:
        return list(values)
    return [v for v in values if MODIFIED_Z_FACTOR * abs(v - center) / mad <= MODIFIED_Z_THRESHOLD]


def remove_outliers_mad(samples: Iterable[CashFlowSample]) -> Dict[str, List[Decimal]]:
    """
    Drop per-month outliers using the modified z-score.

    Months with one sample are kept whole, months with 2-3 samples use a
    ratio heuristic, and larger months keep values whose modified z-score
    0.6745*|x - median|/MAD is at most 3.5 (all values when MAD is 0).
    """
    filtered: Dict[str, List[Decimal]] = {}
    with localcontext(DECIMAL_CONTEXT):
        for key, values in group_amounts_by_month(samples).items():
            if len(values) <= 1:
                filtered[key] = list(values)
            elif len(values) <= 3:
                filtered[key] = _filter_thin_month(values)
            else:
                filtered[key] = _filter_mad(values)
    return filtered


def nearest_rank_quantile(sorted_values: List[Decimal], p: Decimal) -> Decimal:
    """Quantile at index floor((n - 1) * p) of an ascending list"""
    index = int((len(sorted_values) - 1) * p)
    return sorted_values[index]


def remove_outliers_iqr(samples: Iterable[CashFlowSample]) -> Dict[str, List[Decimal]]:
    """Keep per-month values inside [Q1 - 1.5*IQR, Q3 + 1.5*IQR]; thin months pass through"""
    filtered: Dict[str, List[Decimal]] = {}
    with localcontext(DECIMAL_CONTEXT):
        for key, values in group_amounts_by_month(samples).items():
            if len(values) < IQR_MIN_SAMPLES:
                filtered[key] = list(values)
                continue

            q1 = nearest_rank_quantile(values, Decimal("0.25"))
            q3 = nearest_rank_quantile(values, Decimal("0.75"))
            spread = q3 - q1
            lower = q1 - IQR_MULTIPLIER * spread
            upper = q3 + IQR_MULTIPLIER * spread
            filtered[key] = [v for v in values if lower <= v <= upper]
    return filtered
