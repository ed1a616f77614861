"""Content hashes for calculation audit records"""

import hashlib
import json
from decimal import Decimal
from typing import Iterable

from dscr_underwriter.domain.models import CashFlowSample
from dscr_underwriter.utils.decimal_utils import canonical, to_decimal


def hash_cash_flow_inputs(samples: Iterable[CashFlowSample], principal: Decimal) -> str:
    """
    SHA-256 over the exact sample set and principal used for a calculation.

    Samples are sorted by (date, amount) and decimals rendered canonically, so
    the hash depends only on the data, not on ordering or trailing zeros.
    """
    rows = sorted(
        (sample.occurred_on.isoformat(), to_decimal(sample.amount)) for sample in samples
    )
    payload = json.dumps(
        {
            "samples": [{"amount": canonical(amount), "occurred_on": day} for day, amount in rows],
            "principal": canonical(to_decimal(principal)),
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
