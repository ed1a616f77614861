"""Approval state machine for proposed rate changes"""

import logging
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Optional

from dscr_underwriter.domain.exceptions import ConflictError, NotFoundError
from dscr_underwriter.domain.models import ChangeStatus, LoanStatus, PendingRateChange
from dscr_underwriter.domain.store import UnderwritingStore
from dscr_underwriter.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

# approved and rejected are terminal
TRANSITIONS: Dict[ChangeStatus, FrozenSet[ChangeStatus]] = {
    ChangeStatus.PENDING: frozenset({ChangeStatus.APPROVED, ChangeStatus.REJECTED}),
    ChangeStatus.APPROVED: frozenset(),
    ChangeStatus.REJECTED: frozenset(),
}


def check_transition(current: str, target: ChangeStatus) -> None:
    """Raise ConflictError unless current -> target is an allowed move"""
    if target not in TRANSITIONS[ChangeStatus(current)]:
        raise ConflictError(f"Cannot move rate change from {current} to {target.value}")


class RateChangeApprovals:
    """
    Owns the pending -> approved | rejected lifecycle.

    approve/reject report failure as False rather than raising: two
    approvers racing on the same change is expected, not a fault.
    """

    def __init__(self, store: UnderwritingStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def approve(self, change_id: int, approved_by: str) -> bool:
        """Resolve as approved and copy proposed_rate onto the loan"""
        try:
            change = self._resolve(change_id, ChangeStatus.APPROVED, approved_by)
        except (NotFoundError, ConflictError) as e:
            logger.warning("Rate change approval refused: %s", e, extra={"change_id": change_id})
            return False

        self.store.update_loan_rate(change.loan_id, change.proposed_rate)
        logger.info(
            "Rate change approved",
            extra={"change_id": change_id, "loan_id": change.loan_id, "approved_by": approved_by},
        )
        return True

    def reject(self, change_id: int, approved_by: str) -> bool:
        """Resolve as rejected; loan keeps its rate and returns to status pending"""
        try:
            change = self._resolve(change_id, ChangeStatus.REJECTED, approved_by)
        except (NotFoundError, ConflictError) as e:
            logger.warning("Rate change rejection refused: %s", e, extra={"change_id": change_id})
            return False

        self.store.update_loan_status(change.loan_id, LoanStatus.PENDING.value)
        logger.info(
            "Rate change rejected",
            extra={"change_id": change_id, "loan_id": change.loan_id, "approved_by": approved_by},
        )
        return True

    def list_pending(self, loan_id: Optional[str] = None) -> List[PendingRateChange]:
        return self.store.list_pending_changes(loan_id)

    def get_change(self, change_id: int) -> Optional[PendingRateChange]:
        return self.store.get_pending_change(change_id)

    def _resolve(self, change_id: int, target: ChangeStatus, approved_by: str) -> PendingRateChange:
        change = self.store.get_pending_change(change_id)
        if change is None:
            raise NotFoundError(f"Rate change {change_id} not found")

        check_transition(change.status, target)

        # Conditional write: loses cleanly if another approver got there first
        if not self.store.resolve_pending_change(change_id, target.value, approved_by, self.clock()):
            raise ConflictError(f"Rate change {change_id} already resolved")
        return change
