"""Rate change approval endpoints - list, inspect, approve and reject proposed rates"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from dscr_underwriter.api.dependencies import get_approvals, get_notice_client, get_request_id, get_store
from dscr_underwriter.api.v1.schemas import (
    PendingChangesResponse,
    RateChangeDecisionRequest,
    RateChangeDecisionResponse,
    RateChangeSchema,
    fixed,
)
from dscr_underwriter.config import get_settings
from dscr_underwriter.domain.approvals import RateChangeApprovals
from dscr_underwriter.domain.models import ChangeStatus
from dscr_underwriter.infrastructure.clients.notice import NoticeClient, build_rate_notice
from dscr_underwriter.infrastructure.database.repositories import SqlUnderwritingStore
from dscr_underwriter.infrastructure.database.session import get_db
from dscr_underwriter.infrastructure.observability.logging import log_rate_change_resolution
from dscr_underwriter.infrastructure.observability.metrics import record_resolution

router = APIRouter()


@router.get("/rate-changes", response_model=PendingChangesResponse)
def list_pending_changes(
    loan_id: Optional[str] = Query(None, description="Only changes for this loan"),
    approvals: RateChangeApprovals = Depends(get_approvals),
):
    """Pending rate changes, newest first"""
    changes = approvals.list_pending(loan_id)
    return PendingChangesResponse(
        changes=[RateChangeSchema.from_change(c) for c in changes],
        count=len(changes),
        approval_required=get_settings().require_rate_approval,
    )


@router.get("/rate-changes/{change_id}", response_model=RateChangeSchema)
def get_rate_change(change_id: int, approvals: RateChangeApprovals = Depends(get_approvals)):
    change = approvals.get_change(change_id)
    if change is None:
        raise HTTPException(status_code=404, detail="Rate change not found")
    return RateChangeSchema.from_change(change)


@router.post("/rate-changes/{change_id}/approve", response_model=RateChangeDecisionResponse)
def approve_rate_change(
    change_id: int,
    request_body: RateChangeDecisionRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    store: SqlUnderwritingStore = Depends(get_store),
    approvals: RateChangeApprovals = Depends(get_approvals),
    notice_client: NoticeClient = Depends(get_notice_client),
):
    """Approve a pending change and apply its proposed rate to the loan"""
    return _resolve(
        ChangeStatus.APPROVED, change_id, request_body.approved_by, request, db, store, approvals,
        background_tasks, notice_client,
    )


@router.post("/rate-changes/{change_id}/reject", response_model=RateChangeDecisionResponse)
def reject_rate_change(
    change_id: int,
    request_body: RateChangeDecisionRequest,
    request: Request,
    db: Session = Depends(get_db),
    store: SqlUnderwritingStore = Depends(get_store),
    approvals: RateChangeApprovals = Depends(get_approvals),
):
    """Reject a pending change; the loan keeps its current rate"""
    return _resolve(ChangeStatus.REJECTED, change_id, request_body.approved_by, request, db, store, approvals)


def _resolve(
    resolution: ChangeStatus,
    change_id: int,
    approved_by: str,
    request: Request,
    db: Session,
    store: SqlUnderwritingStore,
    approvals: RateChangeApprovals,
    background_tasks: Optional[BackgroundTasks] = None,
    notice_client: Optional[NoticeClient] = None,
) -> RateChangeDecisionResponse:
    request_id = get_request_id(request)
    change = approvals.get_change(change_id)

    try:
        if resolution is ChangeStatus.APPROVED:
            success = approvals.approve(change_id, approved_by)
        else:
            success = approvals.reject(change_id, approved_by)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    record_resolution(resolution.value, success)
    log_rate_change_resolution(
        request_id,
        change_id,
        resolution.value,
        approved_by,
        success,
        loan_id=change.loan_id if change else None,
    )

    if not success:
        raise HTTPException(status_code=409, detail=f"Rate change {change_id} not found or already resolved")

    if resolution is ChangeStatus.APPROVED and background_tasks is not None:
        loan = store.get_loan(change.loan_id)
        background_tasks.add_task(
            notice_client.send_rate_notice,
            build_rate_notice(change.loan_id, fixed(change.proposed_rate, 6), str(loan.principal)),
        )

    return RateChangeDecisionResponse(change_id=change_id, status=resolution.value, resolved_by=approved_by)
