"""POST /v1/loans/{loan_id}/rate and GET /v1/loans/{loan_id}/dscr - rate computation endpoints"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from dscr_underwriter.api.dependencies import get_notice_client, get_request_id, get_underwriting_service
from dscr_underwriter.api.v1.schemas import (
    CalculationItem,
    ComputeRateRequest,
    ComputeRateResponse,
    DscrHistoryResponse,
    fixed,
)
from dscr_underwriter.domain.exceptions import (
    ArithmeticPreconditionError,
    InsufficientDataError,
    NotFoundError,
    ValidationError,
)
from dscr_underwriter.domain.underwriting import UnderwritingService
from dscr_underwriter.infrastructure.clients.notice import NoticeClient, notice_for_computation
from dscr_underwriter.infrastructure.database.session import get_db
from dscr_underwriter.infrastructure.observability.logging import log_rate_computation
from dscr_underwriter.infrastructure.observability.metrics import record_rate_computation

router = APIRouter()


@router.post("/loans/{loan_id}/rate", response_model=ComputeRateResponse)
def compute_rate(
    loan_id: str,
    background_tasks: BackgroundTasks,
    request: Request,
    request_body: Optional[ComputeRateRequest] = None,
    db: Session = Depends(get_db),
    service: UnderwritingService = Depends(get_underwriting_service),
    notice_client: NoticeClient = Depends(get_notice_client),
):
    """
    Compute the interest rate a loan needs to meet its target DSCR.

    Flow:
    1. Load loan and settled cash-flow history
    2. Solve the rate and record the calculation
    3. Apply the rate, or queue it for approval when gating is on
    4. Commit, then notify settlement if the rate was applied
    """
    start_time = time.time()
    request_id = get_request_id(request)
    body = request_body or ComputeRateRequest()

    try:
        result = service.compute_rate(loan_id, body.target_dscr, body.term_months)
        db.commit()

    except InsufficientDataError as e:
        db.rollback()
        logging.warning(f"Insufficient data: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except NotFoundError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))

    except (ValidationError, ArithmeticPreconditionError) as e:
        db.rollback()
        logging.warning(f"Invalid rate request: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if not result.rate_pending:
        background_tasks.add_task(notice_client.send_rate_notice, notice_for_computation(result))

    duration_ms = (time.time() - start_time) * 1000
    record_rate_computation(result.interest_rate, result.meets_target, result.rate_pending)
    log_rate_computation(
        request_id,
        loan_id,
        fixed(result.interest_rate, 6),
        fixed(result.dscr, 4),
        result.rate_pending,
        duration_ms,
    )

    return ComputeRateResponse.from_result(result)


@router.get("/loans/{loan_id}/dscr", response_model=DscrHistoryResponse)
def get_dscr_history(
    loan_id: str,
    service: UnderwritingService = Depends(get_underwriting_service),
):
    """Current DSCR, rate and status of a loan plus its calculation history"""
    try:
        loan = service.get_loan(loan_id)
        history = service.get_dscr_history(loan_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return DscrHistoryResponse(
        loan_id=loan_id,
        current_dscr=fixed(loan.dscr, 4),
        current_rate=fixed(loan.current_rate, 6),
        loan_status=loan.status,
        calculation_history=[CalculationItem.from_record(calc) for calc in history],
        history_count=len(history),
    )
