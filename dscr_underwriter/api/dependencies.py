"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from dscr_underwriter.domain.approvals import RateChangeApprovals
from dscr_underwriter.domain.underwriting import UnderwritingService
from dscr_underwriter.infrastructure.clients.notice import NoticeClient
from dscr_underwriter.infrastructure.database.repositories import SqlUnderwritingStore
from dscr_underwriter.infrastructure.database.session import get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_store(db: Session = Depends(get_db)) -> SqlUnderwritingStore:
    """Store bound to the request's database session"""
    return SqlUnderwritingStore(db)


def get_underwriting_service(store: SqlUnderwritingStore = Depends(get_store)) -> UnderwritingService:
    return UnderwritingService(store)


def get_approvals(store: SqlUnderwritingStore = Depends(get_store)) -> RateChangeApprovals:
    return RateChangeApprovals(store)


def get_notice_client() -> NoticeClient:
    """Provide rate notice webhook client instance"""
    return NoticeClient()
