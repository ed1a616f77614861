"""SQLAlchemy ORM models for loans, cash flows and the underwriting audit trail"""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, Text
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

# Money and ratios are stored as fixed-point numerics, never floats
MONEY = Numeric(precision=20, scale=2)
RATE = Numeric(precision=12, scale=6)
RATIO = Numeric(precision=20, scale=8)


class LoanRecord(Base):
    """Loan evaluated by the underwriting engine"""

    __tablename__ = "loan"

    id = Column(Text, primary_key=True)
    borrower_id = Column(Text, nullable=False, index=True)
    principal = Column(MONEY, nullable=False)
    term_months = Column(Integer, nullable=False, default=24)
    interest_rate = Column(RATE, nullable=True)
    dscr = Column(RATIO, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    calculations = relationship("DscrCalculationRecord", back_populates="loan", cascade="all, delete-orphan")
    rate_changes = relationship("PendingRateChangeRecord", back_populates="loan", cascade="all, delete-orphan")


class CashFlowRecord(Base):
    """Normalized borrower cash-flow entry"""

    __tablename__ = "cash_flow_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    borrower_id = Column(Text, nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    occurred_on = Column(Date, nullable=False, index=True)
    pending = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class DscrCalculationRecord(Base):
    """Append-only record of each rate computation"""

    __tablename__ = "dscr_calculation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Text, ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    dscr_value = Column(RATIO, nullable=False)
    monthly_noi = Column(RATIO, nullable=False)
    monthly_debt_service = Column(RATIO, nullable=False)
    computed_at = Column(DateTime(timezone=True), nullable=False)
    input_hash = Column(Text, nullable=False)

    loan = relationship("LoanRecord", back_populates="calculations")


class PendingRateChangeRecord(Base):
    """Proposed rate change and its resolution"""

    __tablename__ = "pending_rate_change"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Text, ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    current_rate = Column(RATE, nullable=True)
    proposed_rate = Column(RATE, nullable=False)
    dscr_value = Column(RATIO, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)
    requested_by = Column(Text, nullable=True)
    approved_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    loan = relationship("LoanRecord", back_populates="rate_changes")
