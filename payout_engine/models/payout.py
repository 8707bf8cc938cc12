from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Enum, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payout_engine.core.database import Base
import enum


class PayoutKind(str, enum.Enum):
    BASE = "base"
    TIER_BONUS = "tier_bonus"
    DEAL_OWNER_BONUS = "deal_owner_bonus"


class MonthlySummary(Base):
    """Per-payee monthly totals. Derived from invoices/collections, never edited by hand."""
    __tablename__ = "monthly_summaries"
    __table_args__ = (
        UniqueConstraint("payee_email", "month", name="uq_monthly_summaries_payee_month"),
    )

    id = Column(Integer, primary_key=True, index=True)
    payee_email = Column(String, ForeignKey("payees.email"), nullable=False, index=True)
    month = Column(String, nullable=False, index=True)

    total_invoiced = Column(Numeric(14, 2), nullable=False, default=0)
    total_collections = Column(Numeric(14, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Payout(Base):
    """One ledger line: amount = basis_amount * commission_rate.

    All rows of a (payee_email, source_month) pair are replaced together.
    """
    __tablename__ = "payouts"

    id = Column(Integer, primary_key=True, index=True)
    payee_email = Column(String, ForeignKey("payees.email"), nullable=False, index=True)

    source_month = Column(String, nullable=False, index=True)  # month whose collections funded it
    payout_month = Column(String, nullable=False, index=True)  # month it is disbursed

    kind = Column(Enum(PayoutKind), nullable=False, default=PayoutKind.BASE)
    commission_rate = Column(Numeric(6, 4), nullable=False)
    basis_amount = Column(Numeric(14, 2), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    # Set for per-deal payouts; NULL for payouts on a month's total
    collection_id = Column(Integer, ForeignKey("collections.id", ondelete="SET NULL"), nullable=True, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    collection = relationship("Collection", back_populates="payouts")

    @property
    def is_deferred(self) -> bool:
        return self.payout_month != self.source_month
