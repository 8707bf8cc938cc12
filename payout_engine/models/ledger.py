"""Raw monthly facts: invoices, collections and applied invoice corrections."""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Boolean, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from payout_engine.core.database import Base


class Invoice(Base):
    """Amount billed for a deal. deal_id is the natural key for corrections."""
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("payee_email", "deal_id", name="uq_invoices_payee_deal"),
    )

    id = Column(Integer, primary_key=True, index=True)
    deal_id = Column(String, nullable=False, index=True)
    payee_email = Column(String, ForeignKey("payees.email"), nullable=False, index=True)
    month = Column(String, nullable=False, index=True)  # Format: "2025-01"

    amount_invoiced = Column(Numeric(12, 2), nullable=False)  # signed
    is_deal_owner = Column(Boolean, default=False, nullable=False)

    deal_name = Column(String, nullable=True)
    deal_link = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class Collection(Base):
    """Cash received against a deal in a month."""
    __tablename__ = "collections"

    id = Column(Integer, primary_key=True, index=True)
    deal_id = Column(String, nullable=False, index=True)
    payee_email = Column(String, ForeignKey("payees.email"), nullable=False, index=True)
    month = Column(String, nullable=False, index=True)

    amount_paid = Column(Numeric(12, 2), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    payouts = relationship("Payout", back_populates="collection")


class InvoiceAdjustment(Base):
    """A negative correction applied to an earlier invoice.

    Kept so a re-upload (or purge) of the correcting month can put the
    original invoice back before applying the new file.
    """
    __tablename__ = "invoice_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    deal_id = Column(String, nullable=False, index=True)
    payee_email = Column(String, ForeignKey("payees.email"), nullable=False, index=True)
    month = Column(String, nullable=False, index=True)  # month of the upload carrying the correction
    original_month = Column(String, nullable=False)  # month of the corrected invoice

    amount = Column(Numeric(12, 2), nullable=False)  # absolute decrement

    created_at = Column(DateTime(timezone=True), server_default=func.now())
