"""Adjustment Handler.

A negative invoice row in an upload is a correction against a deal invoiced
earlier. The original invoice is decremented in place and its month becomes
the lower bound of the recalculation range. Each applied correction is
recorded so a later re-upload or purge of the correcting month can undo it.
"""
import logging
from typing import Iterable, List, Set

from sqlalchemy.orm import Session

from payout_engine.core.exceptions import DanglingAdjustmentError
from payout_engine.core.money import to_decimal
from payout_engine.models.ledger import Invoice, InvoiceAdjustment

logger = logging.getLogger(__name__)


class AdjustmentHandler:
    def __init__(self, db: Session):
        self.db = db

    def _original(self, payee_email: str, deal_id: str):
        return (
            self.db.query(Invoice)
            .filter(Invoice.payee_email == payee_email, Invoice.deal_id == deal_id)
            .first()
        )

    def apply(self, payee_email: str, deal_id: str, amount, upload_month: str) -> InvoiceAdjustment:
        """Decrement the original invoice by |amount|.

        Raises DanglingAdjustmentError when the deal was never invoiced.
        """
        original = self._original(payee_email, deal_id)
        if original is None:
            raise DanglingAdjustmentError(deal_id, payee_email)

        decrement = abs(to_decimal(amount))
        original.amount_invoiced = to_decimal(original.amount_invoiced) - decrement

        adjustment = InvoiceAdjustment(
            deal_id=deal_id,
            payee_email=payee_email,
            month=upload_month,
            original_month=original.month,
            amount=decrement,
        )
        self.db.add(adjustment)
        self.db.flush()

        logger.info(
            f"Adjusted deal {deal_id} ({payee_email}, {original.month}) by -{decrement} "
            f"from {upload_month} upload"
        )
        return adjustment

    def apply_all(self, rows: Iterable, upload_month: str) -> Set[str]:
        """Apply every correction row; returns the original months touched."""
        months = set()
        for row in rows:
            adjustment = self.apply(row.payee_email, row.deal_id, row.amount_invoiced, upload_month)
            months.add(adjustment.original_month)
        return months

    def revert(self, upload_month: str, payee_emails: Iterable[str]) -> Set[str]:
        """Undo the corrections a previous upload of ``upload_month`` applied.

        Returns the original months whose invoices changed.
        """
        adjustments = self._recorded(payee_emails, InvoiceAdjustment.month == upload_month)
        months = set()
        for adj in adjustments:
            original = self._original(adj.payee_email, adj.deal_id)
            if original is not None:
                original.amount_invoiced = to_decimal(original.amount_invoiced) + to_decimal(adj.amount)
            months.add(adj.original_month)
            self.db.delete(adj)
        self.db.flush()
        if adjustments:
            logger.info(f"Reverted {len(adjustments)} adjustments from {upload_month} upload")
        return months

    def reapply(self, original_month: str, payee_emails: Iterable[str]) -> int:
        """Re-apply corrections from other months onto freshly re-uploaded invoices
        of ``original_month``."""
        adjustments = self._recorded(
            payee_emails,
            InvoiceAdjustment.original_month == original_month,
            InvoiceAdjustment.month != original_month,
        )
        for adj in adjustments:
            original = self._original(adj.payee_email, adj.deal_id)
            if original is None:
                raise DanglingAdjustmentError(adj.deal_id, adj.payee_email)
            original.amount_invoiced = to_decimal(original.amount_invoiced) - to_decimal(adj.amount)
        self.db.flush()
        return len(adjustments)

    def _recorded(self, payee_emails: Iterable[str], *criteria) -> List[InvoiceAdjustment]:
        emails = list(payee_emails)
        if not emails:
            return []
        return (
            self.db.query(InvoiceAdjustment)
            .filter(InvoiceAdjustment.payee_email.in_(emails), *criteria)
            .order_by(InvoiceAdjustment.id)
            .all()
        )
