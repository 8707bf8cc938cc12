"""Administrative reset: drop everything from a month onward.

Used to reopen months after the last locked (paid out) month. Corrections
uploaded in a purged month are reverted first so invoices of locked months get
their original amounts back, and those months are recalculated.
"""
import logging
from collections import defaultdict
from typing import Dict, Optional, Set

from sqlalchemy import or_
from sqlalchemy.orm import Session

from payout_engine.core.config import Settings, settings as default_settings
from payout_engine.core.money import to_decimal
from payout_engine.models.ledger import Invoice, Collection, InvoiceAdjustment
from payout_engine.models.payee import PayeeClass, PayeeConfig
from payout_engine.models.payout import MonthlySummary, Payout
from payout_engine.services.months import shift_month, validate_month
from payout_engine.services.recalculation import RecalculationService

logger = logging.getLogger(__name__)


class PurgeService:
    def __init__(self, db: Session, config: Settings = default_settings):
        self.db = db
        self.config = config

    def purge_since(self, month: Optional[str] = None) -> Dict:
        month = validate_month(month or self.config.LAST_LOCKED_MONTH)
        logger.info(f"Purging all data from {month} onward")

        try:
            restored = self._revert_adjustments(month)
            counts = {
                "adjustments": self._delete(
                    InvoiceAdjustment,
                    or_(InvoiceAdjustment.month >= month, InvoiceAdjustment.original_month >= month),
                ),
                "payouts": self._delete(Payout, Payout.source_month >= month),
                "summaries": self._delete(MonthlySummary, MonthlySummary.month >= month),
                "collections": self._delete(Collection, Collection.month >= month),
                "invoices": self._delete(Invoice, Invoice.month >= month),
            }
            self.db.flush()

            recalculated = self._recalculate(restored, month)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Purge from {month} failed: {e}", exc_info=True)
            raise

        logger.info(f"Purged from {month}: {counts}")
        return {
            "success": True,
            "message": f"Deleted all data from {month} onward",
            "month": month,
            "deleted": counts,
            "recalculated_months": recalculated,
        }

    def _revert_adjustments(self, month: str) -> Dict[str, Set[str]]:
        """Put back corrections uploaded in purged months onto invoices that survive.

        Returns payee_email -> original months whose invoices changed.
        """
        adjustments = (
            self.db.query(InvoiceAdjustment)
            .filter(InvoiceAdjustment.month >= month, InvoiceAdjustment.original_month < month)
            .order_by(InvoiceAdjustment.id)
            .all()
        )
        restored: Dict[str, Set[str]] = defaultdict(set)
        for adj in adjustments:
            original = (
                self.db.query(Invoice)
                .filter(Invoice.payee_email == adj.payee_email, Invoice.deal_id == adj.deal_id)
                .first()
            )
            if original is not None:
                original.amount_invoiced = to_decimal(original.amount_invoiced) + to_decimal(adj.amount)
                restored[adj.payee_email].add(adj.original_month)
        self.db.flush()
        if adjustments:
            logger.info(f"Restored {len(adjustments)} corrected invoices before {month}")
        return restored

    def _delete(self, model, criterion) -> int:
        return self.db.query(model).filter(criterion).delete(synchronize_session="fetch")

    def _recalculate(self, restored: Dict[str, Set[str]], month: str):
        if not restored:
            return []

        by_class: Dict[PayeeClass, Set[str]] = defaultdict(set)
        payees = self.db.query(PayeeConfig).filter(PayeeConfig.email.in_(list(restored))).all()
        for payee in payees:
            by_class[payee.payee_class] |= restored[payee.email]

        service = RecalculationService(self.db, forward_propagation=False)
        months = set()
        for payee_class, adjusted in by_class.items():
            result = service.recalculate(payee_class, shift_month(month, -1), adjusted)
            months.update(result.months)
        return sorted(months)
