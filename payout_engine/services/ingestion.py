"""Monthly upload processing.

Workflow for one batch (one payee class, one month):
1. Validate: single month, known payees of the right class, unique deals
2. Undo corrections a previous upload of this month applied
3. Replace the month's invoices and collections
4. Apply negative invoice rows as corrections to their original deals
5. Recalculate summaries and payouts over the dirty range

Everything from step 2 on is one transaction: a failure rolls back and the
batch is recorded as failed in a separate commit.
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from payout_engine.core.config import Settings, settings as default_settings
from payout_engine.core.exceptions import (
    DuplicateDealError, MultiMonthUploadError, PayeeClassMismatchError, UnknownPayeeError,
)
from payout_engine.models.ledger import Invoice, Collection
from payout_engine.models.payee import PayeeClass, PayeeConfig
from payout_engine.models.upload import UploadBatch, UploadStatus
from payout_engine.schemas.upload import UploadBatchIn
from payout_engine.services.adjustments import AdjustmentHandler
from payout_engine.services.months import validate_month
from payout_engine.services.payees import PayeeService
from payout_engine.services.recalculation import RecalculationService

logger = logging.getLogger(__name__)


def upload_month(batch: UploadBatchIn) -> Optional[str]:
    """The single month a batch covers, or None for an empty batch."""
    months = {i.month for i in batch.invoices} | {c.month for c in batch.collections}
    if len(months) > 1:
        raise MultiMonthUploadError(months)
    if not months:
        return None
    return validate_month(months.pop())


class IngestionService:
    def __init__(self, db: Session, config: Settings = default_settings):
        self.db = db
        self.config = config
        self.adjustments = AdjustmentHandler(db)
        self.recalculation = RecalculationService(db, forward_propagation=config.FORWARD_PROPAGATION)

    # ── Entry point ──────────────────────────────────────────────────

    def process_batch(self, batch: UploadBatchIn) -> UploadBatch:
        positives = [i for i in batch.invoices if i.amount_invoiced >= 0]
        corrections = [i for i in batch.invoices if i.amount_invoiced < 0]
        record = UploadBatch(
            payee_class=batch.payee_class,
            invoice_rows=len(positives),
            collection_rows=len(batch.collections),
            adjustment_rows=len(corrections),
            status=UploadStatus.PROCESSING,
            processing_started_at=datetime.utcnow(),
        )

        try:
            month = upload_month(batch)
            record.month = month
            if month is None:
                record.message = "No data to process."
                record.recalculated_months = []
            else:
                logger.info(
                    f"Processing {batch.payee_class.value} upload for {month}: "
                    f"{len(positives)} invoices, {len(corrections)} adjustments, "
                    f"{len(batch.collections)} collections"
                )
                months = self._apply(batch, month, positives, corrections)
                record.message = "Monthly data processed successfully"
                record.recalculated_months = months

            record.status = UploadStatus.COMPLETED
            record.processing_completed_at = datetime.utcnow()
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)

        except Exception as e:
            self.db.rollback()
            failed = UploadBatch(
                payee_class=batch.payee_class,
                month=record.month,
                invoice_rows=record.invoice_rows,
                collection_rows=record.collection_rows,
                adjustment_rows=record.adjustment_rows,
                status=UploadStatus.FAILED,
                message=str(e)[:500],
                processing_started_at=record.processing_started_at,
                processing_completed_at=datetime.utcnow(),
            )
            self.db.add(failed)
            self.db.commit()
            logger.error(f"Upload {batch.payee_class.value} {record.month} failed: {e}", exc_info=True)
            raise

        logger.info(f"Upload {record.id} completed: months {record.recalculated_months}")
        return record

    # ── Steps ────────────────────────────────────────────────────────

    def _apply(self, batch: UploadBatchIn, month: str, positives, corrections) -> List[str]:
        payee_class = batch.payee_class
        self.ensure_payees(batch)
        self._check_deals(positives, month)

        class_emails = self._class_emails(payee_class)

        # Undo what an earlier upload of this month did before replacing it
        affected: Set[str] = self.adjustments.revert(month, class_emails)
        self._clear_month(month, class_emails)

        self.db.add_all(
            Invoice(
                deal_id=row.deal_id,
                payee_email=row.payee_email,
                month=row.month,
                amount_invoiced=row.amount_invoiced,
                is_deal_owner=row.is_deal_owner,
                deal_name=row.deal_name,
                deal_link=row.deal_link,
            )
            for row in positives
        )
        self.db.add_all(
            Collection(
                deal_id=row.deal_id,
                payee_email=row.payee_email,
                month=row.month,
                amount_paid=row.amount_paid,
            )
            for row in batch.collections
        )
        self.db.flush()

        self.adjustments.reapply(month, class_emails)
        affected |= self.adjustments.apply_all(corrections, month)

        result = self.recalculation.recalculate(payee_class, month, affected)
        return result.months

    def ensure_payees(self, batch: UploadBatchIn) -> Dict[str, PayeeConfig]:
        """Resolve every payee the batch references.

        Unknown payees are rejected unless AUTO_PROVISION_PAYEES is on, in which
        case they are created with the class's default schedule.
        """
        names: Dict[str, Optional[str]] = {}
        for row in list(batch.invoices) + list(batch.collections):
            if row.payee_email not in names or row.payee_name:
                names[row.payee_email] = row.payee_name
        if not names:
            return {}

        existing = {
            p.email: p
            for p in self.db.query(PayeeConfig).filter(PayeeConfig.email.in_(list(names))).all()
        }
        missing = [email for email in names if email not in existing]
        if missing:
            if not self.config.AUTO_PROVISION_PAYEES:
                raise UnknownPayeeError(missing)
            payees = PayeeService(self.db, self.config)
            for email in missing:
                existing[email] = payees.provision(email, names[email], batch.payee_class)

        for email, payee in existing.items():
            if payee.payee_class != batch.payee_class:
                raise PayeeClassMismatchError(email, batch.payee_class, payee.payee_class)
        return existing

    def _check_deals(self, positives: Iterable, month: str) -> None:
        keys = Counter((row.payee_email, row.deal_id) for row in positives)
        for (email, deal_id), count in keys.items():
            if count > 1:
                raise DuplicateDealError(deal_id, email)
        if not keys:
            return

        emails = {email for email, _ in keys}
        clashes = (
            self.db.query(Invoice)
            .filter(
                Invoice.payee_email.in_(emails),
                Invoice.deal_id.in_({deal_id for _, deal_id in keys}),
                Invoice.month != month,
            )
            .all()
        )
        for invoice in clashes:
            if (invoice.payee_email, invoice.deal_id) in keys:
                raise DuplicateDealError(invoice.deal_id, invoice.payee_email, invoice.month)

    def _class_emails(self, payee_class: PayeeClass) -> List[str]:
        return [
            email
            for (email,) in self.db.query(PayeeConfig.email)
            .filter(PayeeConfig.payee_class == payee_class)
            .all()
        ]

    def _clear_month(self, month: str, emails: List[str]) -> None:
        if not emails:
            return
        self.db.query(Invoice).filter(
            Invoice.month == month, Invoice.payee_email.in_(emails)
        ).delete(synchronize_session="fetch")
        self.db.query(Collection).filter(
            Collection.month == month, Collection.payee_email.in_(emails)
        ).delete(synchronize_session="fetch")
        self.db.flush()
