"""Summary Aggregator: per (payee, month) invoice and collection totals."""
import logging
from typing import Dict, Iterable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from payout_engine.core.money import to_decimal
from payout_engine.models.ledger import Invoice, Collection
from payout_engine.models.payout import MonthlySummary

logger = logging.getLogger(__name__)


class SummaryAggregator:
    def __init__(self, db: Session):
        self.db = db

    def aggregate(self, payee_email: str, month: str) -> MonthlySummary:
        """Re-derive the MonthlySummary row for one payee and month.

        Negative invoice rows are included so corrections net out. A month
        with no rows still gets a zero summary.
        """
        total_invoiced = (
            self.db.query(func.coalesce(func.sum(Invoice.amount_invoiced), 0))
            .filter(Invoice.payee_email == payee_email, Invoice.month == month)
            .scalar()
        )
        total_collections = (
            self.db.query(func.coalesce(func.sum(Collection.amount_paid), 0))
            .filter(Collection.payee_email == payee_email, Collection.month == month)
            .scalar()
        )

        summary = (
            self.db.query(MonthlySummary)
            .filter(
                MonthlySummary.payee_email == payee_email,
                MonthlySummary.month == month,
            )
            .first()
        )
        if summary is None:
            summary = MonthlySummary(payee_email=payee_email, month=month)
            self.db.add(summary)

        summary.total_invoiced = to_decimal(total_invoiced)
        summary.total_collections = to_decimal(total_collections)
        self.db.flush()

        logger.debug(
            f"Summary {payee_email} {month}: invoiced={summary.total_invoiced}, "
            f"collections={summary.total_collections}"
        )
        return summary

    def aggregate_many(self, payee_emails: Iterable[str], months: Iterable[str]) -> List[MonthlySummary]:
        months = sorted(set(months))
        return [
            self.aggregate(email, month)
            for email in payee_emails
            for month in months
        ]

    def lifetime_collections(self, payee_email: str, through_month: str):
        """Sum of summarized collections for every month up to and including through_month."""
        total = (
            self.db.query(func.coalesce(func.sum(MonthlySummary.total_collections), 0))
            .filter(
                MonthlySummary.payee_email == payee_email,
                MonthlySummary.month <= through_month,
            )
            .scalar()
        )
        return to_decimal(total)

    def invoice_totals(self, payee_email: str, months: Iterable[str]) -> Dict[str, object]:
        """Summarized total_invoiced for the given months (missing months read as 0)."""
        months = list(set(months))
        if not months:
            return {}
        rows = (
            self.db.query(MonthlySummary.month, MonthlySummary.total_invoiced)
            .filter(
                MonthlySummary.payee_email == payee_email,
                MonthlySummary.month.in_(months),
            )
            .all()
        )
        totals = {month: to_decimal(0) for month in months}
        for month, total in rows:
            totals[month] = to_decimal(total)
        return totals
