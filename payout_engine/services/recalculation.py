"""Recalculation Orchestrator.

Works on an explicit list of (payee, month) work items in two strict phases:

1. aggregate every work item's MonthlySummary;
2. in month-ascending order, resolve rates and regenerate payouts.

Phase 2 never starts before phase 1 has finished, because per-deal policies
read the summary of the deal's invoice month, which can be a later month of
the same run. Everything runs inside the caller's transaction; nothing here
commits.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from payout_engine.core.config import settings
from payout_engine.models.payee import PayeeClass, PayeeConfig
from payout_engine.models.payout import MonthlySummary
from payout_engine.services.aggregator import SummaryAggregator
from payout_engine.services.months import month_range, validate_month
from payout_engine.services.synthesizer import PayoutSynthesizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class WorkItem:
    month: str
    payee_email: str


@dataclass
class RecalculationResult:
    months: List[str] = field(default_factory=list)
    payee_emails: List[str] = field(default_factory=list)
    summaries_written: int = 0
    payouts_written: int = 0


class RecalculationService:
    def __init__(self, db: Session, forward_propagation: Optional[bool] = None):
        self.db = db
        self.forward_propagation = (
            settings.FORWARD_PROPAGATION if forward_propagation is None else forward_propagation
        )
        self.aggregator = SummaryAggregator(db)
        self.synthesizer = PayoutSynthesizer(db)

    # ── Planning ─────────────────────────────────────────────────────

    def latest_summary_month(self, payee_class: PayeeClass) -> Optional[str]:
        return (
            self.db.query(func.max(MonthlySummary.month))
            .join(PayeeConfig, PayeeConfig.email == MonthlySummary.payee_email)
            .filter(PayeeConfig.payee_class == payee_class)
            .scalar()
        )

    def dirty_months(
        self,
        payee_class: PayeeClass,
        upload_month: str,
        adjusted_months: Iterable[str] = (),
    ) -> List[str]:
        """Ordered months needing recomputation.

        From the earliest corrected month (or the upload month) through the
        upload month; with forward propagation, on through the latest month
        that already has a summary.
        """
        months = [validate_month(upload_month)] + [validate_month(m) for m in adjusted_months]
        start, end = min(months), max(months)
        if self.forward_propagation:
            latest = self.latest_summary_month(payee_class)
            if latest and latest > end:
                end = latest
        return month_range(start, end)

    def payees(self, payee_class: PayeeClass) -> List[PayeeConfig]:
        return (
            self.db.query(PayeeConfig)
            .filter(PayeeConfig.payee_class == payee_class)
            .order_by(PayeeConfig.email)
            .all()
        )

    @staticmethod
    def work_items(payee_emails: Iterable[str], months: Iterable[str]) -> List[WorkItem]:
        return sorted({WorkItem(month=m, payee_email=e) for e in payee_emails for m in months})

    # ── Execution ────────────────────────────────────────────────────

    def run(self, work_items: Iterable[WorkItem]) -> RecalculationResult:
        items = sorted(set(work_items))
        result = RecalculationResult(
            months=sorted({i.month for i in items}),
            payee_emails=sorted({i.payee_email for i in items}),
        )
        if not items:
            return result

        # Phase 1: summaries for every item
        for item in items:
            self.aggregator.aggregate(item.payee_email, item.month)
            result.summaries_written += 1

        # Phase 2: payouts, oldest month first
        configs = {
            p.email: p
            for p in self.db.query(PayeeConfig)
            .filter(PayeeConfig.email.in_(result.payee_emails))
            .all()
        }
        for item in items:
            config = configs.get(item.payee_email)
            if config is None:
                # No rate schedule: nothing is owed, but stale rows must still go
                self.synthesizer.clear(item.payee_email, item.month)
                continue
            payouts = self.synthesizer.synthesize(
                item.payee_email, config.payee_class, item.month, config
            )
            result.payouts_written += len(payouts)

        self.db.flush()
        return result

    def recalculate(
        self,
        payee_class: PayeeClass,
        upload_month: str,
        adjusted_months: Iterable[str] = (),
    ) -> RecalculationResult:
        """Recompute every payee of a class over the dirty range.

        Inactive payees are included: their summaries and payouts must follow
        their rows. is_active only filters listings.
        """
        months = self.dirty_months(payee_class, upload_month, adjusted_months)
        emails = [p.email for p in self.payees(payee_class)]
        logger.info(
            f"Recalculating {payee_class.value}: {len(emails)} payees, "
            f"months {months[0]}..{months[-1]}"
        )
        result = self.run(self.work_items(emails, months))
        result.months = months
        logger.info(
            f"Recalculated {payee_class.value}: {result.summaries_written} summaries, "
            f"{result.payouts_written} payouts"
        )
        return result
