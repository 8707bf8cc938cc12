"""Payout Synthesizer.

Turns resolved rate components into Payout rows for one payee and source
month. Recomputation is delete-then-recreate: every existing row for the
(payee, source_month) key is removed before the new set is written, so
running it twice leaves the same ledger.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from payout_engine.core.money import ZERO, format_currency, format_percent, quantize_money, to_decimal
from payout_engine.models.ledger import Invoice, Collection
from payout_engine.models.payee import PayeeClass, PayeeConfig
from payout_engine.models.payout import MonthlySummary, Payout
from payout_engine.services.aggregator import SummaryAggregator
from payout_engine.services.months import next_month
from payout_engine.services.rates import DealContext, PeriodTotals, RateComponent, policy_for

logger = logging.getLogger(__name__)


def describe(component: RateComponent, amount: Decimal, basis: Decimal, payout_amount: Decimal,
             deal_id: Optional[str] = None) -> str:
    """Human-readable calculation, e.g. "$45,000.00 - $30,000.00 = $15,000.00 * 2% = $300.00"."""
    rate = format_percent(component.rate)
    if component.floor > 0:
        text = (
            f"{format_currency(amount)} - {format_currency(component.floor)} = "
            f"{format_currency(basis)} * {rate} = {format_currency(payout_amount)}"
        )
    else:
        text = f"{format_currency(basis)} * {rate} = {format_currency(payout_amount)}"
    if deal_id:
        text = f"Deal {deal_id}: {text}"
    return text


class PayoutSynthesizer:
    def __init__(self, db: Session):
        self.db = db
        self.aggregator = SummaryAggregator(db)

    def clear(self, payee_email: str, source_month: str) -> int:
        """Delete the full payout set funded by this payee's source month."""
        return (
            self.db.query(Payout)
            .filter(Payout.payee_email == payee_email, Payout.source_month == source_month)
            .delete(synchronize_session="fetch")
        )

    def period_totals(self, payee_email: str, month: str) -> PeriodTotals:
        summary = (
            self.db.query(MonthlySummary)
            .filter(MonthlySummary.payee_email == payee_email, MonthlySummary.month == month)
            .first()
        )
        return PeriodTotals(
            month=month,
            total_invoiced=to_decimal(summary.total_invoiced) if summary else ZERO,
            total_collections=to_decimal(summary.total_collections) if summary else ZERO,
            lifetime_collections=self.aggregator.lifetime_collections(payee_email, month),
        )

    def deal_contexts(self, payee_email: str, month: str) -> List[DealContext]:
        """Collections of the month, each joined to its deal's invoice and invoice-month total."""
        collections = (
            self.db.query(Collection)
            .filter(Collection.payee_email == payee_email, Collection.month == month)
            .order_by(Collection.id)
            .all()
        )
        if not collections:
            return []

        deal_ids = {c.deal_id for c in collections}
        invoices = (
            self.db.query(Invoice)
            .filter(Invoice.payee_email == payee_email, Invoice.deal_id.in_(deal_ids))
            .all()
        )
        deal_to_invoice = {inv.deal_id: inv for inv in invoices}
        invoice_totals = self.aggregator.invoice_totals(payee_email, {inv.month for inv in invoices})

        contexts = []
        for c in collections:
            invoice = deal_to_invoice.get(c.deal_id)
            contexts.append(
                DealContext(
                    deal_id=c.deal_id,
                    amount_paid=to_decimal(c.amount_paid),
                    collection_id=c.id,
                    is_deal_owner=bool(invoice.is_deal_owner) if invoice else False,
                    invoice_month=invoice.month if invoice else None,
                    invoice_month_total=invoice_totals.get(invoice.month) if invoice else None,
                )
            )
        return contexts

    def synthesize(
        self,
        payee_email: str,
        payee_class: PayeeClass,
        month: str,
        config: Optional[PayeeConfig] = None,
    ) -> List[Payout]:
        """Regenerate every payout funded by ``month`` for one payee.

        Expects the month's summary (and, for per-deal policies, the invoice
        months' summaries) to be current.
        """
        removed = self.clear(payee_email, month)
        policy = policy_for(payee_class)
        totals = self.period_totals(payee_email, month)

        created: List[Payout] = []
        if policy.per_collection:
            for deal in self.deal_contexts(payee_email, month):
                for component in policy.resolve(totals, config, deal):
                    payout = self._build(payee_email, month, component, deal.amount_paid,
                                         collection_id=deal.collection_id, deal_id=deal.deal_id)
                    if payout is not None:
                        created.append(payout)
        else:
            for component in policy.resolve(totals, config):
                payout = self._build(payee_email, month, component, totals.total_collections)
                if payout is not None:
                    created.append(payout)

        self.db.add_all(created)
        self.db.flush()

        logger.debug(
            f"Payouts {payee_email} {month}: removed {removed}, created {len(created)} "
            f"(total {sum((p.amount for p in created), ZERO)})"
        )
        return created

    def _build(
        self,
        payee_email: str,
        month: str,
        component: RateComponent,
        amount: Decimal,
        collection_id: Optional[int] = None,
        deal_id: Optional[str] = None,
    ) -> Optional[Payout]:
        amount = to_decimal(amount)
        basis = component.basis(amount)
        if basis <= 0 or component.rate <= 0:
            return None
        payout_amount = quantize_money(basis * component.rate)
        if payout_amount <= 0:
            return None

        return Payout(
            payee_email=payee_email,
            source_month=month,
            payout_month=next_month(month) if component.deferred else month,
            kind=component.kind,
            commission_rate=component.rate,
            basis_amount=quantize_money(basis),
            amount=payout_amount,
            collection_id=collection_id,
            description=describe(component, amount, basis, payout_amount, deal_id),
        )
