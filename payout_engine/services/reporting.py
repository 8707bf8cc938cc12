"""Read-side queries for dashboards and payout statements."""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from payout_engine.core.money import to_decimal
from payout_engine.models.ledger import Invoice, Collection
from payout_engine.models.payee import PayeeClass, PayeeConfig
from payout_engine.models.payout import MonthlySummary, Payout
from payout_engine.services.months import display_month, months_of_year, validate_month
from payout_engine.services.payees import PayeeService
from payout_engine.services.rates import policy_for
from payout_engine.services.reconciliation import ContributionMatcher

logger = logging.getLogger(__name__)


def _collection_dict(c: Collection, deals: Dict) -> Dict:
    deal = deals.get((c.payee_email, c.deal_id))
    return {
        "id": c.id,
        "deal_id": c.deal_id,
        "deal_name": deal.deal_name if deal else None,
        "deal_link": deal.deal_link if deal else None,
        "amount_paid": float(c.amount_paid or 0),
    }


def _invoice_dict(inv: Invoice) -> Dict:
    return {
        "id": inv.id,
        "deal_id": inv.deal_id,
        "deal_name": inv.deal_name,
        "deal_link": inv.deal_link,
        "amount_invoiced": float(inv.amount_invoiced or 0),
        "is_deal_owner": inv.is_deal_owner,
    }


class ReportingService:
    def __init__(self, db: Session):
        self.db = db

    # ── Per payee ────────────────────────────────────────────────────

    def yearly_overview(self, payee_email: str, year: int) -> List[Dict]:
        """Twelve rows, one per month; months without a summary read as zero.

        total_payout is what is disbursed in the month (by payout_month),
        including bonuses funded by the previous month.
        """
        PayeeService(self.db).get(payee_email)
        months = months_of_year(year)
        summaries = {
            s.month: s
            for s in self.db.query(MonthlySummary)
            .filter(MonthlySummary.payee_email == payee_email, MonthlySummary.month.in_(months))
            .all()
        }
        payout_totals = dict(
            self.db.query(Payout.payout_month, func.sum(Payout.amount))
            .filter(Payout.payee_email == payee_email, Payout.payout_month.in_(months))
            .group_by(Payout.payout_month)
            .all()
        )

        results = []
        for month in months:
            summary = summaries.get(month)
            results.append({
                "month": month,
                "label": display_month(month),
                "total_invoiced": float(summary.total_invoiced) if summary else 0.0,
                "total_collections": float(summary.total_collections) if summary else 0.0,
                "total_payout": float(to_decimal(payout_totals.get(month))),
            })
        return results

    def month_details(self, payee_email: str, month: str) -> Dict:
        validate_month(month)
        payee = PayeeService(self.db).get(payee_email)

        invoices = (
            self.db.query(Invoice)
            .filter(Invoice.payee_email == payee_email, Invoice.month == month)
            .order_by(Invoice.amount_invoiced.desc())
            .all()
        )
        collections = (
            self.db.query(Collection)
            .filter(Collection.payee_email == payee_email, Collection.month == month)
            .order_by(Collection.amount_paid.desc())
            .all()
        )
        payouts = (
            self.db.query(Payout)
            .filter(Payout.payee_email == payee_email, Payout.payout_month == month)
            .order_by(Payout.amount.desc())
            .all()
        )
        deals = self._deals(collections)

        enriched = self.enrich_payouts(payouts)
        return {
            "month": month,
            "label": display_month(month),
            "payee": {"email": payee.email, "name": payee.name, "payee_class": payee.payee_class.value},
            "invoices": [_invoice_dict(inv) for inv in invoices],
            "collections": [_collection_dict(c, deals) for c in collections],
            "payouts": enriched,
            "total_payout": round(sum(p["amount"] for p in enriched), 2),
        }

    # ── Admin ────────────────────────────────────────────────────────

    def payouts_by_month(self, month: str, payee_class: Optional[PayeeClass] = None) -> List[Dict]:
        validate_month(month)
        query = self.db.query(Payout).filter(Payout.payout_month == month)
        if payee_class is not None:
            query = query.join(PayeeConfig, PayeeConfig.email == Payout.payee_email).filter(
                PayeeConfig.payee_class == payee_class
            )
        payouts = query.order_by(Payout.amount.desc(), Payout.id).all()
        return self.enrich_payouts(payouts)

    # ── Enrichment ───────────────────────────────────────────────────

    def enrich_payouts(self, payouts: List[Payout]) -> List[Dict]:
        if not payouts:
            return []

        emails = {p.payee_email for p in payouts}
        source_months = {p.source_month for p in payouts}
        payees = {
            p.email: p
            for p in self.db.query(PayeeConfig).filter(PayeeConfig.email.in_(emails)).all()
        }
        collections = (
            self.db.query(Collection)
            .filter(Collection.payee_email.in_(emails), Collection.month.in_(source_months))
            .order_by(Collection.amount_paid.desc(), Collection.id)
            .all()
        )
        deals = self._deals(collections)
        per_collection = {
            email for email, payee in payees.items()
            if policy_for(payee.payee_class).per_collection
        }
        matcher = ContributionMatcher(collections, per_collection)

        results = []
        for p in payouts:
            payee = payees.get(p.payee_email)
            contribution = matcher.contributing(p)
            results.append({
                "id": p.id,
                "payee_email": p.payee_email,
                "payee_name": payee.name if payee else None,
                "source_month": p.source_month,
                "payout_month": p.payout_month,
                "kind": p.kind.value,
                "type": "bonus" if p.is_deferred else "base",
                "commission_rate": float(p.commission_rate),
                "basis_amount": float(p.basis_amount),
                "amount": float(p.amount),
                "description": p.description,
                "match": contribution.match,
                "source_collections": [_collection_dict(c, deals) for c in contribution.collections],
            })
        return results

    def _deals(self, collections: Iterable[Collection]) -> Dict:
        """(payee_email, deal_id) -> Invoice for the given collections."""
        keys = {(c.payee_email, c.deal_id) for c in collections}
        if not keys:
            return {}
        invoices = (
            self.db.query(Invoice)
            .filter(
                Invoice.payee_email.in_({e for e, _ in keys}),
                Invoice.deal_id.in_({d for _, d in keys}),
            )
            .all()
        )
        return {(inv.payee_email, inv.deal_id): inv for inv in invoices}
