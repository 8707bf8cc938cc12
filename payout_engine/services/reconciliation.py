"""Payout-to-collection reconciliation for display.

Which collection(s) funded a payout:

- per-deal payouts carry ``collection_id``: exact;
- payouts on a month's total were funded by every collection of the source
  month;
- anything else (rows whose collection was deleted, imported history) falls
  back to a best-effort amount match. The fallback can be wrong; it is only
  used to annotate reports, never to compute the ledger.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from payout_engine.core.money import to_decimal
from payout_engine.models.ledger import Collection
from payout_engine.models.payout import Payout

APPROX_EPSILON = Decimal("0.01")


def approx_equal(a, b, eps: Decimal = APPROX_EPSILON) -> bool:
    return abs(to_decimal(a) - to_decimal(b)) <= eps


@dataclass
class Contribution:
    collections: List[Collection] = field(default_factory=list)
    # "linked", "month", "approximate", "closest" or "unmatched"
    match: str = "unmatched"


class ContributionMatcher:
    def __init__(self, collections: Iterable[Collection], per_collection_payees: Set[str] = frozenset()):
        """
        Args:
            collections: candidate collections (any payees / months)
            per_collection_payees: emails whose policy pays each collection separately
        """
        self.by_id: Dict[int, Collection] = {}
        self.by_key: Dict[Tuple[str, str], List[Collection]] = defaultdict(list)
        for c in collections:
            self.by_id[c.id] = c
            self.by_key[(c.payee_email, c.month)].append(c)
        self.per_collection_payees = set(per_collection_payees)
        # A collection matched approximately is not offered to the next payout of the same kind
        self.used: Dict[Tuple[str, str, str], Set[int]] = defaultdict(set)

    def contributing(self, payout: Payout) -> Contribution:
        if payout.collection_id is not None and payout.collection_id in self.by_id:
            return Contribution([self.by_id[payout.collection_id]], "linked")

        candidates = self.by_key.get((payout.payee_email, payout.source_month), [])
        if payout.payee_email not in self.per_collection_payees:
            return Contribution(list(candidates), "month" if candidates else "unmatched")

        return self.best_effort(payout, candidates)

    def best_effort(self, payout: Payout, candidates: List[Collection]) -> Contribution:
        kind = payout.kind.value if payout.kind is not None else ""
        used = self.used[(payout.payee_email, payout.source_month, kind)]
        available = [c for c in candidates if c.id not in used]
        if not available:
            return Contribution()

        rate = to_decimal(payout.commission_rate)
        amount = to_decimal(payout.amount)

        match: Optional[Collection] = None
        for c in available:
            if approx_equal(c.amount_paid, payout.basis_amount) or (
                rate > 0 and approx_equal(to_decimal(c.amount_paid) * rate, amount)
            ):
                match = c
                break
        label = "approximate"

        if match is None:
            match = min(available, key=lambda c: abs(amount - to_decimal(c.amount_paid) * rate))
            label = "closest"

        used.add(match.id)
        return Contribution([match], label)
