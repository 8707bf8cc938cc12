"""Rate Resolver.

One policy per payee class. A policy is a pure function of the month's
totals, the payee's rate schedule and (for per-deal policies) the collection
being paid; it returns the rate components that apply. Nothing here touches
the database.

Policies:

- recruiter (flat-threshold): base rate until lifetime collections reach the
  threshold, the elevated rate from then on. Once crossed, collections above
  the threshold in a month also earn a bonus on the excess, paid next month.
- recruitment_manager (cumulative tier): base rate on every collection in the
  same month, plus the tier rate reached by the *invoice* month's total,
  paid next month.
- account_executive (tier ladder): one rate from the month's collections,
  same month.
- account_manager (dual mode): domestic payees get a flat rate plus a
  deal-owner bonus in the same month; everyone else is paid like a
  recruitment manager with a deferred deal-owner bonus.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from payout_engine.core.money import ZERO, to_decimal
from payout_engine.models.payee import PayeeClass
from payout_engine.models.payout import PayoutKind


@dataclass(frozen=True)
class PeriodTotals:
    """Aggregates a policy may look at for one payee and month."""
    month: str
    total_invoiced: Decimal = ZERO
    total_collections: Decimal = ZERO
    # Collections summed over every month up to and including `month`
    lifetime_collections: Decimal = ZERO


@dataclass(frozen=True)
class DealContext:
    """A single collection row joined to the invoice of its deal."""
    deal_id: str
    amount_paid: Decimal
    collection_id: Optional[int] = None
    is_deal_owner: bool = False
    invoice_month: Optional[str] = None
    # Total invoiced by the payee in invoice_month; None when the deal has no invoice
    invoice_month_total: Optional[Decimal] = None


@dataclass(frozen=True)
class RateComponent:
    rate: Decimal
    kind: PayoutKind = PayoutKind.BASE
    deferred: bool = False
    # Portion of the basis excluded before the rate applies
    floor: Decimal = ZERO

    def basis(self, amount: Decimal) -> Decimal:
        return max(to_decimal(amount) - self.floor, ZERO)


def _rate(value) -> Decimal:
    return to_decimal(value)


def _positive(components: List[RateComponent]) -> List[RateComponent]:
    return [c for c in components if c.rate > 0]


def ladder_rate(amount: Decimal, config, default: Decimal) -> Decimal:
    """Rate of the highest tier whose threshold is reached (inclusive), else default."""
    rate = default
    if not config.tiers_enabled:
        return rate
    for tier_rate, threshold in config.tiers():
        if amount >= to_decimal(threshold) and tier_rate is not None:
            rate = _rate(tier_rate)
    return rate


class RatePolicy:
    """Base policy. per_collection policies are resolved once per collection row,
    the others once per month against the month's total collections."""

    per_collection = False

    def resolve(self, totals: PeriodTotals, config, deal: Optional[DealContext] = None) -> List[RateComponent]:
        raise NotImplementedError


class FlatThresholdPolicy(RatePolicy):
    per_collection = False

    @staticmethod
    def has_crossed(totals: PeriodTotals, config) -> bool:
        """Derived sticky flag: lifetime collections have reached the threshold."""
        if config is None or not config.tiers_enabled or config.tier1_threshold is None:
            return False
        return totals.lifetime_collections >= to_decimal(config.tier1_threshold)

    def resolve(self, totals, config, deal=None):
        if config is None:
            return []
        if not self.has_crossed(totals, config):
            return _positive([RateComponent(_rate(config.base_rate))])

        threshold = to_decimal(config.tier1_threshold)
        elevated = config.tier1_rate if config.tier1_rate is not None else config.base_rate
        components = [RateComponent(_rate(elevated))]
        if totals.total_collections > threshold:
            components.append(
                RateComponent(
                    _rate(config.excess_bonus_rate),
                    kind=PayoutKind.TIER_BONUS,
                    deferred=True,
                    floor=threshold,
                )
            )
        return _positive(components)


class CumulativeTierPolicy(RatePolicy):
    per_collection = True

    @staticmethod
    def bonus_rate(invoice_month_total: Optional[Decimal], config) -> Decimal:
        if invoice_month_total is None:
            return ZERO
        return ladder_rate(to_decimal(invoice_month_total), config, ZERO)

    def resolve(self, totals, config, deal=None):
        if config is None or deal is None:
            return []
        components = [RateComponent(_rate(config.base_rate))]
        bonus = self.bonus_rate(deal.invoice_month_total, config)
        if bonus > 0:
            components.append(RateComponent(bonus, kind=PayoutKind.TIER_BONUS, deferred=True))
        return _positive(components)


class AccountTierPolicy(RatePolicy):
    per_collection = False

    def resolve(self, totals, config, deal=None):
        if config is None:
            return []
        rate = ladder_rate(totals.total_collections, config, _rate(config.base_rate))
        return _positive([RateComponent(rate)])


class DualModeManagerPolicy(RatePolicy):
    per_collection = True

    def __init__(self):
        self.tiered = CumulativeTierPolicy()

    def resolve(self, totals, config, deal=None):
        if config is None or deal is None:
            return []
        if config.is_american:
            components = [RateComponent(_rate(config.american_rate))]
            deferred_owner_bonus = False
        else:
            components = self.tiered.resolve(totals, config, deal)
            deferred_owner_bonus = True
        if deal.is_deal_owner:
            components.append(
                RateComponent(
                    _rate(config.deal_owner_rate),
                    kind=PayoutKind.DEAL_OWNER_BONUS,
                    deferred=deferred_owner_bonus,
                )
            )
        return _positive(components)


POLICIES: Dict[PayeeClass, RatePolicy] = {
    PayeeClass.RECRUITER: FlatThresholdPolicy(),
    PayeeClass.RECRUITMENT_MANAGER: CumulativeTierPolicy(),
    PayeeClass.ACCOUNT_EXECUTIVE: AccountTierPolicy(),
    PayeeClass.ACCOUNT_MANAGER: DualModeManagerPolicy(),
}


def policy_for(payee_class: PayeeClass) -> RatePolicy:
    return POLICIES[PayeeClass(payee_class)]


def resolve_rates(
    payee_class: PayeeClass,
    totals: PeriodTotals,
    config,
    deal: Optional[DealContext] = None,
) -> List[RateComponent]:
    return policy_for(payee_class).resolve(totals, config, deal)
