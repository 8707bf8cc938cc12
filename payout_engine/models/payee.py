from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, Boolean
from sqlalchemy.sql import func
from payout_engine.core.database import Base
import enum


class PayeeClass(str, enum.Enum):
    RECRUITER = "recruiter"                        # flat-threshold
    RECRUITMENT_MANAGER = "recruitment_manager"    # cumulative tier, deferred bonus
    ACCOUNT_EXECUTIVE = "account_executive"        # collections tier ladder
    ACCOUNT_MANAGER = "account_manager"            # domestic flat or cumulative tier


class PayeeConfig(Base):
    """A commission payee and its rate schedule.

    Rates are stored as decimals (0.0250 = 2.5%). A NULL rate pays nothing.
    Which columns matter depends on ``payee_class``:

    - recruiter: base_rate, tier1_rate (elevated rate once lifetime
      collections reach tier1_threshold), excess_bonus_rate
    - recruitment_manager / account_executive: base_rate and the tier ladder
    - account_manager: is_american + american_rate, otherwise the ladder;
      deal_owner_rate in both modes
    """
    __tablename__ = "payees"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=True)
    payee_class = Column(Enum(PayeeClass), nullable=False, index=True)

    # Rate schedule
    base_rate = Column(Numeric(6, 4), nullable=True)
    tier1_rate = Column(Numeric(6, 4), nullable=True)
    tier1_threshold = Column(Numeric(12, 2), nullable=True)
    tier2_rate = Column(Numeric(6, 4), nullable=True)
    tier2_threshold = Column(Numeric(12, 2), nullable=True)
    tier3_rate = Column(Numeric(6, 4), nullable=True)
    tier3_threshold = Column(Numeric(12, 2), nullable=True)
    tiers_enabled = Column(Boolean, default=True, nullable=False)

    is_american = Column(Boolean, default=False, nullable=False)
    american_rate = Column(Numeric(6, 4), nullable=True)
    deal_owner_rate = Column(Numeric(6, 4), nullable=True)
    excess_bonus_rate = Column(Numeric(6, 4), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def tiers(self):
        """Configured (rate, threshold) pairs in ladder order."""
        pairs = [
            (self.tier1_rate, self.tier1_threshold),
            (self.tier2_rate, self.tier2_threshold),
            (self.tier3_rate, self.tier3_threshold),
        ]
        return [(rate, threshold) for rate, threshold in pairs if threshold is not None]
