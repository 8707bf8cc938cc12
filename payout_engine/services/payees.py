"""Payee administration: rate schedules are written here and only read by the engine."""
import logging
import math
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.orm import Session

from payout_engine.core.config import Settings, settings as default_settings
from payout_engine.core.exceptions import DuplicatePayeeError, PayeeNotFoundError
from payout_engine.models.payee import PayeeClass, PayeeConfig
from payout_engine.schemas.payee import PayeeCreate, PayeeUpdate

logger = logging.getLogger(__name__)


def _d(value: float) -> Decimal:
    return Decimal(str(value))


def default_schedule(payee_class: PayeeClass, config: Settings = default_settings) -> Dict:
    """Rate schedule given to auto-provisioned payees.

    Account executives and account managers have no standard schedule; they
    are provisioned without rates (and so earn nothing) until an admin sets one.
    """
    if payee_class == PayeeClass.RECRUITER:
        return {
            "base_rate": _d(config.RECRUITER_BASE_RATE),
            "tier1_rate": _d(config.RECRUITER_ELEVATED_RATE),
            "tier1_threshold": _d(config.RECRUITER_THRESHOLD),
            "excess_bonus_rate": _d(config.RECRUITER_EXCESS_BONUS_RATE),
        }
    if payee_class == PayeeClass.RECRUITMENT_MANAGER:
        return {
            "base_rate": _d(config.RECRUITMENT_MANAGER_BASE_RATE),
            "tier1_rate": _d(config.RECRUITMENT_MANAGER_TIER1_RATE),
            "tier1_threshold": _d(config.RECRUITMENT_MANAGER_TIER1_THRESHOLD),
            "tier2_rate": _d(config.RECRUITMENT_MANAGER_TIER2_RATE),
            "tier2_threshold": _d(config.RECRUITMENT_MANAGER_TIER2_THRESHOLD),
        }
    return {}


class PayeeService:
    def __init__(self, db: Session, config: Settings = default_settings):
        self.db = db
        self.config = config

    def get(self, email: str) -> PayeeConfig:
        payee = self.db.query(PayeeConfig).filter(PayeeConfig.email == email).first()
        if not payee:
            raise PayeeNotFoundError(email)
        return payee

    def list(
        self,
        page: int = 1,
        per_page: int = 20,
        payee_class: Optional[PayeeClass] = None,
        is_active: Optional[bool] = None,
    ):
        query = self.db.query(PayeeConfig)
        if payee_class:
            query = query.filter(PayeeConfig.payee_class == payee_class)
        if is_active is not None:
            query = query.filter(PayeeConfig.is_active == is_active)
        total = query.count()
        items = (
            query.order_by(PayeeConfig.email)
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return {"items": items, "page_count": math.ceil(total / per_page)}

    def create(self, data: PayeeCreate) -> PayeeConfig:
        existing = self.db.query(PayeeConfig).filter(PayeeConfig.email == data.email).first()
        if existing:
            raise DuplicatePayeeError(data.email)

        payee = PayeeConfig(**data.model_dump())
        self.db.add(payee)
        self.db.commit()
        self.db.refresh(payee)
        logger.info(f"Created {payee.payee_class.value} {payee.email}")
        return payee

    def update(self, email: str, data: PayeeUpdate) -> PayeeConfig:
        payee = self.get(email)
        for key, value in data.model_dump().items():
            setattr(payee, key, value)
        self.db.commit()
        self.db.refresh(payee)
        logger.info(f"Updated {payee.payee_class.value} {payee.email}")
        return payee

    def provision(self, email: str, name: Optional[str], payee_class: PayeeClass) -> PayeeConfig:
        """Create a payee seen for the first time in an upload. Does not commit."""
        payee = PayeeConfig(
            email=email,
            name=name,
            payee_class=payee_class,
            **default_schedule(payee_class, self.config),
        )
        self.db.add(payee)
        self.db.flush()
        logger.info(f"Auto-provisioned {payee_class.value} {email}")
        return payee
