from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from payout_engine.models.payee import PayeeClass


Rate = Optional[Decimal]


class PayeeScheduleBase(BaseModel):
    base_rate: Rate = Field(None, ge=0, le=1, decimal_places=4)
    tier1_rate: Rate = Field(None, ge=0, le=1, decimal_places=4)
    tier1_threshold: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    tier2_rate: Rate = Field(None, ge=0, le=1, decimal_places=4)
    tier2_threshold: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    tier3_rate: Rate = Field(None, ge=0, le=1, decimal_places=4)
    tier3_threshold: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    tiers_enabled: bool = True
    is_american: bool = False
    american_rate: Rate = Field(None, ge=0, le=1, decimal_places=4)
    deal_owner_rate: Rate = Field(None, ge=0, le=1, decimal_places=4)
    excess_bonus_rate: Rate = Field(None, ge=0, le=1, decimal_places=4)

    @model_validator(mode="after")
    def check_ladder(self):
        """Configured tiers must be strictly ascending in rate and threshold."""
        if not self.tiers_enabled:
            return self
        tiers = [
            (self.tier1_rate, self.tier1_threshold),
            (self.tier2_rate, self.tier2_threshold),
            (self.tier3_rate, self.tier3_threshold),
        ]
        configured = [(r, t) for r, t in tiers if r is not None or t is not None]
        for rate, threshold in configured:
            if rate is None or threshold is None:
                raise ValueError("Each tier needs both a rate and a threshold")
        for (prev_rate, prev_threshold), (rate, threshold) in zip(configured, configured[1:]):
            if not rate > prev_rate:
                raise ValueError("Tier rates must be strictly ascending")
            if not threshold > prev_threshold:
                raise ValueError("Tier thresholds must be strictly ascending")
        return self


class PayeeCreate(PayeeScheduleBase):
    email: EmailStr
    name: Optional[str] = None
    payee_class: PayeeClass


class PayeeUpdate(PayeeScheduleBase):
    name: Optional[str] = None
    is_active: bool = True


class PayeeInDB(PayeeScheduleBase):
    id: int
    email: str
    name: Optional[str]
    payee_class: PayeeClass
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class Payee(PayeeInDB):
    pass


class PayeePage(BaseModel):
    items: List[Payee]
    page_count: int
