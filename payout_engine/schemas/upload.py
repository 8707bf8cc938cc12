from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from payout_engine.models.payee import PayeeClass
from payout_engine.models.upload import UploadStatus

MONTH_REGEX = r"^\d{4}-(0[1-9]|1[0-2])$"


class InvoiceRowIn(BaseModel):
    deal_id: str = Field(..., min_length=1)
    payee_email: EmailStr
    payee_name: Optional[str] = None
    amount_invoiced: Decimal  # negative = correction against an earlier invoice
    month: str = Field(..., pattern=MONTH_REGEX)
    is_deal_owner: bool = False
    deal_name: Optional[str] = None
    deal_link: Optional[str] = None


class CollectionRowIn(BaseModel):
    deal_id: str = Field(..., min_length=1)
    payee_email: EmailStr
    payee_name: Optional[str] = None
    amount_paid: Decimal = Field(..., ge=0)
    month: str = Field(..., pattern=MONTH_REGEX)


class UploadBatchIn(BaseModel):
    """A normalized monthly upload for one payee class."""
    payee_class: PayeeClass
    invoices: List[InvoiceRowIn] = []
    collections: List[CollectionRowIn] = []


class UploadResult(BaseModel):
    id: Optional[int] = None
    success: bool
    message: str
    month: Optional[str] = None
    status: UploadStatus
    invoice_rows: int = 0
    collection_rows: int = 0
    adjustment_rows: int = 0
    recalculated_months: List[str] = []


class UploadBatchInDB(BaseModel):
    id: int
    payee_class: PayeeClass
    month: Optional[str]
    invoice_rows: int
    collection_rows: int
    adjustment_rows: int
    status: UploadStatus
    message: Optional[str]
    recalculated_months: Optional[List[str]]
    processing_started_at: Optional[datetime]
    processing_completed_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
