from payout_engine.models.payee import PayeeConfig, PayeeClass
from payout_engine.models.ledger import Invoice, Collection, InvoiceAdjustment
from payout_engine.models.payout import MonthlySummary, Payout, PayoutKind
from payout_engine.models.upload import UploadBatch, UploadStatus

__all__ = [
    "PayeeConfig",
    "PayeeClass",
    "Invoice",
    "Collection",
    "InvoiceAdjustment",
    "MonthlySummary",
    "Payout",
    "PayoutKind",
    "UploadBatch",
    "UploadStatus",
]
