from sqlalchemy import Column, Integer, String, DateTime, Enum, Text, JSON
from sqlalchemy.sql import func
from payout_engine.core.database import Base
from payout_engine.models.payee import PayeeClass
import enum


class UploadStatus(str, enum.Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class UploadBatch(Base):
    """Result record for one monthly upload attempt."""
    __tablename__ = "upload_batches"

    id = Column(Integer, primary_key=True, index=True)

    payee_class = Column(Enum(PayeeClass), nullable=False, index=True)
    month = Column(String, nullable=True, index=True)  # NULL when the batch was rejected before a month was known

    invoice_rows = Column(Integer, default=0)
    collection_rows = Column(Integer, default=0)
    adjustment_rows = Column(Integer, default=0)

    status = Column(Enum(UploadStatus), default=UploadStatus.PROCESSING, nullable=False)
    message = Column(Text, nullable=True)
    recalculated_months = Column(JSON, nullable=True)

    processing_started_at = Column(DateTime(timezone=True), nullable=True)
    processing_completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
