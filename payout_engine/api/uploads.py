from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from payout_engine.core.database import get_db
from payout_engine.core.exceptions import PayoutEngineError
from payout_engine.models.payee import PayeeClass
from payout_engine.models.upload import UploadBatch
from payout_engine.schemas.upload import UploadBatchIn, UploadBatchInDB, UploadResult
from payout_engine.services.ingestion import IngestionService

router = APIRouter(prefix="/api/uploads", tags=["uploads"])


@router.post("", response_model=UploadResult)
def upload_monthly_data(batch: UploadBatchIn, db: Session = Depends(get_db)):
    """
    Process one month of invoices and collections for a payee class.
    Negative invoice rows are corrections against earlier deals.
    """
    service = IngestionService(db)
    try:
        record = service.process_batch(batch)
    except PayoutEngineError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return UploadResult(
        id=record.id,
        success=True,
        message=record.message,
        month=record.month,
        status=record.status,
        invoice_rows=record.invoice_rows,
        collection_rows=record.collection_rows,
        adjustment_rows=record.adjustment_rows,
        recalculated_months=record.recalculated_months or [],
    )


@router.get("", response_model=List[UploadBatchInDB])
def list_uploads(
    payee_class: Optional[PayeeClass] = None,
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Upload history, newest first"""
    query = db.query(UploadBatch)
    if payee_class:
        query = query.filter(UploadBatch.payee_class == payee_class)
    return query.order_by(UploadBatch.id.desc()).limit(limit).all()


@router.get("/{upload_id}", response_model=UploadBatchInDB)
def get_upload(upload_id: int, db: Session = Depends(get_db)):
    record = db.query(UploadBatch).filter(UploadBatch.id == upload_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Upload not found")
    return record
