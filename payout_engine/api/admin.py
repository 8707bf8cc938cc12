import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from payout_engine.core.database import get_db
from payout_engine.core.exceptions import PayoutEngineError
from payout_engine.services.purge import PurgeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/purge")
def purge_unlocked_months(month: Optional[str] = None, db: Session = Depends(get_db)):
    """
    Delete invoices, collections, summaries and payouts from ``month`` onward
    (defaults to the configured last locked month).
    """
    try:
        return PurgeService(db).purge_since(month)
    except PayoutEngineError as e:
        raise HTTPException(status_code=400, detail=str(e))
