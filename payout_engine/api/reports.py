from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from payout_engine.core.database import get_db
from payout_engine.core.exceptions import PayeeNotFoundError, PayoutEngineError
from payout_engine.models.payee import PayeeClass
from payout_engine.services.reporting import ReportingService

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/payees/{email}/years/{year}")
def yearly_overview(email: str, year: int, db: Session = Depends(get_db)):
    """Invoiced, collected and paid out per month of a year"""
    if year < 1900 or year > 9999:
        raise HTTPException(status_code=400, detail="Invalid year")
    try:
        return ReportingService(db).yearly_overview(email, year)
    except PayeeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/payees/{email}/months/{month}")
def month_details(email: str, month: str, db: Session = Depends(get_db)):
    """
    Invoices, collections and payouts disbursed in a month.
    Month format: YYYY-MM
    """
    try:
        return ReportingService(db).month_details(email, month)
    except PayeeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PayoutEngineError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/payouts/{month}")
def payouts_by_month(
    month: str,
    payee_class: Optional[PayeeClass] = None,
    db: Session = Depends(get_db)
):
    """All payouts disbursed in a month with the collections that funded them"""
    try:
        return ReportingService(db).payouts_by_month(month, payee_class)
    except PayoutEngineError as e:
        raise HTTPException(status_code=400, detail=str(e))
