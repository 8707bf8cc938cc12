from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from payout_engine.core.database import get_db
from payout_engine.core.exceptions import DuplicatePayeeError, PayeeNotFoundError
from payout_engine.models.payee import PayeeClass
from payout_engine.schemas.payee import Payee, PayeeCreate, PayeePage, PayeeUpdate
from payout_engine.services.payees import PayeeService

router = APIRouter(prefix="/api/payees", tags=["payees"])


@router.get("", response_model=PayeePage)
def list_payees(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    payee_class: Optional[PayeeClass] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    return PayeeService(db).list(
        page=page, per_page=per_page, payee_class=payee_class, is_active=is_active
    )


@router.post("", response_model=Payee, status_code=status.HTTP_201_CREATED)
def create_payee(data: PayeeCreate, db: Session = Depends(get_db)):
    try:
        return PayeeService(db).create(data)
    except DuplicatePayeeError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.get("/{email}", response_model=Payee)
def get_payee(email: str, db: Session = Depends(get_db)):
    try:
        return PayeeService(db).get(email)
    except PayeeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{email}", response_model=Payee)
def update_payee(email: str, data: PayeeUpdate, db: Session = Depends(get_db)):
    """Replace a payee's rate schedule. Existing payouts are not recalculated."""
    try:
        return PayeeService(db).update(email, data)
    except PayeeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
