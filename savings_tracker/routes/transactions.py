import datetime as dt
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from savings_tracker.models.domain import NotFoundError
from savings_tracker.routes.deps import current_user, get_conn
from savings_tracker.services.forecast_dto import CalendarEntryDTO
from savings_tracker.services.forecast_service import upcoming_occurrences
from savings_tracker.services.transaction_service import (
    add_transaction,
    delete_transaction,
    get_all_transactions,
    update_transaction,
)

router = APIRouter()

VIRTUAL_PREFIX = "projected-"


class TransactionCreate(BaseModel):
    pot_id: str
    amount: float
    date: dt.date
    description: Optional[str] = None
    recurrence: str = "none"


class TransactionUpdate(BaseModel):
    pot_id: Optional[str] = None
    amount: Optional[float] = None
    date: Optional[dt.date] = None
    description: Optional[str] = None
    recurrence: Optional[str] = None


def _tx_json(tx):
    data = asdict(tx)
    data["date"] = tx.date.isoformat()
    data["created_at"] = tx.created_at.isoformat() if tx.created_at else None
    data["is_recurring_origin"] = tx.is_recurring_origin
    return data


def _reject_virtual(transaction_id):
    if transaction_id.startswith(VIRTUAL_PREFIX):
        raise HTTPException(status_code=400, detail="Projected occurrences cannot be edited or deleted")


# -------------------------
# READ TRANSACTIONS
# -------------------------

@router.get("/transactions")
def get_transactions(
    pot_id: Optional[str] = None,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    user_id: str = Depends(current_user),
    conn=Depends(get_conn),
):
    txs = get_all_transactions(conn, user_id=user_id, pot_id=pot_id,
                               start_date=start_date, end_date=end_date)
    return {"transactions": [_tx_json(t) for t in txs]}


@router.get("/calendar")
def get_calendar(
    as_of: Optional[dt.date] = Query(None),
    user_id: str = Depends(current_user),
    conn=Depends(get_conn),
):
    """
    Real transactions plus projected recurring occurrences.

    Projected entries carry ``kind="virtual"`` and ``editable=false``.
    """
    entries = upcoming_occurrences(conn, user_id, today=as_of)
    return {"transactions": [asdict(CalendarEntryDTO.from_entry(e)) for e in entries]}


# -------------------------
# WRITE TRANSACTIONS
# -------------------------

@router.post("/transactions", status_code=201)
def create_transaction(payload: TransactionCreate, user_id: str = Depends(current_user), conn=Depends(get_conn)):
    try:
        tx = add_transaction(conn, user_id=user_id, **payload.dict())
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _tx_json(tx)


@router.put("/transactions/{transaction_id}")
def edit_transaction(transaction_id: str, payload: TransactionUpdate,
                     user_id: str = Depends(current_user), conn=Depends(get_conn)):
    _reject_virtual(transaction_id)
    try:
        tx = update_transaction(conn, transaction_id, user_id, **payload.dict(exclude_unset=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _tx_json(tx)


@router.delete("/transactions/{transaction_id}")
def remove_transaction(transaction_id: str, user_id: str = Depends(current_user), conn=Depends(get_conn)):
    _reject_virtual(transaction_id)
    try:
        delete_transaction(conn, transaction_id, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "Transaction deleted successfully"}
