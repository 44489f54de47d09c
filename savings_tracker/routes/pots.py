import logging
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from savings_tracker.models.domain import NotFoundError
from savings_tracker.models.projection_dto import SavingsProjectionForecast
from savings_tracker.repositories.transactions_repository import get_recurring_rules
from savings_tracker.repositories.users_repository import list_users
from savings_tracker.routes.deps import current_user, get_conn
from savings_tracker.services.forecast_dto import ProjectionResponseDTO
from savings_tracker.services.pot_service import create_pot, delete_pot, get_pot, list_pots, update_pot
from savings_tracker.services.projection_service import describe_recurring_commitment, load_projections, project
from savings_tracker.services.transaction_service import check_balance_invariant, recalculate_pot_total

router = APIRouter()


class PotCreate(BaseModel):
    name: str
    current_total: float = 0.0
    color: Optional[str] = None
    description: Optional[str] = None
    target_amount: Optional[float] = None
    interest_rate: Optional[float] = None


class PotUpdate(BaseModel):
    name: Optional[str] = None
    current_total: Optional[float] = None
    color: Optional[str] = None
    description: Optional[str] = None
    target_amount: Optional[float] = None
    interest_rate: Optional[float] = None


def _pot_json(pot):
    data = asdict(pot)
    data["created_at"] = pot.created_at.isoformat() if pot.created_at else None
    data["updated_at"] = pot.updated_at.isoformat() if pot.updated_at else None
    return data


@router.get("/users")
def get_users(conn=Depends(get_conn)):
    return {"users": list_users(conn)}


@router.get("/pots")
def get_pots(user_id: str = Depends(current_user), conn=Depends(get_conn)):
    return {"pots": [_pot_json(p) for p in list_pots(conn, user_id=user_id)]}


@router.post("/pots", status_code=201)
def add_pot(payload: PotCreate, user_id: str = Depends(current_user), conn=Depends(get_conn)):
    try:
        pot = create_pot(conn, user_id=user_id, **payload.dict())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _pot_json(pot)


@router.put("/pots/{pot_id}")
def edit_pot(pot_id: str, payload: PotUpdate, user_id: str = Depends(current_user), conn=Depends(get_conn)):
    try:
        pot = update_pot(conn, pot_id, user_id, **payload.dict(exclude_unset=True))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _pot_json(pot)


@router.delete("/pots/{pot_id}")
def remove_pot(pot_id: str, user_id: str = Depends(current_user), conn=Depends(get_conn)):
    try:
        delete_pot(conn, pot_id, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"message": "Pot deleted successfully"}


@router.get("/pots/{pot_id}/balance-check")
def balance_check(pot_id: str, user_id: str = Depends(current_user), conn=Depends(get_conn)):
    try:
        get_pot(conn, pot_id, user_id=user_id)
        return check_balance_invariant(conn, pot_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/pots/{pot_id}/recalculate")
def recalculate(pot_id: str, user_id: str = Depends(current_user), conn=Depends(get_conn)):
    try:
        get_pot(conn, pot_id, user_id=user_id)
        return {"pot_id": pot_id, "current_total": recalculate_pot_total(conn, pot_id)}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/pots/{pot_id}/projection")
def get_pot_projection(
    pot_id: str,
    months_ahead: int = Query(12, le=120),
    as_of: Optional[date] = Query(None),
    user_id: str = Depends(current_user),
    conn=Depends(get_conn),
):
    """
    Month-by-month projection for one pot.

    Query Parameters:
        months_ahead: future months after the current one (default 12).
        as_of (optional): reference date, defaults to today.
    """
    try:
        pot = get_pot(conn, pot_id, user_id=user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        rules = get_recurring_rules(conn, pot_id=pot_id)
        forecast = project(pot, rules, months_ahead, today=as_of)
    except Exception as e:
        logging.error(f"Projection load failed for pot {pot_id}: {e}")
        rules, forecast = [], SavingsProjectionForecast(pot_id=pot_id)

    return {
        **asdict(ProjectionResponseDTO.from_forecast(forecast)),
        "summary": describe_recurring_commitment(rules),
    }


@router.get("/projections")
def get_projections(
    months_ahead: int = Query(12, le=120),
    as_of: Optional[date] = Query(None),
    user_id: str = Depends(current_user),
    conn=Depends(get_conn),
):
    result = load_projections(conn, user_id, months_ahead, today=as_of)
    return {
        "pots": [_pot_json(p) for p in result["pots"]],
        "projections": [asdict(ProjectionResponseDTO.from_forecast(f)) for f in result["projections"]],
        "summary": result.get("summary"),
    }
