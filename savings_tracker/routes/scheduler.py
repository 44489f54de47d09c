from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from savings_tracker.routes.deps import current_user

router = APIRouter()


@router.post("/scheduler/run")
def run_scheduler_now(request: Request, as_of: Optional[date] = Query(None)):
    """
    Manually trigger one materialization cycle.

    Query Parameters:
        as_of (optional): date to process, defaults to today. Re-running the
                          same date processes nothing new.
    """
    scheduler = request.app.state.scheduler
    result = scheduler.run_once(today=as_of)
    if result is None:
        return {"success": False, "error": "A processing cycle is already running"}
    return {"success": True, **result.to_dict()}


@router.get("/scheduler/status")
def scheduler_status(request: Request):
    return request.app.state.scheduler.status()


@router.get("/notifications/config")
def notification_config(request: Request):
    return request.app.state.notifier.describe()


@router.post("/notifications/test")
def notification_test(request: Request, user_id: str = Depends(current_user)):
    return request.app.state.notifier.test_notification(user_id)
