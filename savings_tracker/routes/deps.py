from fastapi import Depends, Header, HTTPException, Request

from savings_tracker.db import get_db
from savings_tracker.repositories.users_repository import get_user


def get_conn(request: Request):
    """One DuckDB connection per request, closed afterwards."""
    conn = get_db(request.app.state.config.database_path)
    try:
        yield conn
    finally:
        conn.close()


def current_user(x_user_id: str = Header(...), conn=Depends(get_conn)) -> str:
    # session handling lives in front of this service; we only resolve the id
    user = get_user(conn, x_user_id.strip().lower())
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user["id"]
