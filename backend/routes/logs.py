# backend/routes/logs.py
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database import get_db
from models.log import Log
from models.users import User
from schemas.log import LogOut, LogPage
from utils.tokenJWT import admin_required

router = APIRouter(prefix="/logs", tags=["Logs"])


def _log_to_out(entry: Log) -> LogOut:
    out = LogOut.model_validate(entry)
    out.user_name = entry.user.name if entry.user else None
    return out


# Audit trail browser (Admin only), newest first
@router.get("", response_model=LogPage)
def list_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Substring of the action, e.g. REVIEW"),
    resource: Optional[str] = Query(None, description="reviews, locations, users, auth or profile"),
    resource_id: Optional[int] = Query(None, description="Id of the affected record"),
    user_id: Optional[int] = Query(None, description="Acting user"),
    status: Optional[str] = Query(None, description="SUCCESS or FAIL"),
    date_from: Optional[date] = Query(None, description="First day, inclusive"),
    date_to: Optional[date] = Query(None, description="Last day, inclusive"),
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required),
):
    if date_from and date_to and date_from > date_to:
        raise HTTPException(status_code=400, detail="date_from must not be after date_to")

    query = db.query(Log)

    if action:
        query = query.filter(Log.action.ilike(f"%{action}%"))
    if resource:
        query = query.filter(Log.resource == resource.lower())
    if resource_id is not None:
        query = query.filter(Log.resource_id == resource_id)
    if user_id is not None:
        query = query.filter(Log.user_id == user_id)
    if status:
        query = query.filter(Log.status == status.upper())
    if date_from:
        query = query.filter(Log.ts >= datetime.combine(date_from, time.min, tzinfo=timezone.utc))
    if date_to:
        # Whole last day
        query = query.filter(Log.ts < datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=timezone.utc))

    total = query.count()
    entries = (
        query.order_by(Log.ts.desc(), Log.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    return {
        "items": [_log_to_out(e) for e in entries],
        "total": total,
        "page": page,
        "page_size": page_size,
    }
