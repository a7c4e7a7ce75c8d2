from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from grievance.core.db import get_db
from grievance.models.ticket import StatusHistory
from grievance.schemas.ticket import StatusHistoryResponse

router = APIRouter(prefix="/history", tags=["History"])

@router.get("", response_model=List[StatusHistoryResponse])
def get_status_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ticket_code: Optional[str] = None,
    changed_by: Optional[str] = None,
    new_status: Optional[str] = None,
    is_automatic: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    """
    Retrieve status history rows, newest first, with optional filtering.
    """
    query = db.query(StatusHistory)

    if ticket_code is not None:
        query = query.filter(StatusHistory.ticket_code == ticket_code)
    if changed_by is not None:
        query = query.filter(StatusHistory.changed_by == changed_by)
    if new_status is not None:
        query = query.filter(StatusHistory.new_status == new_status)
    if is_automatic is not None:
        query = query.filter(StatusHistory.is_automatic.is_(is_automatic))

    return query.order_by(StatusHistory.changed_at.desc(), StatusHistory.id.desc()).offset(skip).limit(limit).all()
