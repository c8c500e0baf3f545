import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_api.core.auth_dependency import get_db, get_current_user_obj
from finance_api.db.base import utcnow
from finance_api.db.models.sync_job import SyncJob
from finance_api.db.models.user import User
from finance_api.schemas.finance import SyncRequest, SyncJobResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"])


@router.post("/jobs", status_code=status.HTTP_201_CREATED, response_model=SyncJobResponse)
def record_sync_job(
    payload: Optional[SyncRequest] = None,
    user: User = Depends(get_current_user_obj),
    db: Session = Depends(get_db)
):
    """Record a finished client synchronisation."""
    payload = payload or SyncRequest()
    now = utcnow()
    try:
        job = SyncJob(user_id=user.id, origin=payload.origin, started_at=now, finished_at=now, status="ok")
        db.add(job)
        db.commit()
        db.refresh(job)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to record sync job: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to record sync job")

    logger.info(f"Sync job recorded: job_id={job.id}, user_id={user.id}, origin={job.origin}")
    return SyncJobResponse.model_validate(job)
