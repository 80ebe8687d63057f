"""
Health check endpoint for deployment monitoring.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ayahfind.core.auth_dependency import get_db
from ayahfind.core.security import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

API_VERSION = "1.0.0"


@router.get("")
def health_check(db: Session = Depends(get_db)):
    """
    Returns 200 while the process is up; status is "degraded" when the
    database cannot be reached.
    """
    status = "healthy"

    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        db_status = "error"
        status = "degraded"

    return {
        "status": status,
        "timestamp": utcnow().isoformat(),
        "database": db_status,
        "version": API_VERSION,
        "service": "AyahFind API",
    }
