"""Scheduled tasks endpoint for cron jobs (Cloud Scheduler).

These endpoints are meant to be called by Cloud Scheduler or a similar
cron service to drain the push notification queue.
"""

from fastapi import APIRouter, Depends, HTTPException, Header
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

import httpx

from dreampush.core.settings import settings
from dreampush.db import get_db
from dreampush.exceptions import PushPipelineError
from dreampush.services.queue_processor import process_pending_notifications

logger = logging.getLogger(__name__)
router = APIRouter()

# Secret token for cron job authentication
# Set CRON_SECRET in environment to secure these endpoints
CRON_SECRET = settings.cron_secret


def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)):
    """Verify the cron secret header for scheduled job authentication."""
    if x_cron_secret != CRON_SECRET:
        raise HTTPException(status_code=403, detail="Invalid cron secret")
    return True


def get_push_http_client() -> Optional[httpx.Client]:
    """HTTP client for the token endpoint and FCM; None builds one per pass."""
    return None


@router.post("/process-push-queue")
def process_push_queue(
    db: Session = Depends(get_db),
    http_client: Optional[httpx.Client] = Depends(get_push_http_client),
    _verified: bool = Depends(verify_cron_secret)
):
    """Run one processing pass over pending push notifications.

    Example Cloud Scheduler config:
    - Schedule: * * * * * (every minute)
    - Target: POST https://api.example.com/scheduled/process-push-queue
    - Headers: X-Cron-Secret: <your-secret>
    """
    try:
        result = process_pending_notifications(db, http_client=http_client)
    except PushPipelineError as e:
        return JSONResponse(status_code=500, content=e.to_dict())

    logger.info(f"Push queue pass: {result.model_dump()}")
    return {"message": result.message, **result.model_dump()}
