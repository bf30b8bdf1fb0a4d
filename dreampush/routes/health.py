"""
Health check and monitoring endpoints.
"""
import time
import logging
from fastapi import APIRouter
from dreampush.db import check_database_health
from dreampush.core.settings import settings
from dreampush.exceptions import ConfigurationError
from dreampush.services.credentials import load_service_account

logger = logging.getLogger("dreampush.health")
router = APIRouter()

@router.get("")
def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.environment,
        "version": "1.0.0"
    }

@router.get("/ready")
def readiness_check():
    """Kubernetes-style readiness probe: database reachable and push credential parseable."""
    db_health = check_database_health()
    if db_health["status"] != "healthy":
        return {"status": "not_ready", "reason": "database_unavailable"}

    try:
        account = load_service_account()
    except ConfigurationError as e:
        logger.warning(f"Readiness: push credential not usable: {e}")
        return {"status": "not_ready", "reason": "push_credential_missing"}

    return {"status": "ready", "project_id": account.project_id}
