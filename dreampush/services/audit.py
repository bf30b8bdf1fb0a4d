"""Audit logging helper functions for push pipeline events.

Standard JSON-ish single-line logs so they are easy to index.
"""
from __future__ import annotations
import logging
from typing import Optional, Any

from dreampush.utils.datetime import utc_now

_logger = logging.getLogger("dreampush.audit")


def _emit(event: str, user_id: Optional[str] = None, **data: Any):
    payload = {"ts": utc_now().isoformat(), "event": event}
    if user_id:
        payload["user_id"] = user_id
    payload.update(data)
    parts = [f"{k}={repr(v)}" for k,v in payload.items()]
    _logger.info("AUDIT " + " ".join(parts))


def _short(token: str) -> str:
    return token[:20] + "..." if len(token) > 20 else token

# Public convenience wrappers

def log_device_registered(user_id: str, token: str, platform: str, created: bool):
    _emit("device.register", user_id=user_id, token=_short(token), platform=platform, created=created)

def log_device_unregistered(user_id: str, token: str, found: bool):
    _emit("device.unregister", user_id=user_id, token=_short(token), found=found)

def log_token_deactivated(token: str, reason: str):
    _emit("device.deactivate", token=_short(token), reason=reason)

def log_notification_finished(user_id: str, notification_id: str, status: str, error: Optional[str] = None):
    _emit("push.finish", user_id=user_id, notification_id=notification_id, status=status, error=error)

def log_pass_completed(processed: int, succeeded: int, failed: int, skipped: int, errored: int):
    _emit("push.pass", processed=processed, succeeded=succeeded, failed=failed, skipped=skipped, errored=errored)

def log_pass_aborted(kind: str, error: str):
    _emit("push.pass_aborted", kind=kind, error=error)
