"""Queue processing: pending rows -> fan-out -> terminal status.

The outcome rules live in ``resolve_outcome``/``build_terminal_updates``,
which do no I/O. ``QueueProcessor.run_pass`` is the imperative shell that
mints the access token, reads the batch, dispatches and writes statuses.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import httpx
from sqlalchemy.orm import Session

from dreampush.core.settings import settings
from dreampush.exceptions import PushPipelineError, StorageError
from dreampush.models.push_notification_queue import QueueStatus
from dreampush.schemas.push_notification import ProcessResult
from dreampush.services import audit
from dreampush.services.credentials import (
    AccessTokenProvider,
    CredentialMinter,
    ServiceAccount,
    load_service_account,
)
from dreampush.services.device_registry import DeviceTokenRegistry
from dreampush.services.notification_queue import NotificationQueue
from dreampush.services.push_notification import (
    DispatchResult,
    FcmGateway,
    PushNotificationService,
)
from dreampush.utils.datetime import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalUpdate:
    notification_id: str
    status: QueueStatus
    at: datetime
    error: Optional[str] = None


def resolve_outcome(result: DispatchResult, now: datetime) -> TerminalUpdate:
    """``sent`` if any device accepted the push, otherwise ``failed``."""
    if result.delivered:
        return TerminalUpdate(result.notification_id, QueueStatus.sent, now)
    return TerminalUpdate(result.notification_id, QueueStatus.failed, now, result.error_text)


def build_terminal_updates(now: datetime, results: Iterable[DispatchResult]) -> List[TerminalUpdate]:
    return [resolve_outcome(r, now) for r in results]


class QueueProcessor:
    """Runs one bounded processing pass over ``push_notification_queue``."""

    def __init__(
        self,
        db: Session,
        token_provider: AccessTokenProvider,
        gateway: Optional[FcmGateway] = None,
        batch_size: Optional[int] = None,
        max_workers: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.token_provider = token_provider
        self.gateway = gateway or FcmGateway(token_provider.project_id)
        self.batch_size = batch_size or settings.push_batch_size
        self.queue = NotificationQueue(db)
        self.registry = DeviceTokenRegistry(db)
        self.dispatcher = PushNotificationService(
            self.registry,
            self.gateway,
            bearer=token_provider.bearer,
            max_workers=max_workers,
        )
        self._clock = clock

    def run_pass(self) -> ProcessResult:
        """Process up to ``batch_size`` pending notifications.

        Raises ``PushPipelineError`` when the pass cannot run at all
        (credentials, queue read). Per-notification problems are counted and
        the loop carries on.
        """
        # Fresh token per pass, before anything is read or written
        self.token_provider.force_refresh()

        batch = self.queue.list_pending(self.batch_size)
        counters = ProcessResult()
        if not batch:
            logger.info("No pending notifications")
            return counters

        # Ids only: every commit below expires the loaded rows
        batch_ids = [n.id for n in batch]
        for notification_id in batch_ids:
            counters.processed += 1
            try:
                notification = self.queue.get_pending(notification_id)
                if notification is None:
                    counters.skipped += 1
                    logger.info(f"Notification {notification_id} no longer pending, skipped")
                    continue
                user_id = notification.user_id
                result = self.dispatcher.dispatch(notification)
                update = resolve_outcome(result, self._clock())
                if update.status == QueueStatus.sent:
                    applied = self.queue.mark_sent(notification_id, update.at)
                else:
                    applied = self.queue.mark_failed(notification_id, update.error, update.at)
            except StorageError as e:
                self.db.rollback()
                counters.errored += 1
                logger.error(f"Storage error on notification {notification_id}, left pending: {e}")
                continue

            if not applied:
                counters.skipped += 1
                logger.info(f"Notification {notification_id} already claimed by another pass")
                continue

            if update.status == QueueStatus.sent:
                counters.succeeded += 1
            else:
                counters.failed += 1
            audit.log_notification_finished(user_id, notification_id, update.status.value, update.error)

        audit.log_pass_completed(
            counters.processed, counters.succeeded, counters.failed, counters.skipped, counters.errored
        )
        return counters


def process_pending_notifications(
    db: Session,
    account: Optional[ServiceAccount] = None,
    http_client: Optional[httpx.Client] = None,
    batch_size: Optional[int] = None,
) -> ProcessResult:
    """Build the pipeline from configuration and run a single pass.

    Configuration problems surface as ``ConfigurationError`` before the
    queue is touched.
    """
    try:
        account = account or load_service_account()
        provider = AccessTokenProvider(CredentialMinter(account, http_client=http_client))
        gateway = FcmGateway(account.project_id, http_client=http_client)
        try:
            return QueueProcessor(db, provider, gateway=gateway, batch_size=batch_size).run_pass()
        finally:
            gateway.close()
    except PushPipelineError as e:
        logger.error(f"Push processing pass aborted ({e.kind.value}): {e.message}")
        audit.log_pass_aborted(e.kind.value, e.message)
        raise
