"""Best-effort notifications for ledger events.

Delivery (email, messaging) lives outside the engine. A failed
notification is logged and recorded, never raised back into the
operation that triggered it.
"""

import logging
from pathlib import Path
from typing import Any, Protocol

from ..db.repositories import NotificationLogRepository

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(
        self, kind: str, user_id: str | None, subject: str, payload: dict[str, Any]
    ) -> None: ...


class LoggingNotifier:
    """Default notifier that only writes to the log."""

    async def send(
        self, kind: str, user_id: str | None, subject: str, payload: dict[str, Any]
    ) -> None:
        logger.info("Notification %s for user %s: %s", kind, user_id, subject)


async def notify_safely(
    notifier: Notifier,
    kind: str,
    user_id: str | None,
    subject: str,
    payload: dict[str, Any] | None = None,
    db_path: Path | None = None,
) -> bool:
    """Send a notification and record the outcome.

    Returns:
        True if the notifier accepted the message
    """
    log_repo = NotificationLogRepository(db_path)
    try:
        await notifier.send(kind, user_id, subject, payload or {})
    except Exception as e:
        logger.exception("Notification %s for user %s failed", kind, user_id)
        await _record(log_repo, kind, user_id, subject, "failed", str(e))
        return False

    await _record(log_repo, kind, user_id, subject, "sent")
    return True


async def _record(
    log_repo: NotificationLogRepository,
    kind: str,
    user_id: str | None,
    subject: str,
    status: str,
    error_message: str | None = None,
) -> None:
    try:
        await log_repo.create(
            kind, subject, status, user_id=user_id, error_message=error_message
        )
    except Exception:
        logger.exception("Could not record notification outcome for %s", kind)
