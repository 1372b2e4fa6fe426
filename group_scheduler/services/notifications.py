"""
Fire-and-forget notification fan-out.
"""

import logging
from typing import Any, Iterable, Optional
from uuid import UUID

from group_scheduler.integrations.base import Notifier

logger = logging.getLogger(__name__)


def notify_users(
    notifier: Notifier,
    user_ids: Iterable[UUID],
    event_id: UUID,
    kind: str,
    details: Optional[dict[str, Any]] = None,
) -> int:
    """
    Send one notification per user, never raising.

    Args:
        notifier: Delivery channel
        user_ids: Recipients
        event_id: Event the notification is about
        kind: Notification kind
        details: Extra payload

    Returns:
        Number of notifications handed to the notifier without error
    """
    delivered = 0
    for user_id in user_ids:
        try:
            notifier.notify(user_id, event_id, kind, details)
            delivered += 1
        except Exception as e:
            logger.warning(
                f"Notification {kind} for user {user_id} (event {event_id}) failed: {e}",
                exc_info=True,
            )
    return delivered
