"""
Web Push delivery

One attempt per active subscription, no retries and no queueing. Push
services answering 404 or 410 mean the browser dropped the subscription, so
it is deactivated.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi.concurrency import run_in_threadpool
from pywebpush import webpush, WebPushException
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from farmkonnect.api.config import settings
from farmkonnect.api.models.notification import PushSubscription, NotificationLog
from farmkonnect.utils.logger import get_logger

logger = get_logger(__name__)

GONE_STATUS_CODES = (404, 410)


def build_payload(
    title: str,
    body: str,
    tag: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    require_interaction: bool = False
) -> Dict[str, Any]:
    """Notification payload understood by the service worker"""
    return {
        "title": title,
        "body": body,
        "icon": "/icon-192x192.png",
        "badge": "/badge-72x72.png",
        "tag": tag or "farmkonnect",
        "requireInteraction": require_interaction,
        "data": data or {},
    }


class PushService:
    """Sends web push notifications to a user's browsers"""

    def __init__(
        self,
        private_key: Optional[str] = None,
        subject: Optional[str] = None,
        sender=None
    ):
        self.private_key = private_key if private_key is not None else settings.VAPID_PRIVATE_KEY
        self.subject = subject or settings.VAPID_SUBJECT
        self.sender = sender or webpush

    @property
    def configured(self) -> bool:
        return bool(self.private_key)

    def _send_one(self, subscription: PushSubscription, payload: Dict[str, Any]) -> None:
        self.sender(
            subscription_info={
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            data=json.dumps(payload),
            vapid_private_key=self.private_key,
            vapid_claims={"sub": self.subject},
        )

    async def send_to_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        title: str,
        body: str,
        notification_type: str = "general",
        data: Optional[Dict[str, Any]] = None,
        require_interaction: bool = False
    ) -> Dict[str, int]:
        """
        Deliver a notification to every active subscription of a user

        Writes one NotificationLog row describing the outcome and commits.

        Returns:
            {"sent": n, "failed": m}
        """
        result = await db.execute(
            select(PushSubscription).where(
                and_(
                    PushSubscription.user_id == user_id,
                    PushSubscription.is_active.is_(True)
                )
            )
        )
        subscriptions = result.scalars().all()

        sent = 0
        failed = 0
        errors = []

        if not self.configured:
            errors.append("Push service not configured")
            logger.warning(f"Push to user {user_id} skipped: VAPID keys not configured")
        elif not subscriptions:
            errors.append("No active subscriptions")
        else:
            payload = build_payload(title, body, tag=notification_type, data=data,
                                    require_interaction=require_interaction)
            for subscription in subscriptions:
                try:
                    await run_in_threadpool(self._send_one, subscription, payload)
                    subscription.last_used = datetime.now(timezone.utc)
                    sent += 1
                except WebPushException as e:
                    failed += 1
                    status_code = getattr(e.response, "status_code", None)
                    if status_code in GONE_STATUS_CODES:
                        subscription.is_active = False
                        logger.info(f"Deactivated expired push subscription {subscription.id}")
                    else:
                        logger.error(f"Push delivery to subscription {subscription.id} failed: {e}")
                    errors.append(str(e))
                except Exception as e:
                    failed += 1
                    logger.error(f"Push delivery to subscription {subscription.id} failed: {e}")
                    errors.append(str(e))

        db.add(NotificationLog(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=body,
            channel="push",
            delivery_status="sent" if sent else "failed",
            delivery_error="; ".join(errors)[:2000] if errors else None,
            sent_at=datetime.now(timezone.utc) if sent else None,
        ))
        await db.commit()

        logger.info(f"Push to user {user_id}: {sent} sent, {failed} failed")
        return {"sent": sent, "failed": failed}


async def notify_user(db: AsyncSession, user_id: UUID, title: str, body: str, **kwargs) -> Dict[str, int]:
    """
    Best-effort push used by domain workflows

    Unexpected errors are logged, never raised.
    """
    try:
        return await PushService().send_to_user(db, user_id, title, body, **kwargs)
    except Exception as e:
        logger.error(f"Notification to user {user_id} failed: {e}")
        await db.rollback()
        return {"sent": 0, "failed": 0}
