from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, update
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id
from farmkonnect.api.models.notification import PushSubscription, NotificationLog
from farmkonnect.api.schemas.notification import (
    PushSubscribeRequest,
    UnsubscribeRequest,
    PushSubscriptionResponse,
    VapidKeyResponse,
    DeliveryResult,
    NotificationResponse,
    NotificationList,
    UnreadCount,
)
from farmkonnect.api.services.push import PushService
from farmkonnect.api.config import settings

router = APIRouter()


async def _get_own_notification(db: AsyncSession, notification_id: UUID, user_id: str) -> NotificationLog:
    result = await db.execute(
        select(NotificationLog).where(
            and_(
                NotificationLog.id == notification_id,
                NotificationLog.user_id == UUID(user_id)
            )
        )
    )
    notification = result.scalar_one_or_none()

    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )

    return notification


@router.get("/vapid-public-key", response_model=VapidKeyResponse)
async def get_vapid_public_key():
    """Application server key the browser needs to subscribe"""
    return VapidKeyResponse(public_key=settings.VAPID_PUBLIC_KEY)


@router.post("/subscribe", response_model=PushSubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def subscribe(
    body: PushSubscribeRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Register a browser push subscription

    Endpoints are unique; re-subscribing an existing endpoint reactivates it
    for the caller with the new keys.
    """
    result = await db.execute(
        select(PushSubscription).where(PushSubscription.endpoint == body.endpoint)
    )
    subscription = result.scalar_one_or_none()

    if subscription:
        subscription.user_id = UUID(user_id)
        subscription.p256dh = body.keys.p256dh
        subscription.auth = body.keys.auth
        subscription.user_agent = body.user_agent
        subscription.is_active = True
    else:
        subscription = PushSubscription(
            user_id=UUID(user_id),
            endpoint=body.endpoint,
            p256dh=body.keys.p256dh,
            auth=body.keys.auth,
            user_agent=body.user_agent,
            is_active=True,
        )
        db.add(subscription)

    await db.commit()
    await db.refresh(subscription)

    return subscription


@router.post("/unsubscribe", status_code=status.HTTP_204_NO_CONTENT)
async def unsubscribe(
    body: UnsubscribeRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        update(PushSubscription)
        .where(
            and_(
                PushSubscription.endpoint == body.endpoint,
                PushSubscription.user_id == UUID(user_id)
            )
        )
        .values(is_active=False)
    )
    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found"
        )
    await db.commit()


@router.get("/subscriptions", response_model=list[PushSubscriptionResponse])
async def list_subscriptions(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(PushSubscription)
        .where(PushSubscription.user_id == UUID(user_id))
        .order_by(PushSubscription.created_at.desc())
    )
    return result.scalars().all()


@router.post("/test", response_model=DeliveryResult)
async def send_test_notification(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Push a test notification to all of the caller's browsers"""
    return await PushService().send_to_user(
        db,
        UUID(user_id),
        title="FarmKonnect test notification",
        body="Push notifications are working.",
        notification_type="test",
    )


@router.get("/history", response_model=NotificationList)
async def get_notification_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    unread_only: bool = False,
    notification_type: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    filters = [NotificationLog.user_id == UUID(user_id)]
    if unread_only:
        filters.append(NotificationLog.is_read.is_(False))
    if notification_type:
        filters.append(NotificationLog.notification_type == notification_type)

    total_result = await db.execute(
        select(func.count()).select_from(NotificationLog).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(NotificationLog)
        .where(and_(*filters))
        .order_by(NotificationLog.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )

    return NotificationList(
        notifications=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/unread-count", response_model=UnreadCount)
async def get_unread_count(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(func.count()).select_from(NotificationLog).where(
            and_(
                NotificationLog.user_id == UUID(user_id),
                NotificationLog.is_read.is_(False)
            )
        )
    )
    return UnreadCount(unread=result.scalar() or 0)


@router.post("/read-all", response_model=UnreadCount)
async def mark_all_as_read(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await db.execute(
        update(NotificationLog)
        .where(
            and_(
                NotificationLog.user_id == UUID(user_id),
                NotificationLog.is_read.is_(False)
            )
        )
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    await db.commit()
    return UnreadCount(unread=0)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    notification = await _get_own_notification(db, notification_id, user_id)

    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(notification)

    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    notification = await _get_own_notification(db, notification_id, user_id)
    await db.delete(notification)
    await db.commit()
