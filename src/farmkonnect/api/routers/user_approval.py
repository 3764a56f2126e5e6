from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timezone
from uuid import UUID
import logging

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import require_admin
from farmkonnect.api.models.user import User
from farmkonnect.api.schemas.user import (
    UserResponse,
    UserList,
    ApproveUserRequest,
    RejectUserRequest,
    BulkApproveRequest,
    BulkApproveResponse,
    AccountStatusUpdate,
    ApprovalStats,
)
from farmkonnect.api.services.audit import record_audit
from farmkonnect.api.services.email import (
    send_template,
    approval_email,
    rejection_email,
    account_status_email,
)
from farmkonnect.api.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


async def _list_by_status(db: AsyncSession, approval_status: str, page: int, page_size: int) -> UserList:
    total_result = await db.execute(
        select(func.count()).select_from(User).where(User.approval_status == approval_status)
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(User)
        .where(User.approval_status == approval_status)
        .order_by(User.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )

    return UserList(
        users=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


async def _get_user(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


def _approve(db: AsyncSession, user: User, admin: User, request: Request, notes=None) -> None:
    """Stage the approval of a pending user together with its audit entry"""
    user.approval_status = "approved"
    user.approved_by = admin.id
    user.approved_at = datetime.now(timezone.utc)
    record_audit(
        db,
        user_id=admin.id,
        entity_type="user",
        entity_id=user.id,
        action="approve",
        old_values={"approval_status": "pending"},
        new_values={"approval_status": "approved"},
        reason=notes,
        request=request,
    )


@router.get("/pending", response_model=UserList)
async def get_pending_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Users waiting for an approval decision, newest first"""
    return await _list_by_status(db, "pending", page, page_size)


@router.get("/approved", response_model=UserList)
async def get_approved_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _list_by_status(db, "approved", page, page_size)


@router.get("/rejected", response_model=UserList)
async def get_rejected_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _list_by_status(db, "rejected", page, page_size)


@router.get("/stats", response_model=ApprovalStats)
async def get_approval_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Number of users in each approval state"""
    result = await db.execute(
        select(User.approval_status, func.count()).group_by(User.approval_status)
    )
    counts = {row[0]: row[1] for row in result.all()}

    return ApprovalStats(
        pending=counts.get("pending", 0),
        approved=counts.get("approved", 0),
        rejected=counts.get("rejected", 0),
        total=sum(counts.values())
    )


@router.post("/approve", response_model=UserResponse)
async def approve_user(
    body: ApproveUserRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve a pending user

    Only pending users can be approved; repeating the call is refused with 409.
    The approval and its audit entry are committed together, then the user is
    emailed.
    """
    user = await _get_user(db, body.user_id)

    if user.approval_status != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User is already {user.approval_status}"
        )

    _approve(db, user, admin, request, notes=body.notes)
    await db.commit()
    await db.refresh(user)

    logger.info(f"User {user.id} approved by {admin.id}")
    await send_template(user.email, approval_email(user.name))

    return user


@router.post("/reject", response_model=UserResponse)
async def reject_user(
    body: RejectUserRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Reject a pending user with a reason that is stored and emailed to them"""
    user = await _get_user(db, body.user_id)

    if user.approval_status != "pending":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"User is already {user.approval_status}"
        )

    user.approval_status = "rejected"
    user.account_status_reason = body.reason
    record_audit(
        db,
        user_id=admin.id,
        entity_type="user",
        entity_id=user.id,
        action="reject",
        old_values={"approval_status": "pending"},
        new_values={"approval_status": "rejected"},
        reason=body.reason,
        request=request,
    )
    await db.commit()
    await db.refresh(user)

    logger.info(f"User {user.id} rejected by {admin.id}")
    await send_template(user.email, rejection_email(user.name, body.reason))

    return user


@router.post("/bulk-approve", response_model=BulkApproveResponse)
async def bulk_approve(
    body: BulkApproveRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve several users in one call

    Ids that are unknown or not pending are skipped rather than failing the
    whole batch.
    """
    approved = []
    skipped = []
    recipients = []

    for user_id in dict.fromkeys(body.user_ids):
        user = await db.get(User, user_id)
        if not user or user.approval_status != "pending":
            skipped.append(user_id)
            continue
        _approve(db, user, admin, request)
        approved.append(user_id)
        recipients.append((user.email, user.name))

    await db.commit()

    for email, name in recipients:
        await send_template(email, approval_email(name))

    logger.info(f"Bulk approval by {admin.id}: {len(approved)} approved, {len(skipped)} skipped")
    return BulkApproveResponse(approved=approved, skipped=skipped)


@router.post("/account-status", response_model=UserResponse)
async def update_account_status(
    body: AccountStatusUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Enable, disable or suspend an account"""
    if body.user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You cannot change your own account status"
        )

    user = await _get_user(db, body.user_id)
    previous = user.account_status
    if previous == body.status:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Account is already {previous}"
        )

    user.account_status = body.status
    user.account_status_reason = body.reason
    record_audit(
        db,
        user_id=admin.id,
        entity_type="user",
        entity_id=user.id,
        action="update",
        old_values={"account_status": previous},
        new_values={"account_status": body.status},
        reason=body.reason,
        request=request,
    )
    await db.commit()
    await db.refresh(user)

    await send_template(user.email, account_status_email(user.name, body.status, body.reason))

    return user
