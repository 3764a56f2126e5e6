from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from farmkonnect.api.models.farm import Farm


def owned_farms_filter(user_id: str):
    """WHERE clause matching the caller's non-deleted farms"""
    return and_(
        Farm.farmer_user_id == UUID(user_id),
        Farm.deleted_at.is_(None)
    )


async def get_owned_farm(db: AsyncSession, farm_id: UUID, user_id: str) -> Farm:
    """
    Load a farm owned by the caller

    Raises:
        HTTPException: 404 when the farm is missing, deleted or someone else's
    """
    result = await db.execute(
        select(Farm).where(
            and_(
                Farm.id == farm_id,
                owned_farms_filter(user_id)
            )
        )
    )
    farm = result.scalar_one_or_none()

    if not farm:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Farm not found"
        )

    return farm


def owned_farm_ids(user_id: str):
    """Subquery of the caller's farm ids, for joins in bulk operations"""
    return select(Farm.id).where(owned_farms_filter(user_id))
