from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id
from farmkonnect.api.models.farm import Farm
from farmkonnect.api.schemas.farm import FarmCreate, FarmUpdate, FarmResponse, FarmList
from farmkonnect.api.services.farms import get_owned_farm, owned_farms_filter
from farmkonnect.api.config import settings

router = APIRouter()


@router.get("/", response_model=FarmList)
async def list_farms(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    farm_type: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """List the authenticated user's farms"""
    query = select(Farm).where(owned_farms_filter(user_id))
    count_query = select(func.count()).select_from(Farm).where(owned_farms_filter(user_id))
    if farm_type:
        query = query.where(Farm.farm_type == farm_type)
        count_query = count_query.where(Farm.farm_type == farm_type)

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        query.order_by(Farm.farm_name).offset(offset).limit(page_size)
    )

    return FarmList(
        farms=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{farm_id}", response_model=FarmResponse)
async def get_farm(
    farm_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    return await get_owned_farm(db, farm_id, user_id)


@router.post("/", response_model=FarmResponse, status_code=status.HTTP_201_CREATED)
async def create_farm(
    farm_data: FarmCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Create a farm owned by the authenticated user"""
    farm = Farm(farmer_user_id=UUID(user_id), **farm_data.model_dump())

    db.add(farm)
    await db.commit()
    await db.refresh(farm)

    return farm


@router.put("/{farm_id}", response_model=FarmResponse)
async def update_farm(
    farm_id: UUID,
    farm_data: FarmUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Update the provided fields of a farm"""
    farm = await get_owned_farm(db, farm_id, user_id)

    for field, value in farm_data.model_dump(exclude_unset=True).items():
        setattr(farm, field, value)

    await db.commit()
    await db.refresh(farm)

    return farm


@router.delete("/{farm_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_farm(
    farm_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Soft-delete a farm

    The farm and everything scoped to it disappear from the API but the rows
    are kept for financial history.
    """
    farm = await get_owned_farm(db, farm_id, user_id)
    farm.deleted_at = datetime.now(timezone.utc)
    await db.commit()
