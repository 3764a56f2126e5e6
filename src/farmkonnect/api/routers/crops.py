from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from typing import Optional
from uuid import UUID

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id, require_admin
from farmkonnect.api.models.crop import Crop, CropCycle, SoilTest, YieldRecord
from farmkonnect.api.models.farm import Farm
from farmkonnect.api.models.user import User
from farmkonnect.api.schemas.crop import (
    CropCreate,
    CropResponse,
    CropList,
    CropCycleCreate,
    CropCycleUpdate,
    CropCycleResponse,
    CropCycleList,
    SoilTestCreate,
    SoilTestResponse,
    SoilTestList,
    YieldCreate,
    YieldResponse,
    YieldList,
)
from farmkonnect.api.services.farms import get_owned_farm, owned_farms_filter
from farmkonnect.api.config import settings

router = APIRouter()


async def _get_owned_cycle(db: AsyncSession, cycle_id: UUID, user_id: str) -> CropCycle:
    result = await db.execute(
        select(CropCycle)
        .join(Farm, CropCycle.farm_id == Farm.id)
        .where(
            and_(
                CropCycle.id == cycle_id,
                owned_farms_filter(user_id)
            )
        )
    )
    cycle = result.scalar_one_or_none()

    if not cycle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Crop cycle not found"
        )

    return cycle


@router.get("/", response_model=CropList)
async def list_crops(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: Optional[str] = Query(None, max_length=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Browse the crop catalog

    - search: case-insensitive substring of the crop or scientific name
    """
    query = select(Crop)
    count_query = select(func.count()).select_from(Crop)
    if search:
        pattern = f"%{search}%"
        condition = Crop.crop_name.ilike(pattern) | Crop.scientific_name.ilike(pattern)
        query = query.where(condition)
        count_query = count_query.where(condition)

    total_result = await db.execute(count_query)
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(query.order_by(Crop.crop_name).offset(offset).limit(page_size))

    return CropList(
        crops=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/", response_model=CropResponse, status_code=status.HTTP_201_CREATED)
async def create_crop(
    crop_data: CropCreate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Add a crop to the shared catalog (admin only)"""
    existing = await db.execute(select(Crop).where(Crop.crop_name == crop_data.crop_name))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Crop already exists"
        )

    crop = Crop(**crop_data.model_dump())
    db.add(crop)
    await db.commit()
    await db.refresh(crop)

    return crop


@router.get("/cycles", response_model=CropCycleList)
async def list_cycles(
    farm_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Crop cycles of one farm, most recent planting first"""
    await get_owned_farm(db, farm_id, user_id)

    filters = [CropCycle.farm_id == farm_id]
    if status_filter:
        filters.append(CropCycle.status == status_filter)

    total_result = await db.execute(
        select(func.count()).select_from(CropCycle).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(CropCycle)
        .where(and_(*filters))
        .order_by(CropCycle.planting_date.desc())
        .offset(offset)
        .limit(page_size)
    )

    return CropCycleList(
        cycles=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/cycles", response_model=CropCycleResponse, status_code=status.HTTP_201_CREATED)
async def create_cycle(
    cycle_data: CropCycleCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Start a crop cycle on one of the user's farms"""
    await get_owned_farm(db, cycle_data.farm_id, user_id)

    crop = await db.get(Crop, cycle_data.crop_id)
    if not crop:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Crop not found"
        )

    cycle = CropCycle(**cycle_data.model_dump())
    db.add(cycle)
    await db.commit()
    await db.refresh(cycle)

    return cycle


@router.put("/cycles/{cycle_id}", response_model=CropCycleResponse)
async def update_cycle(
    cycle_id: UUID,
    cycle_data: CropCycleUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    cycle = await _get_owned_cycle(db, cycle_id, user_id)

    update_data = cycle_data.model_dump(exclude_unset=True)
    for field in ("expected_harvest_date", "actual_harvest_date"):
        value = update_data.get(field)
        if value and value < cycle.planting_date:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"{field} cannot be before planting_date"
            )

    for field, value in update_data.items():
        setattr(cycle, field, value)

    await db.commit()
    await db.refresh(cycle)

    return cycle


@router.get("/soil-tests", response_model=SoilTestList)
async def list_soil_tests(
    farm_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_farm(db, farm_id, user_id)

    total_result = await db.execute(
        select(func.count()).select_from(SoilTest).where(SoilTest.farm_id == farm_id)
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(SoilTest)
        .where(SoilTest.farm_id == farm_id)
        .order_by(SoilTest.test_date.desc())
        .offset(offset)
        .limit(page_size)
    )

    return SoilTestList(
        soil_tests=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/soil-tests", response_model=SoilTestResponse, status_code=status.HTTP_201_CREATED)
async def create_soil_test(
    test_data: SoilTestCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_farm(db, test_data.farm_id, user_id)

    soil_test = SoilTest(**test_data.model_dump())
    db.add(soil_test)
    await db.commit()
    await db.refresh(soil_test)

    return soil_test


@router.get("/cycles/{cycle_id}/yields", response_model=YieldList)
async def list_yields(
    cycle_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Harvest records of a crop cycle with running totals"""
    await _get_owned_cycle(db, cycle_id, user_id)

    result = await db.execute(
        select(YieldRecord)
        .where(YieldRecord.cycle_id == cycle_id)
        .order_by(YieldRecord.recorded_date)
    )
    yields = result.scalars().all()

    return YieldList(
        yields=yields,
        total=len(yields),
        total_yield_kg=round(sum(float(y.yield_quantity_kg) for y in yields), 2),
        total_loss_kg=round(sum(float(y.post_harvest_loss_kg or 0) for y in yields), 2),
    )


@router.post("/yields", response_model=YieldResponse, status_code=status.HTTP_201_CREATED)
async def create_yield(
    yield_data: YieldCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Record a harvest against a crop cycle"""
    await _get_owned_cycle(db, yield_data.cycle_id, user_id)

    record = YieldRecord(**yield_data.model_dump())
    db.add(record)
    await db.commit()
    await db.refresh(record)

    return record
