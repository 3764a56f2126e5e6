from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from sqlalchemy.exc import IntegrityError
from typing import Optional
from uuid import UUID

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id
from farmkonnect.api.models.livestock import Animal
from farmkonnect.api.models.farm import Farm
from farmkonnect.api.schemas.livestock import AnimalCreate, AnimalUpdate, AnimalResponse, AnimalList
from farmkonnect.api.services.farms import get_owned_farm, owned_farms_filter
from farmkonnect.api.config import settings

router = APIRouter()


async def get_owned_animal(db: AsyncSession, animal_id: UUID, user_id: str) -> Animal:
    result = await db.execute(
        select(Animal)
        .join(Farm, Animal.farm_id == Farm.id)
        .where(
            and_(
                Animal.id == animal_id,
                owned_farms_filter(user_id)
            )
        )
    )
    animal = result.scalar_one_or_none()

    if not animal:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Animal not found"
        )

    return animal


@router.get("/", response_model=AnimalList)
async def list_animals(
    farm_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status_filter: Optional[str] = Query(None, alias="status"),
    species: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    List the animals of a farm

    Filters:
    - status: active, sold, culled, deceased
    - species: exact species name, case-insensitive
    """
    await get_owned_farm(db, farm_id, user_id)

    filters = [Animal.farm_id == farm_id]
    if status_filter:
        filters.append(Animal.status == status_filter)
    if species:
        filters.append(func.lower(Animal.species) == species.lower())

    total_result = await db.execute(
        select(func.count()).select_from(Animal).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Animal)
        .where(and_(*filters))
        .order_by(Animal.tag_id)
        .offset(offset)
        .limit(page_size)
    )

    return AnimalList(
        animals=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/{animal_id}", response_model=AnimalResponse)
async def get_animal(
    animal_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    return await get_owned_animal(db, animal_id, user_id)


@router.post("/", response_model=AnimalResponse, status_code=status.HTTP_201_CREATED)
async def create_animal(
    animal_data: AnimalCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Register an animal; tag ids are unique within a farm"""
    await get_owned_farm(db, animal_data.farm_id, user_id)

    animal = Animal(**animal_data.model_dump())
    db.add(animal)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An animal with this tag already exists on the farm"
        )
    await db.refresh(animal)

    return animal


@router.put("/{animal_id}", response_model=AnimalResponse)
async def update_animal(
    animal_id: UUID,
    animal_data: AnimalUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    animal = await get_owned_animal(db, animal_id, user_id)

    for field, value in animal_data.model_dump(exclude_unset=True).items():
        setattr(animal, field, value)

    await db.commit()
    await db.refresh(animal)

    return animal


@router.delete("/{animal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_animal(
    animal_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    animal = await get_owned_animal(db, animal_id, user_id)
    await db.delete(animal)
    await db.commit()
