from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_, or_
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from uuid import UUID
import logging

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id
from farmkonnect.api.models.veterinary import Prescription, VeterinaryAlert
from farmkonnect.api.models.livestock import Animal
from farmkonnect.api.schemas.veterinary import (
    PrescriptionCreate,
    PrescriptionUpdate,
    PrescriptionResponse,
    PrescriptionList,
    PrescriptionStatistics,
    AlertCreate,
    AlertResponse,
    AlertList,
)
from farmkonnect.api.services.farms import get_owned_farm, owned_farm_ids
from farmkonnect.api.services.push import notify_user
from farmkonnect.api.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)

URGENT_SEVERITIES = ("high", "critical")


async def _check_animal(db: AsyncSession, animal_id: Optional[UUID], farm_id: UUID) -> None:
    if animal_id is None:
        return
    animal = await db.get(Animal, animal_id)
    if not animal or animal.farm_id != farm_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Animal not found on this farm"
        )


async def _get_owned_prescription(db: AsyncSession, prescription_id: UUID, user_id: str) -> Prescription:
    result = await db.execute(
        select(Prescription).where(
            and_(
                Prescription.id == prescription_id,
                Prescription.farm_id.in_(owned_farm_ids(user_id))
            )
        )
    )
    prescription = result.scalar_one_or_none()

    if not prescription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Prescription not found"
        )

    return prescription


async def _get_owned_alert(db: AsyncSession, alert_id: UUID, user_id: str) -> VeterinaryAlert:
    result = await db.execute(
        select(VeterinaryAlert).where(
            and_(
                VeterinaryAlert.id == alert_id,
                VeterinaryAlert.farm_id.in_(owned_farm_ids(user_id))
            )
        )
    )
    alert = result.scalar_one_or_none()

    if not alert:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Alert not found"
        )

    return alert


# Prescriptions

@router.get("/prescriptions", response_model=PrescriptionList)
async def list_prescriptions(
    farm_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status_filter: Optional[str] = Query(None, alias="status"),
    animal_id: Optional[UUID] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    List a farm's prescriptions, soonest expiry first

    Filters:
    - status: active, fulfilled, expired, cancelled
    - animal_id: prescriptions for one animal
    """
    await get_owned_farm(db, farm_id, user_id)

    filters = [Prescription.farm_id == farm_id]
    if status_filter:
        filters.append(Prescription.status == status_filter)
    if animal_id:
        filters.append(Prescription.animal_id == animal_id)

    total_result = await db.execute(
        select(func.count()).select_from(Prescription).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Prescription)
        .where(and_(*filters))
        .order_by(Prescription.expiry_date.asc())
        .offset(offset)
        .limit(page_size)
    )

    return PrescriptionList(
        prescriptions=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/prescriptions/expiring", response_model=list[PrescriptionResponse])
async def get_expiring_prescriptions(
    farm_id: UUID,
    days: int = Query(30, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Active prescriptions expiring between today and today + days"""
    await get_owned_farm(db, farm_id, user_id)
    today = date.today()

    result = await db.execute(
        select(Prescription)
        .where(
            and_(
                Prescription.farm_id == farm_id,
                Prescription.status == "active",
                Prescription.expiry_date >= today,
                Prescription.expiry_date <= today + timedelta(days=days)
            )
        )
        .order_by(Prescription.expiry_date.asc())
    )
    return result.scalars().all()


@router.get("/prescriptions/expired", response_model=list[PrescriptionResponse])
async def get_expired_prescriptions(
    farm_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Prescriptions marked expired, or still active past their expiry date"""
    await get_owned_farm(db, farm_id, user_id)

    result = await db.execute(
        select(Prescription)
        .where(
            and_(
                Prescription.farm_id == farm_id,
                or_(
                    Prescription.status == "expired",
                    and_(
                        Prescription.status == "active",
                        Prescription.expiry_date < date.today()
                    )
                )
            )
        )
        .order_by(Prescription.expiry_date.desc())
    )
    return result.scalars().all()


@router.get("/prescriptions/statistics", response_model=PrescriptionStatistics)
async def get_prescription_statistics(
    farm_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_farm(db, farm_id, user_id)

    result = await db.execute(
        select(
            Prescription.status,
            func.count(),
            func.coalesce(func.sum(Prescription.cost), 0),
            func.count(Prescription.cost)
        )
        .where(Prescription.farm_id == farm_id)
        .group_by(Prescription.status)
    )

    counts = {}
    total_cost = 0.0
    costed = 0
    for status_value, count, cost, cost_count in result.all():
        counts[status_value] = count
        total_cost += float(cost)
        costed += cost_count

    return PrescriptionStatistics(
        total=sum(counts.values()),
        active=counts.get("active", 0),
        fulfilled=counts.get("fulfilled", 0),
        expired=counts.get("expired", 0),
        cancelled=counts.get("cancelled", 0),
        total_cost=round(total_cost, 2),
        average_cost=round(total_cost / costed, 2) if costed else 0.0
    )


@router.get("/prescriptions/{prescription_id}", response_model=PrescriptionResponse)
async def get_prescription(
    prescription_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    return await _get_owned_prescription(db, prescription_id, user_id)


@router.post("/prescriptions", response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
async def create_prescription(
    prescription_data: PrescriptionCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Record a prescription; the animal, when given, must live on the farm"""
    await get_owned_farm(db, prescription_data.farm_id, user_id)
    await _check_animal(db, prescription_data.animal_id, prescription_data.farm_id)

    prescription = Prescription(status="active", **prescription_data.model_dump())
    db.add(prescription)
    await db.commit()
    await db.refresh(prescription)

    return prescription


@router.put("/prescriptions/{prescription_id}", response_model=PrescriptionResponse)
async def update_prescription(
    prescription_id: UUID,
    prescription_data: PrescriptionUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    prescription = await _get_owned_prescription(db, prescription_id, user_id)
    update_data = prescription_data.model_dump(exclude_unset=True)

    expiry = update_data.get("expiry_date")
    if expiry is not None and expiry <= prescription.prescription_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="expiry_date must be after prescription_date"
        )

    for field, value in update_data.items():
        if value is not None or field in ("instructions", "cost"):
            setattr(prescription, field, value)

    await db.commit()
    await db.refresh(prescription)

    return prescription


# Alerts

@router.get("/alerts", response_model=AlertList)
async def list_alerts(
    farm_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    status_filter: Optional[str] = Query(None, alias="status"),
    severity: Optional[str] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_farm(db, farm_id, user_id)

    filters = [VeterinaryAlert.farm_id == farm_id]
    if status_filter:
        filters.append(VeterinaryAlert.status == status_filter)
    if severity:
        filters.append(VeterinaryAlert.severity == severity)

    total_result = await db.execute(
        select(func.count()).select_from(VeterinaryAlert).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(VeterinaryAlert)
        .where(and_(*filters))
        .order_by(VeterinaryAlert.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )

    return AlertList(
        alerts=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/alerts", response_model=AlertResponse, status_code=status.HTTP_201_CREATED)
async def create_alert(
    alert_data: AlertCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Raise an alert; high and critical alerts are pushed to the farm owner"""
    farm = await get_owned_farm(db, alert_data.farm_id, user_id)
    await _check_animal(db, alert_data.animal_id, alert_data.farm_id)

    alert = VeterinaryAlert(status="active", **alert_data.model_dump())
    db.add(alert)
    await db.commit()
    await db.refresh(alert)
    response = AlertResponse.model_validate(alert)

    if alert.severity in URGENT_SEVERITIES:
        await notify_user(
            db, farm.farmer_user_id,
            title=alert.title,
            body=alert.message,
            notification_type="veterinary_alert",
            data={"alert_id": str(alert.id), "farm_id": str(farm.id)},
            require_interaction=alert.severity == "critical",
        )

    return response


@router.post("/alerts/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    alert_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    alert = await _get_owned_alert(db, alert_id, user_id)

    if alert.status != "active":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Alert is already {alert.status}"
        )

    alert.status = "acknowledged"
    alert.acknowledged_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(alert)

    return alert


@router.post("/alerts/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    alert_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    alert = await _get_owned_alert(db, alert_id, user_id)

    if alert.status == "resolved":
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Alert is already resolved"
        )

    alert.status = "resolved"
    alert.resolved_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(alert)

    return alert


@router.post("/alerts/generate", response_model=list[AlertResponse])
async def generate_prescription_alerts(
    farm_id: UUID,
    days: int = Query(7, ge=1, le=90),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Create expiry alerts for active prescriptions ending within `days`

    Prescriptions that already have an open alert are skipped, so repeated
    calls do not duplicate alerts.
    """
    farm = await get_owned_farm(db, farm_id, user_id)
    today = date.today()

    open_alerts = (
        select(VeterinaryAlert.prescription_id)
        .where(
            and_(
                VeterinaryAlert.farm_id == farm_id,
                VeterinaryAlert.prescription_id.is_not(None),
                VeterinaryAlert.status != "resolved"
            )
        )
    )
    result = await db.execute(
        select(Prescription).where(
            and_(
                Prescription.farm_id == farm_id,
                Prescription.status == "active",
                Prescription.expiry_date >= today,
                Prescription.expiry_date <= today + timedelta(days=days),
                Prescription.id.not_in(open_alerts)
            )
        ).order_by(Prescription.expiry_date.asc())
    )

    alerts = []
    for prescription in result.scalars().all():
        days_left = (prescription.expiry_date - today).days
        alert = VeterinaryAlert(
            farm_id=farm_id,
            animal_id=prescription.animal_id,
            prescription_id=prescription.id,
            alert_type="prescription_expiry",
            severity="high" if days_left <= 2 else "medium",
            title=f"{prescription.medication_name} expires in {days_left} day(s)",
            message=(
                f"Prescription for {prescription.medication_name} ({prescription.dosage}, "
                f"{prescription.frequency}) expires on {prescription.expiry_date.isoformat()}."
            ),
            status="active",
        )
        db.add(alert)
        alerts.append(alert)

    await db.commit()
    responses = []
    for alert in alerts:
        await db.refresh(alert)
        responses.append(AlertResponse.model_validate(alert))

    owner_id = farm.farmer_user_id
    for alert in responses:
        if alert.severity in URGENT_SEVERITIES:
            await notify_user(
                db, owner_id,
                title=alert.title,
                body=alert.message,
                notification_type="veterinary_alert",
                data={"alert_id": str(alert.id), "farm_id": str(farm_id)},
            )

    logger.info(f"Generated {len(responses)} prescription alerts for farm {farm_id}")
    return responses
