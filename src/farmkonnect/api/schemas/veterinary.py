from pydantic import BaseModel, Field, model_validator
from typing import Optional, Literal
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

PrescriptionStatus = Literal["active", "fulfilled", "expired", "cancelled"]
AdministrationRoute = Literal["oral", "injection", "topical", "inhalation", "other"]
AlertSeverity = Literal["low", "medium", "high", "critical"]
AlertStatus = Literal["active", "acknowledged", "resolved"]


class PrescriptionCreate(BaseModel):
    """Schema for issuing a prescription"""
    farm_id: UUID
    animal_id: Optional[UUID] = None
    veterinarian_name: Optional[str] = Field(None, max_length=255)
    medication_name: str = Field(..., min_length=1, max_length=255)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    duration_days: int = Field(..., gt=0)
    route: AdministrationRoute = "oral"
    quantity: int = Field(..., gt=0)
    instructions: Optional[str] = None
    prescription_date: date
    expiry_date: date
    cost: Optional[Decimal] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_expiry(self):
        if self.expiry_date <= self.prescription_date:
            raise ValueError("expiry_date must be after prescription_date")
        return self


class PrescriptionUpdate(BaseModel):
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    frequency: Optional[str] = Field(None, min_length=1, max_length=100)
    instructions: Optional[str] = None
    expiry_date: Optional[date] = None
    status: Optional[PrescriptionStatus] = None
    cost: Optional[Decimal] = Field(None, ge=0)


class PrescriptionResponse(BaseModel):
    id: UUID
    farm_id: UUID
    animal_id: Optional[UUID]
    veterinarian_name: Optional[str]
    medication_name: str
    dosage: str
    frequency: str
    duration_days: int
    route: str
    quantity: int
    instructions: Optional[str]
    prescription_date: date
    expiry_date: date
    status: str
    cost: Optional[Decimal]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class PrescriptionList(BaseModel):
    prescriptions: list[PrescriptionResponse]
    total: int
    page: int
    page_size: int


class PrescriptionStatistics(BaseModel):
    total: int
    active: int
    fulfilled: int
    expired: int
    cancelled: int
    total_cost: float
    average_cost: float


class AlertCreate(BaseModel):
    """Schema for raising a veterinary alert"""
    farm_id: UUID
    animal_id: Optional[UUID] = None
    alert_type: str = Field(..., min_length=1, max_length=50)
    severity: AlertSeverity = "medium"
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)


class AlertResponse(BaseModel):
    id: UUID
    farm_id: UUID
    animal_id: Optional[UUID]
    prescription_id: Optional[UUID]
    alert_type: str
    severity: str
    title: str
    message: str
    status: str
    acknowledged_at: Optional[datetime]
    resolved_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class AlertList(BaseModel):
    alerts: list[AlertResponse]
    total: int
    page: int
    page_size: int
