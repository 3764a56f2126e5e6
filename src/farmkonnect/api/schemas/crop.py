from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Literal
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

CropCycleStatus = Literal["planning", "planted", "growing", "harvesting", "completed", "abandoned"]


class CropCreate(BaseModel):
    crop_name: str = Field(..., min_length=1, max_length=255)
    scientific_name: Optional[str] = Field(None, max_length=255)
    variety: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class CropResponse(BaseModel):
    """Schema for crop catalog response"""
    id: UUID
    crop_name: str
    scientific_name: Optional[str]
    variety: Optional[str]
    description: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class CropList(BaseModel):
    crops: list[CropResponse]
    total: int
    page: int
    page_size: int


class CropCycleCreate(BaseModel):
    """Schema for starting a crop cycle on a farm"""
    farm_id: UUID
    crop_id: UUID
    variety_name: Optional[str] = Field(None, max_length=255)
    planting_date: date
    expected_harvest_date: Optional[date] = None
    status: CropCycleStatus = "planted"
    area_planted_hectares: Optional[Decimal] = Field(None, ge=0)
    expected_yield_kg: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_harvest_after_planting(self):
        if self.expected_harvest_date and self.expected_harvest_date < self.planting_date:
            raise ValueError("expected_harvest_date cannot be before planting_date")
        return self


class CropCycleUpdate(BaseModel):
    expected_harvest_date: Optional[date] = None
    actual_harvest_date: Optional[date] = None
    status: Optional[CropCycleStatus] = None
    area_planted_hectares: Optional[Decimal] = Field(None, ge=0)
    expected_yield_kg: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator("status")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class CropCycleResponse(BaseModel):
    id: UUID
    farm_id: UUID
    crop_id: UUID
    variety_name: Optional[str]
    planting_date: date
    expected_harvest_date: Optional[date]
    actual_harvest_date: Optional[date]
    status: str
    area_planted_hectares: Optional[Decimal]
    expected_yield_kg: Optional[Decimal]
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class CropCycleList(BaseModel):
    cycles: list[CropCycleResponse]
    total: int
    page: int
    page_size: int


class SoilTestCreate(BaseModel):
    """Schema for recording a soil test"""
    farm_id: UUID
    test_date: date
    ph_level: Optional[Decimal] = Field(None, ge=0, le=14)
    nitrogen_level: Optional[Decimal] = Field(None, ge=0)
    phosphorus_level: Optional[Decimal] = Field(None, ge=0)
    potassium_level: Optional[Decimal] = Field(None, ge=0)
    organic_matter: Optional[Decimal] = Field(None, ge=0, le=100)
    recommendations: Optional[str] = None


class SoilTestResponse(BaseModel):
    id: UUID
    farm_id: UUID
    test_date: date
    ph_level: Optional[Decimal]
    nitrogen_level: Optional[Decimal]
    phosphorus_level: Optional[Decimal]
    potassium_level: Optional[Decimal]
    organic_matter: Optional[Decimal]
    recommendations: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class SoilTestList(BaseModel):
    soil_tests: list[SoilTestResponse]
    total: int
    page: int
    page_size: int


class YieldCreate(BaseModel):
    cycle_id: UUID
    yield_quantity_kg: Decimal = Field(..., ge=0)
    quality_grade: Optional[str] = Field(None, max_length=50)
    post_harvest_loss_kg: Optional[Decimal] = Field(None, ge=0)
    recorded_date: date
    notes: Optional[str] = None


class YieldResponse(BaseModel):
    id: UUID
    cycle_id: UUID
    yield_quantity_kg: Decimal
    quality_grade: Optional[str]
    post_harvest_loss_kg: Optional[Decimal]
    recorded_date: date
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class YieldList(BaseModel):
    yields: list[YieldResponse]
    total: int
    total_yield_kg: float
    total_loss_kg: float
