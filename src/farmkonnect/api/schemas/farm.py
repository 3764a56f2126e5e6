from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import datetime
from uuid import UUID
from decimal import Decimal

FarmType = Literal["crop", "livestock", "mixed"]


class FarmCreate(BaseModel):
    """Schema for creating a farm"""
    farm_name: str = Field(..., min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    gps_latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    gps_longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    size_hectares: Optional[Decimal] = Field(None, ge=0)
    farm_type: FarmType = "mixed"
    description: Optional[str] = None
    photo_url: Optional[str] = Field(None, max_length=1024)


class FarmUpdate(BaseModel):
    """Schema for updating a farm"""
    farm_name: Optional[str] = Field(None, min_length=1, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    gps_latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    gps_longitude: Optional[Decimal] = Field(None, ge=-180, le=180)
    size_hectares: Optional[Decimal] = Field(None, ge=0)
    farm_type: Optional[FarmType] = None
    description: Optional[str] = None
    photo_url: Optional[str] = Field(None, max_length=1024)

    @field_validator("farm_name", "farm_type")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class FarmResponse(BaseModel):
    """Schema for farm response"""
    id: UUID
    farmer_user_id: UUID
    farm_name: str
    location: Optional[str]
    gps_latitude: Optional[Decimal]
    gps_longitude: Optional[Decimal]
    size_hectares: Optional[Decimal]
    farm_type: str
    description: Optional[str]
    photo_url: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class FarmList(BaseModel):
    """Schema for paginated farm list"""
    farms: list[FarmResponse]
    total: int
    page: int
    page_size: int
