from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from datetime import date, datetime
from uuid import UUID

AnimalGender = Literal["male", "female", "unknown"]
AnimalStatus = Literal["active", "sold", "culled", "deceased"]


class AnimalCreate(BaseModel):
    """Schema for registering an animal"""
    farm_id: UUID
    tag_id: str = Field(..., min_length=1, max_length=100)
    species: str = Field(..., min_length=1, max_length=100)
    breed: Optional[str] = Field(None, max_length=100)
    gender: AnimalGender = "unknown"
    birth_date: Optional[date] = None
    status: AnimalStatus = "active"
    notes: Optional[str] = None


class AnimalUpdate(BaseModel):
    breed: Optional[str] = Field(None, max_length=100)
    gender: Optional[AnimalGender] = None
    birth_date: Optional[date] = None
    status: Optional[AnimalStatus] = None
    notes: Optional[str] = None

    @field_validator("gender", "status")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class AnimalResponse(BaseModel):
    id: UUID
    farm_id: UUID
    tag_id: str
    species: str
    breed: Optional[str]
    gender: str
    birth_date: Optional[date]
    status: str
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class AnimalList(BaseModel):
    animals: list[AnimalResponse]
    total: int
    page: int
    page_size: int
