from sqlalchemy import Column, String, Numeric, Date, Text, DateTime, ForeignKey, Uuid
from sqlalchemy.sql import func
import uuid

from farmkonnect.api.core.database import Base


class Crop(Base):
    __tablename__ = "crops"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    crop_name = Column(String(255), nullable=False, unique=True)
    scientific_name = Column(String(255))
    variety = Column(String(255))
    description = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Crop {self.crop_name}>"


class CropCycle(Base):
    __tablename__ = "crop_cycles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    crop_id = Column(Uuid, ForeignKey("crops.id", ondelete="RESTRICT"), nullable=False, index=True)
    variety_name = Column(String(255))
    planting_date = Column(Date, nullable=False, index=True)
    expected_harvest_date = Column(Date)
    actual_harvest_date = Column(Date)
    status = Column(String(20), nullable=False, default="planted", index=True)
    area_planted_hectares = Column(Numeric(10, 2))
    expected_yield_kg = Column(Numeric(12, 2))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<CropCycle {self.id} {self.status}>"


class SoilTest(Base):
    __tablename__ = "soil_tests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    test_date = Column(Date, nullable=False)
    ph_level = Column(Numeric(4, 2))
    nitrogen_level = Column(Numeric(10, 2))
    phosphorus_level = Column(Numeric(10, 2))
    potassium_level = Column(Numeric(10, 2))
    organic_matter = Column(Numeric(6, 2))
    recommendations = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<SoilTest {self.farm_id} {self.test_date}>"


class YieldRecord(Base):
    __tablename__ = "yield_records"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    cycle_id = Column(Uuid, ForeignKey("crop_cycles.id", ondelete="CASCADE"), nullable=False, index=True)
    yield_quantity_kg = Column(Numeric(12, 2), nullable=False)
    quality_grade = Column(String(50))
    post_harvest_loss_kg = Column(Numeric(12, 2))
    recorded_date = Column(Date, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<YieldRecord {self.cycle_id} {self.yield_quantity_kg}kg>"
