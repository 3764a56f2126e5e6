from sqlalchemy import Column, String, Numeric, Date, Text, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.sql import func
import uuid

from farmkonnect.api.core.database import Base


class Prescription(Base):
    __tablename__ = "prescriptions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    animal_id = Column(Uuid, ForeignKey("animals.id", ondelete="SET NULL"), index=True)
    veterinarian_name = Column(String(255))
    medication_name = Column(String(255), nullable=False)
    dosage = Column(String(100), nullable=False)
    frequency = Column(String(100), nullable=False)
    duration_days = Column(Integer, nullable=False)
    route = Column(String(20), nullable=False, default="oral")
    quantity = Column(Integer, nullable=False)
    instructions = Column(Text)
    prescription_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    cost = Column(Numeric(12, 2))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Prescription {self.medication_name}>"


class VeterinaryAlert(Base):
    __tablename__ = "veterinary_alerts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    animal_id = Column(Uuid, ForeignKey("animals.id", ondelete="SET NULL"))
    prescription_id = Column(Uuid, ForeignKey("prescriptions.id", ondelete="SET NULL"), index=True)
    alert_type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False, default="medium", index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="active", index=True)
    acknowledged_at = Column(DateTime(timezone=True))
    resolved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<VeterinaryAlert {self.alert_type} {self.severity}>"
