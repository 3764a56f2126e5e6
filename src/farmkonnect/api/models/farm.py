from sqlalchemy import Column, String, Numeric, DateTime, Text, ForeignKey, Uuid
from sqlalchemy.sql import func
import uuid

from farmkonnect.api.core.database import Base


class Farm(Base):
    __tablename__ = "farms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farmer_user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    farm_name = Column(String(255), nullable=False)
    location = Column(String(255))
    gps_latitude = Column(Numeric(10, 8))
    gps_longitude = Column(Numeric(11, 8))
    size_hectares = Column(Numeric(10, 2))
    farm_type = Column(String(20), nullable=False, default="mixed")
    description = Column(Text)
    photo_url = Column(String(1024))
    deleted_at = Column(DateTime(timezone=True), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Farm {self.farm_name}>"
