from sqlalchemy import Column, String, Date, Text, DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.sql import func
import uuid

from farmkonnect.api.core.database import Base


class Animal(Base):
    __tablename__ = "animals"
    __table_args__ = (UniqueConstraint("farm_id", "tag_id", name="uq_animals_farm_tag"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    tag_id = Column(String(100), nullable=False)
    species = Column(String(100), nullable=False, index=True)
    breed = Column(String(100))
    gender = Column(String(10), nullable=False, default="unknown")
    birth_date = Column(Date)
    status = Column(String(20), nullable=False, default="active", index=True)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Animal {self.tag_id}>"
