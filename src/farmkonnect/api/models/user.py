from sqlalchemy import Column, String, DateTime, Text, Uuid
from sqlalchemy.sql import func
import uuid

from farmkonnect.api.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(320), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    password_hash = Column(String(255), nullable=False)
    # farmer, agent, veterinarian, buyer, transporter, admin, user
    role = Column(String(50), nullable=False, default="user", index=True)
    approval_status = Column(String(20), nullable=False, default="pending", index=True)
    account_status = Column(String(20), nullable=False, default="active")
    account_status_reason = Column(Text)
    approved_by = Column(Uuid)
    approved_at = Column(DateTime(timezone=True))
    last_signed_in = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User {self.email}>"
