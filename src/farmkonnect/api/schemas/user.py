from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Literal
from datetime import datetime
from uuid import UUID

UserRole = Literal["farmer", "agent", "veterinarian", "buyer", "transporter", "admin", "user"]
# Roles a visitor may request at registration; admins are created out of band
RegistrableRole = Literal["farmer", "agent", "veterinarian", "buyer", "transporter", "user"]
ApprovalStatus = Literal["pending", "approved", "rejected"]
AccountStatus = Literal["active", "disabled", "suspended"]


class UserCreate(BaseModel):
    """Schema for user registration"""
    name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    role: RegistrableRole = "user"


class UserLogin(BaseModel):
    """Schema for user login"""
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserResponse(BaseModel):
    """Schema for user response"""
    id: UUID
    email: str
    name: str
    phone: Optional[str]
    role: str
    approval_status: str
    account_status: str
    account_status_reason: Optional[str]
    approved_at: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserList(BaseModel):
    """Schema for paginated user list"""
    users: list[UserResponse]
    total: int
    page: int
    page_size: int


class TokenResponse(BaseModel):
    """Schema for authentication token response"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ApproveUserRequest(BaseModel):
    user_id: UUID
    notes: Optional[str] = Field(None, max_length=1000)


class RejectUserRequest(BaseModel):
    user_id: UUID
    reason: str = Field(..., min_length=1, max_length=1000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Rejection reason is required")
        return v.strip()


class BulkApproveRequest(BaseModel):
    user_ids: list[UUID] = Field(..., min_length=1, max_length=100)


class BulkApproveResponse(BaseModel):
    approved: list[UUID]
    skipped: list[UUID]


class AccountStatusUpdate(BaseModel):
    user_id: UUID
    status: AccountStatus
    reason: Optional[str] = Field(None, max_length=1000)


class ApprovalStats(BaseModel):
    pending: int
    approved: int
    rejected: int
    total: int
