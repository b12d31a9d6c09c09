from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from uuid import UUID
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    CLIENT = "client"


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=72)
    role: UserRole = UserRole.CLIENT

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be blank')
        return v

    class Config:
        extra = "forbid"


class UserLogin(BaseModel):
    email: EmailStr
    password: str

    class Config:
        extra = "forbid"


class UserOut(BaseModel):
    id: UUID
    name: str
    email: str
    role: UserRole
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserOut


class AuthContext(BaseModel):
    """Authenticated caller resolved from the bearer token"""
    user_id: UUID
    email: str
    role: UserRole
    token: Optional[str] = None
