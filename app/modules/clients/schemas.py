from pydantic import EmailStr, Field, field_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from app.common.schemas import ApiModel, ApiRequest


class ClientCreate(ApiRequest):
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None


class ClientUpdate(ApiRequest):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None

    @field_validator('name')
    @classmethod
    def name_not_null(cls, v):
        if v is None:
            raise ValueError('Name cannot be null')
        return v


class ClientOut(ApiModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ClientList(ApiModel):
    clients: List[ClientOut]
    total: int
    limit: int
    offset: int
