from pydantic import Field, field_validator
from decimal import Decimal, InvalidOperation
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
from enum import Enum

from app.common.schemas import ApiModel, ApiRequest
from app.modules.invoices.models import to_money

# Numeric(15, 2) holds at most 13 integer digits
MAX_MONEY = Decimal("1e13")


def money_value(v) -> Decimal:
    """Round a request amount to cents, rejecting values the ledger cannot store."""
    try:
        v = to_money(v)
    except InvalidOperation:
        raise ValueError("Amount is not a valid monetary value")
    if abs(v) >= MAX_MONEY:
        raise ValueError("Amount is too large")
    return v


class InvoiceStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"


class Currency(str, Enum):
    USD = "USD"
    INR = "INR"
    AUD = "AUD"


# Line Item Schemas
class LineItemCreate(ApiRequest):
    description: str = Field(..., min_length=1, max_length=500)
    sac: Optional[str] = Field(None, max_length=20, description="Service accounting code, defaults to the configured SAC")
    quantity: Decimal = Field(..., ge=0, max_digits=12, decimal_places=3)
    rate: Decimal = Field(..., ge=0, description="Unit price")

    @field_validator('rate')
    @classmethod
    def round_rate(cls, v):
        return money_value(v)


class LineItemOut(ApiModel):
    id: UUID
    description: str
    sac: str
    quantity: Decimal
    rate: Decimal
    line_amount: Decimal


# Invoice Schemas
class InvoiceCreate(ApiRequest):
    client_id: UUID
    amount: Decimal = Field(..., gt=0)
    currency: Currency = Currency.USD
    due_date: date
    items: List[LineItemCreate] = Field(default_factory=list)

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v):
        v = money_value(v)
        if v <= 0:
            raise ValueError('Amount must be greater than zero')
        return v


class InvoiceUpdate(ApiRequest):
    """Partial update: only fields present in the body are written"""
    client_id: Optional[UUID] = None
    amount: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[Currency] = None
    due_date: Optional[date] = None
    items: Optional[List[LineItemCreate]] = None

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v):
        if v is None:
            return v
        v = money_value(v)
        if v <= 0:
            raise ValueError('Amount must be greater than zero')
        return v

    @field_validator('client_id', 'amount', 'currency', 'due_date', 'items')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError('Field cannot be null')
        return v


class PaymentCreate(ApiRequest):
    reference_number: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    payment_date: date = Field(default_factory=date.today)
    remark: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def round_amount(cls, v):
        v = money_value(v)
        if v <= 0:
            raise ValueError('Payment amount must be greater than zero')
        return v


class PaymentOut(ApiModel):
    id: UUID
    reference_number: str
    amount: Decimal
    payment_date: date
    remark: Optional[str] = None
    created_at: datetime


class PaymentList(ApiModel):
    invoice_id: UUID
    payments: List[PaymentOut]
    total_paid: Decimal
    balance_due: Decimal


class InvoiceClient(ApiModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class InvoiceOut(ApiModel):
    id: UUID
    number: str
    client_id: UUID
    client: Optional[InvoiceClient] = None
    amount: Decimal
    currency: Currency
    due_date: date
    status: InvoiceStatus
    paid_amount: Decimal
    balance_due: Decimal
    line_items: List[LineItemOut] = []
    payments: List[PaymentOut] = []
    created_at: datetime
    updated_at: datetime


class InvoiceList(ApiModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int


class NextInvoiceNumber(ApiModel):
    next_number: str
    series: str
