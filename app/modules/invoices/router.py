from fastapi import APIRouter, Query, Path, status
from typing import Optional
from uuid import UUID

from app.dependencies.dbDependecies import db_dependency, settings_dependency
from app.dependencies.userDependencies import admin_dependency, any_role_dependency, staff_dependency
from app.modules.documents.dependencies import documents_dependency
from app.modules.invoices.models import InvoiceStatus
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceUpdate, InvoiceOut, InvoiceList, InvoiceStatus as InvoiceStatusFilter,
    NextInvoiceNumber, PaymentCreate, PaymentList
)

router = APIRouter(
    prefix="/invoices",
    tags=["Invoices"],
    responses={404: {"description": "Not found"}}
)


@router.get("", response_model=InvoiceList)
def list_invoices(
    db: db_dependency,
    settings: settings_dependency,
    auth_context: any_role_dependency,
    status_filter: Optional[InvoiceStatusFilter] = Query(None, alias="status", description="Pending, Paid or Overdue"),
    client_id: Optional[UUID] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0)
):
    """
    List invoices, newest first.

    The status filter matches the status as reported, so ``Overdue`` selects
    unpaid invoices past their due date.
    """
    status_value = InvoiceStatus(status_filter.value) if status_filter else None
    return InvoiceService(db, settings).list_invoices(status_value, client_id, limit, offset)


# Must be declared before /{invoice_id}
@router.get("/next-number", response_model=NextInvoiceNumber)
def get_next_invoice_number(db: db_dependency, settings: settings_dependency, auth_context: any_role_dependency):
    """Number the next invoice will get. The number is not reserved."""
    return InvoiceService(db, settings).peek_next_number()


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: db_dependency,
    settings: settings_dependency,
    auth_context: staff_dependency
):
    return InvoiceService(db, settings).create_invoice(invoice_data)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    db: db_dependency,
    settings: settings_dependency,
    auth_context: any_role_dependency,
    invoice_id: UUID = Path(...)
):
    return InvoiceService(db, settings).get_invoice(invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_data: InvoiceUpdate,
    db: db_dependency,
    settings: settings_dependency,
    documents: documents_dependency,
    auth_context: staff_dependency,
    invoice_id: UUID = Path(...)
):
    """
    Update the fields present in the body.

    - **amount** cannot go below the total already paid
    - **items**, when present, replaces every line item
    - the status is recomputed from the payments and never set directly
    """
    return InvoiceService(db, settings, documents).update_invoice(invoice_id, invoice_data)


@router.delete("/{invoice_id}")
def delete_invoice(
    db: db_dependency,
    settings: settings_dependency,
    documents: documents_dependency,
    auth_context: admin_dependency,
    invoice_id: UUID = Path(...)
):
    return InvoiceService(db, settings, documents).delete_invoice(invoice_id)


@router.post("/{invoice_id}/payments", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def record_payment(
    payment_data: PaymentCreate,
    db: db_dependency,
    settings: settings_dependency,
    documents: documents_dependency,
    auth_context: staff_dependency,
    invoice_id: UUID = Path(...)
):
    """
    Record a payment and return the updated invoice.

    Rejected with 400 ``balance_violation`` when the payment exceeds the
    outstanding balance.
    """
    return InvoiceService(db, settings, documents).record_payment(invoice_id, payment_data)


@router.get("/{invoice_id}/payments", response_model=PaymentList)
def list_payments(
    db: db_dependency,
    settings: settings_dependency,
    auth_context: any_role_dependency,
    invoice_id: UUID = Path(...)
):
    return InvoiceService(db, settings).list_payments(invoice_id)
