from pydantic import BaseModel
from decimal import Decimal
from typing import Optional, List
from datetime import date
from pathlib import Path

from app.core.config import Settings
from app.modules.documents.formatting import amount_in_words_for


class DocumentLine(BaseModel):
    index: int
    description: str
    sac: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal


class InvoiceDocument(BaseModel):
    """Everything a renderer prints, built once per render from the invoice"""
    number: str
    issue_date: date
    due_date: date
    payment_terms: str
    currency: str
    status: str

    company_name: str
    company_address: str
    company_tax_id: Optional[str] = None
    company_bank_details: Optional[str] = None

    client_name: str
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    client_address: Optional[str] = None

    items: List[DocumentLine]
    subtotal: Decimal
    total: Decimal
    paid: Decimal
    balance_due: Decimal
    amount_in_words: str

    @classmethod
    def from_invoice(cls, invoice, settings: Settings) -> "InvoiceDocument":
        client = invoice.client
        created = invoice.created_at.date() if invoice.created_at else date.today()
        return cls(
            number=invoice.number,
            issue_date=created,
            due_date=invoice.due_date,
            payment_terms=settings.PAYMENT_TERMS,
            currency=invoice.currency,
            status=invoice.status,
            company_name=settings.COMPANY_NAME,
            company_address=settings.COMPANY_ADDRESS,
            company_tax_id=settings.COMPANY_TAX_ID,
            company_bank_details=settings.COMPANY_BANK_DETAILS,
            client_name=client.name,
            client_email=client.email,
            client_phone=client.phone,
            client_address=client.address,
            items=[
                DocumentLine(
                    index=index,
                    description=item.description,
                    sac=item.sac,
                    quantity=item.quantity,
                    rate=item.rate,
                    amount=item.line_amount
                )
                for index, item in enumerate(invoice.line_items, start=1)
            ],
            subtotal=invoice.items_subtotal,
            total=invoice.amount,
            paid=invoice.paid_amount,
            balance_due=invoice.balance_due,
            amount_in_words=amount_in_words_for(invoice.amount, invoice.currency)
        )


class RenderedDocument(BaseModel):
    """Result of a render: a PDF file on disk or an inline HTML page"""
    kind: str
    filename: str
    renderer: Optional[str] = None
    path: Optional[Path] = None
    content: Optional[str] = None
    cached: bool = False

    @property
    def media_type(self) -> str:
        return "application/pdf" if self.kind == "pdf" else "text/html"
