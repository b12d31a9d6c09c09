from fastapi import HTTPException
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from datetime import date, datetime, timezone
from typing import Optional, List
from uuid import UUID
import logging

from app.common.exceptions import (
    BalanceViolation, ClientNotFound, ConcurrentModification, ConflictError, DependencyUnavailable, InvoiceNotFound
)
from app.core.config import Settings
from app.modules.clients.models import Client
from app.modules.invoices.ledger import PaymentLedger
from app.modules.invoices.models import Invoice, InvoiceLineItem, InvoiceStatus, Payment
from app.modules.invoices.numbering import NumberingAuthority
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceUpdate, InvoiceList, LineItemCreate, NextInvoiceNumber, PaymentCreate, PaymentList
)

logger = logging.getLogger(__name__)


class InvoiceService:
    """
    Invoice lifecycle: creation with numbering, partial updates, deletion
    and payment recording.

    ``documents`` is the document service whose cached files must be
    dropped whenever an invoice changes; it is optional so the lifecycle
    can run without a rendering backend.
    """

    def __init__(self, db: Session, settings: Settings, documents=None):
        self.db = db
        self.settings = settings
        self.documents = documents
        self.numbering = NumberingAuthority(db, settings)
        self.ledger = PaymentLedger()

    def _base_query(self):
        return self.db.query(Invoice).options(
            selectinload(Invoice.client),
            selectinload(Invoice.line_items),
            selectinload(Invoice.payments)
        )

    def _get_for_update(self, invoice_id: UUID) -> Invoice:
        """Load an invoice with its row locked until the transaction ends"""
        invoice = (
            self._base_query()
            .filter(Invoice.id == invoice_id)
            .with_for_update(of=Invoice)
            .populate_existing()
            .first()
        )
        if not invoice:
            raise InvoiceNotFound(invoice_id)
        return invoice

    def _ensure_client(self, client_id: UUID) -> Client:
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client:
            raise ClientNotFound(client_id)
        return client

    def _build_line_items(self, items: List[LineItemCreate]) -> List[InvoiceLineItem]:
        return [
            InvoiceLineItem(
                position=position,
                description=item.description,
                sac=item.sac or self.settings.DEFAULT_SAC_CODE,
                quantity=item.quantity,
                rate=item.rate
            )
            for position, item in enumerate(items)
        ]

    def _commit(self, invoice_id: UUID, action: str):
        """Commit the pending changes of one invoice, mapping storage failures."""
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning(f"Concurrent modification of invoice {invoice_id} while trying to {action}")
            raise ConcurrentModification("invoice", invoice_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error trying to {action} invoice {invoice_id}: {e}")
            raise DependencyUnavailable(f"Could not {action} the invoice")

    def _invalidate_document(self, number: str):
        if self.documents is not None:
            self.documents.invalidate(number)

    def list_invoices(
        self,
        status: Optional[InvoiceStatus] = None,
        client_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0
    ) -> InvoiceList:
        query = self._base_query()

        if client_id:
            query = query.filter(Invoice.client_id == client_id)

        if status is not None:
            today = date.today()
            pending = Invoice.stored_status == InvoiceStatus.PENDING.value
            if status == InvoiceStatus.OVERDUE:
                query = query.filter(and_(pending, Invoice.due_date < today))
            elif status == InvoiceStatus.PENDING:
                query = query.filter(and_(pending, or_(Invoice.due_date.is_(None), Invoice.due_date >= today)))
            else:
                query = query.filter(Invoice.stored_status == InvoiceStatus.PAID.value)

        total = query.count()
        invoices = query.order_by(Invoice.created_at.desc(), Invoice.number.desc()).offset(offset).limit(limit).all()
        return InvoiceList(invoices=invoices, total=total, limit=limit, offset=offset)

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self._base_query().filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise InvoiceNotFound(invoice_id)
        return invoice

    def create_invoice(self, invoice_data: InvoiceCreate) -> Invoice:
        """Create a Pending invoice with the next number of the series."""
        self._ensure_client(invoice_data.client_id)

        try:
            number = self.numbering.allocate()
            invoice = Invoice(
                client_id=invoice_data.client_id,
                number=number,
                amount=invoice_data.amount,
                currency=invoice_data.currency.value,
                due_date=invoice_data.due_date,
                stored_status=InvoiceStatus.PENDING.value
            )
            invoice.line_items = self._build_line_items(invoice_data.items)
            self.db.add(invoice)
            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Integrity error creating invoice: {e}")
            raise ConflictError("Invoice number already taken, retry the operation", resource="invoice")
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating invoice: {e}")
            raise DependencyUnavailable("Could not store the invoice")

        logger.info(f"Invoice {number} created for client {invoice_data.client_id} ({invoice_data.amount} {invoice_data.currency.value})")
        return self.get_invoice(invoice.id)

    def update_invoice(self, invoice_id: UUID, invoice_data: InvoiceUpdate) -> Invoice:
        """
        Apply a partial update and re-resolve the stored status.

        The amount can never drop below what has already been paid; raising
        it above the paid total moves a Paid invoice back to Pending.
        """
        changes = invoice_data.model_dump(exclude_unset=True)

        try:
            invoice = self._get_for_update(invoice_id)

            if "client_id" in changes and changes["client_id"] != invoice.client_id:
                self._ensure_client(changes["client_id"])
                invoice.client_id = changes["client_id"]

            if "amount" in changes:
                paid = self.ledger.total_paid(invoice)
                if changes["amount"] < paid:
                    raise BalanceViolation(
                        f"Amount {changes['amount']} is below the {paid} already paid",
                        amount=str(changes["amount"]),
                        paid_amount=str(paid)
                    )
                invoice.amount = changes["amount"]

            if "currency" in changes:
                invoice.currency = invoice_data.currency.value
            if "due_date" in changes:
                invoice.due_date = changes["due_date"]
            if "items" in changes:
                invoice.line_items = self._build_line_items(invoice_data.items)

            previous_status = invoice.stored_status
            invoice.stored_status = self.ledger.resolve_status(invoice).value
            invoice.updated_at = datetime.now(timezone.utc)
        except HTTPException:
            self.db.rollback()
            raise

        self._commit(invoice_id, "update")
        if previous_status != invoice.stored_status:
            logger.info(f"Invoice {invoice.number} moved from {previous_status} to {invoice.stored_status}")
        logger.info(f"Invoice {invoice.number} updated: {', '.join(sorted(changes)) or 'no fields'}")

        self._invalidate_document(invoice.number)
        return self.get_invoice(invoice.id)

    def delete_invoice(self, invoice_id: UUID) -> dict:
        invoice = self._get_for_update(invoice_id)
        number = invoice.number

        self.db.delete(invoice)
        self._commit(invoice_id, "delete")
        logger.info(f"Invoice {number} deleted")

        self._invalidate_document(number)
        return {"message": "Invoice deleted successfully", "number": number}

    def record_payment(self, invoice_id: UUID, payment_data: PaymentCreate) -> Invoice:
        """
        Record a payment against an invoice.

        The invoice row is locked for the whole check-then-append so two
        payments on the same invoice cannot both pass the balance check.
        """
        try:
            invoice = self._get_for_update(invoice_id)
            payment = Payment(
                reference_number=payment_data.reference_number,
                amount=payment_data.amount,
                payment_date=payment_data.payment_date,
                remark=payment_data.remark
            )
            self.ledger.apply(invoice, payment)
            invoice.updated_at = datetime.now(timezone.utc)
        except HTTPException:
            self.db.rollback()
            raise

        self._commit(invoice_id, "record a payment on")
        logger.info(
            f"Payment {payment_data.reference_number} of {payment_data.amount} recorded on invoice "
            f"{invoice.number}, status {invoice.stored_status}"
        )

        self._invalidate_document(invoice.number)
        return self.get_invoice(invoice.id)

    def list_payments(self, invoice_id: UUID) -> PaymentList:
        invoice = self.get_invoice(invoice_id)
        return PaymentList(
            invoice_id=invoice.id,
            payments=invoice.payments,
            total_paid=self.ledger.total_paid(invoice),
            balance_due=self.ledger.balance_due(invoice)
        )

    def peek_next_number(self) -> NextInvoiceNumber:
        return NextInvoiceNumber(next_number=self.numbering.peek(), series=self.numbering.series)
