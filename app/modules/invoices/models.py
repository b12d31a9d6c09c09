from app.database.database import Base
from sqlalchemy import Column, Integer, String, Date, ForeignKey, Numeric, Text, Uuid
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from app.common.mixins import BaseMixin, TimestampMixin
from app.modules.clients.models import Client  # noqa: F401
from uuid import uuid4
import enum

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize a monetary value to 2 places, rounding half up."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class InvoiceStatus(enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"
    OVERDUE = "Overdue"  # derived on read, never stored


class Currency(enum.Enum):
    USD = "USD"
    INR = "INR"
    AUD = "AUD"


class Invoice(Base, BaseMixin):
    __tablename__ = "invoices"

    client_id = Column(Uuid(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)

    number = Column(String(50), nullable=False, unique=True, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=Currency.USD.value)
    due_date = Column(Date, nullable=False)
    # Only Pending or Paid are stored; see effective_status
    stored_status = Column("status", String(20), nullable=False, default=InvoiceStatus.PENDING.value, index=True)

    # Optimistic lock counter, bumped by the ORM on every UPDATE
    version_id = Column(Integer, nullable=False)

    client = relationship("Client", back_populates="invoices")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice",
        order_by="InvoiceLineItem.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan"
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        order_by="Payment.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan"
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def paid_amount(self) -> Decimal:
        return to_money(sum((to_money(payment.amount) for payment in self.payments), Decimal("0")))

    @property
    def balance_due(self) -> Decimal:
        return to_money(self.amount) - self.paid_amount

    @property
    def items_subtotal(self) -> Decimal:
        return to_money(sum((item.line_amount for item in self.line_items), Decimal("0")))

    def effective_status(self, today: date = None) -> InvoiceStatus:
        """Stored status, with unpaid invoices past their due date read as Overdue."""
        today = today or date.today()
        if self.stored_status == InvoiceStatus.PENDING.value and self.due_date and self.due_date < today:
            return InvoiceStatus.OVERDUE
        return InvoiceStatus(self.stored_status)

    @property
    def status(self) -> str:
        return self.effective_status().value


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    description = Column(String(500), nullable=False)
    sac = Column(String(20), nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)
    rate = Column(Numeric(15, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="line_items")

    @property
    def line_amount(self) -> Decimal:
        return to_money(Decimal(str(self.quantity)) * Decimal(str(self.rate)))


class Payment(Base, TimestampMixin):
    """Recorded payment. Payments are never edited or removed once accepted."""
    __tablename__ = "payments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(Uuid(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    reference_number = Column(String(100), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    remark = Column(Text, nullable=True)

    invoice = relationship("Invoice", back_populates="payments")


class InvoiceSequence(Base, TimestampMixin):
    """Counter row per numbering series, e.g. series "AI/24-25" """
    __tablename__ = "invoice_sequences"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    series = Column(String(50), nullable=False, unique=True)
    current_number = Column(Integer, nullable=False, default=0)
