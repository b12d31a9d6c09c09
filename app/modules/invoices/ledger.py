"""
Payment reconciliation.

Amounts are fixed-point ``Decimal`` values with two places, so the balance
check is exact: a payment is accepted only while the paid total stays at or
below the invoice amount.
"""
from decimal import Decimal
import logging

from app.common.exceptions import InvalidDataError, PaymentExceedsBalance
from app.modules.invoices.models import Invoice, InvoiceStatus, Payment, to_money

logger = logging.getLogger(__name__)


class PaymentLedger:

    @staticmethod
    def total_paid(invoice: Invoice) -> Decimal:
        return invoice.paid_amount

    @staticmethod
    def balance_due(invoice: Invoice) -> Decimal:
        return invoice.balance_due

    @classmethod
    def can_apply(cls, invoice: Invoice, amount) -> bool:
        return cls.total_paid(invoice) + to_money(amount) <= to_money(invoice.amount)

    @classmethod
    def resolve_status(cls, invoice: Invoice) -> InvoiceStatus:
        """Paid once payments cover the amount, Pending otherwise."""
        if cls.total_paid(invoice) >= to_money(invoice.amount):
            return InvoiceStatus.PAID
        return InvoiceStatus.PENDING

    @classmethod
    def apply(cls, invoice: Invoice, payment: Payment) -> Payment:
        """
        Append a payment and re-resolve the stored status.

        Raises PaymentExceedsBalance, leaving the invoice untouched, when the
        payment would take the paid total above the invoice amount.
        """
        amount = to_money(payment.amount)
        if amount <= 0:
            raise InvalidDataError("Payment amount must be greater than zero", field="amount")
        if not cls.can_apply(invoice, amount):
            logger.info(f"Payment of {amount} rejected for invoice {invoice.number}: balance is {cls.balance_due(invoice)}")
            raise PaymentExceedsBalance(amount, cls.balance_due(invoice))

        payment.amount = amount
        invoice.payments.append(payment)
        invoice.stored_status = cls.resolve_status(invoice).value
        return payment
