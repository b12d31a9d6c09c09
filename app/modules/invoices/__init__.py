"""
Invoices: lifecycle, numbering and payment reconciliation.

Tables:
- invoices: invoices, with a version counter for optimistic locking
- invoice_line_items: ordered line items
- payments: append-only payments
- invoice_sequences: numbering counters per series
"""

from .models import Invoice, InvoiceLineItem, Payment, InvoiceSequence
from .service import InvoiceService

__all__ = [
    "Invoice", "InvoiceLineItem", "Payment", "InvoiceSequence",
    "InvoiceService",
]
