"""
Invoice number allocation.

Numbers look like ``01/AI/24-25``: a sequence of at least two digits, the
company code and the financial year. Each series keeps a counter row in
``invoice_sequences`` that is locked and incremented inside the transaction
that creates the invoice. The counter is seeded once from the invoices that
already carry numbers of the series.
"""
import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.common.exceptions import ConflictError, DependencyUnavailable
from app.core.config import Settings
from app.modules.invoices.models import Invoice, InvoiceSequence

logger = logging.getLogger(__name__)

SEQUENCE_PREFIX = re.compile(r"^(\d+)/")


def parse_sequence(number: Optional[str]) -> Optional[int]:
    """Leading digit run of an invoice number, or None when it has none."""
    if not number:
        return None
    match = SEQUENCE_PREFIX.match(number)
    return int(match.group(1)) if match else None


class NumberingAuthority:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.company_code = settings.INVOICE_COMPANY_CODE
        self.financial_year = settings.INVOICE_FINANCIAL_YEAR

    @property
    def series(self) -> str:
        return f"{self.company_code}/{self.financial_year}"

    def format_number(self, sequence: int) -> str:
        return f"{sequence:02d}/{self.series}"

    def highest_existing(self) -> int:
        """Highest sequence already used by invoices of this series, compared numerically."""
        suffix = f"/{self.series}"
        numbers = self.db.query(Invoice.number).filter(Invoice.number.endswith(suffix, autoescape=True)).all()
        sequences = [parse_sequence(number) for (number,) in numbers]
        return max((s for s in sequences if s is not None), default=0)

    def allocate(self) -> str:
        """
        Consume the next number of the series.

        Must run inside the transaction that persists the invoice; the
        counter row stays locked until that transaction ends.
        """
        try:
            sequence = (
                self.db.query(InvoiceSequence)
                .filter(InvoiceSequence.series == self.series)
                .with_for_update()
                .first()
            )
            if sequence is None:
                sequence = InvoiceSequence(series=self.series, current_number=self.highest_existing())
                self.db.add(sequence)
                self.db.flush()
                logger.info(f"Numbering series {self.series} seeded at {sequence.current_number}")

            sequence.current_number += 1
            self.db.flush()
        except IntegrityError:
            # Another transaction seeded the series first
            logger.warning(f"Concurrent seeding of numbering series {self.series}")
            raise ConflictError("Invoice numbering is busy, retry the operation", resource="invoice_sequence")
        except SQLAlchemyError as e:
            logger.error(f"Error allocating invoice number in series {self.series}: {e}")
            raise DependencyUnavailable("Could not allocate an invoice number")

        number = self.format_number(sequence.current_number)
        logger.debug(f"Allocated invoice number {number}")
        return number

    def peek(self) -> str:
        """Next number of the series, without consuming it."""
        try:
            sequence = self.db.query(InvoiceSequence).filter(InvoiceSequence.series == self.series).first()
            current = sequence.current_number if sequence else self.highest_existing()
        except SQLAlchemyError as e:
            logger.error(f"Error reading numbering series {self.series}: {e}")
            raise DependencyUnavailable("Could not read the invoice numbering")
        return self.format_number(current + 1)
