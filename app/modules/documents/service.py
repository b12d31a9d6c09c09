import logging
import re
from pathlib import Path
from typing import List, Optional

from app.common.exceptions import DocumentGenerationFailed
from app.core.config import Settings
from app.modules.documents.renderers import InvoiceRenderer, RendererChain, default_renderers
from app.modules.documents.schemas import InvoiceDocument, RenderedDocument
from app.modules.invoices.models import Invoice

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r'[/\\?%*:|"<>]')


def sanitize_filename(value: str) -> str:
    return UNSAFE_FILENAME_CHARS.sub("-", value)


class DocumentService:
    """
    Renders invoices and keeps the rendered PDFs in ``DOCUMENTS_DIR``.

    The directory is a cache: every file can be regenerated from the
    database, and the invoice lifecycle drops an invoice's file whenever
    the invoice changes.
    """

    def __init__(self, settings: Settings, renderers: Optional[List[InvoiceRenderer]] = None):
        self.settings = settings
        self.documents_dir = Path(settings.DOCUMENTS_DIR)
        self.chain = RendererChain(renderers if renderers is not None else default_renderers(settings))

    def cache_path(self, number: str) -> Path:
        return self.documents_dir / f"Invoice_{sanitize_filename(number)}.pdf"

    def validate(self, invoice: Invoice):
        missing = []
        if invoice.client is None:
            missing.append("client")
        if not invoice.line_items:
            missing.append("line_items")
        if missing:
            raise DocumentGenerationFailed(
                f"Invoice {invoice.number} cannot be rendered without: {', '.join(missing)}",
                reason=DocumentGenerationFailed.INVOICE_INCOMPLETE,
                missing=missing
            )

    def render(self, invoice: Invoice, refresh: bool = False) -> RenderedDocument:
        """
        Return the invoice document, rendering it unless a cached PDF exists.

        ``refresh`` ignores the cache and runs the renderer chain again.
        """
        self.validate(invoice)

        target = self.cache_path(invoice.number)
        if not refresh and target.is_file():
            logger.debug(f"Serving cached document {target}")
            return RenderedDocument(kind="pdf", filename=target.name, path=target, cached=True)

        document = InvoiceDocument.from_invoice(invoice, self.settings)
        return self.chain.render(document, target)

    def invalidate(self, number: str):
        target = self.cache_path(number)
        try:
            target.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"Could not remove cached document {target}: {e}")
            return
        logger.info(f"Cached document {target.name} invalidated")
