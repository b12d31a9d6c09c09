"""
Invoice renderers.

Each renderer turns an ``InvoiceDocument`` into a deliverable. The document
service tries them in order through ``RendererChain``:

1. ``BrowserPdfRenderer``: the HTML template printed to PDF by headless Chromium.
2. ``CanvasPdfRenderer``: a plain PDF drawn with the reportlab canvas.
3. ``HtmlPageRenderer``: the HTML template returned as a page.

PDF renderers write to a temporary file next to the target and move it into
place only once the PDF is complete.
"""
import io
import logging
import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional
from uuid import uuid4

from jinja2 import Environment, FileSystemLoader, select_autoescape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from app.common.exceptions import DocumentGenerationFailed
from app.core.config import Settings
from app.modules.documents.formatting import format_amount_with_code, format_currency, format_quantity
from app.modules.documents.schemas import InvoiceDocument, RenderedDocument

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
BROWSER_CANDIDATES = ("chromium", "chromium-browser", "google-chrome", "google-chrome-stable")


class RendererError(Exception):
    """A single renderer could not produce the document"""


def write_atomically(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_name(f".{target.name}.{uuid4().hex}.part")
    try:
        partial.write_bytes(data)
        os.replace(partial, target)
    finally:
        if partial.exists():
            partial.unlink()


class DocumentTemplates:
    """Jinja2 environment for the invoice HTML template"""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml'])
        )
        self.env.filters["money"] = format_currency
        self.env.filters["quantity"] = format_quantity

    def render_invoice(self, document: InvoiceDocument) -> str:
        template = self.env.get_template("invoice.html")
        return template.render(doc=document)


class InvoiceRenderer:
    name = "renderer"

    def render(self, document: InvoiceDocument, target: Path) -> RenderedDocument:
        raise NotImplementedError


class BrowserPdfRenderer(InvoiceRenderer):
    name = "browser"

    def __init__(self, settings: Settings, templates: Optional[DocumentTemplates] = None):
        self.browser_path = settings.PDF_BROWSER_PATH
        self.timeout = settings.PDF_RENDER_TIMEOUT
        self.templates = templates or DocumentTemplates()

    def find_browser(self) -> Optional[str]:
        if self.browser_path:
            return self.browser_path if os.access(self.browser_path, os.X_OK) else None
        for candidate in BROWSER_CANDIDATES:
            found = shutil.which(candidate)
            if found:
                return found
        return None

    def render(self, document: InvoiceDocument, target: Path) -> RenderedDocument:
        browser = self.find_browser()
        if not browser:
            raise RendererError("No headless browser available")

        html = self.templates.render_invoice(document)

        # The profile, page and output all live in the temp dir and go away with it
        with tempfile.TemporaryDirectory(prefix="invoice-render-") as workdir:
            page = Path(workdir) / "invoice.html"
            output = Path(workdir) / "invoice.pdf"
            page.write_text(html, encoding="utf-8")

            command = [
                browser,
                "--headless",
                "--no-sandbox",
                "--disable-gpu",
                "--disable-dev-shm-usage",
                "--no-first-run",
                f"--user-data-dir={Path(workdir) / 'profile'}",
                "--no-pdf-header-footer",
                f"--print-to-pdf={output}",
                page.as_uri(),
            ]
            try:
                subprocess.run(command, check=True, capture_output=True, timeout=self.timeout)
            except subprocess.TimeoutExpired as e:
                raise RendererError(f"Browser did not finish within {self.timeout}s") from e
            except subprocess.CalledProcessError as e:
                stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
                raise RendererError(f"Browser exited with {e.returncode}: {stderr[:500]}") from e
            except OSError as e:
                raise RendererError(f"Could not start browser {browser}: {e}") from e

            if not output.exists() or output.stat().st_size == 0:
                raise RendererError("Browser produced no PDF")
            write_atomically(target, output.read_bytes())

        return RenderedDocument(kind="pdf", filename=target.name, path=target, renderer=self.name)


class CanvasPdfRenderer(InvoiceRenderer):
    """
    Plain-layout PDF drawn with reportlab primitives.

    Uses the built-in Helvetica fonts, which have no glyph for every
    currency symbol, so amounts print with the ISO code instead.
    """
    name = "canvas"

    MARGIN = 20 * mm
    LINE = 5 * mm

    def render(self, document: InvoiceDocument, target: Path) -> RenderedDocument:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=A4, invariant=1)
        pdf.setTitle(f"Invoice {document.number}")
        self._draw(pdf, document)
        pdf.save()

        write_atomically(target, buffer.getvalue())
        return RenderedDocument(kind="pdf", filename=target.name, path=target, renderer=self.name)

    def _money(self, amount, document: InvoiceDocument) -> str:
        return format_amount_with_code(amount, document.currency)

    def _draw(self, pdf: canvas.Canvas, doc: InvoiceDocument):
        width, height = A4
        left = self.MARGIN
        right = width - self.MARGIN
        y = height - self.MARGIN

        pdf.setFont("Helvetica-Bold", 16)
        pdf.drawString(left, y, doc.company_name)
        pdf.setFont("Helvetica-Bold", 20)
        pdf.drawRightString(right, y, "INVOICE")
        y -= self.LINE * 1.5

        pdf.setFont("Helvetica", 9)
        for line in self._lines(doc.company_address):
            pdf.drawString(left, y, line)
            y -= self.LINE
        if doc.company_tax_id:
            pdf.drawString(left, y, f"GSTIN: {doc.company_tax_id}")
            y -= self.LINE

        y -= self.LINE
        details_y = y
        pdf.setFont("Helvetica-Bold", 10)
        pdf.drawString(left, y, "Bill To:")
        y -= self.LINE
        pdf.setFont("Helvetica", 10)
        for line in [doc.client_name, *self._lines(doc.client_address), doc.client_email, doc.client_phone]:
            if line:
                pdf.drawString(left, y, line)
                y -= self.LINE

        details = [
            ("Invoice No:", doc.number),
            ("Invoice Date:", doc.issue_date.strftime("%d/%m/%Y")),
            ("Due Date:", doc.due_date.strftime("%d/%m/%Y")),
            ("Terms:", doc.payment_terms),
        ]
        dy = details_y
        for label, value in details:
            pdf.setFont("Helvetica-Bold", 10)
            pdf.drawRightString(right - 45 * mm, dy, label)
            pdf.setFont("Helvetica", 10)
            pdf.drawRightString(right, dy, value)
            dy -= self.LINE
        y = min(y, dy) - self.LINE

        columns = [left, left + 10 * mm, left + 90 * mm, left + 110 * mm, left + 135 * mm]
        pdf.setFillColor(colors.Color(0.2, 0.2, 0.2))
        pdf.rect(left, y - 2 * mm, right - left, self.LINE + 1 * mm, stroke=0, fill=1)
        pdf.setFillColor(colors.white)
        pdf.setFont("Helvetica-Bold", 9)
        for x, title in zip(columns, ["#", "Description", "SAC", "Qty", "Rate"]):
            pdf.drawString(x + 1 * mm, y, title)
        pdf.drawRightString(right - 1 * mm, y, "Amount")
        pdf.setFillColor(colors.black)
        y -= self.LINE * 1.4

        pdf.setFont("Helvetica", 9)
        for item in doc.items:
            if y < self.MARGIN + 60 * mm:
                pdf.showPage()
                pdf.setFont("Helvetica", 9)
                y = height - self.MARGIN
            pdf.drawString(columns[0] + 1 * mm, y, str(item.index))
            pdf.drawString(columns[1] + 1 * mm, y, item.description[:48])
            pdf.drawString(columns[2] + 1 * mm, y, item.sac)
            pdf.drawString(columns[3] + 1 * mm, y, format_quantity(item.quantity))
            pdf.drawString(columns[4] + 1 * mm, y, self._money(item.rate, doc))
            pdf.drawRightString(right - 1 * mm, y, self._money(item.amount, doc))
            y -= self.LINE

        pdf.line(left, y, right, y)
        y -= self.LINE * 1.2

        totals = [
            ("Sub Total", doc.subtotal),
            ("Total", doc.total),
            ("Paid", doc.paid),
            ("Balance Due", doc.balance_due),
        ]
        for label, value in totals:
            pdf.setFont("Helvetica-Bold" if label in ("Total", "Balance Due") else "Helvetica", 10)
            pdf.drawRightString(right - 45 * mm, y, label)
            pdf.drawRightString(right, y, self._money(value, doc))
            y -= self.LINE

        y -= self.LINE
        pdf.setFont("Helvetica-Oblique", 9)
        pdf.drawString(left, y, f"Total In Words: {doc.amount_in_words}")
        y -= self.LINE * 2

        if doc.company_bank_details:
            pdf.setFont("Helvetica-Bold", 9)
            pdf.drawString(left, y, "Bank Details")
            y -= self.LINE
            pdf.setFont("Helvetica", 9)
            for line in self._lines(doc.company_bank_details):
                pdf.drawString(left, y, line)
                y -= self.LINE

        pdf.setFont("Helvetica", 9)
        pdf.drawRightString(right, self.MARGIN + 10 * mm, f"For {doc.company_name}")
        pdf.drawRightString(right, self.MARGIN, "Authorized Signatory")

    @staticmethod
    def _lines(text: Optional[str]) -> List[str]:
        if not text:
            return []
        return [line.strip() for line in text.splitlines() if line.strip()]


class HtmlPageRenderer(InvoiceRenderer):
    """Last resort: the invoice as an HTML page. Nothing is written to the cache."""
    name = "html"

    def __init__(self, templates: Optional[DocumentTemplates] = None):
        self.templates = templates or DocumentTemplates()

    def render(self, document: InvoiceDocument, target: Path) -> RenderedDocument:
        html = self.templates.render_invoice(document)
        return RenderedDocument(
            kind="html",
            filename=target.with_suffix(".html").name,
            content=html,
            renderer=self.name
        )


class RendererChain(InvoiceRenderer):
    """Try each renderer in order and return the first document produced."""
    name = "chain"

    def __init__(self, renderers: Iterable[InvoiceRenderer]):
        self.renderers = list(renderers)

    def render(self, document: InvoiceDocument, target: Path) -> RenderedDocument:
        for renderer in self.renderers:
            try:
                rendered = renderer.render(document, target)
            except Exception as e:
                logger.warning(f"Renderer '{renderer.name}' failed for invoice {document.number}: {e}", exc_info=True)
                continue
            logger.info(f"Invoice {document.number} rendered by '{renderer.name}'")
            return rendered

        logger.error(f"All renderers failed for invoice {document.number}")
        raise DocumentGenerationFailed(
            f"Could not generate a document for invoice {document.number}",
            reason=DocumentGenerationFailed.RENDERERS_EXHAUSTED,
            renderers=[renderer.name for renderer in self.renderers]
        )


def default_renderers(settings: Settings) -> List[InvoiceRenderer]:
    templates = DocumentTemplates()
    return [
        BrowserPdfRenderer(settings, templates),
        CanvasPdfRenderer(),
        HtmlPageRenderer(templates),
    ]
