"""
Tests for invoice documents: money formatting, the renderer chain, the
document cache and the download endpoints.
"""

import tempfile

import pytest
from datetime import date, timedelta
from decimal import Decimal

from app.common.exceptions import DocumentGenerationFailed
from app.main import app
from app.modules.documents.dependencies import get_document_service
from app.modules.documents.formatting import (
    INDIAN, amount_in_words, amount_in_words_for, currency_symbol, format_amount_with_code,
    format_currency, format_quantity
)
from app.modules.documents.renderers import (
    BrowserPdfRenderer, CanvasPdfRenderer, DocumentTemplates, HtmlPageRenderer, InvoiceRenderer, RendererChain,
    RendererError, write_atomically
)
from app.modules.documents.schemas import InvoiceDocument, RenderedDocument
from app.modules.documents.service import DocumentService, sanitize_filename
from app.modules.invoices.models import Invoice, InvoiceLineItem, InvoiceStatus


class FailingRenderer(InvoiceRenderer):
    name = "failing"

    def __init__(self):
        self.calls = 0

    def render(self, document, target):
        self.calls += 1
        raise RuntimeError("renderer unavailable")


class FakePdfRenderer(InvoiceRenderer):
    name = "fake-pdf"

    def __init__(self):
        self.calls = 0

    def render(self, document, target):
        self.calls += 1
        write_atomically(target, b"%PDF-1.4 fake " + document.number.encode())
        return RenderedDocument(kind="pdf", filename=target.name, path=target, renderer=self.name)


def make_invoice(db_session, client, with_items=True, currency="USD", amount="100.00"):
    invoice = Invoice(
        client_id=client.id,
        number="01/AI/24-25",
        amount=Decimal(amount),
        currency=currency,
        due_date=date.today() + timedelta(days=30),
        stored_status=InvoiceStatus.PENDING.value
    )
    if with_items:
        invoice.line_items = [
            InvoiceLineItem(description="Data pipeline consulting", sac="998314", quantity=Decimal("2"), rate=Decimal("30.00")),
            InvoiceLineItem(description="Model review", sac="998313", quantity=Decimal("1"), rate=Decimal("40.00")),
        ]
    db_session.add(invoice)
    db_session.commit()
    db_session.refresh(invoice)
    return invoice


def create_invoice(client, headers, payload):
    response = client.post("/invoices", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


# ===== FORMATTING =====

class TestFormatting:

    def test_format_currency(self):
        assert format_currency(1234.5, "USD") == "$1,234.50"
        assert format_currency(Decimal("1000000"), "INR") == "₹1,000,000.00"
        assert format_currency("-12.345", "AUD") == "-A$12.35"

    def test_unknown_currency_falls_back_to_code(self):
        assert currency_symbol("eur") == "EUR "
        assert format_currency(10, "EUR") == "EUR 10.00"

    def test_format_with_code(self):
        assert format_amount_with_code(Decimal("1234.5"), "usd") == "USD 1,234.50"

    @pytest.mark.parametrize("number,words", [
        (0, "Zero"),
        (7, "Seven"),
        (19, "Nineteen"),
        (40, "Forty"),
        (123, "One Hundred and Twenty-Three"),
        (1234, "One Thousand Two Hundred and Thirty-Four"),
        (1000000, "One Million"),
        (2000305, "Two Million Three Hundred and Five"),
        (-15, "Minus Fifteen"),
    ])
    def test_international_words(self, number, words):
        assert amount_in_words(number) == words

    @pytest.mark.parametrize("number,words", [
        (100000, "One Lakh"),
        (250000, "Two Lakh Fifty Thousand"),
        (12345678, "One Crore Twenty-Three Lakh Forty-Five Thousand Six Hundred and Seventy-Eight"),
        (1000000000, "One Hundred Crore"),
    ])
    def test_indian_words(self, number, words):
        assert amount_in_words(number, INDIAN) == words

    def test_words_follow_currency(self):
        assert amount_in_words_for(Decimal("100000.00"), "INR") == "Rupees One Lakh Only"
        assert amount_in_words_for(Decimal("100000.00"), "USD") == "US Dollars One Hundred Thousand Only"
        assert amount_in_words_for(Decimal("99.50"), "AUD") == "Australian Dollars One Hundred Only"

    def test_format_quantity(self):
        assert format_quantity(Decimal("2.000")) == "2"
        assert format_quantity(Decimal("2.500")) == "2.5"

    def test_sanitize_filename(self):
        assert sanitize_filename("01/AI/24-25") == "01-AI-24-25"
        assert sanitize_filename('a\\b?c%d*e:f|g"h<i>j') == "a-b-c-d-e-f-g-h-i-j"


# ===== RENDERERS =====

class TestRenderers:

    def test_document_from_invoice(self, db_session, settings, sample_client):
        invoice = make_invoice(db_session, sample_client)
        document = InvoiceDocument.from_invoice(invoice, settings)

        assert document.client_name == "Acme Analytics Pvt Ltd"
        assert [line.index for line in document.items] == [1, 2]
        assert document.subtotal == Decimal("100.00")
        assert document.balance_due == Decimal("100.00")
        assert document.amount_in_words == "US Dollars One Hundred Only"

    def test_html_template(self, db_session, settings, sample_client):
        invoice = make_invoice(db_session, sample_client, currency="INR", amount="150000.00")
        html = DocumentTemplates().render_invoice(InvoiceDocument.from_invoice(invoice, settings))

        assert "01/AI/24-25" in html
        assert "₹150,000.00" in html
        assert "Rupees One Lakh Fifty Thousand Only" in html
        assert settings.COMPANY_NAME in html

    def test_canvas_renderer_writes_pdf(self, db_session, settings, sample_client, tmp_path):
        invoice = make_invoice(db_session, sample_client)
        target = tmp_path / "Invoice_01-AI-24-25.pdf"

        rendered = CanvasPdfRenderer().render(InvoiceDocument.from_invoice(invoice, settings), target)

        assert rendered.kind == "pdf"
        assert rendered.renderer == "canvas"
        assert target.read_bytes().startswith(b"%PDF")
        assert [p.name for p in tmp_path.iterdir()] == [target.name]

    def test_chain_falls_through_in_order(self, db_session, settings, sample_client, tmp_path):
        invoice = make_invoice(db_session, sample_client)
        failing, pdf = FailingRenderer(), FakePdfRenderer()
        chain = RendererChain([failing, pdf, HtmlPageRenderer()])

        rendered = chain.render(InvoiceDocument.from_invoice(invoice, settings), tmp_path / "out.pdf")

        assert rendered.renderer == "fake-pdf"
        assert (failing.calls, pdf.calls) == (1, 1)

    def test_html_is_the_last_resort(self, db_session, settings, sample_client, tmp_path):
        invoice = make_invoice(db_session, sample_client)
        chain = RendererChain([FailingRenderer(), HtmlPageRenderer()])

        rendered = chain.render(InvoiceDocument.from_invoice(invoice, settings), tmp_path / "Invoice_x.pdf")

        assert rendered.kind == "html"
        assert rendered.filename == "Invoice_x.html"
        assert rendered.media_type == "text/html"
        assert "Model review" in rendered.content
        assert not (tmp_path / "Invoice_x.pdf").exists()

    def test_exhausted_chain(self, db_session, settings, sample_client, tmp_path):
        invoice = make_invoice(db_session, sample_client)
        chain = RendererChain([FailingRenderer(), FailingRenderer()])

        with pytest.raises(DocumentGenerationFailed) as exc_info:
            chain.render(InvoiceDocument.from_invoice(invoice, settings), tmp_path / "out.pdf")

        assert exc_info.value.status_code == 500
        assert exc_info.value.reason == "renderers_exhausted"


# ===== BROWSER =====

SLOW_BROWSER = """#!/bin/sh
exec sleep 10
"""

CRASHING_BROWSER = """#!/bin/sh
echo "cannot open display" >&2
exit 3
"""

WORKING_BROWSER = """#!/bin/sh
for arg in "$@"; do
  case "$arg" in
    --print-to-pdf=*) printf '%%PDF-1.4 browser\\n' > "${arg#--print-to-pdf=}" ;;
  esac
done
"""


class TestBrowserRenderer:
    """Runs the browser renderer against stand-in executables"""

    @pytest.fixture
    def scratch(self, tmp_path, monkeypatch):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        return scratch

    def make_service(self, settings, tmp_path, script):
        browser = tmp_path / "fake-chromium"
        browser.write_text(script)
        browser.chmod(0o755)
        return DocumentService(settings.model_copy(update={
            "DOCUMENTS_DIR": tmp_path / "docs",
            "PDF_BROWSER_PATH": str(browser),
            "PDF_RENDER_TIMEOUT": 1,
        }))

    def assert_nothing_left_behind(self, tmp_path, scratch):
        assert list(scratch.iterdir()) == []
        assert list((tmp_path / "docs").glob(".*.part")) == []

    def test_timeout_falls_back_to_canvas(self, db_session, settings, sample_client, tmp_path, scratch):
        invoice = make_invoice(db_session, sample_client)
        service = self.make_service(settings, tmp_path, SLOW_BROWSER)

        rendered = service.render(invoice)

        assert rendered.renderer == "canvas"
        assert rendered.path.read_bytes().startswith(b"%PDF")
        self.assert_nothing_left_behind(tmp_path, scratch)

    def test_failing_browser_falls_back_to_canvas(self, db_session, settings, sample_client, tmp_path, scratch):
        invoice = make_invoice(db_session, sample_client)
        service = self.make_service(settings, tmp_path, CRASHING_BROWSER)

        rendered = service.render(invoice)

        assert rendered.renderer == "canvas"
        self.assert_nothing_left_behind(tmp_path, scratch)

    def test_browser_pdf_is_cached(self, db_session, settings, sample_client, tmp_path, scratch):
        invoice = make_invoice(db_session, sample_client)
        service = self.make_service(settings, tmp_path, WORKING_BROWSER)

        rendered = service.render(invoice)

        assert rendered.renderer == "browser"
        assert rendered.path == tmp_path / "docs" / "Invoice_01-AI-24-25.pdf"
        assert rendered.path.read_bytes() == b"%PDF-1.4 browser\n"
        assert service.render(invoice).cached
        assert [p.name for p in (tmp_path / "docs").iterdir()] == ["Invoice_01-AI-24-25.pdf"]
        self.assert_nothing_left_behind(tmp_path, scratch)

    def test_browser_without_output(self, db_session, settings, sample_client, tmp_path, scratch):
        invoice = make_invoice(db_session, sample_client)
        renderer = BrowserPdfRenderer(self.make_service(settings, tmp_path, "#!/bin/sh\nexit 0\n").settings)

        with pytest.raises(RendererError):
            renderer.render(InvoiceDocument.from_invoice(invoice, settings), tmp_path / "docs" / "out.pdf")
        self.assert_nothing_left_behind(tmp_path, scratch)


# ===== SERVICE =====

class TestDocumentService:

    def make_service(self, settings, tmp_path, renderers):
        return DocumentService(settings.model_copy(update={"DOCUMENTS_DIR": tmp_path}), renderers)

    def test_cache_path(self, settings, tmp_path):
        service = self.make_service(settings, tmp_path, [])
        assert service.cache_path("01/AI/24-25") == tmp_path / "Invoice_01-AI-24-25.pdf"

    def test_render_is_cached(self, db_session, settings, sample_client, tmp_path):
        invoice = make_invoice(db_session, sample_client)
        renderer = FakePdfRenderer()
        service = self.make_service(settings, tmp_path, [renderer])

        first = service.render(invoice)
        second = service.render(invoice)

        assert renderer.calls == 1
        assert not first.cached
        assert second.cached
        assert second.path == first.path

        service.render(invoice, refresh=True)
        assert renderer.calls == 2

    def test_invalidate(self, db_session, settings, sample_client, tmp_path):
        invoice = make_invoice(db_session, sample_client)
        service = self.make_service(settings, tmp_path, [FakePdfRenderer()])
        rendered = service.render(invoice)

        service.invalidate(invoice.number)
        assert not rendered.path.exists()
        # Nothing cached is not an error
        service.invalidate(invoice.number)

    def test_incomplete_invoice(self, db_session, settings, sample_client, tmp_path):
        invoice = make_invoice(db_session, sample_client, with_items=False)
        renderer = FakePdfRenderer()
        service = self.make_service(settings, tmp_path, [renderer])

        with pytest.raises(DocumentGenerationFailed) as exc_info:
            service.render(invoice)

        assert exc_info.value.status_code == 422
        assert exc_info.value.to_dict()["missing"] == ["line_items"]
        assert renderer.calls == 0


# ===== API =====

class TestDocumentEndpoints:

    def test_download_pdf(self, client, accountant_headers, invoice_payload, documents_dir):
        invoice = create_invoice(client, accountant_headers, invoice_payload)

        response = client.get(f"/invoices/{invoice['id']}/pdf", headers=accountant_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == 'attachment; filename="Invoice_01-AI-24-25.pdf"'
        assert response.content.startswith(b"%PDF")
        assert (documents_dir / "Invoice_01-AI-24-25.pdf").is_file()

    def test_view_pdf_with_query_token(self, client, client_headers, accountant_headers, invoice_payload):
        invoice = create_invoice(client, accountant_headers, invoice_payload)
        token = client_headers["Authorization"].split(" ", 1)[1]

        response = client.get(f"/invoices/{invoice['id']}/view-pdf", params={"token": token})

        assert response.status_code == 200
        assert response.headers["content-disposition"].startswith("inline")
        assert "x-frame-options" not in response.headers
        assert response.content.startswith(b"%PDF")

    def test_view_pdf_requires_token(self, client, accountant_headers, invoice_payload):
        invoice = create_invoice(client, accountant_headers, invoice_payload)
        assert client.get(f"/invoices/{invoice['id']}/view-pdf").status_code == 401
        assert client.get(f"/invoices/{invoice['id']}/view-pdf", params={"token": "garbage"}).status_code == 401

    def test_generate_pdf_replaces_cache(self, client, accountant_headers, invoice_payload, documents_dir):
        invoice = create_invoice(client, accountant_headers, invoice_payload)
        cached = documents_dir / "Invoice_01-AI-24-25.pdf"
        cached.write_bytes(b"stale")

        response = client.post(f"/invoices/{invoice['id']}/generate-pdf", headers=accountant_headers)

        assert response.status_code == 200
        assert cached.read_bytes().startswith(b"%PDF")

    def test_payment_invalidates_cached_pdf(self, client, accountant_headers, invoice_payload, documents_dir):
        invoice = create_invoice(client, accountant_headers, invoice_payload)
        client.get(f"/invoices/{invoice['id']}/pdf", headers=accountant_headers)
        cached = documents_dir / "Invoice_01-AI-24-25.pdf"
        assert cached.is_file()

        client.post(
            f"/invoices/{invoice['id']}/payments",
            json={"referenceNumber": "UTR-1", "amount": "25.00"},
            headers=accountant_headers
        )
        assert not cached.exists()

    def test_invoice_without_items(self, client, accountant_headers, invoice_payload):
        invoice = create_invoice(client, accountant_headers, {**invoice_payload, "items": []})

        response = client.get(f"/invoices/{invoice['id']}/pdf", headers=accountant_headers)

        assert response.status_code == 422
        assert response.json()["kind"] == "document_generation_failed"
        assert response.json()["reason"] == "invoice_incomplete"

    def test_html_fallback(self, client, accountant_headers, invoice_payload, settings, documents_dir):
        invoice = create_invoice(client, accountant_headers, invoice_payload)
        fallback = DocumentService(
            settings.model_copy(update={"DOCUMENTS_DIR": documents_dir}),
            [FailingRenderer(), HtmlPageRenderer()]
        )
        app.dependency_overrides[get_document_service] = lambda: fallback

        response = client.get(f"/invoices/{invoice['id']}/pdf", headers=accountant_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.headers["content-disposition"].startswith("inline")
        assert "01/AI/24-25" in response.text
        assert not (documents_dir / "Invoice_01-AI-24-25.pdf").exists()

    def test_all_renderers_failing(self, client, accountant_headers, invoice_payload, settings, documents_dir):
        invoice = create_invoice(client, accountant_headers, invoice_payload)
        broken = DocumentService(
            settings.model_copy(update={"DOCUMENTS_DIR": documents_dir}),
            [FailingRenderer()]
        )
        app.dependency_overrides[get_document_service] = lambda: broken

        response = client.get(f"/invoices/{invoice['id']}/pdf", headers=accountant_headers)

        assert response.status_code == 500
        assert response.json()["reason"] == "renderers_exhausted"

    def test_missing_invoice(self, client, accountant_headers):
        response = client.get("/invoices/00000000-0000-0000-0000-000000000000/pdf", headers=accountant_headers)
        assert response.status_code == 404
