"""
Invoice document endpoints.

Downloads are sent as attachments; ``view-pdf`` is sent inline so it can be
embedded, and is the only route that also accepts the token as ``?token=``.
When no PDF renderer succeeds the HTML page is returned instead.
"""
from fastapi import APIRouter, Path, Query
from fastapi.responses import FileResponse, HTMLResponse
from uuid import UUID

from app.dependencies.dbDependecies import db_dependency, settings_dependency
from app.dependencies.userDependencies import any_role_dependency, viewer_dependency
from app.modules.documents.dependencies import documents_dependency
from app.modules.documents.schemas import RenderedDocument
from app.modules.invoices.service import InvoiceService

router = APIRouter(
    prefix="/invoices",
    tags=["Invoice documents"],
    responses={404: {"description": "Not found"}}
)


def document_response(rendered: RenderedDocument, disposition: str):
    if rendered.kind == "html":
        # Shown in place whatever was asked for: the fallback page is not a download
        return HTMLResponse(
            content=rendered.content,
            headers={"Content-Disposition": f'inline; filename="{rendered.filename}"'}
        )
    return FileResponse(
        rendered.path,
        media_type=rendered.media_type,
        filename=rendered.filename,
        content_disposition_type=disposition
    )


@router.api_route("/{invoice_id}/pdf", methods=["GET", "POST"])
def download_invoice_pdf(
    db: db_dependency,
    settings: settings_dependency,
    documents: documents_dependency,
    auth_context: any_role_dependency,
    invoice_id: UUID = Path(...),
    refresh: bool = Query(False, description="Ignore the cached file and render again")
):
    """Download the invoice PDF, rendering it on first request."""
    invoice = InvoiceService(db, settings).get_invoice(invoice_id)
    return document_response(documents.render(invoice, refresh=refresh), "attachment")


@router.post("/{invoice_id}/generate-pdf")
def generate_invoice_pdf(
    db: db_dependency,
    settings: settings_dependency,
    documents: documents_dependency,
    auth_context: any_role_dependency,
    invoice_id: UUID = Path(...)
):
    """Render the invoice again, replacing any cached PDF."""
    invoice = InvoiceService(db, settings).get_invoice(invoice_id)
    return document_response(documents.render(invoice, refresh=True), "attachment")


@router.get("/{invoice_id}/view-pdf")
def view_invoice_pdf(
    db: db_dependency,
    settings: settings_dependency,
    documents: documents_dependency,
    auth_context: viewer_dependency,
    invoice_id: UUID = Path(...),
    refresh: bool = Query(False)
):
    invoice = InvoiceService(db, settings).get_invoice(invoice_id)
    return document_response(documents.render(invoice, refresh=refresh), "inline")
