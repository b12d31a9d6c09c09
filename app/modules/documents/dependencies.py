from typing import Annotated
from fastapi import Depends

from app.core.config import Settings, get_settings
from app.modules.documents.service import DocumentService


def get_document_service(settings: Settings = Depends(get_settings)) -> DocumentService:
    return DocumentService(settings)


documents_dependency = Annotated[DocumentService, Depends(get_document_service)]
