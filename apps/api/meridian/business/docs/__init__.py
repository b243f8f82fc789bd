from meridian.business.docs.api import router
from meridian.business.docs.models import Document, DocumentVersion
from meridian.business.docs.service import DocumentService, document_service

__all__ = ["router", "Document", "DocumentVersion", "DocumentService", "document_service"]
