from __future__ import annotations

from meridian.business.docs.models import Document, DocumentVersion
from meridian.platform.security.repository import BaseRepository


class DocumentRepository(BaseRepository[Document]):
    resource = "docs.document"
    model = Document


class DocumentVersionRepository(BaseRepository[DocumentVersion]):
    resource = "docs.document_version"
    model = DocumentVersion
