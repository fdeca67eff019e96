"""
Renders certificate and service records into stored PDF documents.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .certificate_layout import layout_certificate
from .exceptions import DocumentGenerationError
from .layout import RenderReport
from .models import CertificateRecord, ServiceRecord
from .pdf import PdfWriter
from .service_layout import layout_service
from .storage import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class RenderResult:
    """Stored document and the step report of its render."""
    path: Path
    pages: int
    report: RenderReport


class DocumentRenderer:
    """Lays out records, writes the PDF and saves it in the document store."""

    def __init__(self, certificate_store: DocumentStore, service_store: DocumentStore,
                 logo_path: Optional[Path] = None, banner_path: Optional[Path] = None,
                 writer: Optional[PdfWriter] = None, clock: Callable[[], datetime] = datetime.now):
        self.certificate_store = certificate_store
        self.service_store = service_store
        self.logo_path = logo_path
        self.banner_path = banner_path
        self.writer = writer or PdfWriter()
        self.clock = clock

    def render_certificate(self, record: CertificateRecord) -> RenderResult:
        """
        Renders a certificate and stores it under its certificate ID.

        Args:
            record: Certificate record

        Returns:
            RenderResult: Saved document

        Raises:
            DocumentGenerationError: If the PDF cannot be produced
            StorageError: If the PDF cannot be saved
        """
        description, report = layout_certificate(record, self.clock(), logo_path=self.logo_path)
        return self._finish(description, report, self.certificate_store, record.document_id)

    def render_service(self, record: ServiceRecord) -> RenderResult:
        """
        Renders a service report and stores it under its service ID.

        Raises:
            DocumentGenerationError: If the PDF cannot be produced
            StorageError: If the PDF cannot be saved
        """
        description, report = layout_service(
            record, self.clock(), logo_path=self.logo_path, banner_path=self.banner_path
        )
        return self._finish(description, report, self.service_store, record.document_id)

    def render(self, record) -> RenderResult:
        """Renders a certificate or a service record."""
        if isinstance(record, CertificateRecord):
            return self.render_certificate(record)
        if isinstance(record, ServiceRecord):
            return self.render_service(record)
        raise DocumentGenerationError(f"Unsupported record type: {type(record).__name__}")

    def store_for(self, record) -> DocumentStore:
        """Document store holding the PDF of a record."""
        return self.certificate_store if isinstance(record, CertificateRecord) else self.service_store

    def _finish(self, description, report: RenderReport, store: DocumentStore, document_id: str) -> RenderResult:
        try:
            data = self.writer.to_bytes(description)
        except Exception as e:
            logger.error(f"Error writing PDF for {document_id}: {e}")
            raise DocumentGenerationError(f"Could not generate document {document_id}: {e}")

        path = store.save(document_id, data)
        logger.info(f"{description.title} generated: {path}")
        return RenderResult(path=path, pages=len(description.pages), report=report)


def create_renderer(settings) -> DocumentRenderer:
    """Builds the renderer over the configured directories and assets."""
    return DocumentRenderer(
        DocumentStore(settings.certificates_path),
        DocumentStore(settings.services_path),
        logo_path=settings.logo_path,
        banner_path=settings.banner_path,
        writer=PdfWriter(invariant=settings.pdf_invariant)
    )


def generate_certificate_pdf(record: CertificateRecord, renderer: Optional[DocumentRenderer] = None) -> Path:
    """Renders a certificate with the configured renderer and returns the file path."""
    if renderer is None:
        from config import get_settings
        renderer = create_renderer(get_settings())
    return renderer.render_certificate(record).path


def generate_service_pdf(record: ServiceRecord, renderer: Optional[DocumentRenderer] = None) -> Path:
    """Renders a service report with the configured renderer and returns the file path."""
    if renderer is None:
        from config import get_settings
        renderer = create_renderer(get_settings())
    return renderer.render_service(record).path
