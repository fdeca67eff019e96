"""
Business logic of certificates and service reports.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .database import RecordRepository, get_record_repo
from .exceptions import (
    DatabaseError, DocumentGenerationError, GenerationError, RecordNotFoundError,
    SerialAllocationError, StorageError
)
from .models import (
    CertificateRecord, CertificateRequest, CertificateUpdate,
    ServiceRecord, ServiceRequest, ServiceUpdate
)
from .numbering import RecordIdGenerator, SerialAllocator, create_allocator
from .renderer import DocumentRenderer, create_renderer

logger = logging.getLogger(__name__)

PASSTHROUGH_ERRORS = (
    RecordNotFoundError, GenerationError, SerialAllocationError,
    DocumentGenerationError, StorageError, DatabaseError
)


class DocumentService:
    """Record lifecycle: create, read, update, delete and document download."""

    def __init__(self, repository: RecordRepository, allocator: SerialAllocator,
                 renderer: DocumentRenderer, id_generator: Optional[RecordIdGenerator] = None):
        self.repository = repository
        self.allocator = allocator
        self.renderer = renderer
        self.id_generator = id_generator or RecordIdGenerator()

    # Certificates

    def create_certificate(self, request: CertificateRequest) -> Tuple[CertificateRecord, Path]:
        """
        Creates a certificate, assigns its number and renders the PDF.

        Args:
            request: Validated certificate data

        Returns:
            Tuple[CertificateRecord, Path]: Stored record and path of the rendered PDF

        Raises:
            SerialAllocationError: If strict numbering is on and the counter cannot be persisted
            DatabaseError: If the record cannot be stored
            DocumentGenerationError: If the record was stored but the PDF could not be rendered
        """
        logger.info(f"Creating certificate for {request.customer_name}")

        try:
            certificate_id = self.id_generator.certificate_id(self.repository.get_existing_certificate_ids())
            certificate_no = str(self.allocator.allocate())

            data = request.model_dump()
            data.update(certificate_id=certificate_id, certificate_no=certificate_no)
            record = self.repository.create_certificate(data)
        except Exception as e:
            logger.error(f"Error creating certificate: {e}")
            raise self._wrap(e, "creating certificate")

        path = self._render(record)
        logger.info(f"Certificate {record.certificate_no} ({record.certificate_id}) created")
        return record, path

    def get_certificate(self, certificate_id: str) -> CertificateRecord:
        """
        Raises:
            RecordNotFoundError: If there is no such certificate
        """
        try:
            record = self.repository.get_certificate(certificate_id)
        except Exception as e:
            raise self._wrap(e, f"reading certificate {certificate_id}")

        if record is None:
            raise RecordNotFoundError(f"Certificate {certificate_id} not found")
        return record

    def list_certificates(self) -> List[CertificateRecord]:
        try:
            return self.repository.list_certificates()
        except Exception as e:
            raise self._wrap(e, "listing certificates")

    def update_certificate(self, certificate_id: str, update: CertificateUpdate) -> CertificateRecord:
        """
        Updates certificate fields and discards the stored PDF.

        The document is rendered again on the next download.

        Raises:
            RecordNotFoundError: If there is no such certificate
        """
        try:
            record = self.repository.update_certificate(certificate_id, update.changes())
        except Exception as e:
            raise self._wrap(e, f"updating certificate {certificate_id}")

        if record is None:
            raise RecordNotFoundError(f"Certificate {certificate_id} not found")

        self._invalidate(record)
        logger.info(f"Certificate {certificate_id} updated")
        return record

    def delete_certificate(self, certificate_id: str) -> None:
        """
        Deletes a certificate and its PDF.

        Raises:
            RecordNotFoundError: If there is no such certificate
        """
        try:
            deleted = self.repository.delete_certificate(certificate_id)
        except Exception as e:
            raise self._wrap(e, f"deleting certificate {certificate_id}")

        if not deleted:
            raise RecordNotFoundError(f"Certificate {certificate_id} not found")

        self.renderer.certificate_store.delete(certificate_id)
        logger.info(f"Certificate {certificate_id} deleted")

    def certificate_document(self, certificate_id: str) -> Tuple[CertificateRecord, Path]:
        """
        Returns the certificate PDF, rendering it if missing or empty.

        Raises:
            RecordNotFoundError: If there is no such certificate
            DocumentGenerationError: If the PDF cannot be rendered
        """
        record = self.get_certificate(certificate_id)
        return record, self._document(record)

    # Services

    def create_service(self, request: ServiceRequest) -> Tuple[ServiceRecord, Path]:
        """
        Creates a service report and renders the PDF.

        Returns:
            Tuple[ServiceRecord, Path]: Stored record and path of the rendered PDF
        """
        logger.info(f"Creating service report for {request.customer_name}")

        try:
            service_id = self.id_generator.service_id(self.repository.get_existing_service_ids())
            data = request.model_dump()
            data.update(service_id=service_id)
            record = self.repository.create_service(data)
        except Exception as e:
            logger.error(f"Error creating service report: {e}")
            raise self._wrap(e, "creating service report")

        path = self._render(record)
        logger.info(f"Service report {record.service_id} created")
        return record, path

    def get_service(self, service_id: str) -> ServiceRecord:
        try:
            record = self.repository.get_service(service_id)
        except Exception as e:
            raise self._wrap(e, f"reading service report {service_id}")

        if record is None:
            raise RecordNotFoundError(f"Service report {service_id} not found")
        return record

    def list_services(self) -> List[ServiceRecord]:
        try:
            return self.repository.list_services()
        except Exception as e:
            raise self._wrap(e, "listing service reports")

    def update_service(self, service_id: str, update: ServiceUpdate) -> ServiceRecord:
        """Updates service report fields and discards the stored PDF."""
        try:
            record = self.repository.update_service(service_id, update.changes())
        except Exception as e:
            raise self._wrap(e, f"updating service report {service_id}")

        if record is None:
            raise RecordNotFoundError(f"Service report {service_id} not found")

        self._invalidate(record)
        logger.info(f"Service report {service_id} updated")
        return record

    def delete_service(self, service_id: str) -> None:
        try:
            deleted = self.repository.delete_service(service_id)
        except Exception as e:
            raise self._wrap(e, f"deleting service report {service_id}")

        if not deleted:
            raise RecordNotFoundError(f"Service report {service_id} not found")

        self.renderer.service_store.delete(service_id)
        logger.info(f"Service report {service_id} deleted")

    def service_document(self, service_id: str) -> Tuple[ServiceRecord, Path]:
        """Returns the service report PDF, rendering it if missing or empty."""
        record = self.get_service(service_id)
        return record, self._document(record)

    # Statistics

    def get_statistics(self) -> Dict:
        """Record counts, document store usage and the numbering state."""
        try:
            counter = self.allocator.peek()
        except Exception as e:
            logger.warning(f"Certificate counter unavailable: {e}")
            counter = None

        try:
            return {
                "database": self.repository.get_statistics(),
                "certificate_documents": self.renderer.certificate_store.get_storage_stats(),
                "service_documents": self.renderer.service_store.get_storage_stats(),
                "counter": counter.to_json_dict() if counter else None,
                "last_updated": datetime.now().isoformat()
            }
        except Exception as e:
            logger.error(f"Error reading statistics: {e}")
            raise self._wrap(e, "reading statistics")

    # Helpers

    def _render(self, record) -> Path:
        try:
            return self.renderer.render(record).path
        except (DocumentGenerationError, StorageError) as e:
            logger.error(f"Error generating document for {record.document_id}: {e}")
            raise DocumentGenerationError(f"Could not generate document {record.document_id}: {e}")

    def _document(self, record) -> Path:
        store = self.renderer.store_for(record)
        if store.exists(record.document_id):
            return store.path_for(record.document_id)

        logger.info(f"Document {record.document_id} missing, regenerating")
        return self._render(record)

    def _invalidate(self, record):
        try:
            self.renderer.store_for(record).delete(record.document_id)
        except StorageError as e:
            logger.warning(f"Could not discard stale document {record.document_id}: {e}")

    @staticmethod
    def _wrap(error: Exception, action: str) -> Exception:
        if isinstance(error, PASSTHROUGH_ERRORS):
            return error
        if isinstance(error, IntegrityError):
            return DatabaseError(f"Duplicate record while {action}: {error.orig}")
        if isinstance(error, SQLAlchemyError):
            return DatabaseError(f"Database error while {action}: {error}")
        return DatabaseError(f"Unexpected error while {action}: {error}")


# Global service instance, created on first use
_document_service: Optional[DocumentService] = None


def create_document_service(settings, repository: Optional[RecordRepository] = None) -> DocumentService:
    """Builds the service from settings."""
    return DocumentService(
        repository or get_record_repo(),
        create_allocator(settings),
        create_renderer(settings)
    )


def get_document_service() -> DocumentService:
    """Returns the document service instance."""
    global _document_service
    if _document_service is None:
        from config import get_settings
        _document_service = create_document_service(get_settings())
    return _document_service
