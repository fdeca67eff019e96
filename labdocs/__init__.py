"""
Calibration lab documents: certificate numbering and PDF rendering of
calibration certificates and service job reports.
"""

from .models import (
    CertificateNumber, CertificateRecord, CertificateRequest, FiscalCounter,
    ServiceRecord, ServiceRequest
)
from .numbering import JsonCounterStore, RecordIdGenerator, SerialAllocator, fiscal_year_label
from .renderer import DocumentRenderer, generate_certificate_pdf, generate_service_pdf
from .service import DocumentService, get_document_service
from .database import get_db_manager, get_record_repo

__version__ = "1.0.0"

__all__ = [
    'CertificateNumber',
    'CertificateRecord',
    'CertificateRequest',
    'FiscalCounter',
    'ServiceRecord',
    'ServiceRequest',
    'JsonCounterStore',
    'RecordIdGenerator',
    'SerialAllocator',
    'fiscal_year_label',
    'DocumentRenderer',
    'generate_certificate_pdf',
    'generate_service_pdf',
    'DocumentService',
    'get_document_service',
    'get_db_manager',
    'get_record_repo'
]
