"""
HTTP API of certificates and service reports.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .exceptions import (
    DatabaseError, DocumentGenerationError, RecordNotFoundError, SerialAllocationError, StorageError
)
from .models import CertificateRequest, CertificateUpdate, ServiceRequest, ServiceUpdate
from .service import DocumentService

API_PREFIX = "/api/v1"

bearer_scheme = HTTPBearer(auto_error=False)


def _dump(record) -> dict:
    return record.model_dump(by_alias=True, mode="json")


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)


class DocumentAPI:
    """API over the document service."""

    def __init__(self, service: DocumentService, api_key: Optional[str] = None):
        self.service = service
        # An empty key from the environment disables authentication
        self.api_key = api_key or None
        self.logger = logging.getLogger(__name__)

        self.app = FastAPI(
            title="Calibration Documents API",
            description="Calibration certificates and service job reports",
            version="1.0.0"
        )

        self.router = APIRouter(prefix=API_PREFIX, dependencies=[Depends(self._verify_api_key)])
        self._setup_routes()
        self.app.include_router(self.router)
        self._setup_error_handlers()

    def _verify_api_key(self, credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> bool:
        """Checks the bearer token when an API key is configured."""
        if not self.api_key:
            return True
        if credentials is None or credentials.credentials != self.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")
        return True

    def _setup_error_handlers(self):
        @self.app.exception_handler(RequestValidationError)
        async def validation_error_handler(request: Request, exc: RequestValidationError):
            message = _validation_message(exc)
            self.logger.warning(f"Invalid request to {request.url.path}: {message}")
            return JSONResponse(status_code=400, content={"detail": message})

    def _failure(self, error: Exception, action: str) -> HTTPException:
        """Maps service errors to HTTP errors."""
        if isinstance(error, RecordNotFoundError):
            return HTTPException(status_code=404, detail=str(error))
        if isinstance(error, (DocumentGenerationError, StorageError)):
            self.logger.error(f"Document generation failed while {action}: {error}")
            return HTTPException(status_code=500, detail="Could not generate document")
        if isinstance(error, SerialAllocationError):
            self.logger.error(f"Certificate number allocation failed: {error}")
            return HTTPException(status_code=500, detail="Could not allocate certificate number")
        if isinstance(error, DatabaseError):
            self.logger.error(f"Database error while {action}: {error}")
            return HTTPException(status_code=500, detail="Database error")
        self.logger.error(f"Unexpected error while {action}: {error}")
        return HTTPException(status_code=500, detail="Internal server error")

    def _setup_routes(self):
        """Registers the API routes."""
        router = self.router

        @router.post("/certificates", status_code=201)
        def create_certificate(request: CertificateRequest):
            """Creates a certificate and renders its PDF."""
            try:
                record, path = self.service.create_certificate(request)
            except Exception as e:
                raise self._failure(e, "creating certificate")

            self.logger.info(f"Certificate {record.certificate_no} created, file: {path}")
            return {
                "message": "Certificate created successfully",
                "certificate": _dump(record),
                "downloadUrl": f"{API_PREFIX}/certificates/download/{record.certificate_id}"
            }

        @router.get("/certificates")
        def list_certificates():
            try:
                return [_dump(record) for record in self.service.list_certificates()]
            except Exception as e:
                raise self._failure(e, "listing certificates")

        @router.get("/certificates/download/{certificate_id}")
        def download_certificate(certificate_id: str):
            """Returns the certificate PDF, regenerating it when missing."""
            try:
                record, path = self.service.certificate_document(certificate_id)
            except Exception as e:
                raise self._failure(e, f"downloading certificate {certificate_id}")

            return FileResponse(path, media_type="application/pdf", filename=record.download_name)

        @router.get("/certificates/{certificate_id}")
        def get_certificate(certificate_id: str):
            try:
                return _dump(self.service.get_certificate(certificate_id))
            except Exception as e:
                raise self._failure(e, f"reading certificate {certificate_id}")

        @router.put("/certificates/{certificate_id}")
        def update_certificate(certificate_id: str, update: CertificateUpdate):
            try:
                record = self.service.update_certificate(certificate_id, update)
            except Exception as e:
                raise self._failure(e, f"updating certificate {certificate_id}")

            return {"message": "Certificate updated successfully", "certificate": _dump(record)}

        @router.delete("/certificates/{certificate_id}")
        def delete_certificate(certificate_id: str):
            try:
                self.service.delete_certificate(certificate_id)
            except Exception as e:
                raise self._failure(e, f"deleting certificate {certificate_id}")

            return {"message": "Certificate deleted successfully"}

        @router.post("/services", status_code=201)
        def create_service(request: ServiceRequest):
            """Creates a service report and renders its PDF."""
            try:
                record, path = self.service.create_service(request)
            except Exception as e:
                raise self._failure(e, "creating service report")

            self.logger.info(f"Service report {record.service_id} created, file: {path}")
            return {
                "message": "Service report created successfully",
                "service": _dump(record),
                "downloadUrl": f"{API_PREFIX}/services/download/{record.service_id}"
            }

        @router.get("/services")
        def list_services():
            try:
                return [_dump(record) for record in self.service.list_services()]
            except Exception as e:
                raise self._failure(e, "listing service reports")

        @router.get("/services/download/{service_id}")
        def download_service(service_id: str):
            try:
                record, path = self.service.service_document(service_id)
            except Exception as e:
                raise self._failure(e, f"downloading service report {service_id}")

            return FileResponse(path, media_type="application/pdf", filename=record.download_name)

        @router.get("/services/{service_id}")
        def get_service(service_id: str):
            try:
                return _dump(self.service.get_service(service_id))
            except Exception as e:
                raise self._failure(e, f"reading service report {service_id}")

        @router.put("/services/{service_id}")
        def update_service(service_id: str, update: ServiceUpdate):
            try:
                record = self.service.update_service(service_id, update)
            except Exception as e:
                raise self._failure(e, f"updating service report {service_id}")

            return {"message": "Service report updated successfully", "service": _dump(record)}

        @router.delete("/services/{service_id}")
        def delete_service(service_id: str):
            try:
                self.service.delete_service(service_id)
            except Exception as e:
                raise self._failure(e, f"deleting service report {service_id}")

            return {"message": "Service report deleted successfully"}

        @router.get("/statistics")
        def statistics():
            try:
                return self.service.get_statistics()
            except Exception as e:
                raise self._failure(e, "reading statistics")
