"""
Shared test fixtures
"""
import base64
from datetime import date, datetime

import pytest

from config import Settings
from labdocs.database import DatabaseManager, RecordRepository
from labdocs.models import CertificateRecord, ServiceRecord
from labdocs.numbering import JsonCounterStore, SerialAllocator
from labdocs.pdf import PdfWriter
from labdocs.renderer import DocumentRenderer
from labdocs.service import DocumentService
from labdocs.storage import DocumentStore

# 1x1 transparent PNG
PNG_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

GENERATED_AT = datetime(2024, 5, 2, 10, 30, 0)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a temporary directory"""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'data' / 'labdocs.db'}",
        certificates_path=tmp_path / "certificates",
        services_path=tmp_path / "services",
        assets_path=tmp_path / "assets",
        counter_file=tmp_path / "counter.json",
        log_file=tmp_path / "logs" / "labdocs.log",
        pdf_invariant=True,
        api_key=None,
        _env_file=None
    )


@pytest.fixture
def assets(settings):
    """Logo and banner images"""
    settings.assets_path.mkdir(parents=True, exist_ok=True)
    settings.logo_path.write_bytes(PNG_PIXEL)
    settings.banner_path.write_bytes(PNG_PIXEL)
    return settings.assets_path


@pytest.fixture
def certificate_payload():
    """Certificate creation request as sent by the dashboard"""
    return {
        "customerName": "Acme Refinery",
        "siteLocation": "Jamnagar",
        "makeModel": "Honeywell BW Clip",
        "range": "0-100 ppm",
        "serialNo": "CA318-004512",
        "calibrationGas": "H2S",
        "gasCanisterDetails": "25 ppm H2S, lot 2291",
        "dateOfCalibration": "2024-05-02",
        "calibrationDueDate": "2025-05-01",
        "observations": [
            {"gas": "25 ppm", "before": "22 ppm", "after": "25 ppm"},
            {"gas": "50 ppm", "before": "47 ppm", "after": "50 ppm"}
        ],
        "engineerName": "R. Patel",
        "status": "checked"
    }


@pytest.fixture
def service_payload():
    """Service report creation request as sent by the dashboard"""
    return {
        "customerName": "Acme Refinery",
        "customerLocation": "Jamnagar",
        "contactPerson": "S. Shah",
        "contactNumber": "9800000000",
        "serviceEngineer": "R. Patel",
        "date": "2024-05-02",
        "place": "Site",
        "placeOptions": "On site",
        "natureOfJob": "Calibration",
        "reportNo": "SR-117",
        "makeModelNumberoftheInstrumentQuantity": "BW Clip x 4",
        "serialNumberoftheInstrumentCalibratedOK": "CA318-004512, CA318-004513",
        "serialNumberoftheFaultyNonWorkingInstruments": "None",
        "engineerRemarks": [
            {"serviceSpares": "Sensor H2S", "partNo": "SR-H04", "rate": "4500", "quantity": 2, "poNo": "PO-88"}
        ],
        "engineerName": "R. Patel",
        "status": "checked"
    }


@pytest.fixture
def certificate_record():
    """Stored certificate"""
    return CertificateRecord(
        certificate_id="CERT-1714640000000-abc123xyz",
        certificate_no="RPS/CERT/24-25/007",
        customer_name="Acme Refinery",
        site_location="Jamnagar",
        make_model="Honeywell BW Clip",
        range="0-100 ppm",
        serial_no="CA318-004512",
        calibration_gas="H2S",
        gas_canister_details="25 ppm H2S, lot 2291",
        date_of_calibration=date(2024, 5, 2),
        calibration_due_date=date(2025, 5, 1),
        observations=[{"gas": "25 ppm", "before": "22 ppm", "after": "25 ppm"}],
        engineer_name="R. Patel",
        status="checked"
    )


@pytest.fixture
def service_record():
    """Stored service report"""
    return ServiceRecord(
        service_id="SERV-1714640000000-def456uvw",
        customer_name="Acme Refinery",
        customer_location="Jamnagar",
        contact_person="S. Shah",
        contact_number="9800000000",
        service_engineer="R. Patel",
        date=date(2024, 5, 2),
        place="Site",
        place_options="On site",
        nature_of_job="Calibration",
        report_no="SR-117",
        instruments_make_model="BW Clip x 4",
        instruments_calibrated_ok="CA318-004512",
        instruments_faulty="None",
        engineer_remarks=[
            {"service_spares": "Sensor H2S", "part_no": "SR-H04", "rate": "4500", "quantity": 2, "po_no": "PO-88"}
        ],
        engineer_name="R. Patel",
        status="checked"
    )


@pytest.fixture
def renderer(settings):
    """Renderer writing into the temporary document directories"""
    return DocumentRenderer(
        DocumentStore(settings.certificates_path),
        DocumentStore(settings.services_path),
        logo_path=settings.logo_path,
        banner_path=settings.banner_path,
        writer=PdfWriter(invariant=True),
        clock=lambda: GENERATED_AT
    )


@pytest.fixture
def db_manager(settings):
    """Database with created tables"""
    manager = DatabaseManager(settings.database_url)
    manager.create_tables()
    yield manager
    manager.engine.dispose()


@pytest.fixture
def allocator(settings):
    """Allocator with a fixed date in fiscal year 24-25"""
    return SerialAllocator(JsonCounterStore(settings.counter_file), clock=lambda: date(2024, 5, 2))


@pytest.fixture
def document_service(db_manager, allocator, renderer):
    """Document service over temporary storage"""
    return DocumentService(RecordRepository(db_manager), allocator, renderer)
