"""
Pydantic models for validation and serialization of certificates and service reports.
"""

import re
from datetime import datetime, date
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel


DateType = date
DateValue = Union[date, str, None]
QuantityValue = Union[int, float, str, None]


def _require_text(v, field_name: str) -> str:
    """Strips a text value and rejects blanks."""
    if v is None or not str(v).strip():
        raise ValueError(f"{field_name} is required")
    return str(v).strip()


def _date_only(v):
    """Datetimes and ISO timestamps are reduced to their calendar date."""
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, str) and v.strip():
        try:
            return datetime.fromisoformat(v.strip().replace("Z", "+00:00")).date()
        except ValueError:
            return v
    return v


def _require_date(v, field_name: str):
    """Calendar date of a value that may not be cleared."""
    if v is None:
        raise ValueError(f"{field_name} is required")
    return _date_only(v)


def _check_observations(v):
    if not v:
        raise ValueError("At least one observation is required")
    return v


def _check_remarks(v):
    """Every remark needs service/spares, part no, rate, numeric quantity and PO no."""
    if not v:
        raise ValueError("At least one engineer remark is required")

    for index, remark in enumerate(v, 1):
        for name in ('service_spares', 'part_no', 'rate', 'po_no'):
            value = getattr(remark, name)
            if value is None or not value.strip():
                raise ValueError(f"Engineer remark {index}: {to_camel(name)} is required")
            setattr(remark, name, value.strip())

        quantity = remark.quantity
        if isinstance(quantity, str):
            try:
                quantity = float(quantity)
            except ValueError:
                raise ValueError(f"Engineer remark {index}: quantity must be a number")
        if quantity is None:
            raise ValueError(f"Engineer remark {index}: quantity must be a number")
        if float(quantity).is_integer():
            quantity = int(quantity)
        remark.quantity = quantity

    return v


class Observation(BaseModel):
    """One calibration reading: gas concentration, reading before and after."""
    gas: Optional[str] = Field(None, description="Concentration of gas")
    before: Optional[str] = Field(None, description="Reading before calibration")
    after: Optional[str] = Field(None, description="Reading after calibration")

    @field_validator('gas', 'before', 'after', mode='before')
    def coerce_text(cls, v):
        """Numeric readings are kept as text."""
        if v is None:
            return v
        return str(v)


class EngineerRemark(BaseModel):
    """One line of the engineer remarks table of a service report."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    service_spares: Optional[str] = Field(None, description="Service or spare part")
    part_no: Optional[str] = Field(None, description="Part number")
    rate: Optional[str] = Field(None, description="Rate in rupees")
    quantity: QuantityValue = Field(None, description="Quantity")
    po_no: Optional[str] = Field(None, description="Purchase order number")

    @field_validator('rate', mode='before')
    def coerce_rate(cls, v):
        """Rates may arrive as numbers."""
        if v is None:
            return v
        return str(v)


class CertificateRequest(BaseModel):
    """Certificate creation request."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "customerName": "Acme Refinery",
                "siteLocation": "Jamnagar",
                "makeModel": "Honeywell BW Clip",
                "range": "0-100 ppm",
                "serialNo": "CA318-004512",
                "calibrationGas": "H2S",
                "gasCanisterDetails": "25 ppm H2S, lot 2291",
                "dateOfCalibration": "2024-05-02",
                "calibrationDueDate": "2025-05-01",
                "observations": [{"gas": "25 ppm", "before": "22 ppm", "after": "25 ppm"}],
                "engineerName": "R. Patel",
                "status": "checked"
            }
        }
    )

    customer_name: str = Field(..., description="Customer name")
    site_location: str = Field(..., description="Site location")
    make_model: str = Field(..., description="Instrument make and model")
    range: str = Field(..., description="Instrument range")
    serial_no: str = Field(..., description="Instrument serial number")
    calibration_gas: str = Field(..., description="Calibration gas")
    gas_canister_details: str = Field(..., description="Gas canister details")
    date_of_calibration: date = Field(..., description="Date of calibration")
    calibration_due_date: date = Field(..., description="Calibration due date")
    observations: List[Observation] = Field(..., description="Calibration observations")
    engineer_name: str = Field(..., description="Engineer who calibrated the instrument")
    status: str = Field(default="checked", description="Certificate status")

    @field_validator('customer_name', 'site_location', 'make_model', 'range', 'serial_no',
                     'calibration_gas', 'gas_canister_details', 'engineer_name', 'status', mode='before')
    def validate_text(cls, v, info: ValidationInfo):
        """All descriptive fields are required and non-blank."""
        return _require_text(v, to_camel(info.field_name))

    @field_validator('date_of_calibration', 'calibration_due_date', mode='before')
    def validate_dates(cls, v):
        """Accepts ISO timestamps as sent by the admin dashboard."""
        return _date_only(v)

    @field_validator('observations')
    def validate_observations(cls, v):
        """At least one observation is required."""
        return _check_observations(v)


class CertificateUpdate(BaseModel):
    """
    Certificate update request; identity and certificate number are immutable.

    Fields left out are kept. Fields sent must satisfy the same rules as on creation.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    customer_name: Optional[str] = None
    site_location: Optional[str] = None
    make_model: Optional[str] = None
    range: Optional[str] = None
    serial_no: Optional[str] = None
    calibration_gas: Optional[str] = None
    gas_canister_details: Optional[str] = None
    date_of_calibration: Optional[date] = None
    calibration_due_date: Optional[date] = None
    observations: Optional[List[Observation]] = None
    engineer_name: Optional[str] = None
    status: Optional[str] = None

    @field_validator('customer_name', 'site_location', 'make_model', 'range', 'serial_no',
                     'calibration_gas', 'gas_canister_details', 'engineer_name', 'status', mode='before')
    def validate_text(cls, v, info: ValidationInfo):
        return _require_text(v, to_camel(info.field_name))

    @field_validator('date_of_calibration', 'calibration_due_date', mode='before')
    def validate_dates(cls, v, info: ValidationInfo):
        """Accepts ISO timestamps as sent by the admin dashboard."""
        return _require_date(v, to_camel(info.field_name))

    @field_validator('observations')
    def validate_observations(cls, v):
        return _check_observations(v)

    def changes(self) -> dict:
        """Returns only the fields present in the request."""
        return self.model_dump(exclude_unset=True)


class CertificateRecord(BaseModel):
    """Stored calibration certificate."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    certificate_id: str = Field(..., description="Opaque certificate ID")
    certificate_no: str = Field(..., description="Fiscal-year certificate number")
    customer_name: Optional[str] = None
    site_location: Optional[str] = None
    make_model: Optional[str] = None
    range: Optional[str] = None
    serial_no: Optional[str] = None
    calibration_gas: Optional[str] = None
    gas_canister_details: Optional[str] = None
    date_of_calibration: DateValue = None
    calibration_due_date: DateValue = None
    observations: Optional[List[Observation]] = Field(default_factory=list)
    engineer_name: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('date_of_calibration', 'calibration_due_date', mode='before')
    def validate_dates(cls, v):
        """Datetimes from the store are reduced to their calendar date."""
        return _date_only(v)

    @property
    def document_id(self) -> str:
        """ID under which the rendered PDF is stored."""
        return self.certificate_id

    @property
    def download_name(self) -> str:
        """File name offered for download."""
        return f"certificate-{self.certificate_no.replace('/', '-')}.pdf"


class ServiceRequest(BaseModel):
    """Service report creation request."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    customer_name: str
    customer_location: str
    contact_person: str
    contact_number: str
    service_engineer: str
    date: DateType
    place: str
    place_options: str
    nature_of_job: str
    report_no: str
    instruments_make_model: str = Field(..., alias="makeModelNumberoftheInstrumentQuantity")
    instruments_calibrated_ok: str = Field(..., alias="serialNumberoftheInstrumentCalibratedOK")
    instruments_faulty: str = Field(..., alias="serialNumberoftheFaultyNonWorkingInstruments")
    engineer_remarks: List[EngineerRemark]
    engineer_name: str
    status: str = "checked"

    @field_validator('customer_name', 'customer_location', 'contact_person', 'contact_number',
                     'service_engineer', 'place', 'place_options', 'nature_of_job', 'report_no',
                     'instruments_make_model', 'instruments_calibrated_ok', 'instruments_faulty',
                     'engineer_name', 'status', mode='before')
    def validate_text(cls, v, info: ValidationInfo):
        """All fields are required and non-blank."""
        return _require_text(v, to_camel(info.field_name))

    @field_validator('date', mode='before')
    def validate_date(cls, v):
        """Accepts ISO timestamps as sent by the admin dashboard."""
        return _date_only(v)

    @field_validator('engineer_remarks')
    def validate_remarks(cls, v):
        return _check_remarks(v)


class ServiceUpdate(BaseModel):
    """Service report update request; the service ID is immutable."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    customer_name: Optional[str] = None
    customer_location: Optional[str] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None
    service_engineer: Optional[str] = None
    date: Optional[DateType] = None
    place: Optional[str] = None
    place_options: Optional[str] = None
    nature_of_job: Optional[str] = None
    report_no: Optional[str] = None
    instruments_make_model: Optional[str] = Field(None, alias="makeModelNumberoftheInstrumentQuantity")
    instruments_calibrated_ok: Optional[str] = Field(None, alias="serialNumberoftheInstrumentCalibratedOK")
    instruments_faulty: Optional[str] = Field(None, alias="serialNumberoftheFaultyNonWorkingInstruments")
    engineer_remarks: Optional[List[EngineerRemark]] = None
    engineer_name: Optional[str] = None
    status: Optional[str] = None

    @field_validator('customer_name', 'customer_location', 'contact_person', 'contact_number',
                     'service_engineer', 'place', 'place_options', 'nature_of_job', 'report_no',
                     'instruments_make_model', 'instruments_calibrated_ok', 'instruments_faulty',
                     'engineer_name', 'status', mode='before')
    def validate_text(cls, v, info: ValidationInfo):
        """Sent fields may not be cleared."""
        return _require_text(v, to_camel(info.field_name))

    @field_validator('date', mode='before')
    def validate_date(cls, v):
        return _require_date(v, "date")

    @field_validator('engineer_remarks')
    def validate_remarks(cls, v):
        return _check_remarks(v)

    def changes(self) -> dict:
        """Returns only the fields present in the request."""
        return self.model_dump(exclude_unset=True)


class ServiceRecord(BaseModel):
    """Stored service / calibration / installation job report."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    service_id: str = Field(..., description="Opaque service ID")
    customer_name: Optional[str] = None
    customer_location: Optional[str] = None
    contact_person: Optional[str] = None
    contact_number: Optional[str] = None
    service_engineer: Optional[str] = None
    date: DateValue = None
    place: Optional[str] = None
    place_options: Optional[str] = None
    nature_of_job: Optional[str] = None
    report_no: Optional[str] = None
    instruments_make_model: Optional[str] = Field(None, alias="makeModelNumberoftheInstrumentQuantity")
    instruments_calibrated_ok: Optional[str] = Field(None, alias="serialNumberoftheInstrumentCalibratedOK")
    instruments_faulty: Optional[str] = Field(None, alias="serialNumberoftheFaultyNonWorkingInstruments")
    engineer_remarks: Optional[List[EngineerRemark]] = Field(default_factory=list)
    engineer_name: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('date', mode='before')
    def validate_date(cls, v):
        """Datetimes from the store are reduced to their calendar date."""
        return _date_only(v)

    @property
    def document_id(self) -> str:
        """ID under which the rendered PDF is stored."""
        return self.service_id

    @property
    def download_name(self) -> str:
        """File name offered for download."""
        return f"service-{self.service_id}.pdf"


class FiscalCounter(BaseModel):
    """Durable numbering state: fiscal year label and last issued sequence."""
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"example": {"financialYear": "24-25", "counter": 17}}
    )

    fiscal_year: str = Field(..., alias="financialYear", description="Fiscal year label YY-YY")
    sequence: int = Field(..., alias="counter", ge=1, description="Last issued sequence")

    @field_validator('fiscal_year')
    def validate_fiscal_year(cls, v):
        """Fiscal year label format YY-YY."""
        if not re.fullmatch(r"\d{2}-\d{2}", v):
            raise ValueError(f"Invalid fiscal year label: {v}")
        return v

    def to_json_dict(self) -> dict:
        """On-disk shape: {"financialYear": "YY-YY", "counter": N}."""
        return self.model_dump(by_alias=True)


class CertificateNumber(BaseModel):
    """Certificate number PREFIX/<fiscal year>/<sequence padded to 3 digits>."""
    model_config = ConfigDict(frozen=True)

    fiscal_year: str
    sequence: int = Field(..., ge=1)
    prefix: str = "RPS/CERT"

    def __str__(self) -> str:
        # Sequences of 1000 and above are printed at full width
        return f"{self.prefix}/{self.fiscal_year}/{self.sequence:03d}"

    @classmethod
    def parse(cls, text: str, prefix: str = "RPS/CERT") -> "CertificateNumber":
        """
        Parses a formatted certificate number.

        Args:
            text: Certificate number, e.g. RPS/CERT/24-25/007
            prefix: Expected prefix

        Returns:
            CertificateNumber: Parsed number

        Raises:
            ValueError: If the text does not match the format
        """
        pattern = re.compile(rf"^{re.escape(prefix)}/(\d{{2}}-\d{{2}})/(\d{{3,}})$")
        match = pattern.match(text.strip())
        if not match or int(match.group(2)) < 1:
            raise ValueError(f"Invalid certificate number: {text}")
        return cls(fiscal_year=match.group(1), sequence=int(match.group(2)), prefix=prefix)
