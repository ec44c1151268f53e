"""Data models for normalized supplier records and import results."""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.errors import FormatErrorPayload


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiModel(BaseModel):
    """Base for shapes returned to callers (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EntityKind(str, Enum):
    LOCATION = "LOCATION"
    BRANCH = "BRANCH"
    VEHICLE_OFFER = "VEHICLE_OFFER"


class ResponseFormat(str, Enum):
    JSON_ARRAY = "JSON_ARRAY"
    JSON_WRAPPED = "JSON_WRAPPED"
    XML = "XML"
    LEGACY_DUMP = "LEGACY_DUMP"
    UNKNOWN = "UNKNOWN"


class AvailabilityStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ON_REQUEST = "ON_REQUEST"
    SOLD_OUT = "SOLD_OUT"


class Location(ApiModel):
    """Covered location, keyed by UN/LOCODE."""

    unlocode: str
    country: Optional[str] = None
    place: Optional[str] = None
    iata_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def key(self) -> str:
        return self.unlocode


class Branch(ApiModel):
    """Supplier branch, keyed by branch code."""

    branch_code: str
    name: str
    nato_locode: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address_line: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    location_type: Optional[str] = None
    collection_type: Optional[str] = None
    at_airport: Optional[bool] = None

    @property
    def key(self) -> str:
        return self.branch_code


class PricedEquip(ApiModel):
    code: str
    description: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None


class VehicleOffer(ApiModel):
    """One offer from an availability response."""

    supplier_offer_ref: str
    vehicle_class: Optional[str] = None
    make_model: Optional[str] = None
    currency: Optional[str] = None
    total_price: float
    availability_status: AvailabilityStatus
    picture_url: Optional[str] = None
    included: list[str] = Field(default_factory=list)
    not_included: list[str] = Field(default_factory=list)
    priced_equips: list[PricedEquip] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return self.supplier_offer_ref


Record = Union[Location, Branch, VehicleOffer]


class RecordErrorDetails(ApiModel):
    missing_fields: list[str] = Field(default_factory=list)
    invalid_fields: list[str] = Field(default_factory=list)


class RecordError(ApiModel):
    """Validation failure for one element of the source sequence."""

    index: int = Field(..., description="Position in the source sequence")
    identifier: Optional[str] = None
    message: str
    details: Optional[RecordErrorDetails] = None


class NormalizationResult(BaseModel):
    """Canonical records extracted from one response."""

    kind: EntityKind
    format: ResponseFormat
    total: int = 0
    records: list[Any] = Field(default_factory=list)
    errors: list[RecordError] = Field(default_factory=list)


class ImportResult(ApiModel):
    """Outcome of any import, independent of the source format."""

    total: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[RecordError] = Field(default_factory=list)
    format: Optional[ResponseFormat] = None
    format_error: Optional[FormatErrorPayload] = None


class AvailabilityCriteria(ApiModel):
    """Search criteria; the ordered field tuple is the sample dedup key."""

    pickup_loc: str
    dropoff_loc: str
    pickup_iso: str
    dropoff_iso: str
    requestor_id: Optional[str] = None
    driver_age: Optional[int] = None
    citizen_country: Optional[str] = None
    adapter_type: str = "xml"

    def key_tuple(self) -> tuple:
        return (
            self.pickup_loc,
            self.dropoff_loc,
            self.pickup_iso,
            self.dropoff_iso,
            self.requestor_id,
            self.driver_age,
            self.citizen_country,
            self.adapter_type,
        )


class AvailabilitySample(ApiModel):
    id: str
    criteria: AvailabilityCriteria
    offers: list[VehicleOffer] = Field(default_factory=list)
    content_hash: str
    fetched_at: datetime = Field(default_factory=utcnow)


class StoreOutcome(ApiModel):
    """Result of one availability fetch-and-store."""

    stored: bool
    is_new: bool = False
    duplicate: bool = False
    offers_count: int = 0
    message: str
    sample_id: Optional[str] = None
    errors: list[RecordError] = Field(default_factory=list)
    format_error: Optional[FormatErrorPayload] = None


class EndpointProbeResult(ApiModel):
    ok: bool
    ms: int
    error: Optional[str] = None
    result: Optional[dict[str, Any]] = None


class EndpointTestResult(ApiModel):
    """Outcome of one connectivity test against a transport address."""

    ok: bool
    addr: str
    total_ms: int
    probes: dict[str, Optional[EndpointProbeResult]] = Field(default_factory=dict)
    tested: list[str] = Field(default_factory=list)
    tested_at: datetime = Field(default_factory=utcnow)


class CachedEndpointTest(ApiModel):
    result: EndpointTestResult
    valid_for_address: str


class CompanyRole(str, Enum):
    SOURCE = "SOURCE"
    AGENT = "AGENT"


class VerificationState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    PASSED = "PASSED"
    FAILED = "FAILED"


class VerificationStep(ApiModel):
    name: str
    passed: bool
    detail: Optional[str] = None


class VerificationResult(ApiModel):
    """Verdict of one verification run, pass or fail."""

    company_id: str
    kind: CompanyRole
    passed: bool
    steps: list[VerificationStep] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
