"""Turn detected raw records into canonical Location / Branch / VehicleOffer models."""
import logging
import re
from typing import Any, Callable, Optional

from src.parse.detector import Detection
from src.parse.fields import (
    RecordInvalid,
    boolean,
    country_code,
    number,
    pick,
    pick_text,
    text,
)
from src.parse.models import (
    Branch,
    EntityKind,
    Location,
    NormalizationResult,
    Record,
    RecordError,
    RecordErrorDetails,
)
from src.parse.offers import normalize_offer

logger = logging.getLogger(__name__)

UNLOCODE_RE = re.compile(r"^[A-Z]{2}[A-Z0-9]{3}$")

EXPLICIT_UNLOCODE = ("unlocode", "un_locode", "UNLocode", "locode", "natoLocode", "nato_locode")
SUPPLIER_CODE = ("Code", "LocationCode", "branchCode", "Branchcode", "branch_code")
COUNTRY_CODE = ("countryCode", "country_code", "Address.CountryName.attr.Code", "CountryName.attr.Code", "country")


def _clean_locode(value: Any) -> Optional[str]:
    raw = text(value)
    if not raw:
        return None
    return re.sub(r"[\s-]", "", raw).upper()


def record_country_code(record: Any) -> Optional[str]:
    for name in COUNTRY_CODE:
        code = country_code(pick(record, name))
        if code:
            return code
    return None


def resolve_unlocode(record: Any) -> Optional[str]:
    """
    UN/LOCODE for a record. An explicit UN/LOCODE field wins over the
    derived ``country code + first 3 chars of the supplier code``.
    """
    explicit = _clean_locode(pick(record, *EXPLICIT_UNLOCODE))
    if explicit:
        return explicit

    code = _clean_locode(pick(record, *SUPPLIER_CODE))
    country = record_country_code(record)
    if code and country:
        return f"{country}{code[:3]}"
    return None


def _coordinates(record: Any, identifier: Optional[str]) -> tuple[Optional[float], Optional[float]]:
    latitude = number(pick(record, "latitude", "lat", "Position.Latitude"), "latitude", identifier)
    longitude = number(pick(record, "longitude", "lng", "lon", "Position.Longitude"), "longitude", identifier)
    invalid = []
    if latitude is not None and not -90 <= latitude <= 90:
        invalid.append("latitude")
    if longitude is not None and not -180 <= longitude <= 180:
        invalid.append("longitude")
    if invalid:
        raise RecordInvalid(f"Coordinates out of range: {', '.join(invalid)}", identifier, invalid=invalid)
    return latitude, longitude


def normalize_location(record: Any) -> Location:
    if not isinstance(record, dict):
        raise RecordInvalid("Record is not an object")

    supplier_code = pick_text(record, *SUPPLIER_CODE)
    unlocode = resolve_unlocode(record)
    identifier = unlocode or supplier_code or pick_text(record, "name", "place")

    if not unlocode:
        missing = ["unlocode"]
        if supplier_code:
            missing.append("country")
        raise RecordInvalid("Missing required field: unlocode", identifier, missing=missing)
    if not UNLOCODE_RE.match(unlocode):
        raise RecordInvalid(f"Invalid UN/LOCODE {unlocode!r}", identifier, invalid=["unlocode"])

    latitude, longitude = _coordinates(record, identifier)
    iata = pick_text(record, "iataCode", "iata_code", "iata")

    return Location(
        unlocode=unlocode,
        country=record_country_code(record) or unlocode[:2],
        place=pick_text(record, "place", "name", "city", "LocationName", "Address.CityName"),
        iata_code=iata.upper() if iata else None,
        latitude=latitude,
        longitude=longitude,
    )


def normalize_branch(record: Any) -> Branch:
    if not isinstance(record, dict):
        raise RecordInvalid("Record is not an object")

    branch_code = pick_text(record, "branchCode", "branch_code", "Branchcode", "Code", "LocationCode")
    name = pick_text(record, "name", "branchName", "LocationName")
    if not branch_code:
        raise RecordInvalid("Missing required field: branchCode", name, missing=["branchCode"])

    latitude, longitude = _coordinates(record, branch_code)

    nato_locode = resolve_unlocode(record)
    if nato_locode and not UNLOCODE_RE.match(nato_locode):
        logger.debug(f"Branch {branch_code}: dropping unusable locode {nato_locode!r}")
        nato_locode = None

    return Branch(
        branch_code=branch_code,
        name=name or branch_code,
        nato_locode=nato_locode,
        latitude=latitude,
        longitude=longitude,
        address_line=pick_text(record, "addressLine", "address_line", "Address.AddressLine", "address"),
        city=pick_text(record, "city", "Address.CityName", "CityName"),
        postal_code=pick_text(record, "postalCode", "postal_code", "Address.PostalCode"),
        country=pick_text(record, "Address.CountryName", "countryName", "country"),
        country_code=record_country_code(record),
        email=pick_text(record, "email", "EmailAddress"),
        phone=pick_text(record, "phone", "Telephone.PhoneNumber", "Telephone"),
        location_type=pick_text(record, "locationType", "location_type"),
        collection_type=pick_text(record, "collectionType", "collection_type"),
        at_airport=boolean(pick(record, "atAirport", "at_airport")),
    )


NORMALIZERS: dict[EntityKind, Callable[[Any], Record]] = {
    EntityKind.LOCATION: normalize_location,
    EntityKind.BRANCH: normalize_branch,
    EntityKind.VEHICLE_OFFER: normalize_offer,
}


def normalize(detection: Detection) -> NormalizationResult:
    """
    Extract canonical records in source order.

    Invalid records become error entries (``index`` is the source position)
    and are left out. A key seen twice keeps the later record, at the later
    position.
    """
    result = NormalizationResult(kind=detection.kind, format=detection.format, total=detection.total)
    if not detection.recognized:
        return result

    normalize_one = NORMALIZERS[detection.kind]
    by_key: dict[str, Record] = {}

    for index, raw in enumerate(detection.records):
        try:
            record = normalize_one(raw)
        except RecordInvalid as e:
            details = None
            if e.missing or e.invalid:
                details = RecordErrorDetails(missing_fields=e.missing, invalid_fields=e.invalid)
            result.errors.append(
                RecordError(index=index, identifier=e.identifier, message=str(e), details=details)
            )
            continue

        if record.key in by_key:
            logger.debug(f"Duplicate {detection.kind.value} key {record.key} at index {index}, keeping later")
            del by_key[record.key]
        by_key[record.key] = record

    result.records = list(by_key.values())
    if result.errors:
        logger.info(
            f"Normalized {len(result.records)}/{result.total} {detection.kind.value} records "
            f"({len(result.errors)} invalid)"
        )
    return result


def duplicates_collapsed(result: NormalizationResult) -> int:
    """Source records dropped because a later record had the same key."""
    return result.total - len(result.records) - len(result.errors)
