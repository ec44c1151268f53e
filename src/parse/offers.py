"""Normalize vehicle availability offers (OTA VehAvail structures or plain JSON)."""
import logging
import re
from typing import Any, Optional

import orjson

from src.parse.fields import RecordInvalid, boolean, get_path, number, pick, pick_text, text
from src.parse.models import AvailabilityStatus, PricedEquip, VehicleOffer

logger = logging.getLogger(__name__)

OFFER_REF = (
    "supplierOfferRef", "supplier_offer_ref", "offerRef", "offerId", "offer_id", "id",
    "VehAvailCore.Reference.ID", "Reference.ID", "VehAvailInfo.Reference.ID",
)
VEHICLE_CLASS = (
    "vehicleClass", "vehicle_class", "acriss", "sipp",
    "VehAvailCore.Vehicle.Code", "Vehicle.Code", "VehAvailCore.Vehicle.VehMakeModel.Code",
)
MAKE_MODEL = (
    "makeModel", "make_model", "vehicleName",
    "VehAvailCore.Vehicle.VehMakeModel.Name", "Vehicle.VehMakeModel.Name", "VehMakeModel.Name",
)
CURRENCY = (
    "currency", "currencyCode", "price.currency",
    "VehAvailCore.TotalCharge.CurrencyCode", "TotalCharge.CurrencyCode",
)
TOTAL_PRICE = (
    "totalPrice", "total_price", "price.amount", "price", "amount",
    "VehAvailCore.TotalCharge.RateTotalAmount", "VehAvailCore.TotalCharge.EstimatedTotalAmount",
    "TotalCharge.RateTotalAmount", "TotalCharge.EstimatedTotalAmount",
)
STATUS = ("availabilityStatus", "availability_status", "status", "VehAvailCore.Status")
PICTURE = (
    "pictureUrl", "picture_url", "imageUrl",
    "VehAvailCore.Vehicle.PictureURL", "Vehicle.PictureURL",
)
SIDE_CHANNEL = (
    "offerJson", "offer_json", "TPA_Extensions.OfferJSON", "VehAvailCore.TPA_Extensions.OfferJSON",
)

STATUS_MAP = {
    "available": AvailabilityStatus.AVAILABLE,
    "onrequest": AvailabilityStatus.ON_REQUEST,
    "request": AvailabilityStatus.ON_REQUEST,
    "soldout": AvailabilityStatus.SOLD_OUT,
    "unavailable": AvailabilityStatus.SOLD_OUT,
    "closed": AvailabilityStatus.SOLD_OUT,
}


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _items(sources: list[dict], *paths: str) -> list[Any]:
    """Raw list under the first matching path (no value unwrapping)."""
    for source in sources:
        for path in paths:
            value = get_path(source, path)
            if value not in (None, "", []):
                return _as_list(value)
    return []


def _side_channel(record: dict) -> Optional[dict]:
    """Adapter-supplied JSON copy of the offer, if any."""
    raw = pick(record, *SIDE_CHANNEL)
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.debug("Ignoring malformed offer JSON side-channel")
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def _status(value: Any, identifier: Optional[str]) -> AvailabilityStatus:
    raw = text(value)
    if raw is None:
        return AvailabilityStatus.AVAILABLE
    key = re.sub(r"[^a-z]", "", raw.lower())
    if key in STATUS_MAP:
        return STATUS_MAP[key]
    raise RecordInvalid(f"Unknown availability status {raw!r}", identifier, invalid=["availabilityStatus"])


def _term_label(item: Any) -> Optional[str]:
    if isinstance(item, str):
        return item.strip() or None
    label = pick_text(item, "description", "name", "Description", "value")
    if label:
        return label
    purpose = pick_text(item, "Purpose", "code")
    return f"Purpose {purpose}" if purpose else None


def _terms(sources: list[dict]) -> tuple[list[str], list[str]]:
    """Included / not-included terms from plain lists or OTA charge structures."""
    included = [t for t in map(_term_label, _items(sources, "included", "includedTerms", "inclusions")) if t]
    not_included = [
        t for t in map(_term_label, _items(sources, "notIncluded", "not_included", "exclusions")) if t
    ]
    if included or not_included:
        return included, not_included

    charges = [
        *_items(sources, "VehAvailCore.RentalRate.VehicleCharges.VehicleCharge", "RentalRate.VehicleCharges.VehicleCharge"),
        *_items(sources, "VehAvailCore.Fees.Fee", "Fees.Fee"),
    ]
    for charge in charges:
        label = _term_label(charge)
        if not label:
            continue
        if boolean(pick(charge, "IncludedInRate", "includedInRate")):
            included.append(label)
        else:
            not_included.append(label)
    return included, not_included


def _priced_equips(sources: list[dict], identifier: Optional[str]) -> list[PricedEquip]:
    items = _items(sources, "pricedEquips", "priced_equips", "extras")
    if not items:
        items = _items(sources, "VehAvailCore.PricedEquips.PricedEquip", "PricedEquips.PricedEquip")

    equips = []
    for item in items:
        if not isinstance(item, dict):
            continue
        code = pick_text(item, "code", "equipType", "Equipment.EquipType", "Equipment.Code")
        if not code:
            continue
        equips.append(
            PricedEquip(
                code=code,
                description=pick_text(item, "description", "Equipment.Description", "Equipment.value"),
                amount=number(pick(item, "amount", "price", "Charge.Amount"), "pricedEquips.amount", identifier),
                currency=pick_text(item, "currency", "Charge.CurrencyCode"),
            )
        )
    return equips


def normalize_offer(record: Any) -> VehicleOffer:
    if not isinstance(record, dict):
        raise RecordInvalid("Record is not an object")

    sources = [record]
    side = _side_channel(record)
    if side:
        sources.append(side)

    ref = pick_text(sources, *OFFER_REF)
    if not ref:
        raise RecordInvalid(
            "Missing required field: supplierOfferRef",
            pick_text(sources, *VEHICLE_CLASS),
            missing=["supplierOfferRef"],
        )

    total_price = number(pick(sources, *TOTAL_PRICE), "totalPrice", ref)
    if total_price is None:
        raise RecordInvalid("Missing required field: totalPrice", ref, missing=["totalPrice"])

    included, not_included = _terms(sources)
    currency = pick_text(sources, *CURRENCY)

    return VehicleOffer(
        supplier_offer_ref=ref,
        vehicle_class=pick_text(sources, *VEHICLE_CLASS),
        make_model=pick_text(sources, *MAKE_MODEL),
        currency=currency.upper() if currency else None,
        total_price=total_price,
        availability_status=_status(pick(sources, *STATUS), ref),
        picture_url=pick_text(sources, *PICTURE),
        included=included,
        not_included=not_included,
        priced_equips=_priced_equips(sources, ref),
    )
