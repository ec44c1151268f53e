"""Tests for vehicle offer normalization."""
import orjson

from src.parse.detector import detect_format
from src.parse.models import AvailabilityStatus, EntityKind
from src.parse.normalizer import normalize
from src.parse.offers import normalize_offer
from payloads import AVAILABILITY_XML, offers_json


def _offers(raw):
    return normalize(detect_format(raw, EntityKind.VEHICLE_OFFER))


def test_ota_xml_offers():
    """OTA VehAvail structures: attributes, nested charges and priced equipment."""
    result = _offers(AVAILABILITY_XML)
    assert result.errors == []
    first, second = result.records

    assert first.supplier_offer_ref == "OFF-001"
    assert first.vehicle_class == "CDMR"
    assert first.make_model == "VW Golf or similar"
    assert first.currency == "EUR"
    assert first.total_price == 245.5
    assert first.availability_status is AvailabilityStatus.AVAILABLE
    assert first.picture_url == "https://img.example.com/golf.png"
    assert first.included == ["Collision damage waiver"]
    assert first.not_included == ["Young driver fee"]
    assert len(first.priced_equips) == 1
    equip = first.priced_equips[0]
    assert (equip.code, equip.description, equip.amount, equip.currency) == ("7", "Child seat", 30.0, "EUR")

    assert second.supplier_offer_ref == "OFF-002"
    assert second.availability_status is AvailabilityStatus.ON_REQUEST
    assert second.priced_equips == []


def test_json_offers():
    result = _offers(orjson.dumps(offers_json()))
    first, second = result.records
    assert first.currency == "EUR"
    assert first.total_price == 100.0
    assert second.availability_status is AvailabilityStatus.SOLD_OUT


def test_side_channel_fills_missing_fields():
    """An adapter-supplied JSON copy fills what the OTA structure lacks."""
    side = {
        "included": ["Unlimited mileage"],
        "notIncluded": [{"description": "Fuel"}],
        "pricedEquips": [{"code": "GPS", "amount": "5.5", "currency": "EUR"}],
        "pictureUrl": "https://img.example.com/fiat.png",
    }
    record = {
        "VehAvailCore": {
            "attr": {"Status": "Available"},
            "Vehicle": {"attr": {"Code": "MBMR"}},
            "TotalCharge": {"attr": {"RateTotalAmount": "99.90", "CurrencyCode": "GBP"}},
            "Reference": {"attr": {"ID": "SIDE-1"}},
            "TPA_Extensions": {"OfferJSON": orjson.dumps(side).decode()},
        }
    }
    offer = normalize_offer(record)
    assert offer.supplier_offer_ref == "SIDE-1"
    assert offer.total_price == 99.9
    assert offer.included == ["Unlimited mileage"]
    assert offer.not_included == ["Fuel"]
    assert offer.priced_equips[0].code == "GPS"
    assert offer.priced_equips[0].amount == 5.5
    assert offer.picture_url == "https://img.example.com/fiat.png"


def test_missing_status_defaults_to_available():
    offer = normalize_offer({"offerId": "X1", "totalPrice": 10})
    assert offer.availability_status is AvailabilityStatus.AVAILABLE


def test_offer_errors_are_per_record():
    raw = {
        "offers": [
            {"vehicleClass": "CDMR", "totalPrice": 10},
            {"offerId": "B", "totalPrice": "ten"},
            {"offerId": "C"},
            {"offerId": "D", "totalPrice": 12, "status": "maybe"},
            {"offerId": "E", "totalPrice": 14},
        ]
    }
    result = _offers(raw)
    assert [o.supplier_offer_ref for o in result.records] == ["E"]
    assert [e.index for e in result.errors] == [0, 1, 2, 3]
    assert result.errors[0].details.missing_fields == ["supplierOfferRef"]
    assert result.errors[0].identifier == "CDMR"
    assert result.errors[1].details.invalid_fields == ["totalPrice"]
    assert result.errors[2].details.missing_fields == ["totalPrice"]
    assert result.errors[3].details.invalid_fields == ["availabilityStatus"]


def test_fees_split_by_included_flag():
    record = {
        "Reference": {"attr": {"ID": "F1"}},
        "TotalCharge": {"attr": {"RateTotalAmount": "50"}},
        "Fees": {"Fee": [
            {"attr": {"Purpose": "5", "IncludedInRate": "true", "Description": "Airport fee"}},
            {"attr": {"Purpose": "6", "IncludedInRate": "false"}},
        ]},
    }
    offer = normalize_offer(record)
    assert offer.included == ["Airport fee"]
    assert offer.not_included == ["Purpose 6"]
