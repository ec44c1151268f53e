"""Classify a raw supplier response into one of the known wire formats.

Formats are tried in a fixed priority order, each as a pure rule that either
returns the raw record mappings it found or ``None`` (no match). Detection
never raises: an unrecognized body still produces a bounded, redacted preview
and the top-level keys that were received, so callers can show what came back.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

import orjson

from src.config import config
from src.errors import FormatErrorPayload
from src.parse.models import EntityKind, ResponseFormat
from src.parse.redact import preview as redacted_preview
from src.parse.redact import redact_json
from src.parse.vardump import VarDumpError, looks_like_vardump, parse_vardump
from src.parse.xml_records import decode_document, element_to_dict, find_all, local_name, parse_xml

logger = logging.getLogger(__name__)

_NOT_JSON = object()

ENVELOPE_KEY = "VehMatchedLocs"


@dataclass(frozen=True)
class EntityShape:
    """Where records of one entity kind live in each wire format."""

    wrapper_keys: tuple[str, ...]
    xml_pairs: tuple[tuple[str, str], ...]
    envelope_key: Optional[str]
    legacy: bool
    expected: tuple[str, ...]


SHAPES: dict[EntityKind, EntityShape] = {
    EntityKind.LOCATION: EntityShape(
        wrapper_keys=("Locations", "locations", "items", "data"),
        xml_pairs=(("Locations", "Location"), ("OTA_VehLocSearchRS", "LocationDetail")),
        envelope_key="LocationDetail",
        legacy=True,
        expected=(
            "JSON_ARRAY: [{unlocode, country, place, iataCode, latitude, longitude}]",
            'JSON_WRAPPED: {"Locations": [...]} or {"items": [...]}',
            "XML: <Locations><Location>...</Location></Locations>",
            "LEGACY_DUMP: var_dump of OTA_VehLocSearchRS.VehMatchedLocs[].VehMatchedLoc.LocationDetail",
        ),
    ),
    EntityKind.BRANCH: EntityShape(
        wrapper_keys=("Branches", "branches", "items", "data"),
        xml_pairs=(("Branches", "Branch"), ("OTA_VehLocSearchRS", "LocationDetail")),
        envelope_key="LocationDetail",
        legacy=True,
        expected=(
            "JSON_ARRAY: [{Branchcode, Name, Latitude, Longitude, Address}]",
            'JSON_WRAPPED: {"Branches": [...]} or an OTA_VehLocSearchRS envelope',
            "XML: <Branches><Branch>...</Branch></Branches>",
            "LEGACY_DUMP: var_dump of OTA_VehLocSearchRS.VehMatchedLocs[].VehMatchedLoc.LocationDetail",
        ),
    ),
    EntityKind.VEHICLE_OFFER: EntityShape(
        wrapper_keys=("offers", "Offers", "vehicles", "VehAvails", "items", "data"),
        xml_pairs=(("OTA_VehAvailRateRS", "VehAvail"), ("VehAvails", "VehAvail")),
        envelope_key=None,
        legacy=False,
        expected=(
            "JSON_ARRAY: [{offerId, vehicleClass, makeModel, currency, totalPrice, status}]",
            'JSON_WRAPPED: {"offers": [...]} or an OTA_VehAvailRateRS envelope',
            "XML: OTA_VehAvailRateRS with VehAvail elements",
        ),
    ),
}


@dataclass
class Payload:
    """Raw body plus its JSON parse (if any)."""

    text: Optional[str]
    parsed: Any = _NOT_JSON

    @property
    def is_json(self) -> bool:
        return self.parsed is not _NOT_JSON


@dataclass
class Detection:
    """Outcome of format detection."""

    kind: EntityKind
    format: ResponseFormat
    records: list[Any] = field(default_factory=list)
    preview: str = ""
    received_keys: list[str] = field(default_factory=list)
    expected_formats: list[str] = field(default_factory=list)

    @property
    def recognized(self) -> bool:
        return self.format is not ResponseFormat.UNKNOWN

    @property
    def total(self) -> int:
        return len(self.records)

    def format_error(self) -> Optional[FormatErrorPayload]:
        if self.recognized:
            return None
        return FormatErrorPayload(
            message=f"Unrecognized {self.kind.value.lower()} response format",
            preview=self.preview,
            received_keys=self.received_keys,
            expected_formats=self.expected_formats,
        )


Rule = Callable[[Payload, EntityShape, str], Optional[list[Any]]]


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _iter_key(obj: Any, name: str, depth: int = 0, max_depth: int = 8) -> Iterator[Any]:
    """Yield every value stored under ``name`` (depth-first, document order)."""
    if depth > max_depth:
        return
    if isinstance(obj, dict):
        for key, value in obj.items():
            if key == name:
                yield value
            else:
                yield from _iter_key(value, name, depth + 1, max_depth)
    elif isinstance(obj, list):
        for item in obj:
            yield from _iter_key(item, name, depth + 1, max_depth)


def envelope_records(obj: Any, detail_key: str) -> Optional[list[Any]]:
    """
    Records under ``<root>.VehMatchedLocs[].VehMatchedLoc.<detail_key>``.
    A matched entry without a detail block is kept as-is so the normalizer
    reports it at the right index.
    """
    containers = list(_iter_key(obj, ENVELOPE_KEY, max_depth=3))
    if not containers:
        return None

    records = []
    for container in containers:
        if isinstance(container, dict) and "VehMatchedLoc" in container:
            entries = [{"VehMatchedLoc": m} for m in _as_list(container["VehMatchedLoc"])]
        else:
            entries = _as_list(container)
        for entry in entries:
            matched = entry.get("VehMatchedLoc", entry) if isinstance(entry, dict) else entry
            for item in _as_list(matched):
                if isinstance(item, dict) and detail_key in item:
                    records.extend(_as_list(item[detail_key]))
                else:
                    records.append(item)
    return records


# -- rules ---------------------------------------------------------------

def _match_json_array(payload: Payload, shape: EntityShape, legacy_root: str) -> Optional[list[Any]]:
    if payload.is_json and isinstance(payload.parsed, list):
        return payload.parsed
    return None


def _match_json_wrapped(payload: Payload, shape: EntityShape, legacy_root: str) -> Optional[list[Any]]:
    if not payload.is_json or not isinstance(payload.parsed, dict):
        return None
    data = payload.parsed

    candidates = [data]
    for inner in ("data", "result", "response"):
        if isinstance(data.get(inner), dict):
            candidates.append(data[inner])
    for candidate in candidates:
        for key in shape.wrapper_keys:
            if isinstance(candidate.get(key), list):
                return candidate[key]

    if shape.envelope_key:
        return envelope_records(data, shape.envelope_key)

    # OTA availability envelope serialized as JSON
    found = list(_iter_key(data, "VehAvail"))
    if found:
        return [item for value in found for item in _as_list(value)]
    return None


def _match_legacy_dump(payload: Payload, shape: EntityShape, legacy_root: str) -> Optional[list[Any]]:
    if not shape.legacy:
        return None
    text = payload.parsed if payload.is_json and isinstance(payload.parsed, str) else payload.text
    if not text or legacy_root not in text or ENVELOPE_KEY not in text:
        return None
    if not looks_like_vardump(text):
        return None
    try:
        dumped = parse_vardump(text)
    except VarDumpError as e:
        logger.debug(f"Legacy sentinels present but var_dump read failed: {e}")
        return None
    return envelope_records(dumped, shape.envelope_key)


def _tag_pattern(tag: str) -> re.Pattern:
    return re.compile(rf"<(?:[\w.-]+:)?{re.escape(tag)}[\s>/]")


def _match_xml(payload: Payload, shape: EntityShape, legacy_root: str) -> Optional[list[Any]]:
    text = payload.text
    if not text or "<" not in text:
        return None
    for root_tag, leaf_tag in shape.xml_pairs:
        if not (_tag_pattern(root_tag).search(text) and _tag_pattern(leaf_tag).search(text)):
            continue
        root = parse_xml(text)
        if root is None:
            return None
        return [element_to_dict(el) for el in find_all(root, leaf_tag)]
    return None


RULES: tuple[tuple[ResponseFormat, Rule], ...] = (
    (ResponseFormat.JSON_ARRAY, _match_json_array),
    (ResponseFormat.JSON_WRAPPED, _match_json_wrapped),
    (ResponseFormat.LEGACY_DUMP, _match_legacy_dump),
    (ResponseFormat.XML, _match_xml),
)


def _load_payload(raw: Any) -> Payload:
    if isinstance(raw, (dict, list)):
        return Payload(text=None, parsed=raw)
    if isinstance(raw, bytes):
        raw = decode_document(raw)
    if raw is None:
        return Payload(text="")
    text = str(raw).lstrip("\ufeff")
    try:
        return Payload(text=text, parsed=orjson.loads(text))
    except orjson.JSONDecodeError:
        return Payload(text=text)


def _received_keys(payload: Payload) -> list[str]:
    if payload.is_json and isinstance(payload.parsed, dict):
        return [str(k) for k in payload.parsed.keys()]
    if payload.text and payload.text.lstrip().startswith("<"):
        root = parse_xml(payload.text)
        if root is not None:
            return [local_name(root)] + sorted({local_name(c) for c in root if isinstance(c.tag, str)})
    return []


def _preview_text(payload: Payload, limit: int) -> str:
    if payload.is_json:
        try:
            return redacted_preview(orjson.dumps(redact_json(payload.parsed)).decode(), limit)
        except TypeError:
            return redacted_preview(repr(redact_json(payload.parsed)), limit)
    return redacted_preview(payload.text or "", limit)


def detect_format(
    raw: Any,
    kind: EntityKind,
    legacy_root: Optional[str] = None,
    preview_chars: Optional[int] = None,
) -> Detection:
    """Detect the wire format of ``raw`` for the expected entity kind."""
    shape = SHAPES[kind]
    legacy_root = legacy_root or config.LOCATION_LIST_RESPONSE_ROOT
    preview_chars = preview_chars or config.PREVIEW_CHARS
    payload = _load_payload(raw)

    for fmt, rule in RULES:
        try:
            records = rule(payload, shape, legacy_root)
        except Exception as e:
            # A rule bug must not turn detection into an exception
            logger.warning(f"Format rule {fmt.value} failed: {e}", exc_info=True)
            records = None
        if records is not None:
            logger.debug(f"Detected {fmt.value} for {kind.value} with {len(records)} records")
            return Detection(kind=kind, format=fmt, records=list(records))

    detection = Detection(
        kind=kind,
        format=ResponseFormat.UNKNOWN,
        preview=_preview_text(payload, preview_chars),
        received_keys=_received_keys(payload),
        expected_formats=list(shape.expected),
    )
    logger.warning(
        f"Unrecognized {kind.value} response; received keys={detection.received_keys} "
        f"preview={detection.preview[:200]!r}"
    )
    return detection
