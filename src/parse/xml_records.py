"""XML helpers: element-to-mapping conversion and OTA request builders."""
import logging
import re
from typing import Any, Optional

from lxml import etree

logger = logging.getLogger(__name__)

OTA_NAMESPACE = "http://www.opentravel.org/OTA/2003/05"

XML_DECLARATION = re.compile(r"^\s*<\?xml[^>]*\?>")
XML_ENCODING = re.compile(rb"^\s*<\?xml[^>]*\bencoding\s*=\s*[\"']([A-Za-z0-9._-]+)[\"']")


def local_name(element: etree._Element) -> str:
    """Tag without namespace."""
    return etree.QName(element).localname


def decode_document(data: bytes, default: str = "utf-8") -> str:
    """Decode a raw body, using the XML declaration's encoding when there is one."""
    match = XML_ENCODING.match(data)
    encoding = match.group(1).decode("ascii") if match else default
    try:
        return data.decode(encoding, errors="replace")
    except LookupError:
        return data.decode(default, errors="replace")


def parse_xml(text: str | bytes) -> Optional[etree._Element]:
    """
    Parse XML with a recovering parser. Returns None when nothing usable is found.

    Text is already decoded, so its encoding declaration is dropped; bytes
    are left to lxml, which honours the declaration.
    """
    if isinstance(text, str):
        text = XML_DECLARATION.sub("", text, count=1).encode("utf-8")
    parser = etree.XMLParser(recover=True, resolve_entities=False, no_network=True, huge_tree=False)
    try:
        root = etree.fromstring(text.strip(), parser=parser)
    except etree.XMLSyntaxError as e:
        logger.debug(f"XML parse failed: {e}")
        return None
    return root


def find_all(root: etree._Element, tag: str) -> list[etree._Element]:
    """All descendants (and self) whose local name is ``tag``."""
    return [el for el in root.iter() if isinstance(el.tag, str) and local_name(el) == tag]


def element_to_dict(element: etree._Element) -> Any:
    """
    Convert an element to the mapping convention shared with JSON payloads:
    attributes under ``attr``, text next to attributes/children under
    ``value``, repeated children collected into lists. A leaf without
    attributes becomes its stripped text.
    """
    children = [child for child in element if isinstance(child.tag, str)]
    text = (element.text or "").strip()
    attributes = {etree.QName(k).localname: v for k, v in element.attrib.items()}

    if not children and not attributes:
        return text

    result: dict[str, Any] = {}
    if attributes:
        result["attr"] = attributes
    if text:
        result["value"] = text

    for child in children:
        name = local_name(child)
        converted = element_to_dict(child)
        if name in result:
            if not isinstance(result[name], list):
                result[name] = [result[name]]
            result[name].append(converted)
        else:
            result[name] = converted
    return result


def _ota_root(name: str) -> etree._Element:
    return etree.Element(
        f"{{{OTA_NAMESPACE}}}{name}",
        nsmap={None: OTA_NAMESPACE},
        Version="1.0",
    )


def _sub(parent: etree._Element, name: str, **attrs: str) -> etree._Element:
    return etree.SubElement(parent, f"{{{OTA_NAMESPACE}}}{name}", **attrs)


def _add_pos(root: etree._Element, requestor_id: Optional[str]) -> None:
    if not requestor_id:
        return
    source = _sub(_sub(root, "POS"), "Source")
    _sub(source, "RequestorID", Type="5", ID=str(requestor_id))


def build_location_list_request(request_root: str, account_id: Optional[str]) -> bytes:
    """Legacy location list request (root element name is configurable)."""
    root = _ota_root(request_root)
    _add_pos(root, account_id)
    _sub(root, "VehLocSearchCriterion")
    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")


def build_availability_request(
    pickup_loc: str,
    dropoff_loc: str,
    pickup_iso: str,
    dropoff_iso: str,
    requestor_id: Optional[str] = None,
    driver_age: Optional[int] = None,
    citizen_country: Optional[str] = None,
) -> bytes:
    """OTA_VehAvailRateRQ for one search."""
    root = _ota_root("OTA_VehAvailRateRQ")
    _add_pos(root, requestor_id)

    core = _sub(root, "VehAvailRQCore", Status="Available")
    _sub(core, "VehRentalCore", PickUpDateTime=pickup_iso, ReturnDateTime=dropoff_iso)
    rental_core = core[0]
    _sub(rental_core, "PickUpLocation", LocationCode=pickup_loc)
    _sub(rental_core, "ReturnLocation", LocationCode=dropoff_loc)

    if driver_age is not None or citizen_country:
        info = _sub(root, "VehAvailRQInfo")
        customer = _sub(_sub(info, "Customer"), "Primary")
        if driver_age is not None:
            _sub(customer, "DriverType", Age=str(driver_age))
        if citizen_country:
            _sub(customer, "CitizenCountryName", Code=citizen_country)

    return etree.tostring(root, xml_declaration=True, encoding="UTF-8")
