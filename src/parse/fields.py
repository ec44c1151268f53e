"""Field lookup over supplier records of unknown casing and nesting."""
import re
from typing import Any, Iterable, Optional

ATTRIBUTE_KEYS = ("attr", "attributes", "@attributes")

_TRUE = {"true", "1", "yes", "y"}
_FALSE = {"false", "0", "no", "n"}


class RecordInvalid(ValueError):
    """One record failed field-level checks. Never escapes normalization."""

    def __init__(
        self,
        message: str,
        identifier: Optional[str] = None,
        missing: Iterable[str] = (),
        invalid: Iterable[str] = (),
    ):
        super().__init__(message)
        self.identifier = identifier
        self.missing = list(missing)
        self.invalid = list(invalid)


def ci_get(mapping: Any, key: str) -> Any:
    """Case-insensitive lookup that also looks inside attribute sub-maps."""
    if not isinstance(mapping, dict):
        return None
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    for k, v in mapping.items():
        if str(k).lower() == lowered:
            return v
    for attr_key in ATTRIBUTE_KEYS:
        inner = mapping.get(attr_key)
        if isinstance(inner, dict):
            for k, v in inner.items():
                if str(k).lower() == lowered:
                    return v
    return None


def get_path(record: Any, path: str) -> Any:
    """Dotted lookup; lists on the way resolve to their first element."""
    current = record
    for segment in path.split("."):
        if isinstance(current, list):
            current = current[0] if current else None
        current = ci_get(current, segment)
        if current is None:
            return None
    return current


def unwrap(value: Any) -> Any:
    """``{"value": x, "attr": {...}}`` -> ``x``."""
    if isinstance(value, dict) and "value" in value:
        return value["value"]
    return value


def pick(sources: Any, *names: str) -> Any:
    """First non-empty value among candidate names, across one or more sources."""
    if not isinstance(sources, list):
        sources = [sources]
    for source in sources:
        for name in names:
            value = unwrap(get_path(source, name))
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            return value
    return None


def text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    result = str(value).strip()
    return result or None


def number(value: Any, field_name: str, identifier: Optional[str] = None) -> Optional[float]:
    """Parse a number or raise RecordInvalid for ``field_name``."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise RecordInvalid(f"Invalid {field_name}: {value!r}", identifier, invalid=[field_name])
    if isinstance(value, (int, float)):
        return float(value)
    raw = text(value)
    if raw is None:
        return None
    try:
        return float(raw.replace(" ", "").replace(",", "."))
    except ValueError:
        raise RecordInvalid(f"Invalid {field_name}: {raw!r}", identifier, invalid=[field_name])


def boolean(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    raw = (text(value) or "").lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    return None


def country_code(value: Any) -> Optional[str]:
    """Two-letter country code or None."""
    raw = text(value)
    if raw and re.fullmatch(r"[A-Za-z]{2}", raw):
        return raw.upper()
    return None


def pick_text(sources: Any, *names: str) -> Optional[str]:
    """Like ``pick`` but skips candidates that are not scalar text."""
    for name in names:
        value = text(pick(sources, name))
        if value is not None:
            return value
    return None
