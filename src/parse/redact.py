"""Redaction module to mask credentials in payload previews and logs."""
import re
from typing import Any, Dict

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = (
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "token",
    "password",
    "authorization",
    "accountid",
    "account_id",
    "requestorid",
    "requestor_id",
)

# Patterns for text payloads (XML attributes, var_dump entries, headers)
PATTERNS = [
    (r'(<RequestorID\b[^>]*\bID\s*=\s*)"[^"]*"', r'\1"[REDACTED]"'),
    (r'(\["(?:ID|AccountID|RequestorID|Password|Token)"\]\s*=>\s*string\(\d+\)\s*)"[^"]*"', r'\1"[REDACTED]"'),
    (r'((?:api[_-]?key|access_token|refresh_token|password)["\']?\s*[:=]\s*["\'])[^"\']+(["\'])', r'\1[REDACTED]\2'),
    (r'(Authorization["\']?\s*[:=]\s*["\']?Bearer\s+)[^"\'\s,]+', r'\1[REDACTED]'),
]


def redact_string(text: str) -> str:
    """Redact credentials from a string."""
    if not text:
        return text

    result = text
    for pattern, replacement in PATTERNS:
        result = re.sub(pattern, replacement, result, flags=re.IGNORECASE)
    return result


def redact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively redact credentials from a dictionary."""
    redacted = {}
    for key, value in data.items():
        if str(key).lower() in SENSITIVE_KEYS:
            redacted[key] = REDACTED
        else:
            redacted[key] = redact_json(value)
    return redacted


def redact_json(data: Any) -> Any:
    """Redact credentials from JSON-serializable data."""
    if isinstance(data, dict):
        return redact_dict(data)
    elif isinstance(data, list):
        return [redact_json(item) for item in data]
    elif isinstance(data, str):
        return redact_string(data)
    else:
        return data


def preview(text: str, limit: int) -> str:
    """Bounded, redacted preview of a raw payload."""
    return redact_string(text)[:limit] if text else ""
