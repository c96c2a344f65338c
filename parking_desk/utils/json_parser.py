# parking_desk/utils/json_parser.py
"""
Helpers for the remote parking API's wire format.
Requests are form-encoded with list values JSON-encoded into one field;
responses are a JSON envelope that is sometimes served as text/plain.
"""

import json
from typing import Optional, Any


def safe_parse_json(raw_body: bytes) -> Optional[Any]:
    """Parse JSON bytes safely. Returns None on error."""
    try:
        return json.loads(raw_body.decode("utf-8", errors="replace"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def get_nested(data: dict, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dict keys. Returns default if any key is missing."""
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key, default)
        if current is default:
            return default
    return current


def is_html_body(raw_body: bytes) -> bool:
    """Detect an HTML error/login page served instead of the JSON envelope."""
    head = raw_body.lstrip()[:200].lower()
    return head.startswith(b"<!doctype html") or b"<html" in head


def encode_form_fields(fields: dict) -> dict:
    """
    Flatten a dict into form fields: None is dropped, lists/dicts become
    JSON strings, booleans become "true"/"false", everything else str().
    """
    encoded = {}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, dict)):
            encoded[key] = json.dumps(list(value) if isinstance(value, tuple) else value)
        elif isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        else:
            encoded[key] = str(value)
    return encoded
