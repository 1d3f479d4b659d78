"""
JSON helpers for provider payloads, which are not always what they claim to be.
"""
import json
from typing import Any, Dict, Optional


def safe_json_parse(data: Any, default: Any = None) -> Any:
    """
    Parse a JSON string; dicts and lists pass through untouched.

    >>> safe_json_parse('{"message": "oi"}')
    {'message': 'oi'}
    >>> safe_json_parse('plain text') is None
    True
    """
    if isinstance(data, (dict, list)):
        return data
    if not isinstance(data, (str, bytes)) or not data.strip():
        return default
    try:
        return json.loads(data)
    except ValueError:
        return default


def parse_json_object(data: Any) -> Optional[Dict[str, Any]]:
    """Like safe_json_parse, but only a JSON object counts as a result."""
    parsed = safe_json_parse(data)
    return parsed if isinstance(parsed, dict) else None
