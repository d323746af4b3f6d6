# portal/shared/filters.py
from enum import Enum
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode, parse_qsl


def _normalize(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    text = str(value)
    return text if text != "" else None


def clean_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Drops empty/None values and stringifies the rest, sorted by key."""
    if not filters:
        return {}
    cleaned = {}
    for key in sorted(filters):
        value = _normalize(filters[key])
        if value is not None:
            cleaned[key] = value
    return cleaned


def filter_signature(filters: Optional[Mapping[str, Any]]) -> str:
    """
    Canonical flat query string for a list query.

    The same string is sent as the request's query string and used as the
    cache key, so two filter dicts share a signature only if the server would
    receive the exact same parameters.
    """
    return urlencode(list(clean_filters(filters).items()))


def parse_signature(signature: str) -> Dict[str, str]:
    return dict(parse_qsl(signature, keep_blank_values=False))
