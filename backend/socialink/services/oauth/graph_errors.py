"""Graph API error envelope parsing"""
from typing import Any, Dict, Optional

import httpx

GENERIC_GRAPH_ERROR = "Graph API request failed."

# (label, envelope key) in the order they appear in the formatted suffix
_DETAIL_FIELDS = (
    ("code", "code"),
    ("subcode", "error_subcode"),
    ("type", "type"),
    ("trace", "fbtrace_id"),
)


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def format_graph_error(error: Dict[str, Any]) -> str:
    """Format the ``error`` object of a Graph API response.

    ``{"message": "Bad", "code": 190, "fbtrace_id": "abc"}`` becomes
    ``"Bad (code=190, trace=abc)."``
    """
    main = _text(error.get("error_user_msg")) or _text(error.get("message"))
    title = _text(error.get("error_user_title"))
    if title:
        main = f"{title}: {main}" if main else title

    details = [
        f"{label}={_text(error.get(key))}"
        for label, key in _DETAIL_FIELDS
        if _text(error.get(key))
    ]
    if not details:
        return main or GENERIC_GRAPH_ERROR
    if main:
        return f"{main} ({', '.join(details)})."
    return f"Graph API request failed ({', '.join(details)})."


def parse_graph_error(payload: Any) -> Optional[str]:
    """Formatted message for an error body, or None when it carries no error"""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict):
        return format_graph_error(error)
    # OAuth-style bodies: {"error": "invalid_request", "error_description": "..."}
    description = _text(payload.get("error_description")) or _text(payload.get("error_message"))
    if description:
        return description
    if isinstance(error, str) and error.strip():
        return error.strip()
    return None


def read_graph_error(response: httpx.Response, fallback: Optional[str] = None) -> str:
    """Best human-readable message for a failed provider response"""
    try:
        message = parse_graph_error(response.json())
    except ValueError:
        message = None
    if message:
        return message
    return fallback or _text(response.reason_phrase) or GENERIC_GRAPH_ERROR
