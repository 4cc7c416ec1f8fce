"""Prompt input sanitizing and AI output cleaning.

Inbound: free text is trimmed, truncated, stripped of NUL bytes and of chat
role markers before it is embedded in a prompt. Validators reject content
that is out of range or carries instruction-override phrasing (including
base64-wrapped variants).

Outbound: tool results are scrubbed of script tags, inline event handlers
and javascript: URLs before anything is stored or rendered. Non-finite
numbers become 0.

Called by: services/ai_parsers.py, routers/ai.py
"""

import base64
import binascii
import math
import re

_EXCESS_NEWLINES = re.compile(r"\n{5,}")

_ROLE_MARKERS = [
    re.compile(r"\[SYSTEM\]", re.IGNORECASE),
    re.compile(r"\[INST\]", re.IGNORECASE),
    re.compile(r"\[ASSISTANT\]", re.IGNORECASE),
    re.compile(r"<\|system\|>", re.IGNORECASE),
    re.compile(r"<\|user\|>", re.IGNORECASE),
    re.compile(r"<\|assistant\|>", re.IGNORECASE),
    re.compile(r"###\s*SYSTEM", re.IGNORECASE),
    re.compile(r"###\s*INSTRUCTION", re.IGNORECASE),
]

_SUSPICIOUS = [
    re.compile(r"ignore\s+(previous|above|prior)\s+instructions", re.IGNORECASE),
    re.compile(r"disregard\s+(previous|above|prior)\s+instructions", re.IGNORECASE),
    re.compile(r"you\s+are\s+now\s+(a|an)\b", re.IGNORECASE),
    re.compile(r"forget\s+(everything|all|previous|your)", re.IGNORECASE),
    re.compile(r"instead\s+of\s+(doing|following)", re.IGNORECASE),
    re.compile(r"new\s+system\s+prompt", re.IGNORECASE),
    re.compile(r"override\s+(previous|prior)\s+(instruction|prompt)", re.IGNORECASE),
]

_BASE64_RUN = re.compile(r"[A-Za-z0-9+/]{20,}={0,2}")

_SCRIPT_TAG = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_EVENT_HANDLER = re.compile(r"on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JS_URL = re.compile(r"javascript:", re.IGNORECASE)
_HTML_DATA_URL = re.compile(r"data:text/html", re.IGNORECASE)

MAX_DISPLAY_FIELD = 5000


class InputValidationError(ValueError):
    """Content rejected before it reaches the LLM."""


def sanitize_text_input(text: str, max_length: int = 10000) -> str:
    cleaned = (text or "").strip()[:max_length]
    cleaned = cleaned.replace("\0", "")
    cleaned = _EXCESS_NEWLINES.sub("\n\n\n\n", cleaned)
    for marker in _ROLE_MARKERS:
        cleaned = marker.sub("", cleaned)
    return cleaned


def _looks_like_injection(text: str) -> bool:
    return any(p.search(text) for p in _SUSPICIOUS)


def _decoded_base64_runs(text: str, limit: int = 3) -> list[str]:
    runs = _BASE64_RUN.findall(text)
    if len(runs) <= 3:
        return []
    decoded = []
    for run in runs[:limit]:
        padded = run + "=" * (-len(run) % 4)
        try:
            decoded.append(base64.b64decode(padded).decode("utf-8", errors="ignore"))
        except (binascii.Error, ValueError):
            continue
    return decoded


def _check_length(value, label: str, min_len: int, max_len: int) -> str:
    if not value or not isinstance(value, str):
        raise InputValidationError(f"{label} must be a non-empty string")
    trimmed = value.strip()
    if len(trimmed) < min_len:
        raise InputValidationError(f"{label} too short (minimum {min_len} characters)")
    if len(trimmed) > max_len:
        raise InputValidationError(f"{label} too long (maximum {max_len:,} characters)")
    return trimmed


def validate_email_content(content: str) -> None:
    """Raise InputValidationError for deal email text that should not reach the LLM."""
    if not content or not isinstance(content, str):
        raise InputValidationError("Content must be a non-empty string")
    if len(content) < 20:
        raise InputValidationError("Content too short (minimum 20 characters)")
    if len(content) > 20000:
        raise InputValidationError("Content too long (maximum 20,000 characters)")
    if _looks_like_injection(content):
        raise InputValidationError("Content contains suspicious patterns")
    for decoded in _decoded_base64_runs(content):
        if _looks_like_injection(decoded):
            raise InputValidationError("Content contains encoded suspicious patterns")


def validate_address(address: str) -> str:
    return _check_length(address, "Address", 5, 500)


def validate_pack_size(pack_size: str) -> str:
    return _check_length(pack_size, "Pack size", 1, 200)


def validate_description(description: str) -> str:
    return _check_length(description, "Description", 3, 500)


def validate_search_query(query: str) -> str:
    return _check_length(query, "Query", 2, 500)


def _clean_string(key: str, value: str) -> str:
    clean = _SCRIPT_TAG.sub("", value)
    clean = _EVENT_HANDLER.sub("", clean)
    clean = _JS_URL.sub("", clean)
    clean = _HTML_DATA_URL.sub("", clean)
    if "description" in key or "terms" in key:
        clean = clean[:MAX_DISPLAY_FIELD]
    return clean


def sanitize_ai_output(data: dict) -> dict:
    """Scrub a tool-use payload. Nested dicts are cleaned recursively; lists pass through."""
    cleaned = {}
    for key, value in data.items():
        if isinstance(value, bool) or value is None:
            cleaned[key] = value
        elif isinstance(value, str):
            cleaned[key] = _clean_string(key, value)
        elif isinstance(value, (int, float)):
            cleaned[key] = value if math.isfinite(value) else 0
        elif isinstance(value, dict):
            cleaned[key] = sanitize_ai_output(value)
        else:
            cleaned[key] = value
    return cleaned
