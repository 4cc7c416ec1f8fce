"""AI parsers — deal emails, addresses, pack sizes, categories, search queries.

Purpose:
  Turn free text into structured records with one forced-tool Claude call
  per task. Every call goes through the shared circuit breaker.

Business Rules:
  - AI is optional: no API key or ai_features_enabled=off gives the
    NullProvider and every parser returns None without touching the network
  - Inputs are sanitized before prompting; outputs are scrubbed before use
  - Out-of-range output (price, quantity, weight) counts as a vendor failure
  - Vendor errors and timeouts are logged, recorded by the breaker and
    surfaced as None; only CircuitOpenError propagates (mapped to 503)
  - Background callers (upload, deal accept) pass user_id: each call then
    draws on that user's AI rate limit and a spent quota is None

Called by: routers/ai.py, services/pack_size.py, services/deal_service.py,
           services/inventory_import.py
Depends on: utils/claude_client.py, circuit_breaker.py, services/ai_tools.py
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol

from loguru import logger

from ..circuit_breaker import CircuitBreaker, CircuitOpenError, get_breaker
from ..config import settings
from ..rate_limit import ai_quota_available
from ..utils.claude_client import ClaudeToolResult, claude_tool_call
from ..utils.input_sanitizer import sanitize_ai_output, sanitize_text_input
from .ai_tools import (
    CATEGORIZE_PRODUCT_TOOL,
    EXTRACT_DEAL_TOOL,
    NORMALIZE_ADDRESS_TOOL,
    PARSE_PACK_SIZE_TOOL,
    QUERY_TO_FILTER_TOOL,
)

MAX_PRICE_PER_LB = 10_000
MAX_QUANTITY_LBS = 1_000_000
MAX_CASE_WEIGHT_LBS = 10_000

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class AIProvider(Protocol):
    enabled: bool

    async def call_tool(
        self, prompt: str, tool: dict, *, model_tier: str = "fast", max_tokens: int = 512
    ) -> ClaudeToolResult: ...


class ClaudeProvider:
    enabled = True

    async def call_tool(self, prompt, tool, *, model_tier="fast", max_tokens=512):
        return await claude_tool_call(prompt, tool, model_tier=model_tier, max_tokens=max_tokens)


class NullProvider:
    """Stand-in when AI is not configured. Parsers check `enabled` and skip it."""

    enabled = False

    async def call_tool(self, prompt, tool, *, model_tier="fast", max_tokens=512):
        raise RuntimeError("AI provider is not configured")


def get_ai_provider() -> AIProvider:
    if settings.ai_configured:
        return ClaudeProvider()
    return NullProvider()


@dataclass
class AIParseResult:
    data: dict
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    extra: dict = field(default_factory=dict)


async def _call(
    task: str,
    prompt: str,
    tool: dict,
    *,
    model_tier: str,
    max_tokens: int,
    provider: AIProvider | None,
    breaker: CircuitBreaker | None,
    user_id=None,
) -> ClaudeToolResult | None:
    provider = provider or get_ai_provider()
    if not provider.enabled:
        return None
    if user_id is not None and not ai_quota_available(user_id):
        logger.info(f"AI {task} skipped: rate limit reached for user {user_id}")
        return None
    breaker = breaker or get_breaker()
    try:
        return await breaker.call(
            provider.call_tool, prompt, tool, model_tier=model_tier, max_tokens=max_tokens
        )
    except CircuitOpenError:
        raise
    except Exception as e:
        logger.warning(f"AI {task} failed: {type(e).__name__}: {e}")
        return None


def _reject(task: str, reason: str, breaker: CircuitBreaker | None) -> None:
    logger.warning(f"AI {task} output rejected: {reason}")
    (breaker or get_breaker()).record_failure()


def _finite_in_range(value, upper: float) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and 0 < value <= upper


def _valid_iso_date(value) -> bool:
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def _result(call: ClaudeToolResult, data: dict, **extra) -> AIParseResult:
    return AIParseResult(
        data=data,
        model=call.model,
        input_tokens=call.input_tokens,
        output_tokens=call.output_tokens,
        extra=extra,
    )


async def parse_deal_email(
    content: str, *, provider: AIProvider | None = None, breaker: CircuitBreaker | None = None
) -> AIParseResult | None:
    """Extract manufacturer, price/lb, quantity, pack size and terms from a deal email."""
    prompt = (
        "Extract deal information from this email or message:\n\n"
        f"{sanitize_text_input(content, 20000)}"
    )
    call = await _call(
        "extract_deal", prompt, EXTRACT_DEAL_TOOL,
        model_tier="smart", max_tokens=1024, provider=provider, breaker=breaker,
    )
    if call is None:
        return None

    deal = sanitize_ai_output(call.input)
    if not _finite_in_range(deal.get("price_per_lb"), MAX_PRICE_PER_LB):
        _reject("extract_deal", "price_per_lb must be between 0 and 10,000", breaker)
        return None
    if not _finite_in_range(deal.get("quantity_lbs"), MAX_QUANTITY_LBS):
        _reject("extract_deal", "quantity_lbs must be between 0 and 1,000,000", breaker)
        return None
    if deal.get("expiration_date") is not None and not _valid_iso_date(deal["expiration_date"]):
        deal["expiration_date"] = None
    for key in ("manufacturer", "product_description", "pack_size"):
        if not isinstance(deal.get(key), str) or not deal[key].strip():
            _reject("extract_deal", f"missing {key}", breaker)
            return None
    return _result(call, deal)


async def normalize_address(
    address: str, *, provider: AIProvider | None = None, breaker: CircuitBreaker | None = None
) -> AIParseResult | None:
    prompt = (
        "Normalize this address to standard USPS format:\n\n"
        f"{sanitize_text_input(address, 500)}"
    )
    call = await _call(
        "normalize_address", prompt, NORMALIZE_ADDRESS_TOOL,
        model_tier="fast", max_tokens=512, provider=provider, breaker=breaker,
    )
    if call is None:
        return None

    normalized = sanitize_ai_output(call.input)
    for key in ("street", "city", "state"):
        if not isinstance(normalized.get(key), str):
            _reject("normalize_address", f"missing {key}", breaker)
            return None
    normalized["state"] = normalized["state"].strip().upper()

    original = address.lower()
    corrections = []
    if normalized["street"].lower() not in original:
        corrections.append(f'Street: "{normalized["street"]}"')
    if normalized["city"].lower() not in original:
        corrections.append(f'City: "{normalized["city"]}"')
    if normalized["state"].lower() not in original:
        corrections.append(f'State: "{normalized["state"]}"')
    return _result(call, normalized, corrections=corrections)


async def parse_pack_size_ai(
    pack_size: str,
    description: str | None = None,
    *,
    provider: AIProvider | None = None,
    breaker: CircuitBreaker | None = None,
    user_id=None,
) -> AIParseResult | None:
    prompt = (
        "Parse the pack size to determine case weight in pounds.\n"
        f"Pack size: {sanitize_text_input(pack_size, 200)}"
    )
    if description:
        prompt += f"\nProduct description: {sanitize_text_input(description, 500)}"
    call = await _call(
        "parse_pack_size", prompt, PARSE_PACK_SIZE_TOOL,
        model_tier="fast", max_tokens=256, provider=provider, breaker=breaker, user_id=user_id,
    )
    if call is None:
        return None

    parsed = sanitize_ai_output(call.input)
    if not _finite_in_range(parsed.get("case_weight_lbs"), MAX_CASE_WEIGHT_LBS):
        _reject("parse_pack_size", "case_weight_lbs must be between 0 and 10,000", breaker)
        return None
    return _result(call, {"case_weight_lbs": float(parsed["case_weight_lbs"])})


async def categorize_product(
    description: str,
    *,
    provider: AIProvider | None = None,
    breaker: CircuitBreaker | None = None,
    user_id=None,
) -> AIParseResult | None:
    prompt = f"Categorize this frozen protein product:\n\n{sanitize_text_input(description, 5000)}"
    call = await _call(
        "categorize_product", prompt, CATEGORIZE_PRODUCT_TOOL,
        model_tier="fast", max_tokens=256, provider=provider, breaker=breaker, user_id=user_id,
    )
    if call is None:
        return None

    category = sanitize_ai_output(call.input)
    if not isinstance(category.get("category"), str) or not category["category"].strip():
        _reject("categorize_product", "missing category", breaker)
        return None
    return _result(call, category)


def _clean_filters(filters: dict) -> dict:
    cleaned = dict(filters)
    for key in ("price_min", "price_max"):
        if key in cleaned:
            value = cleaned[key]
            if (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or not math.isfinite(value)
                or value < 0
            ):
                del cleaned[key]
    if "warehouse_id" in cleaned:
        wid = cleaned["warehouse_id"]
        if isinstance(wid, str) and wid.isdigit():
            wid = int(wid)
        if isinstance(wid, bool) or not isinstance(wid, int) or wid <= 0:
            del cleaned["warehouse_id"]
        else:
            cleaned["warehouse_id"] = wid
    for key in ("search_term", "category"):
        if key in cleaned and not isinstance(cleaned[key], str):
            del cleaned[key]
    return cleaned


async def parse_search_query(
    query: str, *, provider: AIProvider | None = None, breaker: CircuitBreaker | None = None
) -> AIParseResult | None:
    """Natural-language product search → structured filters plus a short explanation."""
    prompt = (
        "Convert this natural language search to structured filters:\n\n"
        f'"{sanitize_text_input(query, 500)}"'
    )
    call = await _call(
        "query_to_filter", prompt, QUERY_TO_FILTER_TOOL,
        model_tier="fast", max_tokens=512, provider=provider, breaker=breaker,
    )
    if call is None:
        return None

    filters = _clean_filters(sanitize_ai_output(call.input))
    explanation = sanitize_text_input(call.text or "Filters applied", 500)
    return _result(call, {"filters": filters, "explanation": explanation})
