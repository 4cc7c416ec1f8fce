"""Pack size → case weight in pounds.

Recognized formats (first match wins):
  "6/5 LB"   multiplier / weight   → 30
  "4x10LB"   count x weight        → 40
  "40 LB"    total weight          → 40  ("LB CS" / "# CASE" suffix allowed)
  "6-5#"     multiplier - weight   → 30
'#' is accepted as the pound marker in every format. Matching is
case-insensitive and weights may be decimal ("2.5 LB").

Anything else is unparseable: the sync parser returns None and the caller
decides (AI fallback, manual entry, default weight).

Called by: services/inventory_import.py, services/deal_service.py, routers/ai.py
"""

from __future__ import annotations

import re

from loguru import logger

from ..circuit_breaker import CircuitOpenError

_MULTI_SLASH = re.compile(r"(\d+)/(\d+(?:\.\d+)?)\s*(?:LB|#)", re.IGNORECASE)
_MULTI_X = re.compile(r"(\d+)x(\d+(?:\.\d+)?)\s*(?:LB|#)", re.IGNORECASE)
# Lookbehind keeps "6-5#" from matching as a bare 5 lb total
_TOTAL = re.compile(r"(?<![\d./x\-])(\d+(?:\.\d+)?)\s*(?:LB|#)\s*(?:CS|CASE)?", re.IGNORECASE)
_MULTI_DASH = re.compile(r"(\d+)-(\d+(?:\.\d+)?)#", re.IGNORECASE)


def parse_pack_size_sync(pack_size: str | None) -> float | None:
    if not pack_size or not pack_size.strip():
        return None
    text = pack_size.strip().upper()

    m = _MULTI_SLASH.search(text) or _MULTI_X.search(text)
    if m:
        return int(m.group(1)) * float(m.group(2))

    m = _TOTAL.search(text)
    if m:
        return float(m.group(1))

    m = _MULTI_DASH.search(text)
    if m:
        return int(m.group(1)) * float(m.group(2))

    return None


async def parse_pack_size(
    pack_size: str | None,
    description: str | None = None,
    *,
    provider=None,
    breaker=None,
    user_id=None,
) -> float | None:
    """Regex first; one gated AI call when the regex misses and a description is known.

    With a user_id the call also counts against that user's AI rate limit.
    Never raises for vendor trouble: an open breaker, exhausted quota or
    failed call is None.
    """
    weight = parse_pack_size_sync(pack_size)
    if weight is not None or not pack_size or not pack_size.strip() or not description:
        return weight

    from .ai_parsers import parse_pack_size_ai

    try:
        result = await parse_pack_size_ai(
            pack_size, description, provider=provider, breaker=breaker, user_id=user_id
        )
    except CircuitOpenError:
        logger.info(f"Pack size AI fallback skipped (breaker open): {pack_size!r}")
        return None
    if result is None:
        return None
    return result.data["case_weight_lbs"]
