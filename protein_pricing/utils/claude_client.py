"""Claude API client — forced tool use for schema-constrained output.

Two model tiers:
  - FAST: Haiku for short parsing jobs (address, pack size, category, search)
  - SMART: Sonnet for deal extraction from free-form emails

Unlike a fire-and-forget helper, failures RAISE ClaudeError so the circuit
breaker can count them. Callers that want None-on-failure go through
services/ai_parsers.py.

Usage:
    from protein_pricing.utils.claude_client import claude_tool_call
    result = await claude_tool_call(
        prompt="Parse the pack size...",
        tool=PARSE_PACK_SIZE_TOOL,
        model_tier="fast",
    )
    result.input["case_weight_lbs"]
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
from loguru import logger

from ..config import settings
from ..http_client import http

API_URL = "https://api.anthropic.com/v1/messages"
API_VERSION = "2023-06-01"

MODELS = {
    "fast": "claude-3-5-haiku-20241022",
    "smart": "claude-sonnet-4-5-20250929",
}

MAX_ATTEMPTS = 3
_RETRY_STATUSES = {429, 529}


class ClaudeError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


@dataclass
class ClaudeToolResult:
    input: dict
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    text: str = ""
    raw_blocks: list = field(default_factory=list, repr=False)


def _headers() -> dict:
    return {
        "x-api-key": settings.anthropic_api_key,
        "anthropic-version": API_VERSION,
        "content-type": "application/json",
    }


async def _post_with_retry(body: dict, timeout: float) -> dict:
    """POST to the Messages API. Retries 429/529 and network errors with 1s, 2s backoff."""
    last_err: Exception | None = None
    for attempt in range(MAX_ATTEMPTS):
        try:
            resp = await http.post(API_URL, headers=_headers(), json=body, timeout=timeout)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            last_err = ClaudeError(f"Claude network error: {type(e).__name__}")
        else:
            if resp.status_code == 200:
                return resp.json()
            last_err = ClaudeError(f"Claude API {resp.status_code}", resp.status_code)
            if resp.status_code not in _RETRY_STATUSES:
                logger.warning(f"Claude API {resp.status_code}: {resp.text[:200]}")
                raise last_err
        if attempt < MAX_ATTEMPTS - 1:
            await asyncio.sleep(2**attempt)
    logger.warning(f"Claude call failed after {MAX_ATTEMPTS} attempts: {last_err}")
    raise last_err


async def claude_tool_call(
    prompt: str,
    tool: dict,
    *,
    model_tier: str = "fast",
    max_tokens: int = 512,
    system: str = "",
    timeout: float | None = None,
) -> ClaudeToolResult:
    """Call Claude with tool_choice forced to `tool` and return the tool input.

    Raises:
        ClaudeError: no API key, non-200 response, or no matching tool_use block.
    """
    if not settings.anthropic_api_key:
        raise ClaudeError("Anthropic API key not configured")

    model = MODELS.get(model_tier, MODELS["fast"])
    body: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [{"role": "user", "content": prompt}],
        "tools": [tool],
        "tool_choice": {"type": "tool", "name": tool["name"]},
    }
    if system:
        body["system"] = system

    data = await _post_with_retry(body, timeout or settings.ai_timeout_seconds)

    blocks = data.get("content", [])
    tool_input = None
    texts = []
    for block in blocks:
        if block.get("type") == "tool_use" and block.get("name") == tool["name"]:
            tool_input = block.get("input")
        elif block.get("type") == "text":
            texts.append(block.get("text", ""))

    if not isinstance(tool_input, dict):
        raise ClaudeError(f"Claude response had no {tool['name']} tool_use block")

    usage = data.get("usage") or {}
    return ClaudeToolResult(
        input=tool_input,
        model=model,
        input_tokens=usage.get("input_tokens", 0),
        output_tokens=usage.get("output_tokens", 0),
        text="\n".join(t for t in texts if t),
        raw_blocks=blocks,
    )
