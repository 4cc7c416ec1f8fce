"""AI usage bookkeeping — one ai_processing_log row per LLM call.

Cost is estimated from published per-token prices; unknown models cost 0.
A failed insert is logged and rolled back so it never fails the request
that made the AI call.

Called by: routers/ai.py, routers/deals.py, routers/products.py (upload)
"""

from datetime import timedelta

from loguru import logger
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import AIProcessingLog
from ..models.base import utcnow

# USD per token
MODEL_PRICING = {
    "claude-3-5-haiku-20241022": {"input": 0.8 / 1_000_000, "output": 4 / 1_000_000},
    "claude-sonnet-4-5-20250929": {"input": 3 / 1_000_000, "output": 15 / 1_000_000},
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    pricing = MODEL_PRICING.get(model)
    if not pricing:
        return 0.0
    return input_tokens * pricing["input"] + output_tokens * pricing["output"]


def log_usage(
    db: Session,
    user_id: int | None,
    task_type: str,
    *,
    model: str | None = None,
    input_tokens: int = 0,
    output_tokens: int = 0,
    success: bool = True,
    error_message: str | None = None,
) -> AIProcessingLog | None:
    entry = AIProcessingLog(
        user_id=user_id,
        task_type=task_type,
        model=model,
        tokens_in=input_tokens,
        tokens_out=output_tokens,
        success=success,
        error_message=(error_message or None) and error_message[:500],
        cost_usd=calculate_cost(model or "", input_tokens, output_tokens),
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"AI usage log insert failed for task {task_type}: {type(e).__name__}")
        return None
    return entry


def log_result(db: Session, user_id: int | None, task_type: str, result) -> None:
    """Log an AIParseResult, or a failed call when result is None."""
    if result is None:
        log_usage(db, user_id, task_type, success=False, error_message="AI call returned no result")
        return
    log_usage(
        db,
        user_id,
        task_type,
        model=result.model,
        input_tokens=result.input_tokens,
        output_tokens=result.output_tokens,
    )


def usage_summary(db: Session, days: int = 30) -> list[dict]:
    """Per task type: call count, failures, tokens and cost over the last `days` days."""
    since = utcnow() - timedelta(days=days)
    rows = (
        db.query(
            AIProcessingLog.task_type,
            func.count(AIProcessingLog.id),
            func.sum(AIProcessingLog.tokens_in),
            func.sum(AIProcessingLog.tokens_out),
            func.sum(AIProcessingLog.cost_usd),
        )
        .filter(AIProcessingLog.created_at >= since)
        .group_by(AIProcessingLog.task_type)
        .order_by(AIProcessingLog.task_type)
        .all()
    )
    failures = dict(
        db.query(AIProcessingLog.task_type, func.count(AIProcessingLog.id))
        .filter(AIProcessingLog.created_at >= since, AIProcessingLog.success.is_(False))
        .group_by(AIProcessingLog.task_type)
        .all()
    )
    return [
        {
            "task_type": task,
            "calls": calls,
            "failures": failures.get(task, 0),
            "tokens_in": int(tokens_in or 0),
            "tokens_out": int(tokens_out or 0),
            "cost_usd": round(float(cost or 0), 6),
        }
        for task, calls, tokens_in, tokens_out, cost in rows
    ]
