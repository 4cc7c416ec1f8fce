"""Resilience and AI bookkeeping models.

RateLimitEntry and CircuitBreakerState hold request-scoped protection state,
not business data. AIProcessingLog records each LLM call for usage reporting.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)

from .base import Base, UTCDateTime, utcnow


class RateLimitEntry(Base):
    """One row per admitted request inside a user's current window."""

    __tablename__ = "rate_limit_entries"
    id = Column(Integer, primary_key=True)
    user_key = Column(String(100), nullable=False)
    reset_at = Column(Float, nullable=False)  # epoch seconds
    created_at = Column(Float, nullable=False)  # epoch seconds

    __table_args__ = (Index("ix_rate_limit_user_reset", "user_key", "reset_at"),)


class CircuitBreakerState(Base):
    """Single row per protected service. `version` guards compare-and-set updates."""

    __tablename__ = "circuit_breaker_state"
    id = Column(Integer, primary_key=True)
    service_key = Column(String(100), nullable=False, unique=True)
    failures = Column(Integer, nullable=False, default=0)
    last_failure_at = Column(Float)  # epoch seconds
    trial_started_at = Column(Float)  # epoch seconds, set while a half-open trial runs
    is_open = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=0)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)


class AIProcessingLog(Base):
    __tablename__ = "ai_processing_log"
    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"))
    task_type = Column(String(50), nullable=False)
    model = Column(String(100))
    tokens_in = Column(Integer, default=0)
    tokens_out = Column(Integer, default=0)
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(String(500))
    cost_usd = Column(Numeric(10, 6), default=0)
    created_at = Column(UTCDateTime, default=utcnow)

    __table_args__ = (Index("ix_ai_log_user_created", "user_id", "created_at"),)
