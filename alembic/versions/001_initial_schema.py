"""initial schema - pricing, freight, deals, customers, resilience state

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

For NEW databases: run `alembic upgrade head` (creates all tables from models).
For databases already created by startup.py: run `alembic stamp 001_initial`.
"""
from typing import Sequence, Union

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from SQLAlchemy models (checkfirst, so idempotent)."""
    from alembic import op

    from protein_pricing.models import Base

    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Drop all tables. Destructive: dev/test environments only."""
    from alembic import op

    from protein_pricing.models import Base

    Base.metadata.drop_all(bind=op.get_bind())
