"""Order version counter for optimistic locking

Revision ID: 002
Revises: 001
Create Date: 2026-10-20

Every write to an order bumps orders.version, so two requests that read
the same version cannot both commit, even when neither changes the status.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "orders",
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )


def downgrade() -> None:
    op.drop_column("orders", "version")
