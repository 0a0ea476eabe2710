"""Create pdc_status_history table

Revision ID: 20261017_000002
Revises: 20261017_000001
Create Date: 2026-10-17

Append-only audit trail: one row per PDC registration and status change.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261017_000002"
down_revision: Union[str, None] = "20261017_000001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PDC_STATUSES = ("RECEIVED", "DUE", "DEPOSITED", "CLEARED", "BOUNCED", "REPLACED", "WITHDRAWN", "CANCELLED")


def upgrade() -> None:
    op.create_table(
        "pdc_status_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("pdc_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("from_status", sa.Enum(*PDC_STATUSES, name="pdc_status", create_constraint=False), nullable=True),
        sa.Column("to_status", sa.Enum(*PDC_STATUSES, name="pdc_status", create_constraint=False), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.Column("performed_by", sa.Integer(), nullable=False),
        sa.Column("performed_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_pdc_status_history"),
        sa.ForeignKeyConstraint(
            ["pdc_id"],
            ["pdcs.id"],
            name="fk_pdc_status_history_pdc_id",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_pdc_status_history_pdc_id", "pdc_status_history", ["pdc_id"])


def downgrade() -> None:
    op.drop_index("ix_pdc_status_history_pdc_id", table_name="pdc_status_history")
    op.drop_table("pdc_status_history")
