"""Create pdcs table

Revision ID: 20261017_000001
Revises: None
Create Date: 2026-10-17

Post-dated cheques held as rent collateral. Rows are never deleted.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261017_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PDC_STATUSES = ("RECEIVED", "DUE", "DEPOSITED", "CLEARED", "BOUNCED", "REPLACED", "WITHDRAWN", "CANCELLED")


def upgrade() -> None:
    op.create_table(
        "pdcs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("cheque_number", sa.String(50), nullable=False),
        sa.Column("bank_name", sa.String(100), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=True),
        sa.Column("lease_id", sa.Integer(), nullable=True),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("cheque_date", sa.Date(), nullable=False),
        sa.Column("deposit_date", sa.Date(), nullable=True),
        sa.Column("deposit_reference", sa.String(100), nullable=True),
        sa.Column("cleared_date", sa.Date(), nullable=True),
        sa.Column("bounced_date", sa.Date(), nullable=True),
        sa.Column("bounce_reason", sa.String(255), nullable=True),
        sa.Column("withdrawal_date", sa.Date(), nullable=True),
        sa.Column("withdrawal_reason", sa.String(255), nullable=True),
        sa.Column(
            "new_payment_method",
            sa.Enum("BANK_TRANSFER", "CASH", "NEW_CHEQUE", name="pdc_new_payment_method", create_constraint=True),
            nullable=True,
        ),
        sa.Column("transaction_id", sa.String(100), nullable=True),
        sa.Column("is_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("cancellation_reason", sa.String(255), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*PDC_STATUSES, name="pdc_status", create_constraint=True),
            nullable=False,
            server_default="DUE",
        ),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("original_pdc_id", sa.String(36), nullable=True),
        sa.Column("replacement_pdc_id", sa.String(36), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_pdcs"),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.tenant_id"], name="fk_pdcs_tenant_id"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], name="fk_pdcs_invoice_id"),
        sa.ForeignKeyConstraint(["original_pdc_id"], ["pdcs.id"], name="fk_pdcs_original_pdc_id"),
        sa.ForeignKeyConstraint(["replacement_pdc_id"], ["pdcs.id"], name="fk_pdcs_replacement_pdc_id"),
    )
    op.create_index("ix_pdcs_cheque_number", "pdcs", ["cheque_number"])
    op.create_index("ix_pdcs_bank_name", "pdcs", ["bank_name"])
    op.create_index("ix_pdcs_tenant_id", "pdcs", ["tenant_id"])
    op.create_index("ix_pdcs_invoice_id", "pdcs", ["invoice_id"])
    op.create_index("ix_pdcs_lease_id", "pdcs", ["lease_id"])
    op.create_index("ix_pdcs_cheque_date", "pdcs", ["cheque_date"])
    op.create_index("ix_pdcs_deposit_date", "pdcs", ["deposit_date"])
    op.create_index("ix_pdcs_status", "pdcs", ["status"])
    op.create_index("ix_pdcs_status_cheque_date", "pdcs", ["status", "cheque_date"])

    # Cheque number unique per tenant among non-cancelled cheques
    op.create_index(
        "uq_pdcs_tenant_cheque_active",
        "pdcs",
        ["tenant_id", "cheque_number"],
        unique=True,
        mssql_where=sa.text("is_cancelled = 0"),
        sqlite_where=sa.text("is_cancelled = 0"),
        postgresql_where=sa.text("is_cancelled = false"),
    )
    for column in ("original_pdc_id", "replacement_pdc_id"):
        op.create_index(
            f"uq_pdcs_{column}",
            "pdcs",
            [column],
            unique=True,
            mssql_where=sa.text(f"{column} IS NOT NULL"),
            sqlite_where=sa.text(f"{column} IS NOT NULL"),
            postgresql_where=sa.text(f"{column} IS NOT NULL"),
        )


def downgrade() -> None:
    op.drop_index("uq_pdcs_replacement_pdc_id", table_name="pdcs")
    op.drop_index("uq_pdcs_original_pdc_id", table_name="pdcs")
    op.drop_index("uq_pdcs_tenant_cheque_active", table_name="pdcs")
    op.drop_index("ix_pdcs_status_cheque_date", table_name="pdcs")
    op.drop_index("ix_pdcs_status", table_name="pdcs")
    op.drop_index("ix_pdcs_deposit_date", table_name="pdcs")
    op.drop_index("ix_pdcs_cheque_date", table_name="pdcs")
    op.drop_index("ix_pdcs_lease_id", table_name="pdcs")
    op.drop_index("ix_pdcs_invoice_id", table_name="pdcs")
    op.drop_index("ix_pdcs_tenant_id", table_name="pdcs")
    op.drop_index("ix_pdcs_bank_name", table_name="pdcs")
    op.drop_index("ix_pdcs_cheque_number", table_name="pdcs")
    op.drop_table("pdcs")
