"""offboarding: departures, tenant history, turnover checklists, deposit dispositions

Revision ID: 0002_offboarding_tables
Revises: 0001_portfolio_core
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0002_offboarding_tables"
down_revision = "0001_portfolio_core"
branch_labels = None
depends_on = None


def _has_table(conn, name: str) -> bool:
    return sa.inspect(conn).has_table(name)


def _checklist_flag(name: str) -> list[sa.Column]:
    return [
        sa.Column(name, sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(f"{name}_at", sa.DateTime(), nullable=True),
    ]


def upgrade():
    conn = op.get_bind()

    if not _has_table(conn, "tenant_departures"):
        op.create_table(
            "tenant_departures",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=False, index=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False, index=True),
            sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=False, index=True),
            sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False, index=True),
            sa.Column("departure_type", sa.String(40), nullable=False),
            sa.Column("departure_date", sa.DateTime(), nullable=False),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("eviction_notice_ref", sa.String(80), nullable=True),
            sa.Column("supersedes_id", sa.Integer(), sa.ForeignKey("tenant_departures.id"), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index(
            "uq_tenant_departures_lease_original",
            "tenant_departures",
            ["lease_id"],
            unique=True,
            sqlite_where=sa.text("supersedes_id IS NULL"),
            postgresql_where=sa.text("supersedes_id IS NULL"),
        )

    if not _has_table(conn, "tenant_history"):
        op.create_table(
            "tenant_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("lease_id", sa.Integer(), nullable=False),
            sa.Column("tenant_id", sa.Integer(), nullable=False, index=True),
            sa.Column("unit_id", sa.Integer(), nullable=False, index=True),
            sa.Column("property_id", sa.Integer(), nullable=False, index=True),
            sa.Column("landlord_id", sa.Integer(), nullable=False),
            sa.Column("tenant_name", sa.String(200), nullable=False),
            sa.Column("tenant_email", sa.String(200), nullable=True),
            sa.Column("tenant_phone", sa.String(40), nullable=True),
            sa.Column("lease_start_date", sa.DateTime(), nullable=False),
            sa.Column("lease_end_date", sa.DateTime(), nullable=False),
            sa.Column("rent_amount", sa.Float(), nullable=False),
            sa.Column("departure_type", sa.String(40), nullable=False),
            sa.Column("departure_date", sa.DateTime(), nullable=False),
            sa.Column("deposit_amount", sa.Float(), nullable=True),
            sa.Column("deposit_refunded", sa.Float(), nullable=True),
            sa.Column("deposit_deducted", sa.Float(), nullable=True),
            sa.Column("was_evicted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("lease_id", name="uq_tenant_history_lease"),
            sa.CheckConstraint(
                "coalesce(deposit_refunded, 0) + coalesce(deposit_deducted, 0) <= coalesce(deposit_amount, 0)",
                name="ck_tenant_history_deposit_conservation",
            ),
        )
        op.create_index("ix_tenant_history_landlord_departure", "tenant_history", ["landlord_id", "departure_date"])

    if not _has_table(conn, "unit_turnover_checklists"):
        op.create_table(
            "unit_turnover_checklists",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=False, index=True),
            sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True),
            sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            *_checklist_flag("deposit_processed"),
            *_checklist_flag("keys_collected"),
            *_checklist_flag("unit_inspected"),
            *_checklist_flag("cleaning_completed"),
            *_checklist_flag("repairs_completed"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("completed_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("lease_id", name="uq_unit_turnover_checklists_lease"),
        )

    if not _has_table(conn, "deposit_dispositions"):
        op.create_table(
            "deposit_dispositions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=False, index=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
            sa.Column("original_amount", sa.Float(), nullable=False),
            sa.Column("total_deductions", sa.Float(), nullable=False, server_default="0.0"),
            sa.Column("refund_amount", sa.Float(), nullable=False, server_default="0.0"),
            sa.Column("refund_method", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("refund_status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("processed_at", sa.DateTime(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.CheckConstraint("total_deductions <= original_amount", name="ck_deposit_dispositions_deductions"),
        )

    if not _has_table(conn, "deposit_deduction_items"):
        op.create_table(
            "deposit_deduction_items",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "disposition_id",
                sa.Integer(),
                sa.ForeignKey("deposit_dispositions.id", ondelete="CASCADE"),
                nullable=False,
                index=True,
            ),
            sa.Column("category", sa.String(40), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("evidence_urls_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )


def downgrade():
    op.drop_table("deposit_deduction_items")
    op.drop_table("deposit_dispositions")
    op.drop_table("unit_turnover_checklists")
    op.drop_index("ix_tenant_history_landlord_departure", table_name="tenant_history")
    op.drop_table("tenant_history")
    op.drop_index("uq_tenant_departures_lease_original", table_name="tenant_departures")
    op.drop_table("tenant_departures")
