"""portfolio core: orgs, users, audit, properties, units, tenants, leases, payments, expenses

Revision ID: 0001_portfolio_core
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_portfolio_core"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(conn, name: str) -> bool:
    return sa.inspect(conn).has_table(name)


def upgrade():
    conn = op.get_bind()

    if not _has_table(conn, "organizations"):
        op.create_table(
            "organizations",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("slug", sa.String(80), nullable=False, unique=True, index=True),
            sa.Column("name", sa.String(160), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table(conn, "app_users"):
        op.create_table(
            "app_users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("email", sa.String(200), nullable=False, unique=True, index=True),
            sa.Column("display_name", sa.String(160), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table(conn, "org_memberships"):
        op.create_table(
            "org_memberships",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False, index=True),
            sa.Column("role", sa.String(20), nullable=False, server_default="owner"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("org_id", "user_id", name="uq_org_memberships_org_user"),
        )

    if not _has_table(conn, "audit_events"):
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
            sa.Column("action", sa.String(80), nullable=False),
            sa.Column("entity_type", sa.String(80), nullable=False),
            sa.Column("entity_id", sa.String(80), nullable=False),
            sa.Column("lease_id", sa.Integer(), nullable=True, index=True),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("before_json", sa.Text(), nullable=True),
            sa.Column("after_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table(conn, "properties"):
        op.create_table(
            "properties",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True, index=True),
            sa.Column("name", sa.String(200), nullable=False),
            sa.Column("address", sa.String(255), nullable=False),
            sa.Column("city", sa.String(120), nullable=True),
            sa.Column("state", sa.String(2), nullable=True),
            sa.Column("zip", sa.String(10), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table(conn, "units"):
        op.create_table(
            "units",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("name", sa.String(80), nullable=False),
            sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("available_from", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table(conn, "tenants"):
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("full_name", sa.String(200), nullable=False),
            sa.Column("email", sa.String(200), nullable=True),
            sa.Column("phone", sa.String(40), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("sent_to_collections_at", sa.DateTime(), nullable=True),
            sa.Column("collections_balance", sa.Float(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table(conn, "leases"):
        op.create_table(
            "leases",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False, index=True),
            sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=False, index=True),
            sa.Column("start_date", sa.DateTime(), nullable=False),
            sa.Column("end_date", sa.DateTime(), nullable=True),
            sa.Column("rent_amount", sa.Float(), nullable=False, server_default="0.0"),
            sa.Column("deposit_amount", sa.Float(), nullable=False, server_default="0.0"),
            sa.Column("status", sa.String(20), nullable=False, server_default="active"),
            sa.Column("termination_reason", sa.String(40), nullable=True),
            sa.Column("terminated_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_leases_org_status", "leases", ["org_id", "status"])

    if not _has_table(conn, "rent_payments"):
        op.create_table(
            "rent_payments",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=False, index=True),
            sa.Column("amount", sa.Float(), nullable=False),
            sa.Column("due_date", sa.DateTime(), nullable=False),
            sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
            sa.Column("paid_at", sa.DateTime(), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_rent_payments_lease_status", "rent_payments", ["lease_id", "status"])

    if not _has_table(conn, "expenses"):
        op.create_table(
            "expenses",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("landlord_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False, index=True),
            sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False, index=True),
            sa.Column("unit_id", sa.Integer(), sa.ForeignKey("units.id"), nullable=True),
            sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True, index=True),
            sa.Column("category", sa.String(60), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("incurred_at", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _has_table(conn, "workflow_events"):
        op.create_table(
            "workflow_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("org_id", sa.Integer(), sa.ForeignKey("organizations.id"), nullable=False, index=True),
            sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True, index=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
            sa.Column("event_type", sa.String(80), nullable=False, index=True),
            sa.Column("payload_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )


def downgrade():
    op.drop_table("workflow_events")
    op.drop_table("expenses")
    op.drop_index("ix_rent_payments_lease_status", table_name="rent_payments")
    op.drop_table("rent_payments")
    op.drop_index("ix_leases_org_status", table_name="leases")
    op.drop_table("leases")
    op.drop_table("tenants")
    op.drop_table("units")
    op.drop_table("properties")
    op.drop_table("audit_events")
    op.drop_table("org_memberships")
    op.drop_table("app_users")
    op.drop_table("organizations")
