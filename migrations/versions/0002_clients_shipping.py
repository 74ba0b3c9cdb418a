"""clients, bills of lading and containers

Revision ID: 0002_clients_shipping
Revises: 0001_initial
Create Date: 2025-08-04 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_clients_shipping"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "clients",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("tenant_id", GUID(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("client_type", sa.String(length=20), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("siret", sa.String(length=14), nullable=True),
        sa.Column("vat_number", sa.String(length=50), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("postal_code", sa.String(length=20), nullable=True),
        sa.Column("country", sa.String(length=2), nullable=False, server_default="FR"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_by", GUID(), nullable=True),
        sa.Column("updated_by", GUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "email", name="uq_clients_tenant_email"),
        sa.UniqueConstraint("tenant_id", "siret", name="uq_clients_tenant_siret"),
    )
    op.create_index("ix_clients_tenant_id", "clients", ["tenant_id"])

    op.create_table(
        "bills_of_lading",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("tenant_id", GUID(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("bl_number", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("client_id", GUID(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("shipper_name", sa.String(length=255), nullable=True),
        sa.Column("consignee_name", sa.String(length=255), nullable=True),
        sa.Column("notify_party", sa.String(length=255), nullable=True),
        sa.Column("port_of_loading", sa.String(length=100), nullable=True),
        sa.Column("port_of_discharge", sa.String(length=100), nullable=True),
        sa.Column("vessel_name", sa.String(length=100), nullable=True),
        sa.Column("voyage_number", sa.String(length=50), nullable=True),
        sa.Column("issue_date", sa.Date(), nullable=True),
        sa.Column("shipped_on_board_date", sa.Date(), nullable=True),
        sa.Column("created_by", GUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("tenant_id", "bl_number", name="uq_bills_of_lading_tenant_number"),
    )
    op.create_index("ix_bills_of_lading_tenant_id", "bills_of_lading", ["tenant_id"])

    op.create_table(
        "container_types",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("iso_code", sa.String(length=10), nullable=False, unique=True),
        sa.Column("description", sa.String(length=100), nullable=False),
        sa.Column("size_feet", sa.Integer(), nullable=False),
        sa.Column("teu", sa.Float(), nullable=False),
    )
    op.create_table(
        "containers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("tenant_id", GUID(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("bl_id", GUID(), sa.ForeignKey("bills_of_lading.id"), nullable=False),
        sa.Column("container_number", sa.String(length=20), nullable=False),
        sa.Column("container_type_id", GUID(), sa.ForeignKey("container_types.id"), nullable=True),
        sa.Column("seal_number", sa.String(length=50), nullable=True),
        sa.Column("gross_weight_kg", sa.Float(), nullable=True),
        sa.Column("volume_cbm", sa.Float(), nullable=True),
        sa.Column("package_count", sa.Integer(), nullable=True),
        sa.Column("arrival_status", sa.String(length=20), nullable=False, server_default="scheduled"),
        sa.Column("estimated_arrival_date", sa.DateTime(), nullable=True),
        sa.Column("actual_arrival_date", sa.DateTime(), nullable=True),
        sa.Column("arrival_location", sa.String(length=255), nullable=True),
        sa.Column("arrival_notes", sa.Text(), nullable=True),
        sa.Column("customs_clearance_date", sa.DateTime(), nullable=True),
        sa.Column("delivery_ready_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("bl_id", "container_number", name="uq_containers_bl_number"),
    )
    op.create_index("ix_containers_tenant_id", "containers", ["tenant_id"])
    op.create_index("ix_containers_bl_id", "containers", ["bl_id"])


def downgrade() -> None:
    op.drop_index("ix_containers_bl_id", table_name="containers")
    op.drop_index("ix_containers_tenant_id", table_name="containers")
    op.drop_table("containers")
    op.drop_table("container_types")
    op.drop_index("ix_bills_of_lading_tenant_id", table_name="bills_of_lading")
    op.drop_table("bills_of_lading")
    op.drop_index("ix_clients_tenant_id", table_name="clients")
    op.drop_table("clients")
