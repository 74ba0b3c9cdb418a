"""folders, folder counters, processing stages and stage history

Revision ID: 0003_folders_stages
Revises: 0002_clients_shipping
Create Date: 2025-08-06 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0003_folders_stages"
down_revision = "0002_clients_shipping"
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
        "folders",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("tenant_id", GUID(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("folder_number", sa.String(length=20), nullable=False),
        sa.Column("folder_date", sa.Date(), nullable=False),
        sa.Column("transport_type", sa.String(length=1), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("client_id", GUID(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("client_reference", sa.String(length=100), nullable=True),
        sa.Column("bl_id", GUID(), sa.ForeignKey("bills_of_lading.id"), nullable=True),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("expected_delivery_date", sa.Date(), nullable=True),
        sa.Column("actual_delivery_date", sa.Date(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("assigned_to", GUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_by", GUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("updated_by", GUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("deleted_by", GUID(), nullable=True),
        sa.UniqueConstraint("tenant_id", "folder_number", name="uq_folders_tenant_number"),
    )
    op.create_index("ix_folders_tenant_id", "folders", ["tenant_id"])
    op.create_index("ix_folders_tenant_status", "folders", ["tenant_id", "status"])

    op.create_table(
        "folder_counters",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("tenant_id", GUID(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("transport_type", sa.String(length=1), nullable=False),
        sa.Column("counter_date", sa.Date(), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("tenant_id", "transport_type", "counter_date", name="uq_folder_counters_scope"),
    )

    op.create_table(
        "default_processing_stages",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("stage", sa.String(length=50), nullable=False, unique=True),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("default_priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_be_skipped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("default_duration_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("requires_documents", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "folder_processing_stages",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("tenant_id", GUID(), sa.ForeignKey("tenants.id"), nullable=False),
        sa.Column("folder_id", GUID(), sa.ForeignKey("folders.id"), nullable=False),
        sa.Column("stage", sa.String(length=50), nullable=False),
        sa.Column("sequence_order", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_be_skipped", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("assigned_to", GUID(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("started_by", GUID(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_by", GUID(), nullable=True),
        sa.Column("blocked_at", sa.DateTime(), nullable=True),
        sa.Column("blocking_reason", sa.Text(), nullable=True),
        sa.Column("blocked_from_status", sa.String(length=20), nullable=True),
        sa.Column("skipped_at", sa.DateTime(), nullable=True),
        sa.Column("skipped_by", GUID(), nullable=True),
        sa.Column("skip_reason", sa.String(length=50), nullable=True),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("estimated_completion_date", sa.DateTime(), nullable=True),
        sa.Column("actual_duration_hours", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("internal_comments", sa.Text(), nullable=True),
        sa.Column("client_visible_comments", sa.Text(), nullable=True),
        sa.Column("documents_required", sa.JSON(), nullable=True),
        sa.Column("documents_received", sa.JSON(), nullable=True),
        sa.Column("updated_by", GUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("folder_id", "stage", name="uq_folder_processing_stage"),
    )
    op.create_index("ix_folder_processing_stages_tenant_id", "folder_processing_stages", ["tenant_id"])
    op.create_index("ix_folder_processing_stages_folder_id", "folder_processing_stages", ["folder_id"])

    op.create_table(
        "stage_transitions",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("tenant_id", GUID(), nullable=False),
        sa.Column("folder_id", GUID(), sa.ForeignKey("folders.id"), nullable=False),
        sa.Column("stage_id", GUID(), sa.ForeignKey("folder_processing_stages.id"), nullable=False),
        sa.Column("stage", sa.String(length=50), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("from_status", sa.String(length=20), nullable=False),
        sa.Column("to_status", sa.String(length=20), nullable=False),
        sa.Column("actor_id", GUID(), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_stage_transitions_tenant_id", "stage_transitions", ["tenant_id"])
    op.create_index("ix_stage_transitions_stage", "stage_transitions", ["stage_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_stage_transitions_stage", table_name="stage_transitions")
    op.drop_index("ix_stage_transitions_tenant_id", table_name="stage_transitions")
    op.drop_table("stage_transitions")
    op.drop_index("ix_folder_processing_stages_folder_id", table_name="folder_processing_stages")
    op.drop_index("ix_folder_processing_stages_tenant_id", table_name="folder_processing_stages")
    op.drop_table("folder_processing_stages")
    op.drop_table("default_processing_stages")
    op.drop_table("folder_counters")
    op.drop_index("ix_folders_tenant_status", table_name="folders")
    op.drop_index("ix_folders_tenant_id", table_name="folders")
    op.drop_table("folders")
