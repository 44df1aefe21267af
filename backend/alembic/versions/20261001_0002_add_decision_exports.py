"""add decision exports, export logs and audit logs

Revision ID: 20261001_0002_add_decision_exports
Revises: 20261001_0001_init_decision_tables
Create Date: 2026-10-01
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261001_0002_add_decision_exports"
down_revision = "20261001_0001_init_decision_tables"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "decision_exports",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("project_id", sa.String(length=36), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("scope", sa.String(length=16), nullable=False),
        sa.Column("decision_ids", sa.JSON(), nullable=False),
        sa.Column("format", sa.String(length=8), nullable=False),
        sa.Column(
            "branding_profile_id",
            sa.String(length=36),
            sa.ForeignKey("branding_profiles.id"),
            nullable=True,
        ),
        sa.Column("include_attachments", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_by", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("status", sa.String(length=16), server_default="processing", nullable=False),
        sa.Column("stage", sa.String(length=16), server_default="pending", nullable=False),
        sa.Column("progress", sa.Integer(), server_default="0", nullable=False),
        sa.Column("artifact_url", sa.Text(), nullable=True),
        sa.Column("artifact_size", sa.Integer(), nullable=True),
        sa.Column("artifact_content_type", sa.String(length=64), nullable=True),
        sa.Column("storage_key", sa.String(length=512), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("request_payload", sa.JSON(), nullable=True),
        sa.Column(
            "retried_from_id",
            sa.String(length=36),
            sa.ForeignKey("decision_exports.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_decision_exports_project_id", "decision_exports", ["project_id"])
    op.create_index("ix_decision_exports_created_by", "decision_exports", ["created_by"])
    op.create_index("ix_decision_exports_status", "decision_exports", ["status"])

    op.create_table(
        "export_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "export_id",
            sa.String(length=36),
            sa.ForeignKey("decision_exports.id"),
            nullable=False,
        ),
        sa.Column("level", sa.String(length=16), server_default="info", nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_export_logs_export_id", "export_logs", ["export_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=64), nullable=True),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_request_id", "audit_logs", ["request_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_request_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_user_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_export_logs_export_id", table_name="export_logs")
    op.drop_table("export_logs")
    op.drop_index("ix_decision_exports_status", table_name="decision_exports")
    op.drop_index("ix_decision_exports_created_by", table_name="decision_exports")
    op.drop_index("ix_decision_exports_project_id", table_name="decision_exports")
    op.drop_table("decision_exports")
