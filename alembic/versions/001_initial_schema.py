"""Initial schema: webhook_registrations and push_reflections

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # One row per (source, user); secret is Fernet-encrypted
    op.create_table(
        "webhook_registrations",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("source_kind", sa.String(20), nullable=False),
        sa.Column("source_key", sa.String(255), nullable=False),
        sa.Column("organization_name", sa.String(255), nullable=True),
        sa.Column("repository_owner", sa.String(255), nullable=True),
        sa.Column("repository_name", sa.String(255), nullable=True),
        sa.Column("github_hook_id", sa.BigInteger, nullable=False),
        sa.Column("secret_encrypted", sa.Text, nullable=False),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("source_kind", "source_key", "user_id", name="uq_webhook_registrations_source_user"),
    )
    op.create_index("ix_webhook_registrations_source", "webhook_registrations", ["source_kind", "source_key"])
    op.create_index("ix_webhook_registrations_user_id", "webhook_registrations", ["user_id"])

    # One row per push; id = sanitized repository name + first commit id
    op.create_table(
        "push_reflections",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("repository_name", sa.String(255), nullable=False),
        sa.Column("commits", postgresql.JSONB, nullable=False),
        sa.Column("reflection", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_push_reflections_user_created", "push_reflections", ["user_id", "created_at"])
    op.create_index("ix_push_reflections_user_repo", "push_reflections", ["user_id", "repository_name"])


def downgrade() -> None:
    op.drop_index("ix_push_reflections_user_repo", table_name="push_reflections")
    op.drop_index("ix_push_reflections_user_created", table_name="push_reflections")
    op.drop_table("push_reflections")

    op.drop_index("ix_webhook_registrations_user_id", table_name="webhook_registrations")
    op.drop_index("ix_webhook_registrations_source", table_name="webhook_registrations")
    op.drop_table("webhook_registrations")
