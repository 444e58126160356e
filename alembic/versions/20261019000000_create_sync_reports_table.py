"""Create sync_reports table for ticket sync audit records.

Revision ID: 20261019000000
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sync_reports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("scan_id", sa.String(length=255), nullable=True),
        sa.Column("application", sa.String(length=255), nullable=True),
        sa.Column("repo", sa.String(length=1024), nullable=True),
        sa.Column("branch", sa.String(length=1024), nullable=True),
        sa.Column("project_key", sa.String(length=255), nullable=False),
        sa.Column("new_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="[]"),
        sa.Column("updated_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="[]"),
        sa.Column("closed_ids", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="[]"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sync_reports_scan_id"), "sync_reports", ["scan_id"], unique=False)
    op.create_index(op.f("ix_sync_reports_project_key"), "sync_reports", ["project_key"], unique=False)
    op.create_index(op.f("ix_sync_reports_created_at"), "sync_reports", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_sync_reports_created_at"), table_name="sync_reports")
    op.drop_index(op.f("ix_sync_reports_project_key"), table_name="sync_reports")
    op.drop_index(op.f("ix_sync_reports_scan_id"), table_name="sync_reports")
    op.drop_table("sync_reports")
