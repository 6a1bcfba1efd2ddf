"""dialog sessions

Revision ID: 001_dialog_sessions
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


revision = "001_dialog_sessions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "dialog_sessions",
        sa.Column("principal_id", sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column("state", sa.String(length=32), nullable=False),
        sa.Column("context_json", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("principal_id"),
    )
    op.create_index("ix_dialog_sessions_updated_at", "dialog_sessions", ["updated_at"])


def downgrade() -> None:
    op.drop_index("ix_dialog_sessions_updated_at", table_name="dialog_sessions")
    op.drop_table("dialog_sessions")
