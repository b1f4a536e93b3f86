"""create users, invites and audit_events tables

Revision ID: 5e1c0a7b9d21
Revises:
Create Date: 2026-02-02 10:12:44.181930

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5e1c0a7b9d21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the portal identity store and the account audit trail."""
    # Check if tables already exist (idempotent)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("role", sa.String(32), nullable=False, server_default="CLIENT"),
            sa.Column("engagement_ids", sa.JSON(), nullable=False),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("vis", sa.JSON(), nullable=True),
            sa.Column("password_hash", sa.String(255), nullable=True),
            sa.Column("status", sa.String(16), nullable=False, server_default="active"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("last_login_at", sa.DateTime(), nullable=True),
        )
        op.create_index("idx_users_email", "users", ["email"])

    if "invites" not in existing_tables:
        op.create_table(
            "invites",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("role", sa.String(32), nullable=False, server_default="CLIENT"),
            sa.Column("engagement_ids", sa.JSON(), nullable=False),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("vis", sa.JSON(), nullable=True),
            sa.Column("token_hash", sa.String(64), nullable=False, unique=True),
            sa.Column("type", sa.String(16), nullable=False, server_default="magic"),
            sa.Column("expires_at", sa.DateTime(), nullable=False),
            sa.Column("used_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("created_by", sa.String(320), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
        )
        op.create_index("idx_invites_email", "invites", ["email"])

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_email", sa.String(320), nullable=True),
            sa.Column("actor_role", sa.String(32), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.UniqueConstraint("request_id", "id", name="uq_audit_request_id_id"),
        )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("idx_invites_email", table_name="invites")
    op.drop_table("invites")
    op.drop_index("idx_users_email", table_name="users")
    op.drop_table("users")
