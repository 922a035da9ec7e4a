"""create notes

Revision ID: 3f1c2a9b7d10
Revises:
Create Date: 2026-10-17 09:12:44.318205

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the owner-scoped notes table."""
    op.create_table(
        "notes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.String(320), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("origin", sa.String(16), nullable=False),
        sa.Column("rich_content", sa.Text(), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("attachment_url", sa.String(2048), nullable=True),
        sa.Column("attachment_storage_id", sa.String(512), nullable=True),
        sa.Column("attachment_file_name", sa.String(500), nullable=True),
        sa.Column("attachment_mime_type", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("origin IN ('manual', 'scan')", name="ck_notes_origin"),
        sa.CheckConstraint(
            "(origin = 'manual' AND transcript IS NULL AND attachment_url IS NULL)"
            " OR (origin = 'scan' AND rich_content IS NULL)",
            name="ck_notes_origin_fields",
        ),
    )
    # list() filters by owner and sorts by created_at DESC
    op.create_index("ix_notes_owner_created", "notes", ["owner_id", "created_at"])


def downgrade() -> None:
    """Drop the notes table."""
    op.drop_index("ix_notes_owner_created", table_name="notes")
    op.drop_table("notes")
