"""Create characters table

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates the `characters` collection table: UUID id, insertion
       timestamp and JSON document body (JSONB on PostgreSQL).

The nickname text index is not created here; the application ensures it
at startup.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "characters",
        sa.Column(
            "id",
            sa.Uuid(),
            nullable=False,
            comment="Store-assigned identifier, serialized as _id",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="Insertion time; listing order",
        ),
        sa.Column(
            "document",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            comment="Character fields: realName, nickname, description",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Listing and offset pagination sort by (created_at, id)
    op.create_index(
        "idx_characters_created_at",
        "characters",
        ["created_at", "id"],
    )


def downgrade() -> None:
    """Drop the characters table. Destructive: all documents are lost."""
    op.drop_index("idx_characters_created_at", table_name="characters")
    op.drop_table("characters")
