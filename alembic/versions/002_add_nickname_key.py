"""Add casefolded nickname lookup key

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 12:00:00.000000+00:00

What:  Adds `characters.nickname_key` (the casefolded nickname) and its
       index, then fills it for rows written before this revision.

The backfill folds in Python, so this revision needs an online connection.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "characters",
        sa.Column(
            "nickname_key",
            sa.String(),
            nullable=True,
            comment="Casefolded nickname; NULL when the nickname is not a string",
        ),
    )
    op.create_index(
        "idx_characters_nickname_key",
        "characters",
        ["nickname_key"],
    )

    characters = sa.table(
        "characters",
        sa.column("id", sa.Uuid()),
        sa.column("document", sa.JSON()),
        sa.column("nickname_key", sa.String()),
    )
    bind = op.get_bind()
    for row in bind.execute(sa.select(characters.c.id, characters.c.document)).all():
        nickname = (row.document or {}).get("nickname")
        if isinstance(nickname, str):
            bind.execute(
                characters.update()
                .where(characters.c.id == row.id)
                .values(nickname_key=nickname.casefold())
            )


def downgrade() -> None:
    op.drop_index("idx_characters_nickname_key", table_name="characters")
    op.drop_column("characters", "nickname_key")
