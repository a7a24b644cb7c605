"""
Character API: Character SQLAlchemy Model
============================================

What:  ORM model representing the `characters` collection.
How:   One row per document: a store-generated UUID, an insertion timestamp
       and the JSON document body (JSONB on PostgreSQL, JSON elsewhere).
Who:   Used by CharacterService for CRUD operations and by Alembic.

Table Design:
    - id: assigned on insert, never changes, serialized as `_id`
    - created_at: insertion order; list and paginated queries sort by
      (created_at, id) so consecutive pages never overlap
    - document: the character fields themselves; updates merge into it
    - nickname_key: casefolded nickname, the case-insensitive lookup key;
      NULL when the stored nickname is not a string

    The nickname text index is not declared here. It is created at
    startup by database.ensure_nickname_index (dialect-specific).
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Index, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from character_api.database import Base


class Character(Base):
    """
    A stored character document.

    Lifecycle:
        1. Inserted by POST /characters after strict schema validation
        2. Fields merged by PUT (by id or by nickname)
        3. Deleted permanently by DELETE; there is no soft-delete
    """

    __tablename__ = "characters"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    document: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )

    nickname_key: Mapped[Optional[str]] = mapped_column(
        String,
        nullable=True,
    )

    __table_args__ = (
        Index("idx_characters_created_at", created_at, id),
        Index("idx_characters_nickname_key", nickname_key),
    )

    def to_document(self) -> Dict[str, Any]:
        """The stored document with its identifier, as the API returns it."""
        return {"_id": self.id, **self.document}

    def __repr__(self) -> str:
        return f"<Character(id={self.id}, nickname={self.document.get('nickname')!r})>"
