"""
Character API: Character Service (Business Logic)
====================================================

What:  CRUD operations over the `characters` collection.
How:   Each method performs one or two store operations on the session it
       is given and returns plain documents (dicts) or raises an
       application exception.
Who:   Called by route handlers in routes/characters.py.

Error Handling Strategy:
    Application exceptions (ValidationError, NotFoundError) propagate
    unchanged. Anything else raised while talking to the store is logged
    with its traceback and re-raised as DatabaseError, which the handler
    in main.py turns into a generic 500.

Concurrency:
    The lookup-then-mutate sequences in update_* and delete_* are not
    atomic. Two concurrent deletes of the same character can both pass the
    lookup; the second then removes nothing and still reports success, or
    a later lookup reports 404. This is accepted.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from character_api.exceptions import (
    CharacterApiError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from character_api.models.character import Character
from character_api.schemas.character import CharacterCreate, CharacterUpdate

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 4


# ══════════════════════════════════════════════════════════════════════════
# Input Helpers
# ══════════════════════════════════════════════════════════════════════════


def parse_character_id(raw_id: str) -> uuid.UUID:
    """
    Parse a path identifier, rejecting anything that is not a UUID.

    Raises:
        ValidationError: malformed identifier (→ 400, store never queried)
    """
    try:
        return uuid.UUID(raw_id)
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(message="Invalid ID.", field="id", context={"value": raw_id})


def parse_positive_int(raw: Optional[str], default: int) -> int:
    """Lenient query parsing: missing, non-numeric or < 1 → default."""
    if raw is None:
        return default
    # Whole-string integers only: "3.7" and "2abc" are non-numeric, no prefix parsing
    try:
        value = int(raw.strip())
    except ValueError:
        return default
    return value if value >= 1 else default


def schema_errors(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into one {field, message, type} entry per violation."""
    errors = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"])
        errors.append({"field": field or None, "message": err["msg"], "type": err["type"]})
    return errors


def validate_body(schema: type[BaseModel], body: Any, message: str) -> Dict[str, Any]:
    """
    Validate a request body against a schema.

    Returns the body as submitted (camelCase keys, only the keys the client
    sent) so it can be stored or merged directly.

    Raises:
        ValidationError: with every violation listed in `errors`
    """
    try:
        schema.model_validate(body)
    except PydanticValidationError as e:
        errors = schema_errors(e)
        logger.info("Rejected %s body: %s", schema.__name__, errors)
        raise ValidationError(message=message, errors=errors)
    return dict(body)


def fold_nickname(nickname: Any) -> Optional[str]:
    """
    Lookup key for a nickname: its Unicode casefold.

    Folding happens here rather than in SQL, where lower() is ASCII-only on
    SQLite and locale-dependent on PostgreSQL. Non-string nicknames (possible
    through unvalidated updates) get no key and never match a lookup.
    """
    if not isinstance(nickname, str):
        return None
    return nickname.casefold()


def nickname_matches(nickname: str):
    """Case-insensitive, whole-string equality on the stored nickname."""
    return Character.nickname_key == fold_nickname(nickname)


@dataclass
class CharacterPage:
    """One slice of the collection plus the numbers sent in X-* headers."""
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total_pages: int
    total_results: int


# ══════════════════════════════════════════════════════════════════════════
# Service
# ══════════════════════════════════════════════════════════════════════════


class CharacterService:
    """
    Business logic for character operations.

    Stateless: the session arrives with each call, so one instance serves
    every request. `enforce_update_schema` switches schema validation on
    for update bodies.
    """

    def __init__(self, enforce_update_schema: bool = False):
        self.enforce_update_schema = enforce_update_schema

    # ── Create ────────────────────────────────────────────────────────────

    async def create_character(self, db: AsyncSession, body: Any) -> Dict[str, Any]:
        """
        Validate and insert a new character; the store assigns the id.

        Raises:
            ValidationError: body does not match CharacterCreate (→ 400)
            DatabaseError: insert failed (→ 500)
        """
        document = validate_body(
            CharacterCreate,
            body,
            "The submitted data is not valid for creating a character.",
        )
        try:
            character = Character(
                id=uuid.uuid4(),
                created_at=datetime.now(timezone.utc),
                document=document,
                nickname_key=fold_nickname(document["nickname"]),
            )
            db.add(character)
            await db.commit()
        except Exception as e:
            raise self._store_failure("creating character", e)

        logger.info("Character created: %s", character.id)
        return character.to_document()

    # ── Read ──────────────────────────────────────────────────────────────

    async def list_characters(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """Every character in insertion order. Unbounded."""
        try:
            result = await db.execute(
                select(Character).order_by(Character.created_at, Character.id)
            )
            return [character.to_document() for character in result.scalars().all()]
        except Exception as e:
            raise self._store_failure("listing characters", e)

    async def paginate_characters(
        self,
        db: AsyncSession,
        page: int = DEFAULT_PAGE,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> CharacterPage:
        """
        One page of the collection.

        skip = (page - 1) * page_size; total_pages = ceil(total / page_size).
        A page past the end yields an empty item list, not an error.
        """
        skip = (page - 1) * page_size
        try:
            count_result = await db.execute(select(func.count()).select_from(Character))
            total_results = count_result.scalar() or 0

            # Past the end: no query, so huge page numbers never reach OFFSET
            items = []
            if skip < total_results:
                result = await db.execute(
                    select(Character)
                    .order_by(Character.created_at, Character.id)
                    .offset(skip)
                    .limit(min(page_size, total_results - skip))
                )
                items = [character.to_document() for character in result.scalars().all()]
        except Exception as e:
            raise self._store_failure("paginating characters", e)

        return CharacterPage(
            items=items,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total_results / page_size),
            total_results=total_results,
        )

    async def get_character(self, db: AsyncSession, character_id: uuid.UUID) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: no character with this id (→ 404)
        """
        character = await self._find_by_id(db, character_id)
        if character is None:
            raise NotFoundError(key="ID", value=str(character_id))
        return character.to_document()

    async def get_character_by_nickname(self, db: AsyncSession, nickname: str) -> Dict[str, Any]:
        """First character whose nickname equals `nickname`, ignoring case."""
        character = await self._find_by_nickname(db, nickname)
        if character is None:
            raise NotFoundError(key="nickname", value=nickname)
        return character.to_document()

    # ── Update ────────────────────────────────────────────────────────────

    async def update_character(
        self, db: AsyncSession, character_id: uuid.UUID, body: Any
    ) -> Dict[str, Any]:
        """Merge the body's fields into the character with this id."""
        changes = self._validate_changes(body)
        character = await self._find_by_id(db, character_id)
        if character is None:
            raise NotFoundError(key="ID", value=str(character_id))
        return await self._apply_changes(db, character, changes)

    async def update_character_by_nickname(
        self, db: AsyncSession, nickname: str, body: Any
    ) -> Dict[str, Any]:
        """Merge the body's fields into the first nickname match."""
        changes = self._validate_changes(body)
        character = await self._find_by_nickname(db, nickname)
        if character is None:
            raise NotFoundError(key="nickname", value=nickname)
        return await self._apply_changes(db, character, changes)

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_character(self, db: AsyncSession, character_id: uuid.UUID) -> None:
        character = await self._find_by_id(db, character_id)
        if character is None:
            raise NotFoundError(key="ID", value=str(character_id))
        await self._delete(db, character)

    async def delete_character_by_nickname(
        self, db: AsyncSession, nickname: Optional[str]
    ) -> None:
        """An absent nickname matches nothing and raises NotFoundError."""
        character = None
        if nickname is not None:
            character = await self._find_by_nickname(db, nickname)
        if character is None:
            raise NotFoundError(key="nickname", value=nickname)
        await self._delete(db, character)

    # ── Internals ─────────────────────────────────────────────────────────

    async def _find_by_id(self, db: AsyncSession, character_id: uuid.UUID) -> Optional[Character]:
        try:
            result = await db.execute(select(Character).where(Character.id == character_id))
            return result.scalar_one_or_none()
        except Exception as e:
            raise self._store_failure("fetching character by id", e)

    async def _find_by_nickname(self, db: AsyncSession, nickname: str) -> Optional[Character]:
        try:
            result = await db.execute(
                select(Character)
                .where(nickname_matches(nickname))
                .order_by(Character.created_at, Character.id)
                .limit(1)
            )
            return result.scalars().first()
        except Exception as e:
            raise self._store_failure("fetching character by nickname", e)

    def _validate_changes(self, body: Any) -> Dict[str, Any]:
        if not isinstance(body, dict) or not body:
            raise ValidationError(message="Update body must be a non-empty JSON object.")
        if "_id" in body:
            raise ValidationError(message="The character ID cannot be changed.", field="_id")
        if self.enforce_update_schema:
            return validate_body(
                CharacterUpdate,
                body,
                "The submitted data is not valid for updating a character.",
            )
        return dict(body)

    async def _apply_changes(
        self, db: AsyncSession, character: Character, changes: Dict[str, Any]
    ) -> Dict[str, Any]:
        try:
            # Reassign rather than mutate so the JSON column is marked dirty
            character.document = {**character.document, **changes}
            if "nickname" in changes:
                character.nickname_key = fold_nickname(changes["nickname"])
            await db.commit()
        except Exception as e:
            raise self._store_failure("updating character", e)

        logger.info("Character %s updated: %s", character.id, sorted(changes))
        return character.to_document()

    async def _delete(self, db: AsyncSession, character: Character) -> None:
        try:
            await db.delete(character)
            await db.commit()
        except Exception as e:
            raise self._store_failure("deleting character", e)
        logger.info("Character deleted: %s", character.id)

    @staticmethod
    def _store_failure(action: str, error: Exception) -> CharacterApiError:
        if isinstance(error, CharacterApiError):
            return error
        logger.error("Store error while %s: %s", action, error, exc_info=True)
        return DatabaseError(context={"action": action, "error_type": type(error).__name__})


def get_character_service(request: Request) -> CharacterService:
    """FastAPI dependency: the service instance built by create_app()."""
    return request.app.state.character_service
