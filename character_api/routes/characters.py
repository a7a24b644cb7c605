"""
Character API: Character Route Handlers
==========================================

What:  HTTP surface of the characters collection.
How:   Extracts path/query/body input, delegates to CharacterService,
       and shapes the response (JSON documents, or plain-text
       confirmations for mutations).

Route order matters: /characters/list and /characters/paginated are
registered before /characters/{character_id} so they are not captured as
identifiers.
"""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from character_api.database import get_db_session
from character_api.exceptions import ValidationError
from character_api.schemas.character import CharacterResponse, ErrorResponse
from character_api.services.character_service import (
    CharacterService,
    get_character_service,
    parse_character_id,
    parse_positive_int,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/characters", tags=["Characters"])

CREATED_MESSAGE = "Character created successfully"
UPDATED_MESSAGE = "Character updated successfully"
DELETED_MESSAGE = "Character deleted successfully"

# Shared OpenAPI error docs
_BAD_REQUEST = {400: {"description": "Invalid input", "model": ErrorResponse}}
_NOT_FOUND = {404: {"description": "Character not found", "model": ErrorResponse}}
_SERVER_ERROR = {500: {"description": "Server error", "model": ErrorResponse}}


def require_nickname(nickname: Optional[str]) -> str:
    """Absent or empty `nickname` query parameter → 400."""
    if not nickname:
        raise ValidationError(message='Parameter "nickname" is required.', field="nickname")
    return nickname


# ══════════════════════════════════════════════════════════════════════════
# Listing
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/list",
    response_model=List[CharacterResponse],
    responses={**_SERVER_ERROR},
    summary="List every character",
)
async def list_characters(
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> List[CharacterResponse]:
    """Full, unpaginated listing in insertion order."""
    documents = await service.list_characters(db)
    return [CharacterResponse.model_validate(document) for document in documents]


@router.get(
    "/paginated",
    response_model=List[CharacterResponse],
    responses={**_SERVER_ERROR},
    summary="List characters one page at a time",
    description=(
        "Returns one page of characters. Pagination metadata is sent in the "
        "X-Page, X-Page-Size, X-Total-Pages and X-Total-Results headers. "
        "Missing or invalid page/pageSize values fall back to the defaults."
    ),
)
async def paginate_characters(
    request: Request,
    response: Response,
    page: Optional[str] = Query(default=None, description="1-based page number (default 1)"),
    page_size: Optional[str] = Query(
        default=None, alias="pageSize", description="Items per page (default 4)"
    ),
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> List[CharacterResponse]:
    default_page_size = request.app.state.settings.default_page_size
    result = await service.paginate_characters(
        db,
        page=parse_positive_int(page, 1),
        page_size=parse_positive_int(page_size, default_page_size),
    )

    response.headers["X-Page"] = str(result.page)
    response.headers["X-Page-Size"] = str(result.page_size)
    response.headers["X-Total-Pages"] = str(result.total_pages)
    response.headers["X-Total-Results"] = str(result.total_results)

    return [CharacterResponse.model_validate(document) for document in result.items]


# ══════════════════════════════════════════════════════════════════════════
# Collection-level routes (keyed by nickname)
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "",
    response_model=CharacterResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
    summary="Get a character by nickname (case-insensitive)",
)
async def get_character_by_nickname(
    nickname: Optional[str] = Query(default=None, description="Exact nickname, any case"),
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> CharacterResponse:
    document = await service.get_character_by_nickname(db, require_nickname(nickname))
    return CharacterResponse.model_validate(document)


@router.post(
    "",
    status_code=201,
    response_class=PlainTextResponse,
    responses={**_BAD_REQUEST, **_SERVER_ERROR},
    summary="Create a character",
    description=(
        "Body must contain exactly realName, nickname and description, all strings. "
        "Schema violations are listed in the `errors` array of the 400 response."
    ),
)
async def create_character(
    body: Any = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> PlainTextResponse:
    await service.create_character(db, body)
    return PlainTextResponse(CREATED_MESSAGE, status_code=201)


@router.put(
    "",
    response_class=PlainTextResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
    summary="Partially update a character by nickname",
)
async def update_character_by_nickname(
    nickname: Optional[str] = Query(default=None),
    body: Any = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> PlainTextResponse:
    await service.update_character_by_nickname(db, require_nickname(nickname), body)
    return PlainTextResponse(UPDATED_MESSAGE)


@router.delete(
    "",
    response_class=PlainTextResponse,
    responses={**_NOT_FOUND, **_SERVER_ERROR},
    summary="Delete a character by nickname",
)
async def delete_character_by_nickname(
    nickname: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> PlainTextResponse:
    # No presence check here: a missing nickname simply matches nothing
    await service.delete_character_by_nickname(db, nickname)
    return PlainTextResponse(DELETED_MESSAGE)


# ══════════════════════════════════════════════════════════════════════════
# Item routes (keyed by identifier)
# ══════════════════════════════════════════════════════════════════════════


@router.get(
    "/{character_id}",
    response_model=CharacterResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
    summary="Get a character by ID",
)
async def get_character(
    character_id: str,
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> CharacterResponse:
    document = await service.get_character(db, parse_character_id(character_id))
    return CharacterResponse.model_validate(document)


@router.put(
    "/{character_id}",
    response_class=PlainTextResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
    summary="Partially update a character by ID",
    description="Only the fields present in the body are replaced.",
)
async def update_character(
    character_id: str,
    body: Any = Body(default=None),
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> PlainTextResponse:
    await service.update_character(db, parse_character_id(character_id), body)
    return PlainTextResponse(UPDATED_MESSAGE)


@router.delete(
    "/{character_id}",
    response_class=PlainTextResponse,
    responses={**_BAD_REQUEST, **_NOT_FOUND, **_SERVER_ERROR},
    summary="Delete a character by ID",
)
async def delete_character(
    character_id: str,
    db: AsyncSession = Depends(get_db_session),
    service: CharacterService = Depends(get_character_service),
) -> PlainTextResponse:
    await service.delete_character(db, parse_character_id(character_id))
    return PlainTextResponse(DELETED_MESSAGE)
