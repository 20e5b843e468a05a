"""Personal collection (library) endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from mushee.api.dependencies import (
    CurrentUserDep,
    SessionDep,
    get_collection_service,
    parse_score_id,
)
from mushee.api.schemas.library import (
    AddToLibraryRequest,
    LibraryItemResponse,
    LibraryResponse,
)
from mushee.application.services.collection_service import CollectionService
from mushee.domain.entities import CollectionSortField, SortOrder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/library", tags=["library"])


@router.get("", response_model=LibraryResponse)
async def list_library(
    user_id: CurrentUserDep,
    service: Annotated[CollectionService, Depends(get_collection_service)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
    sort: CollectionSortField = CollectionSortField.ADDED_AT,
    order: SortOrder = SortOrder.DESC,
    search: Annotated[str | None, Query(max_length=200)] = None,
) -> LibraryResponse:
    """Get one page of the caller's library."""
    collection_page = await service.list_collection(
        user_id, page=page, limit=limit, sort=sort, order=order, search=search
    )
    return LibraryResponse.from_page(collection_page)


# Adding the same score twice is fine: 201 the first time, 200 afterwards
@router.post(
    "",
    response_model=LibraryItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_to_library(
    body: AddToLibraryRequest,
    response: Response,
    user_id: CurrentUserDep,
    session: SessionDep,
    service: Annotated[CollectionService, Depends(get_collection_service)],
) -> LibraryItemResponse:
    """Add an existing catalog score to the caller's library."""
    item, created = await service.add_to_collection(user_id, parse_score_id(body.score_id))
    await session.commit()
    if not created:
        response.status_code = status.HTTP_200_OK
    return LibraryItemResponse.from_entity(item)


@router.delete("/{score_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_library(
    score_id: str,
    user_id: CurrentUserDep,
    session: SessionDep,
    service: Annotated[CollectionService, Depends(get_collection_service)],
) -> Response:
    """Remove a score from the caller's library (the score itself stays)."""
    await service.remove_from_collection(user_id, parse_score_id(score_id))
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
